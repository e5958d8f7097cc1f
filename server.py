"""Main HTTP server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import json
import logging
import os
import socket
import time

from config import (
    ACCEPT_POLL_SECS,
    BACKLOG,
    CONTAIN_STATIC_PATHS,
    HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_PATH_BYTES,
    MAX_WORKERS,
    PORT,
    SERVER_ENGINE,
    STATIC_DIR,
)
from handlers.static_handler import serve_static
from request import HTTPRequest, HTTPRequestParseError
from response import HTTPResponse, error_response
from socket_handler import (
    RequestTooLargeError,
    SocketTimeoutError,
    read_http_request,
    send_all,
)
from workers import ForkWorkers, ThreadWorkers

ENGINES = ("thread", "fork")

logger = logging.getLogger(__name__)


def format_peer(address: tuple) -> str:
    if not address:
        return "-"
    host = address[0]
    if len(address) < 2:
        return str(host)
    if ":" in str(host):
        return f"[{host}]:{address[1]}"
    return f"{host}:{address[1]}"


class HTTPServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        static_dir: str = STATIC_DIR,
        *,
        engine: str = SERVER_ENGINE,
        max_workers: int = MAX_WORKERS,
        keepalive_timeout_secs: float | None = None,
        log_format: str = LOG_FORMAT,
        contain_paths: bool = CONTAIN_STATIC_PATHS,
    ) -> None:
        if engine not in ENGINES:
            raise ValueError(f"Unsupported engine: {engine}")
        # root + "/" + at least one filename byte must fit in a resolved path.
        if len(os.fsencode(static_dir)) + 2 > MAX_PATH_BYTES:
            raise ValueError(
                f"Static directory path is too long to resolve files within {MAX_PATH_BYTES} bytes"
            )

        self.host = host
        self.port = port
        self.static_dir = static_dir
        self.engine = engine
        self.max_workers = max_workers
        self.keepalive_timeout_secs = keepalive_timeout_secs
        self.log_format = log_format
        self.contain_paths = contain_paths

        self._server_socket: socket.socket | None = None
        self._workers: ThreadWorkers | ForkWorkers | None = None
        self._running = False

    def start(self) -> None:
        """Listen and hand every accepted connection to its own worker."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(BACKLOG)
            server_socket.settimeout(ACCEPT_POLL_SECS)
            self._workers = self._build_workers(server_socket)
            self._running = True
            self.port = server_socket.getsockname()[1]
            logger.info(
                "Serving %s on %s:%s (engine=%s), waiting for connections",
                self.static_dir,
                self.host,
                self.port,
                self.engine,
            )

            try:
                while self._running:
                    self._workers.reap()
                    try:
                        client_socket, address = self._accept(server_socket)
                    except socket.timeout:
                        continue
                    except OSError as exc:
                        if not self._running or server_socket.fileno() == -1:
                            break
                        logger.warning("accept failed: %s", exc)
                        continue

                    logger.info("Got connection from %s", format_peer(address))
                    try:
                        accepted = self._workers.submit(client_socket, address)
                    except (OSError, RuntimeError):
                        logger.exception(
                            "Could not start a worker for %s", format_peer(address)
                        )
                        accepted = False
                    if not accepted:
                        self._send_busy_response(client_socket, address)
            finally:
                self._running = False
                self._workers.shutdown()

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _accept(self, server_socket: socket.socket) -> tuple[socket.socket, tuple]:
        return server_socket.accept()

    def _build_workers(self, server_socket: socket.socket) -> ThreadWorkers | ForkWorkers:
        if self.engine == "fork":
            return ForkWorkers(
                self.max_workers,
                self._handle_client,
                inherited_sockets=[server_socket],
            )
        return ThreadWorkers(self.max_workers, self._handle_client)

    def _send_busy_response(self, client_socket: socket.socket, address: tuple) -> None:
        with client_socket:
            started_at = time.perf_counter()
            response = error_response(503, close=True)
            try:
                bytes_sent = send_all(client_socket, response.to_bytes())
            except OSError as exc:
                logger.warning("client=%s busy response failed: %s", format_peer(address), exc)
                return
            self._record_and_log(
                peer=format_peer(address),
                method="-",
                target="-",
                response=response,
                bytes_in=0,
                bytes_out=bytes_sent,
                started_at=started_at,
            )

    def _handle_client(self, client_socket: socket.socket, address: tuple) -> None:
        peer = format_peer(address)
        with client_socket:
            client_socket.settimeout(self.keepalive_timeout_secs)
            while True:
                started_at = time.perf_counter()
                try:
                    raw_request = read_http_request(client_socket)
                except RequestTooLargeError as exc:
                    logger.warning("client=%s %s", peer, exc)
                    response = error_response(413, close=True)
                    self._respond(client_socket, peer, None, response, 0, started_at)
                    return
                except SocketTimeoutError:
                    logger.info("client=%s idle timeout, closing connection", peer)
                    return
                except OSError as exc:
                    logger.warning("client=%s recv failed: %s", peer, exc)
                    return

                if not raw_request:
                    logger.info("client=%s closed connection", peer)
                    return

                logger.debug("client=%s message: %r", peer, raw_request)
                request: HTTPRequest | None = None
                try:
                    request = HTTPRequest.from_bytes(raw_request)
                except HTTPRequestParseError as exc:
                    logger.debug("client=%s rejected request: %s", peer, exc)
                    response = error_response(exc.status_code)
                else:
                    logger.debug("client=%s requested filename: %r", peer, request.target)
                    response = self._dispatch(request)

                if not self._respond(
                    client_socket, peer, request, response, len(raw_request), started_at
                ):
                    return
                if response.should_close:
                    return

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        try:
            return serve_static(
                request.target,
                self.static_dir,
                contain_paths=self.contain_paths,
            )
        except Exception:
            logger.exception("Unhandled error while serving %s", request.display_target)
            return error_response(500, close=True)

    def _respond(
        self,
        client_socket: socket.socket,
        peer: str,
        request: HTTPRequest | None,
        response: HTTPResponse,
        bytes_in: int,
        started_at: float,
    ) -> bool:
        payload = response.to_bytes()
        try:
            bytes_sent = send_all(client_socket, payload)
        except OSError as exc:
            logger.warning("client=%s send failed: %s", peer, exc)
            return False

        self._record_and_log(
            peer=peer,
            method=request.method if request is not None else "-",
            target=request.display_target if request is not None else "-",
            response=response,
            bytes_in=bytes_in,
            bytes_out=bytes_sent,
            started_at=started_at,
        )
        return True

    def _record_and_log(
        self,
        *,
        peer: str,
        method: str,
        target: str,
        response: HTTPResponse,
        bytes_in: int,
        bytes_out: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": peer,
            "method": method,
            "target": target,
            "status": response.status_code,
            "engine": self.engine,
            "pid": os.getpid(),
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            (
                "client=%s method=%s target=%s status=%s engine=%s pid=%s "
                "bytes_in=%s bytes_out=%s duration_ms=%.2f"
            ),
            event["client"],
            event["method"],
            event["target"],
            event["status"],
            event["engine"],
            event["pid"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve files from a static directory over HTTP/1.1")
    parser.add_argument("-static", "--static", dest="static_dir", default=STATIC_DIR)
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--engine", choices=ENGINES, default=SERVER_ENGINE)
    parser.add_argument("--max-workers", type=int, default=MAX_WORKERS)
    parser.add_argument(
        "--keepalive-timeout",
        type=float,
        default=None,
        help="close connections idle for this many seconds (default: never)",
    )
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=LOG_LEVEL,
    )
    parser.add_argument(
        "--contain-paths",
        action="store_true",
        default=CONTAIN_STATIC_PATHS,
        help="reject targets that resolve outside the static directory (403)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))
    server = HTTPServer(
        host=args.host,
        port=args.port,
        static_dir=args.static_dir,
        engine=args.engine,
        max_workers=args.max_workers,
        keepalive_timeout_secs=args.keepalive_timeout,
        log_format=args.log_format,
        contain_paths=args.contain_paths,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
