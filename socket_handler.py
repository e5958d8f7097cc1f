"""Low-level socket read/write utilities."""

from __future__ import annotations

import logging
import socket

from config import MAX_REQUEST_BYTES, READ_CHUNK_SIZE

HEADER_TERMINATOR = b"\r\n\r\n"

logger = logging.getLogger(__name__)


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class RequestTooLargeError(HTTPReadError):
    """Raised when the request buffer fills up before the header terminator."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


def read_http_request(
    client_socket: socket.socket,
    *,
    max_bytes: int = MAX_REQUEST_BYTES,
    chunk_size: int = READ_CHUNK_SIZE,
) -> bytes:
    """Read one request head, returning b"" when the peer closed the connection.

    Reading stops as soon as the buffered bytes end with CRLF CRLF. Bytes that
    follow the terminator inside the same chunk are not searched for.
    """
    buffer = bytearray()

    while True:
        remaining = max_bytes - len(buffer)
        if remaining <= 0:
            raise RequestTooLargeError(
                f"Request exceeded {max_bytes} bytes without a header terminator"
            )

        try:
            chunk = client_socket.recv(min(chunk_size, remaining))
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if buffer:
                logger.debug("Peer closed with %d unterminated request bytes", len(buffer))
            return b""

        buffer.extend(chunk)
        if len(buffer) >= len(HEADER_TERMINATOR) and buffer[-4:] == HEADER_TERMINATOR:
            return bytes(buffer)


def send_all(client_socket: socket.socket, payload: bytes) -> int:
    """Write the complete payload, retrying partial sends, and return the byte count."""
    view = memoryview(payload)
    total = 0
    while total < len(view):
        sent = client_socket.send(view[total:])
        if sent == 0:
            raise ConnectionError("Socket connection broken during send")
        total += sent
    return total
