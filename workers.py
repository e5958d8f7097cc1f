"""Per-connection workers: one thread or one forked process per accepted client."""

from __future__ import annotations

import logging
import os
import socket
import threading
from collections.abc import Callable, Iterable

ClientAddress = tuple
ClientHandler = Callable[[socket.socket, ClientAddress], None]

logger = logging.getLogger(__name__)


class ThreadWorkers:
    """Starts a dedicated thread per connection, bounded by max_workers."""

    def __init__(self, max_workers: int, handler: ClientHandler) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")

        self._handler = handler
        self._max_workers = max_workers
        self._threads: set[threading.Thread] = set()
        self._lock = threading.Lock()
        self._next_id = 0

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for thread in self._threads if thread.is_alive())

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        self.reap()
        with self._lock:
            if len(self._threads) >= self._max_workers:
                return False
            self._next_id += 1
            worker = threading.Thread(
                target=self._run,
                args=(client_socket, address),
                name=f"connection-worker-{self._next_id}",
                daemon=True,
            )
            self._threads.add(worker)
        try:
            worker.start()
        except RuntimeError:
            with self._lock:
                self._threads.discard(worker)
            raise
        return True

    def reap(self) -> int:
        """Join finished threads without blocking on live ones."""
        with self._lock:
            finished = [thread for thread in self._threads if not thread.is_alive()]
            for thread in finished:
                thread.join()
                self._threads.discard(thread)
        return len(finished)

    def shutdown(self, timeout: float | None = 1.0) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        self.reap()

    def _run(self, client_socket: socket.socket, address: ClientAddress) -> None:
        try:
            self._handler(client_socket, address)
        except Exception:
            logger.exception("Connection worker crashed")


class ForkWorkers:
    """Forks a child process per connection and reaps exited children."""

    def __init__(
        self,
        max_workers: int,
        handler: ClientHandler,
        *,
        inherited_sockets: Iterable[socket.socket] = (),
    ) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if not hasattr(os, "fork"):
            raise RuntimeError("fork engine requires os.fork")

        self._handler = handler
        self._max_workers = max_workers
        self._inherited_sockets = list(inherited_sockets)
        self._children: set[int] = set()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def active_count(self) -> int:
        return len(self._children)

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        self.reap()
        if len(self._children) >= self._max_workers:
            return False

        pid = os.fork()
        if pid == 0:
            self._run_child(client_socket, address)

        self._children.add(pid)
        client_socket.close()
        return True

    def reap(self) -> int:
        """Collect exited children with WNOHANG so the acceptor never blocks."""
        reaped = 0
        for pid in list(self._children):
            try:
                finished_pid, _status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                finished_pid = pid
            if finished_pid != 0:
                self._children.discard(pid)
                reaped += 1
        return reaped

    def shutdown(self, timeout: float | None = 1.0) -> None:
        # Children keep serving their connections; only collect the ones already done.
        _ = timeout
        self.reap()

    def _run_child(self, client_socket: socket.socket, address: ClientAddress) -> None:
        exit_code = 0
        try:
            for inherited in self._inherited_sockets:
                inherited.close()
            self._handler(client_socket, address)
        except BaseException:
            logger.exception("Connection worker crashed")
            exit_code = 1
        finally:
            logging.shutdown()
            os._exit(exit_code)
