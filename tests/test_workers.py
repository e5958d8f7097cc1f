"""Tests for per-connection thread and process workers."""

import os
import threading
import time

import pytest

from workers import ForkWorkers, ThreadWorkers


def test_thread_worker_runs_handler_with_connection() -> None:
    seen: list[tuple[object, tuple]] = []
    done = threading.Event()

    def handler(sock: object, address: tuple) -> None:
        seen.append((sock, address))
        done.set()

    workers = ThreadWorkers(max_workers=2, handler=handler)
    marker = object()

    assert workers.submit(marker, ("127.0.0.1", 1)) is True
    assert done.wait(timeout=2)
    workers.shutdown()

    assert seen == [(marker, ("127.0.0.1", 1))]


def test_thread_workers_refuse_when_full() -> None:
    release = threading.Event()
    workers = ThreadWorkers(max_workers=1, handler=lambda _sock, _addr: release.wait(2))

    try:
        assert workers.submit(object(), ("127.0.0.1", 0)) is True
        assert workers.submit(object(), ("127.0.0.1", 1)) is False
    finally:
        release.set()
        workers.shutdown()


def test_finished_threads_are_reaped_and_free_capacity() -> None:
    workers = ThreadWorkers(max_workers=1, handler=lambda _sock, _addr: None)

    assert workers.submit(object(), ("127.0.0.1", 0)) is True
    deadline = time.time() + 2
    while workers.active_count and time.time() < deadline:
        time.sleep(0.01)

    assert workers.reap() == 1
    assert workers.submit(object(), ("127.0.0.1", 1)) is True
    workers.shutdown()


def test_crashing_handler_does_not_escape_worker(caplog: pytest.LogCaptureFixture) -> None:
    def handler(_sock: object, _address: tuple) -> None:
        raise RuntimeError("boom")

    workers = ThreadWorkers(max_workers=1, handler=handler)
    workers.submit(object(), ("127.0.0.1", 0))
    workers.shutdown(timeout=2)

    assert "Connection worker crashed" in caplog.text
    assert workers.active_count == 0


def test_worker_limits_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ThreadWorkers(max_workers=0, handler=lambda _sock, _addr: None)


@pytest.mark.skipif(not hasattr(os, "fork"), reason="fork engine needs os.fork")
def test_fork_workers_reap_exited_children() -> None:
    class ClosableSocket:
        closed = False

        def close(self) -> None:
            self.closed = True

    workers = ForkWorkers(max_workers=2, handler=lambda _sock, _addr: None)
    sock = ClosableSocket()

    assert workers.submit(sock, ("127.0.0.1", 0)) is True
    assert sock.closed is True

    deadline = time.time() + 5
    while workers.active_count and time.time() < deadline:
        workers.reap()
        time.sleep(0.01)

    assert workers.active_count == 0


def test_thread_that_fails_to_start_is_not_kept(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail_start(_thread: threading.Thread) -> None:
        raise RuntimeError("can't start new thread")

    workers = ThreadWorkers(max_workers=1, handler=lambda _sock, _addr: None)
    monkeypatch.setattr(threading.Thread, "start", _fail_start)

    with pytest.raises(RuntimeError):
        workers.submit(object(), ("127.0.0.1", 0))

    assert workers.active_count == 0
    assert workers.reap() == 0

    monkeypatch.undo()
    assert workers.submit(object(), ("127.0.0.1", 1)) is True
    workers.shutdown()
