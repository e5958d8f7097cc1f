"""Sanity checks for repository layout and buffer sizing."""

from pathlib import Path

from config import (
    HOST,
    MAX_CONTENT_LENGTH,
    MAX_REQUEST_BYTES,
    PORT,
    READ_CHUNK_SIZE,
    STATIC_DIR,
)

ROOT = Path(__file__).resolve().parent.parent


def test_core_files_exist() -> None:
    expected = [
        "server.py",
        "socket_handler.py",
        "request.py",
        "response.py",
        "workers.py",
        "config.py",
        "utils.py",
        "handlers/static_handler.py",
    ]
    for rel_path in expected:
        assert (ROOT / rel_path).exists()


def test_basic_config_values() -> None:
    assert HOST == "127.0.0.1"
    assert PORT == 3333
    assert STATIC_DIR == "static"


def test_request_buffer_leaves_room_for_body_sized_headers() -> None:
    assert MAX_REQUEST_BYTES == 2 * MAX_CONTENT_LENGTH - 1
    assert READ_CHUNK_SIZE < MAX_REQUEST_BYTES
