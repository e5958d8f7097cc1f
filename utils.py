"""Filesystem helpers for resolving and reading static files."""

from __future__ import annotations

import errno
import os
from dataclasses import dataclass
from os.path import samestat
from stat import S_ISREG

from config import MAX_CONTENT_LENGTH, MAX_PATH_BYTES

_MISSING_ERRNOS = {errno.ENOENT, errno.ENOTDIR, errno.ELOOP, errno.ENAMETOOLONG}
# A symlink or FIFO swapped in after lstat() must fail open() instead of blocking it.
_OPEN_FLAGS = os.O_RDONLY | getattr(os, "O_NOFOLLOW", 0) | getattr(os, "O_NONBLOCK", 0)


class StaticFileError(Exception):
    """Base error for static file resolution."""


class ResourceNotFoundError(StaticFileError):
    """Raised when a path is missing or is not a regular file."""


class PathTooLongError(StaticFileError):
    """Raised when root and target do not fit in MAX_PATH_BYTES."""


class PathOutsideRootError(StaticFileError):
    """Raised when containment is enforced and a path escapes the static root."""


class FileChangedError(StaticFileError):
    """Raised when the opened file is not the file that was checked."""


@dataclass(slots=True)
class StaticFile:
    data: bytes
    size: int

    @property
    def truncated(self) -> bool:
        return self.size > len(self.data)


def join_static_path(
    static_dir: str | bytes,
    target: bytes,
    *,
    max_length: int = MAX_PATH_BYTES,
) -> bytes:
    """Join the static root and a request target as ``root/target``."""
    candidate = os.fsencode(static_dir) + b"/" + target
    if len(candidate) > max_length:
        raise PathTooLongError(
            f"Resolved path is {len(candidate)} bytes, limit is {max_length}"
        )
    return candidate


def ensure_within_root(static_dir: str | bytes, path: bytes) -> None:
    root = os.path.realpath(os.fsencode(static_dir))
    resolved = os.path.realpath(path)
    if os.path.commonpath([root, resolved]) != root:
        raise PathOutsideRootError(f"{os.fsdecode(path)} escapes the static root")


def open_regular_file(path: bytes) -> int:
    """Open a regular file read-only, refusing anything swapped in after the check."""
    try:
        link_stat = os.lstat(path)
    except OSError as exc:
        if exc.errno in _MISSING_ERRNOS:
            raise ResourceNotFoundError(f"{os.fsdecode(path)} does not exist") from exc
        raise

    if not S_ISREG(link_stat.st_mode):
        raise ResourceNotFoundError(f"{os.fsdecode(path)} is not a regular file")

    try:
        fd = os.open(path, _OPEN_FLAGS)
    except OSError as exc:
        if exc.errno in _MISSING_ERRNOS:
            raise FileChangedError(f"{os.fsdecode(path)} changed before open()") from exc
        raise

    try:
        file_stat = os.fstat(fd)
    except OSError:
        os.close(fd)
        raise

    if not S_ISREG(file_stat.st_mode) or not samestat(link_stat, file_stat):
        os.close(fd)
        raise FileChangedError(f"{os.fsdecode(path)} changed during open()")
    return fd


def read_regular_file(path: bytes, max_bytes: int = MAX_CONTENT_LENGTH) -> StaticFile:
    """Read at most max_bytes of a regular file."""
    fd = open_regular_file(path)
    try:
        size = os.fstat(fd).st_size
        chunks = bytearray()
        while len(chunks) < max_bytes:
            chunk = os.read(fd, max_bytes - len(chunks))
            if not chunk:
                break
            chunks.extend(chunk)
    finally:
        os.close(fd)
    return StaticFile(data=bytes(chunks), size=max(size, len(chunks)))
