"""HTTP request-line parsing."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from config import MAX_TARGET_BYTES

logger = logging.getLogger(__name__)


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


def extract_target(raw: bytes, *, max_length: int = MAX_TARGET_BYTES) -> bytes:
    """Return the bytes between the first '/' and the next space of the request line.

    The leading '/' is dropped, so ``GET /index.html HTTP/1.1`` yields
    ``b"index.html"``. Percent-escapes and ``..`` segments are passed through
    untouched.
    """
    line_end = raw.find(b"\r\n")
    request_line = raw if line_end == -1 else raw[:line_end]

    slash_index = request_line.find(b"/")
    if slash_index == -1:
        logger.warning("Invalid request: no '/' in request line")
        raise HTTPRequestParseError("Request line has no target")

    target_start = slash_index + 1
    target_end = request_line.find(b" ", target_start)
    if target_end == -1:
        logger.warning("Invalid request: target is not followed by a space")
        raise HTTPRequestParseError("Request target is not terminated")

    target = request_line[target_start:target_end]
    if len(target) > max_length:
        raise HTTPRequestParseError("Request target too long", status_code=414)
    if b"\x00" in target:
        raise HTTPRequestParseError("Request target contains a NUL byte")
    return target


@dataclass(slots=True)
class HTTPRequest:
    method: str
    target: bytes
    raw_length: int = 0

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse a buffered request; only the target is interpreted."""
        target = extract_target(raw)
        method_token, separator, _rest = raw.partition(b" ")
        method = method_token.decode("iso-8859-1") if separator else "-"
        return cls(method=method, target=target, raw_length=len(raw))

    @property
    def display_target(self) -> str:
        return "/" + self.target.decode("iso-8859-1")
