"""HTTP response model and serializer."""

from __future__ import annotations

from dataclasses import dataclass

from config import KEEPALIVE_TIMEOUT_SECS, MAX_KEEPALIVE_REQUESTS

BODY_TERMINATOR = b"\r\n"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

REASON_PHRASES: dict[int, str] = {
    200: "Ok",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    413: "Payload Too Large",
    414: "URI Too Long",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    body: bytes | str = b""
    content_type: str = TEXT_CONTENT_TYPE
    keep_alive: bool = False
    should_close: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.keep_alive and self.should_close:
            raise ValueError("Response cannot both keep alive and close")

    @property
    def reason_phrase(self) -> str:
        return REASON_PHRASES.get(self.status_code, "Unknown")

    @property
    def content_length(self) -> int:
        # Every body goes out followed by CRLF, and the CRLF is counted.
        return len(self.body) + len(BODY_TERMINATOR)

    def header_lines(self) -> list[str]:
        lines = [f"HTTP/1.1 {self.status_code} {self.reason_phrase}"]
        if self.keep_alive:
            lines.append("Connection: Keep-Alive")
        elif self.should_close:
            lines.append("Connection: close")
        lines.append(f"Content-Length: {self.content_length}")
        lines.append(f"Content-Type: {self.content_type}")
        if self.keep_alive:
            lines.append(
                f"Keep-Alive: timeout={KEEPALIVE_TIMEOUT_SECS}, max={MAX_KEEPALIVE_REQUESTS}"
            )
        return lines

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        head = "\r\n".join(self.header_lines()).encode("iso-8859-1") + b"\r\n\r\n"
        return head + self.body + BODY_TERMINATOR


def file_response(body: bytes) -> HTTPResponse:
    return HTTPResponse(
        status_code=200,
        body=body,
        content_type=HTML_CONTENT_TYPE,
        keep_alive=True,
    )


def error_response(status_code: int, *, close: bool = False) -> HTTPResponse:
    """Plain-text response whose body is the reason phrase."""
    return HTTPResponse(
        status_code=status_code,
        body=REASON_PHRASES.get(status_code, "Error"),
        should_close=close,
    )


def not_found_response() -> HTTPResponse:
    return error_response(404)
