"""Configuration constants for the static-root HTTP server."""

HOST: str = "127.0.0.1"
PORT: int = 3333
BACKLOG: int = 16
STATIC_DIR: str = "static"

READ_CHUNK_SIZE: int = 256
MAX_CONTENT_LENGTH: int = 8_192
# One byte of the doubled body capacity stays reserved, as for a C string sentinel.
MAX_REQUEST_BYTES: int = (MAX_CONTENT_LENGTH << 1) - 1
MAX_TARGET_BYTES: int = 64
MAX_PATH_BYTES: int = 128

KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 1_000

SERVER_ENGINE: str = "thread"
MAX_WORKERS: int = 64
ACCEPT_POLL_SECS: float = 0.2

LOG_FORMAT: str = "plain"
LOG_LEVEL: str = "INFO"
CONTAIN_STATIC_PATHS: bool = False
