"""Static file handler mapping resolver outcomes to responses."""

from __future__ import annotations

import logging
import os

from config import MAX_CONTENT_LENGTH, STATIC_DIR
from response import HTTPResponse, error_response, file_response, not_found_response
from utils import (
    FileChangedError,
    PathOutsideRootError,
    PathTooLongError,
    ResourceNotFoundError,
    ensure_within_root,
    join_static_path,
    read_regular_file,
)

logger = logging.getLogger(__name__)


def serve_static(
    target: bytes,
    static_dir: str = STATIC_DIR,
    *,
    contain_paths: bool = False,
    max_bytes: int = MAX_CONTENT_LENGTH,
) -> HTTPResponse:
    try:
        path = join_static_path(static_dir, target)
    except PathTooLongError as exc:
        logger.warning("%s", exc)
        return error_response(414)

    if contain_paths:
        try:
            ensure_within_root(static_dir, path)
        except PathOutsideRootError as exc:
            logger.warning("%s", exc)
            return error_response(403)

    try:
        static_file = read_regular_file(path, max_bytes)
    except ResourceNotFoundError as exc:
        logger.info("%s", exc)
        return not_found_response()
    except FileChangedError as exc:
        logger.error("%s", exc)
        return error_response(500, close=True)
    except OSError as exc:
        logger.error("Failed to read %s: %s", os.fsdecode(path), exc)
        return error_response(500, close=True)

    if static_file.truncated:
        logger.warning(
            "%s is %d bytes, serving the first %d",
            os.fsdecode(path),
            static_file.size,
            len(static_file.data),
        )
    return file_response(static_file.data)
