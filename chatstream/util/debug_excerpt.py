"""
Request/response body excerpts for DEBUG logs.

Only formats and truncates; callers decide whether DEBUG is enabled.
"""

from __future__ import annotations

import logging

from chatstream.config.settings import settings
from chatstream.util.logger import logger

DEFAULT_EXCERPT_MAX_LEN = 500


def excerpt_for_debug(text: str, max_len: int = DEFAULT_EXCERPT_MAX_LEN) -> str:
    """Cut *text* down to a readable excerpt. The input is never modified."""
    if not text:
        return ""
    s = str(text).strip()
    if len(s) <= max_len:
        return s
    return f"{s[:max_len]} ... [truncated, total {len(s)} chars]"


def debug_log_body(label: str, body: bytes | str, *, request_id: str = "") -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    if settings.log_full_request_body:
        logger.debug("%s request_id=%s body=%s", label, request_id, text)
        return
    logger.debug("%s request_id=%s body_chars=%d excerpt=%s", label, request_id, len(text), excerpt_for_debug(text))
