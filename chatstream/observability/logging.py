"""Structured logging bridge."""

from __future__ import annotations

from chatstream.util.logger import logger


def log_event(event: str, **payload: object) -> None:
    logger.info("event=%s payload=%s", event, payload)


def log_debug_event(event: str, **payload: object) -> None:
    logger.debug("event=%s payload=%s", event, payload)
