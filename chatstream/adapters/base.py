"""Provider adapter contract."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel

from chatstream.core.errors import ParseError
from chatstream.core.models import Request, Response, wire_token
from chatstream.util.debug_excerpt import excerpt_for_debug
from chatstream.util.logger import logger

SSE_DONE = "[DONE]"


def _encode_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return wire_token(value)
    if isinstance(value, BaseModel):
        return value.model_dump()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def strip_sse_prefix(line: str) -> str | None:
    """Return the payload of a ``data:`` line, the line itself for bare JSON, None for SSE noise."""
    stripped = line.strip()
    if not stripped:
        return None
    if stripped.startswith("data:"):
        return stripped[5:].strip()
    if stripped.startswith((":", "event:", "id:", "retry:")):
        return None
    return stripped


def extract_error_message(payload: Any) -> str | None:
    if not isinstance(payload, dict) or "error" not in payload:
        return None
    error = payload.get("error")
    if isinstance(error, str):
        return error or None
    if isinstance(error, dict):
        message = error.get("message") or error.get("code") or error.get("status")
        return str(message) if message else json.dumps(error, ensure_ascii=False)
    return None


class ProviderAdapter(ABC):
    """Per-backend request serialization and response parsing.

    Subclasses shape the body (``prepare_data``), name the endpoint
    (``build_path``) and interpret decoded payloads (``handle_full`` /
    ``handle_fragment``). The public parse methods own the shared rules: a
    failed accumulator is never touched again, malformed JSON becomes
    ``error``, and a completed stream yields the accumulated text as a full
    response exactly once.
    """

    name = "base"

    def serialize_request(self, request: Request) -> bytes:
        return json.dumps(self.prepare_data(request), ensure_ascii=False, default=_encode_value).encode("utf-8")

    @abstractmethod
    def prepare_data(self, request: Request) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def build_path(self, request: Request) -> list[str]:
        raise NotImplementedError

    def query_params(self, request: Request) -> dict[str, str]:
        return {}

    def build_url(self, request: Request) -> str:
        config = request.config
        return config.full_url(config.get_url(*self.build_path(request)), self.query_params(request))

    @abstractmethod
    def handle_full(self, payload: Any, response: Response) -> str:
        """Return the reply text of one complete payload."""
        raise NotImplementedError

    @abstractmethod
    def handle_fragment(self, line: str, response: Response) -> None:
        """Apply one streamed line to *response* via ``_decode``/``append_delta``/``complete``."""
        raise NotImplementedError

    def parse_full_response(self, blob: str, prior: Response | None = None) -> Response:
        response = prior if prior is not None else Response()
        if response.failed:
            return response
        payload = self._decode(blob, response)
        if response.failed:
            return response
        error = extract_error_message(payload)
        if error:
            return response.fail(error)
        text = self.handle_full(payload, response)
        if response.failed:
            return response
        response.accumulated = text
        response.response = text
        response.is_full_response = True
        return response

    def parse_streamed_fragment(self, blob: str, prior: Response | None = None) -> Response:
        response = prior if prior is not None else Response()
        if response.failed:
            return response
        if response.is_full_response:
            logger.debug("adapter=%s fragment after completion ignored", self.name)
            return response
        response.response = ""
        self.handle_fragment(blob, response)
        return response

    def _decode(self, blob: str, response: Response) -> Any:
        try:
            return response.load(blob)
        except json.JSONDecodeError as exc:
            error = ParseError(f"malformed JSON from provider ({exc}): {excerpt_for_debug(blob, 200)}")
            logger.warning("adapter=%s malformed payload error=%s", self.name, exc)
            response.fail(f"{type(error).__name__}: {error}")
            return None

    @staticmethod
    def append_delta(response: Response, delta: str) -> None:
        if not delta:
            return
        response.accumulated += delta
        response.response = delta

    @staticmethod
    def complete(response: Response, finish_reason: str | None = None) -> None:
        response.finish_reason = finish_reason or response.finish_reason
        response.response = response.accumulated
        response.is_full_response = True
