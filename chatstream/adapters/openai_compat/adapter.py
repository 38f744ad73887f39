"""OpenAI-compatible chat completions adapter."""

from __future__ import annotations

from typing import Any

from chatstream.adapters.base import SSE_DONE, ProviderAdapter, extract_error_message, strip_sse_prefix
from chatstream.core.models import Request, Response


def _flatten_content(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(_flatten_content(item) for item in value)
    if isinstance(value, dict):
        if isinstance(value.get("text"), str):
            return value["text"]
        if "content" in value:
            return _flatten_content(value["content"])
    return ""


def _first_choice(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


class OpenAIChatAdapter(ProviderAdapter):
    """``POST {base}/chat/completions``; streamed replies arrive as ``data:`` lines ending with ``[DONE]``."""

    name = "openai"

    def prepare_data(self, request: Request) -> dict[str, Any]:
        return {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
            "stream": request.stream,
        }

    def build_path(self, request: Request) -> list[str]:
        return ["chat", "completions"]

    def handle_full(self, payload: Any, response: Response) -> str:
        choice = _first_choice(payload)
        response.finish_reason = choice.get("finish_reason") or None
        return _flatten_content((choice.get("message") or {}).get("content"))

    def handle_fragment(self, line: str, response: Response) -> None:
        data = strip_sse_prefix(line)
        if data is None:
            return
        if data == SSE_DONE:
            self.complete(response)
            return
        payload = self._decode(data, response)
        if response.failed:
            return
        error = extract_error_message(payload)
        if error:
            response.fail(error)
            return
        choice = _first_choice(payload)
        self.append_delta(response, _flatten_content((choice.get("delta") or {}).get("content")))
        if choice.get("finish_reason"):
            response.finish_reason = choice["finish_reason"]
