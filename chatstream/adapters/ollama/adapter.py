"""Ollama ``/api/chat`` adapter (newline-delimited JSON stream)."""

from __future__ import annotations

from typing import Any

from chatstream.adapters.base import ProviderAdapter, extract_error_message
from chatstream.core.models import Request, Response


class OllamaChatAdapter(ProviderAdapter):
    name = "ollama"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})

    def prepare_data(self, request: Request) -> dict[str, Any]:
        data: dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
            "stream": request.stream,
        }
        if self.options:
            data["options"] = self.options
        return data

    def build_path(self, request: Request) -> list[str]:
        return ["api", "chat"]

    def handle_full(self, payload: Any, response: Response) -> str:
        if not isinstance(payload, dict):
            return ""
        response.finish_reason = payload.get("done_reason") or None
        message = payload.get("message") or {}
        return str(message.get("content") or "")

    def handle_fragment(self, line: str, response: Response) -> None:
        # 每行一个 JSON：{"message": {"role": "...", "content": "Δ"}, "done": bool}
        payload = self._decode(line.strip(), response)
        if response.failed:
            return
        error = extract_error_message(payload)
        if error:
            response.fail(error)
            return
        if not isinstance(payload, dict):
            return
        message = payload.get("message") or {}
        self.append_delta(response, str(message.get("content") or ""))
        if payload.get("done"):
            self.complete(response, payload.get("done_reason"))
