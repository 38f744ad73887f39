"""Google Gemini ``generateContent`` adapter."""

from __future__ import annotations

from typing import Any

from chatstream.adapters.base import ProviderAdapter, extract_error_message, strip_sse_prefix
from chatstream.core.models import Request, Response, Role

_GEMINI_ROLES = {Role.USER: "user", Role.ASSISTANT: "model"}


def _candidate_text(payload: Any) -> tuple[str, str | None]:
    if not isinstance(payload, dict):
        return "", None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return "", None
    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))
    return text, candidate.get("finishReason") or None


def _block_reason(payload: Any) -> str | None:
    if not isinstance(payload, dict) or payload.get("candidates"):
        return None
    feedback = payload.get("promptFeedback") or {}
    reason = feedback.get("blockReason")
    return f"prompt blocked by provider: {reason}" if reason else None


class GeminiAdapter(ProviderAdapter):
    """Streams through ``streamGenerateContent?alt=sse``; the chunk carrying ``finishReason`` ends the reply."""

    name = "gemini"

    def prepare_data(self, request: Request) -> dict[str, Any]:
        system_text = "\n\n".join(m.content for m in request.messages if m.role is Role.SYSTEM)
        contents = [
            {"role": _GEMINI_ROLES[m.role], "parts": [{"text": m.content}]}
            for m in request.messages
            if m.role is not Role.SYSTEM
        ]
        data: dict[str, Any] = {"contents": contents}
        if system_text:
            data["systemInstruction"] = {"parts": [{"text": system_text}]}
        return data

    def build_path(self, request: Request) -> list[str]:
        action = "streamGenerateContent" if request.stream else "generateContent"
        return ["models", f"{request.model}:{action}"]

    def query_params(self, request: Request) -> dict[str, str]:
        return {"alt": "sse"} if request.stream else {}

    def handle_full(self, payload: Any, response: Response) -> str:
        blocked = _block_reason(payload)
        if blocked:
            response.fail(blocked)
            return ""
        text, finish_reason = _candidate_text(payload)
        response.finish_reason = finish_reason
        return text

    def handle_fragment(self, line: str, response: Response) -> None:
        data = strip_sse_prefix(line)
        if data is None:
            return
        payload = self._decode(data, response)
        if response.failed:
            return
        error = extract_error_message(payload) or _block_reason(payload)
        if error:
            response.fail(error)
            return
        text, finish_reason = _candidate_text(payload)
        self.append_delta(response, text)
        if finish_reason:
            self.complete(response, finish_reason)
