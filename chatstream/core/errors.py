"""Project error hierarchy."""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base error."""


class ConfigurationError(ChatStreamError):
    """Raised or logged when provider configuration is incomplete or unknown."""


class TransportError(ChatStreamError):
    """Raised by the transport on connection failure or a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str = "",
        body: str = "",
        request_body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.request_body = request_body

    def describe(self) -> str:
        if self.status_code is None:
            return f"Connection Error: {self}\n\nRequest Content: {self.request_body}"
        return (
            f"Status Code: {self.status_code}\n"
            f"Reason: {self.reason}\n\n"
            f"Content: {self.body}\n\n"
            f"Request Content: {self.request_body}"
        )


class ParseError(ChatStreamError):
    """Raised when a provider payload cannot be decoded."""


class EmptyPromptError(ChatStreamError):
    """Marks an empty prompt submission. Never raised across the session boundary."""
