"""Conversation data models."""

from __future__ import annotations

import json
import re
import uuid
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from chatstream.config.provider_config import ProviderConfig

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATOR_RE = re.compile(r"[\s\-]+")

T = TypeVar("T", bound=BaseModel)


def wire_token(value: Enum) -> str:
    """Render an enum member as a lowercase-underscored token (``Role.USER`` -> ``"user"``)."""
    raw = value.value if isinstance(value.value, str) else value.name
    raw = _CAMEL_BOUNDARY_RE.sub("_", raw.strip())
    return _SEPARATOR_RE.sub("_", raw).lower()


class Role(Enum):
    SYSTEM = "System"
    USER = "User"
    ASSISTANT = "Assistant"

    @classmethod
    def parse(cls, raw: Any) -> "Role":
        if isinstance(raw, cls):
            return raw
        candidate = str(raw or "").strip().lower()
        for member in cls:
            if candidate in {member.name.lower(), wire_token(member)}:
                return member
        raise ValueError(f"unknown role: {raw!r}")


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Role:
        return Role.parse(value)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)


class BasePrompt(BaseModel):
    """Read-only template prepended to every transcript."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = ()


class Request(BaseModel):
    """One outbound submission. Built fresh per call, never persisted."""

    model_config = ConfigDict(frozen=True)

    config: ProviderConfig
    model: str
    messages: tuple[Message, ...]
    stream: bool = False
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)


class Response(BaseModel):
    """Accumulator for one in-flight request.

    ``response`` holds the text of the latest fragment, or the complete reply when
    ``is_full_response`` is set. ``accumulated`` collects every streamed delta.
    Once ``error`` is set the accumulator is terminal.
    """

    response: str = ""
    raw_response: str = ""
    is_full_response: bool = False
    error: str | None = None
    accumulated: str = ""
    finish_reason: str | None = None

    _payload: Any = PrivateAttr(default=None)
    _payload_loaded: bool = PrivateAttr(default=False)

    @property
    def failed(self) -> bool:
        return bool(self.error)

    def load(self, blob: str) -> Any:
        """Record *blob* as the latest raw payload and return it decoded.

        Raises ``json.JSONDecodeError`` for malformed input.
        """
        if self._payload_loaded and blob == self.raw_response:
            return self._payload
        self.raw_response = blob
        self._payload_loaded = False
        self._payload = json.loads(blob)
        self._payload_loaded = True
        return self._payload

    @property
    def payload(self) -> Any:
        if not self._payload_loaded and self.raw_response:
            self._payload = json.loads(self.raw_response)
            self._payload_loaded = True
        return self._payload

    def payload_as(self, model: type[T]) -> T:
        return model.model_validate(self.payload)

    def fail(self, message: str) -> "Response":
        self.error = message
        self.response = ""
        self.is_full_response = False
        return self
