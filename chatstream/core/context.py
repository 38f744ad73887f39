"""Per-request runtime context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from time import time

from chatstream.util.logger import logger


class RequestState(str, Enum):
    IDLE = "idle"
    SENT = "sent"
    STREAMING = "streaming"
    BUFFERED_WAIT = "buffered_wait"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL = frozenset({RequestState.COMPLETED, RequestState.FAILED, RequestState.CANCELLED})

_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.SENT, RequestState.CANCELLED}),
    RequestState.SENT: frozenset(
        {RequestState.STREAMING, RequestState.BUFFERED_WAIT, RequestState.FAILED, RequestState.CANCELLED}
    ),
    RequestState.STREAMING: frozenset(
        {RequestState.STREAMING, RequestState.COMPLETED, RequestState.FAILED, RequestState.CANCELLED}
    ),
    RequestState.BUFFERED_WAIT: frozenset({RequestState.COMPLETED, RequestState.FAILED, RequestState.CANCELLED}),
}


@dataclass(slots=True)
class RequestContext:
    request_id: str
    stream: bool
    persist_history: bool
    notify: bool = True
    state: RequestState = RequestState.IDLE
    final_text: str | None = None
    error: str | None = None
    history_appended: bool = False
    partial_count: int = 0
    full_count: int = 0
    created_at: float = field(default_factory=time)

    @property
    def terminal(self) -> bool:
        return self.state in _TERMINAL

    def advance(self, target: RequestState) -> bool:
        """Move to *target* if the state machine allows it; terminal states never move."""
        if target not in _TRANSITIONS.get(self.state, frozenset()):
            logger.debug("request_id=%s ignored transition %s -> %s", self.request_id, self.state.value, target.value)
            return False
        self.state = target
        return True
