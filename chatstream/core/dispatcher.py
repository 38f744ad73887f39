"""Routes parsed Responses to partial/full/error observers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from chatstream.core.context import RequestContext, RequestState
from chatstream.core.executor import CompletionExecutor, ImmediateExecutor
from chatstream.core.models import Response
from chatstream.util.logger import logger

Listener = Callable[[str], Any]


@runtime_checkable
class FullResponseHandler(Protocol):
    def on_full_response(self, text: str) -> None: ...


@runtime_checkable
class PartialResponseHandler(Protocol):
    def on_partial_response(self, text: str) -> None: ...


def _guarded(name: str, callback: Callable[[str], Any]) -> Callable[[str], None]:
    def run(text: str) -> None:
        try:
            callback(text)
        except Exception as exc:  # pragma: no cover - operational guard
            logger.warning("observer failed channel=%s callback=%r error=%s", name, callback, exc)

    return run


class EventChannel:
    """Broadcast channel; every subscriber gets every message."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, text: str, executor: CompletionExecutor) -> None:
        for listener in list(self._listeners):
            executor.run_on_owner_context(_guarded(self.name, listener), text)

    def __len__(self) -> int:
        return len(self._listeners)


class ResponseDispatcher:
    def __init__(self, executor: CompletionExecutor | None = None) -> None:
        self.executor = executor or ImmediateExecutor()
        self.partial_response = EventChannel("partial_response")
        self.full_response = EventChannel("full_response")
        self.error = EventChannel("error")
        self._full_handlers: list[FullResponseHandler] = []
        self._partial_handlers: list[PartialResponseHandler] = []

    def register_handler(self, handler: object) -> None:
        """Register an object by the capabilities it implements, kept in registration order."""
        matched = False
        if isinstance(handler, FullResponseHandler):
            self._full_handlers.append(handler)
            matched = True
        if isinstance(handler, PartialResponseHandler):
            self._partial_handlers.append(handler)
            matched = True
        if not matched:
            raise TypeError(f"{type(handler).__name__} implements neither on_full_response nor on_partial_response")

    def unregister_handler(self, handler: object) -> None:
        if handler in self._full_handlers:
            self._full_handlers.remove(handler)
        if handler in self._partial_handlers:
            self._partial_handlers.remove(handler)

    def dispatch(self, response: Response, ctx: RequestContext) -> None:
        if ctx.terminal:
            logger.debug("request_id=%s dispatch after %s dropped", ctx.request_id, ctx.state.value)
            return
        if response.error:
            ctx.error = response.error
            ctx.advance(RequestState.FAILED)
            if ctx.notify:
                self.error.emit(response.error, self.executor)
            return
        if not response.response:
            return
        if response.is_full_response:
            ctx.final_text = response.response
            ctx.full_count += 1
            if ctx.notify:
                self.full_response.emit(response.response, self.executor)
                for handler in list(self._full_handlers):
                    self.executor.run_on_owner_context(_guarded("full_handler", handler.on_full_response), response.response)
            return
        ctx.partial_count += 1
        if ctx.notify:
            self.partial_response.emit(response.response, self.executor)
            for handler in list(self._partial_handlers):
                self.executor.run_on_owner_context(
                    _guarded("partial_handler", handler.on_partial_response), response.response
                )

    def fail(self, message: str, ctx: RequestContext) -> None:
        self.dispatch(Response().fail(message), ctx)
