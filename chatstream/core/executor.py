"""Completion executors: where observer callbacks run."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class CompletionExecutor(ABC):
    @abstractmethod
    def run_on_owner_context(self, callback: Callable[..., Any], *args: Any) -> None:
        raise NotImplementedError


class ImmediateExecutor(CompletionExecutor):
    """Runs the callback inline. Default for hosts without a UI thread."""

    def run_on_owner_context(self, callback: Callable[..., Any], *args: Any) -> None:
        callback(*args)


class LoopExecutor(CompletionExecutor):
    """Marshals callbacks onto the event loop that owns the host's foreground work.

    Calls already running on the owner loop run inline so notification order
    matches dispatch order.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def _on_owner_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    def run_on_owner_context(self, callback: Callable[..., Any], *args: Any) -> None:
        if self._on_owner_loop():
            callback(*args)
            return
        self.loop.call_soon_threadsafe(callback, *args)

    @classmethod
    def for_running_loop(cls) -> "LoopExecutor":
        return cls(asyncio.get_running_loop())
