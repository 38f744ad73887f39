"""Running conversation transcript."""

from __future__ import annotations

from collections.abc import Iterable

from chatstream.core.models import BasePrompt, Message
from chatstream.util.logger import logger


class Transcript:
    """Base prompt ++ seed messages ++ accumulated history.

    History only grows; ``reset`` is the single way to drop it. The in-progress
    partial prompt is tracked beside the history and never becomes part of it.
    """

    def __init__(self, base_prompt: BasePrompt | None = None, seed: Iterable[Message] = ()) -> None:
        self._base_prompt = base_prompt or BasePrompt()
        self._seed: tuple[Message, ...] = tuple(seed)
        self._history: list[Message] = []
        self._partial: Message | None = None

    @property
    def base_prompt(self) -> BasePrompt:
        return self._base_prompt

    @base_prompt.setter
    def base_prompt(self, value: BasePrompt | None) -> None:
        self._base_prompt = value or BasePrompt()

    @property
    def seed(self) -> tuple[Message, ...]:
        return self._seed

    @property
    def history(self) -> tuple[Message, ...]:
        return tuple(self._history)

    @property
    def base_messages(self) -> list[Message]:
        return list(self._base_prompt.messages)

    @property
    def messages(self) -> list[Message]:
        return [*self._base_prompt.messages, *self._seed, *self._history]

    def append(self, message: Message) -> None:
        self._history.append(message)
        logger.debug("transcript append role=%s history=%d", message.role.name, len(self._history))

    def reset(self) -> None:
        self._history.clear()
        self._partial = None
        logger.debug("transcript reset")

    @property
    def partial(self) -> Message | None:
        return self._partial

    def begin_partial(self, text: str) -> bool:
        """Track *text* as the in-progress prompt. Returns False when nothing changed."""
        if self._partial is not None and self._partial.content == text:
            return False
        self._partial = Message.user(text)
        return True

    def clear_partial(self) -> None:
        self._partial = None

    def __len__(self) -> int:
        return len(self._base_prompt.messages) + len(self._seed) + len(self._history)

    def __iter__(self):
        return iter(self.messages)
