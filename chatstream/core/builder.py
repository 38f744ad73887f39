"""Request builder: transcript + prompt -> outbound message list and Request."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from chatstream.config.provider_config import ProviderConfig
from chatstream.core.errors import EmptyPromptError
from chatstream.core.models import Message, Request
from chatstream.core.transcript import Transcript

@runtime_checkable
class PromptModifier(Protocol):
    """Edits the outgoing message list in place without touching the transcript."""

    def modify_prompt(self, messages: list[Message]) -> None: ...


class RequestBuilder:
    def __init__(
        self,
        transcript: Transcript,
        config: ProviderConfig,
        model: str,
        *,
        stream: bool = False,
        modifiers: Iterable[PromptModifier] = (),
    ) -> None:
        self.transcript = transcript
        self.config = config
        self.model = model
        self.stream = stream
        self._modifiers: list[PromptModifier] = list(modifiers)

    def add_modifier(self, modifier: PromptModifier) -> None:
        self._modifiers.append(modifier)

    def remove_modifier(self, modifier: PromptModifier) -> None:
        if modifier in self._modifiers:
            self._modifiers.remove(modifier)

    def prepare_messages(
        self,
        prompt: str | None,
        include_history: bool,
        persist_to_history: bool,
        additional: Iterable[Message] | None = None,
    ) -> list[Message]:
        """Compose the message list for one submission.

        Raises ``EmptyPromptError`` for an empty prompt; nothing is touched in
        that case. When ``persist_to_history`` is set the user message lands in
        the transcript before any network activity and stays there even if the
        call fails.
        """
        if not prompt:
            raise EmptyPromptError("empty prompt")

        prompt_message = Message.user(prompt)
        if include_history:
            messages = self.transcript.messages
        else:
            messages = self.transcript.base_messages
        if additional:
            messages.extend(additional)
        messages.append(prompt_message)

        if persist_to_history:
            self.transcript.append(prompt_message)

        for modifier in self._modifiers:
            modifier.modify_prompt(messages)
        return messages

    def build_request(self, messages: Iterable[Message], *, stream: bool | None = None) -> Request:
        return Request(
            config=self.config,
            model=self.model,
            messages=tuple(messages),
            stream=self.stream if stream is None else stream,
        )
