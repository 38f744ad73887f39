"""Reusable prompt runner bound to one session."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from chatstream.core.dispatcher import EventChannel
from chatstream.core.models import BasePrompt, Message, Response
from chatstream.core.session import ChatSession
from chatstream.util.logger import logger


class LLMRequestRunner:
    """Runs prompts through *session* with the runner's own base prompt and extra messages.

    Before each call the runner installs its ``base_prompt`` (when set) and its
    ``preserve_message_history`` flag on the session, so several runners can
    share one provider connection. The final reply text is broadcast on
    ``on_result``.
    """

    def __init__(
        self,
        session: ChatSession,
        *,
        base_prompt: BasePrompt | None = None,
        messages: Iterable[Message] = (),
        preserve_message_history: bool = False,
    ) -> None:
        self.session = session
        self.base_prompt = base_prompt
        self.messages: list[Message] = list(messages)
        self.preserve_message_history = preserve_message_history
        self.on_result = EventChannel("result")
        self._tasks: set[asyncio.Task] = set()

    def prompt(self, prompt: str | None) -> None:
        """Fire-and-forget variant of ``prompt_async``; needs a running event loop."""
        task = asyncio.get_running_loop().create_task(self.prompt_async(prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def prompt_async(self, prompt: str | None) -> Response | None:
        if self.base_prompt is not None:
            self.session.base_prompt = self.base_prompt
        self.session.preserve_message_history = self.preserve_message_history
        response = await self.session.prompt_async(
            prompt,
            include_history=self.preserve_message_history,
            additional=self.messages,
        )
        if response is None:
            return None
        if response.failed:
            logger.info("runner request failed error=%s", response.error)
            return response
        if response.is_full_response:
            self.on_result.emit(response.response, self.session.dispatcher.executor)
        return response

    async def wait(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
