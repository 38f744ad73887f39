"""Chat session: one request pipeline behind event-driven and awaitable front-ends."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from contextlib import aclosing

from chatstream.adapters import create_adapter
from chatstream.adapters.base import ProviderAdapter
from chatstream.config.base_prompt import load_base_prompt, load_seed_messages
from chatstream.config.provider_config import ProviderConfig, build_provider_config
from chatstream.config.settings import settings
from chatstream.core.builder import PromptModifier, RequestBuilder
from chatstream.core.context import RequestContext, RequestState
from chatstream.core.dispatcher import EventChannel, ResponseDispatcher
from chatstream.core.errors import EmptyPromptError, TransportError
from chatstream.core.executor import CompletionExecutor
from chatstream.core.models import BasePrompt, Message, Request, Response
from chatstream.core.reassembler import StreamReassembler
from chatstream.core.transcript import Transcript
from chatstream.observability.logging import log_debug_event, log_event
from chatstream.transport.http import HttpTransport, build_headers, describe_error
from chatstream.util.logger import logger


class ChatSession:
    """Owns the transcript, the observers and the transport for one conversation.

    ``prompt`` / ``partial_prompt`` are fire-and-forget: they need a running
    event loop, report only through observers, and cancel the previous
    event-driven request before starting. ``prompt_async`` returns the final
    Response and never cancels anything; concurrent calls share the transcript
    and their assistant replies are appended in completion order.
    """

    def __init__(
        self,
        config: ProviderConfig,
        adapter: ProviderAdapter,
        model: str,
        *,
        stream: bool = False,
        base_prompt: BasePrompt | None = None,
        seed_messages: Iterable[Message] = (),
        preserve_message_history: bool = True,
        executor: CompletionExecutor | None = None,
        transport: HttpTransport | None = None,
        modifiers: Iterable[PromptModifier] = (),
    ) -> None:
        self.transcript = Transcript(base_prompt, seed_messages)
        self.builder = RequestBuilder(self.transcript, config, model, stream=stream, modifiers=modifiers)
        self.adapter = adapter
        self.dispatcher = ResponseDispatcher(executor)
        self.transport = transport or HttpTransport()
        self.preserve_message_history = preserve_message_history
        self._active_task: asyncio.Task | None = None
        self._active_ctx: RequestContext | None = None

    @property
    def config(self) -> ProviderConfig:
        return self.builder.config

    @property
    def model(self) -> str:
        return self.builder.model

    @model.setter
    def model(self, value: str) -> None:
        self.builder.model = value

    @property
    def stream(self) -> bool:
        return self.builder.stream

    @stream.setter
    def stream(self, value: bool) -> None:
        self.builder.stream = value

    @property
    def base_prompt(self) -> BasePrompt:
        return self.transcript.base_prompt

    @base_prompt.setter
    def base_prompt(self, value: BasePrompt | None) -> None:
        self.transcript.base_prompt = value

    @property
    def message_history(self) -> list[Message]:
        return self.transcript.messages

    @property
    def on_partial_response(self) -> EventChannel:
        return self.dispatcher.partial_response

    @property
    def on_full_response(self) -> EventChannel:
        return self.dispatcher.full_response

    @property
    def on_error(self) -> EventChannel:
        return self.dispatcher.error

    def register_handler(self, handler: object) -> None:
        self.dispatcher.register_handler(handler)

    def unregister_handler(self, handler: object) -> None:
        self.dispatcher.unregister_handler(handler)

    def reset_history(self) -> None:
        self.cancel()
        self.transcript.reset()

    async def refresh_models(self) -> list[str]:
        return await self.config.refresh_models(await self.transport.get_client())

    # event-driven front-end

    def prompt(self, prompt: str | None, include_history: bool = True) -> None:
        loop = asyncio.get_running_loop()
        try:
            messages = self.builder.prepare_messages(prompt, include_history, include_history)
        except EmptyPromptError:
            logger.debug("empty prompt, submission aborted")
            return
        self.transcript.clear_partial()
        self._launch(loop, self.builder.build_request(messages), persist_history=include_history)

    def partial_prompt(self, prompt: str | None) -> None:
        """Send the in-progress prompt with history, without recording anything.

        Re-sending the text that is already in progress is a no-op.
        """
        if not prompt:
            return
        loop = asyncio.get_running_loop()
        if not self.transcript.begin_partial(prompt):
            logger.debug("partial prompt unchanged, skipped")
            return
        messages = self.builder.prepare_messages(prompt, True, False)
        self._launch(loop, self.builder.build_request(messages), persist_history=False)

    def _launch(self, loop: asyncio.AbstractEventLoop, request: Request, *, persist_history: bool) -> None:
        self.cancel()
        ctx = RequestContext(request_id=request.request_id, stream=request.stream, persist_history=persist_history)
        self._active_ctx = ctx
        self._active_task = loop.create_task(self._run(request, ctx), name=f"chatstream-request-{ctx.request_id}")

    def cancel(self) -> None:
        """Abandon the running event-driven request.

        A request that already completed keeps its transcript append and is left
        to close its connection on its own.
        """
        ctx = self._active_ctx
        self._active_ctx = None
        if ctx is None or not ctx.advance(RequestState.CANCELLED):
            return
        log_event("request_cancelled", request_id=ctx.request_id)
        if self._active_task is not None and not self._active_task.done():
            self._active_task.cancel()

    async def join(self) -> Response | None:
        """Wait for the current event-driven request, if any."""
        task = self._active_task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            return None

    # awaitable front-end

    async def prompt_async(
        self,
        prompt: str | None,
        include_history: bool = True,
        additional: Iterable[Message] | None = None,
    ) -> Response | None:
        try:
            messages = self.builder.prepare_messages(prompt, include_history, include_history, additional)
        except EmptyPromptError:
            logger.debug("empty prompt, submission aborted")
            return None
        request = self.builder.build_request(messages)
        ctx = RequestContext(request_id=request.request_id, stream=request.stream, persist_history=include_history)
        return await self._run(request, ctx)

    async def request_async(self, *messages: Message) -> Response:
        """Send *messages* as-is: no history, no observers, buffered parse."""
        request = self.builder.build_request(messages, stream=False)
        ctx = RequestContext(
            request_id=request.request_id,
            stream=False,
            persist_history=False,
            notify=False,
        )
        return await self._run(request, ctx)

    # pipeline

    async def _run(self, request: Request, ctx: RequestContext) -> Response:
        reassembler = StreamReassembler(self.adapter, stream=request.stream)
        try:
            url = self.adapter.build_url(request)
            body = self.adapter.serialize_request(request)
            headers = build_headers(request.config)
            ctx.advance(RequestState.SENT)
            log_event(
                "request_sent",
                request_id=ctx.request_id,
                url=request.config.loggable_url(url),
                stream=request.stream,
                messages=len(request.messages),
            )
            ctx.advance(RequestState.STREAMING if request.stream else RequestState.BUFFERED_WAIT)
            async with aclosing(self.transport.send(url, body, headers, stream=request.stream)) as chunks:
                async for chunk in chunks:
                    if ctx.terminal:
                        break
                    if request.stream:
                        ctx.advance(RequestState.STREAMING)
                    for response in reassembler.feed(chunk):
                        self.dispatcher.dispatch(response, ctx)
                    if reassembler.response.is_full_response:
                        # 完整回复已送达，立即落历史并结束，剩余连接直接关闭
                        self._finalize(ctx, reassembler.response)
                    if ctx.terminal:
                        break
        except asyncio.CancelledError:
            ctx.advance(RequestState.CANCELLED)
            raise
        except TransportError as exc:
            if ctx.terminal:
                logger.info("transport error after request closed request_id=%s error=%s", ctx.request_id, exc)
                return reassembler.response
            self.dispatcher.dispatch(reassembler.response.fail(exc.describe()), ctx)
            log_event("request_failed", request_id=ctx.request_id, status=exc.status_code)
            return reassembler.response
        except Exception as exc:  # pragma: no cover - operational guard
            logger.exception("request pipeline failed request_id=%s", ctx.request_id)
            if ctx.terminal:
                return reassembler.response
            self.dispatcher.dispatch(reassembler.response.fail(describe_error(exc)), ctx)
            return reassembler.response

        if not ctx.terminal:
            for response in reassembler.finish():
                self.dispatcher.dispatch(response, ctx)
        self._finalize(ctx, reassembler.response)
        return reassembler.response

    def _finalize(self, ctx: RequestContext, response: Response) -> None:
        if ctx.terminal:
            log_debug_event("request_closed", request_id=ctx.request_id, state=ctx.state.value)
            return
        if ctx.final_text is None and response.accumulated and not response.failed:
            # 流结束但没有收到终止分片，以累计文本作为完整回复
            ProviderAdapter.complete(response)
            self.dispatcher.dispatch(response, ctx)
        if (
            ctx.persist_history
            and self.preserve_message_history
            and ctx.final_text
            and not ctx.history_appended
        ):
            self.transcript.append(Message.assistant(ctx.final_text))
            ctx.history_appended = True
        ctx.advance(RequestState.COMPLETED)
        log_event(
            "request_completed",
            request_id=ctx.request_id,
            partials=ctx.partial_count,
            full=ctx.full_count,
            appended=ctx.history_appended,
        )

    async def aclose(self) -> None:
        self.cancel()
        await self.transport.aclose()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def create_session(
    *,
    provider: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
    stream: bool | None = None,
    base_prompt_path: str | None = None,
    executor: CompletionExecutor | None = None,
    transport: HttpTransport | None = None,
) -> ChatSession:
    """Assemble a session from settings, with explicit arguments taking precedence."""
    name = provider or settings.provider
    config = build_provider_config(name, base_url=base_url, api_key=api_key)
    return ChatSession(
        config,
        create_adapter(name),
        model or settings.model,
        stream=settings.stream if stream is None else stream,
        base_prompt=load_base_prompt(base_prompt_path if base_prompt_path is not None else settings.base_prompt_path),
        seed_messages=load_seed_messages(settings.seed_messages_path),
        preserve_message_history=settings.preserve_message_history,
        executor=executor,
        transport=transport,
    )
