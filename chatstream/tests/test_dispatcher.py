import asyncio

import pytest

from chatstream.core.context import RequestContext, RequestState
from chatstream.core.dispatcher import EventChannel, ResponseDispatcher
from chatstream.core.executor import ImmediateExecutor, LoopExecutor
from chatstream.core.models import Response


class _Recorder:
    def __init__(self):
        self.full = []
        self.partial = []

    def on_full_response(self, text):
        self.full.append(text)

    def on_partial_response(self, text):
        self.partial.append(text)


class _FullOnly:
    def __init__(self, sink):
        self.sink = sink

    def on_full_response(self, text):
        self.sink.append(("full_only", text))


def _ctx(**kwargs) -> RequestContext:
    ctx = RequestContext(request_id="r1", stream=True, persist_history=True, **kwargs)
    ctx.advance(RequestState.SENT)
    ctx.advance(RequestState.STREAMING)
    return ctx


def _wire(dispatcher: ResponseDispatcher):
    events = []
    dispatcher.partial_response.subscribe(lambda t: events.append(("partial", t)))
    dispatcher.full_response.subscribe(lambda t: events.append(("full", t)))
    dispatcher.error.subscribe(lambda t: events.append(("error", t)))
    return events


def test_partial_full_and_empty_routing():
    dispatcher = ResponseDispatcher()
    events = _wire(dispatcher)
    ctx = _ctx()
    dispatcher.dispatch(Response(response="a"), ctx)
    dispatcher.dispatch(Response(response=""), ctx)
    dispatcher.dispatch(Response(response="ab", is_full_response=True), ctx)
    assert events == [("partial", "a"), ("full", "ab")]
    assert ctx.final_text == "ab"
    assert (ctx.partial_count, ctx.full_count) == (1, 1)


def test_error_goes_to_error_channel_only_and_is_terminal():
    dispatcher = ResponseDispatcher()
    events = _wire(dispatcher)
    ctx = _ctx()
    dispatcher.fail("Status Code: 500", ctx)
    dispatcher.dispatch(Response(response="late"), ctx)
    assert events == [("error", "Status Code: 500")]
    assert ctx.state is RequestState.FAILED
    assert ctx.error == "Status Code: 500"


def test_silent_context_skips_observers():
    dispatcher = ResponseDispatcher()
    events = _wire(dispatcher)
    ctx = _ctx(notify=False)
    dispatcher.dispatch(Response(response="x", is_full_response=True), ctx)
    assert events == []
    assert ctx.final_text == "x"


def test_registered_handlers_in_order():
    dispatcher = ResponseDispatcher()
    sink = []
    recorder = _Recorder()
    dispatcher.register_handler(recorder)
    dispatcher.register_handler(_FullOnly(sink))
    ctx = _ctx()
    dispatcher.dispatch(Response(response="p"), ctx)
    dispatcher.dispatch(Response(response="done", is_full_response=True), ctx)
    assert recorder.partial == ["p"]
    assert recorder.full == ["done"]
    assert sink == [("full_only", "done")]

    dispatcher.unregister_handler(recorder)
    dispatcher.dispatch(Response(response="again", is_full_response=True), _ctx())
    assert recorder.full == ["done"]


def test_register_handler_without_capability_rejected():
    with pytest.raises(TypeError):
        ResponseDispatcher().register_handler(object())


def test_observer_exception_does_not_stop_others():
    channel = EventChannel("full_response")
    seen = []

    def broken(_text):
        raise RuntimeError("observer bug")

    channel.subscribe(broken)
    channel.subscribe(seen.append)
    channel.emit("ok", ImmediateExecutor())
    assert seen == ["ok"]
    channel.unsubscribe(broken)
    assert len(channel) == 1


def test_context_transitions():
    ctx = RequestContext(request_id="r", stream=False, persist_history=False)
    assert ctx.advance(RequestState.COMPLETED) is False
    assert ctx.advance(RequestState.SENT)
    assert ctx.advance(RequestState.BUFFERED_WAIT)
    assert ctx.advance(RequestState.STREAMING) is False
    assert ctx.advance(RequestState.COMPLETED)
    assert ctx.terminal
    assert ctx.advance(RequestState.CANCELLED) is False


def test_loop_executor_marshals_from_other_thread():
    async def run_case():
        loop = asyncio.get_running_loop()
        executor = LoopExecutor.for_running_loop()
        seen = []
        executor.run_on_owner_context(seen.append, "inline")
        await loop.run_in_executor(None, executor.run_on_owner_context, seen.append, "from-thread")
        await asyncio.sleep(0)
        return seen

    assert asyncio.run(run_case()) == ["inline", "from-thread"]
