import json

import pytest

from chatstream.adapters import create_adapter, register_adapter
from chatstream.adapters.ollama.adapter import OllamaChatAdapter
from chatstream.config.provider_config import OllamaConfig
from chatstream.core.errors import ConfigurationError
from chatstream.core.models import Message, Request, Response


def _request(stream: bool = True) -> Request:
    return Request(
        config=OllamaConfig(base_url="http://localhost:11434/"),
        model="llama3",
        messages=(Message.user("hi"),),
        stream=stream,
    )


def _line(content: str, done: bool = False, **extra) -> str:
    return json.dumps({"message": {"role": "assistant", "content": content}, "done": done, **extra})


def test_serialize_request_with_options():
    body = json.loads(OllamaChatAdapter(options={"temperature": 0.2}).serialize_request(_request()))
    assert body["messages"] == [{"role": "user", "content": "hi"}]
    assert body["options"] == {"temperature": 0.2}
    assert body["stream"] is True


def test_build_url():
    assert OllamaChatAdapter().build_url(_request()) == "http://localhost:11434/api/chat"


def test_ndjson_stream_completes_on_done():
    adapter = OllamaChatAdapter()
    response = Response()
    for line in [_line("a"), _line("b"), _line("", done=True, done_reason="stop")]:
        response = adapter.parse_streamed_fragment(line, response)
    assert response.is_full_response
    assert response.response == "ab"
    assert response.finish_reason == "stop"


def test_fragment_after_done_is_ignored():
    adapter = OllamaChatAdapter()
    response = adapter.parse_streamed_fragment(_line("x", done=True))
    response = adapter.parse_streamed_fragment(_line("late"), response)
    assert response.response == "x"
    assert response.accumulated == "x"


def test_full_response():
    response = OllamaChatAdapter().parse_full_response(_line("whole reply", done=True))
    assert response.response == "whole reply"
    assert response.is_full_response


def test_error_line():
    response = OllamaChatAdapter().parse_streamed_fragment('{"error": "model not found"}')
    assert response.error == "model not found"


def test_registry_rejects_unknown_and_accepts_registered():
    with pytest.raises(ConfigurationError):
        create_adapter("nope")

    class _Custom(OllamaChatAdapter):
        name = "custom"

    register_adapter("Custom", _Custom)
    assert isinstance(create_adapter("custom"), _Custom)
