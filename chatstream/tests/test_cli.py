import asyncio
import io
import sys

import httpx

from chatstream.__main__ import build_parser, chat_loop
from chatstream.adapters.ollama.adapter import OllamaChatAdapter
from chatstream.config.provider_config import OllamaConfig
from chatstream.core.session import ChatSession
from chatstream.transport.http import HttpTransport


def test_parser_flags():
    args = build_parser().parse_args(["--provider", "ollama", "--model", "llama3", "--no-stream"])
    assert args.provider == "ollama"
    assert args.model == "llama3"
    assert args.no_stream is True
    assert args.prompt_file is None


def test_chat_loop_commands(monkeypatch, capsys):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "qwen2"}, {"name": "llama3"}]})
        return httpx.Response(200, json={"message": {"content": "pong"}, "done": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    session = ChatSession(
        OllamaConfig(base_url="http://llm"),
        OllamaChatAdapter(),
        "llama3",
        transport=HttpTransport(client),
    )
    monkeypatch.setattr(sys, "stdin", io.StringIO("ping\n/models\n/reset\n/quit\nnever sent\n"))

    async def run_case():
        await chat_loop(session)
        await client.aclose()

    asyncio.run(run_case())
    out = capsys.readouterr().out
    assert "pong" in out
    assert "llama3\nqwen2" in out
    assert "[history cleared]" in out
    assert session.transcript.history == ()
