import asyncio

import httpx
import pytest

from chatstream.config.provider_config import OllamaConfig, OpenAIConfig
from chatstream.core.errors import TransportError
from chatstream.transport.http import HttpTransport, build_headers, describe_error


class ChunkStream(httpx.AsyncByteStream):
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


def _transport(handler) -> tuple[HttpTransport, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport(client), client


async def _collect(transport: HttpTransport, *, stream: bool) -> list[bytes]:
    return [chunk async for chunk in transport.send("http://llm/api/chat", b'{"q":1}', {}, stream=stream)]


def test_build_headers():
    assert build_headers(OpenAIConfig(api_key="sk")) == {
        "Content-Type": "application/json",
        "Authorization": "Bearer sk",
    }
    assert build_headers(OllamaConfig(), {"X-Trace": "1"}) == {"Content-Type": "application/json", "X-Trace": "1"}


def test_buffered_send_yields_whole_body_once():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = request.content
        return httpx.Response(200, content=b'{"text":"hello"}')

    transport, client = _transport(handler)

    async def run_case():
        chunks = await _collect(transport, stream=False)
        await client.aclose()
        return chunks

    assert asyncio.run(run_case()) == [b'{"text":"hello"}']
    assert seen == {"method": "POST", "body": b'{"q":1}'}


def test_streamed_send_yields_each_chunk():
    parts = [b'{"delta":"a"}\n{"del', b'ta":"b"}\n']

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=ChunkStream(parts))

    transport, client = _transport(handler)

    async def run_case():
        chunks = await _collect(transport, stream=True)
        await client.aclose()
        return chunks

    assert asyncio.run(run_case()) == parts


@pytest.mark.parametrize("stream", [False, True])
def test_non_success_status_raises_transport_error(stream):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, content=b"upstream exploded")

    transport, client = _transport(handler)

    async def run_case():
        try:
            await _collect(transport, stream=stream)
        finally:
            await client.aclose()

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(run_case())
    error = excinfo.value
    assert error.status_code == 500
    assert error.body == "upstream exploded"
    assert error.request_body == '{"q":1}'
    assert describe_error(error).startswith("Status Code: 500\nReason: Internal Server Error")


def test_connection_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport, client = _transport(handler)

    async def run_case():
        try:
            await _collect(transport, stream=False)
        finally:
            await client.aclose()

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(run_case())
    assert excinfo.value.status_code is None
    assert "connection refused" in excinfo.value.describe()


def test_injected_client_is_not_closed_by_transport():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    transport = HttpTransport(client)

    async def run_case():
        await transport.aclose()
        closed = client.is_closed
        await client.aclose()
        return closed

    assert asyncio.run(run_case()) is False
