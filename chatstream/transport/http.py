"""
HTTP transport: buffered POST or chunk-by-chunk streamed POST over a shared httpx client.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from chatstream.config.provider_config import ProviderConfig
from chatstream.config.settings import settings
from chatstream.core.errors import TransportError
from chatstream.util.debug_excerpt import debug_log_body
from chatstream.util.logger import logger


def _http_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(1, int(settings.max_connections)),
        max_keepalive_connections=max(1, int(settings.max_keepalive_connections)),
    )


def _http_timeout() -> httpx.Timeout:
    timeout = float(settings.request_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


def _cap(text: str) -> str:
    limit = settings.max_error_body_chars
    if limit <= 0 or len(text) <= limit:
        return text
    return f"{text[:limit]} [TRUNCATED]"


def build_headers(config: ProviderConfig, extra: Mapping[str, str] | None = None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    headers.update(config.auth_headers())
    if extra:
        headers.update(extra)
    return headers


class HttpTransport:
    """Owns one lazily created ``httpx.AsyncClient`` shared by every request of a session."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None
        self._client_lock: asyncio.Lock | None = None

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=_http_timeout(), limits=_http_limits())
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def send(
        self,
        url: str,
        body: bytes,
        headers: Mapping[str, str],
        *,
        stream: bool,
    ) -> AsyncIterator[bytes]:
        """Yield the response body: once when buffered, per delivered chunk when streamed.

        Raises ``TransportError`` on connection failure or a non-2xx status.
        """
        debug_log_body("transport send", body)
        client = await self.get_client()
        if stream:
            async for chunk in self._send_stream(client, url, body, headers):
                yield chunk
            return
        yield await self._send_buffered(client, url, body, headers)

    async def _send_buffered(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: bytes,
        headers: Mapping[str, str],
    ) -> bytes:
        logger.debug("send_buffered start payload_bytes=%d", len(body))
        try:
            response = await client.post(url, content=body, headers=dict(headers))
        except httpx.HTTPError as exc:
            raise self._connection_error(exc, body) from exc
        logger.debug("send_buffered done status=%s", response.status_code)
        if not response.is_success:
            raise self._status_error(response, response.content, body)
        return response.content

    async def _send_stream(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: bytes,
        headers: Mapping[str, str],
    ) -> AsyncIterator[bytes]:
        logger.debug("send_stream start payload_bytes=%d", len(body))
        try:
            async with client.stream("POST", url, content=body, headers=dict(headers)) as response:
                logger.debug("send_stream connected status=%s", response.status_code)
                if not response.is_success:
                    raise self._status_error(response, await response.aread(), body)
                async for chunk in response.aiter_bytes():
                    if chunk:
                        yield chunk
        except httpx.HTTPError as exc:
            raise self._connection_error(exc, body) from exc

    @staticmethod
    def _connection_error(exc: httpx.HTTPError, body: bytes) -> TransportError:
        detail = (str(exc) or "").strip() or exc.__class__.__name__
        logger.warning("transport http_error error=%s", detail)
        return TransportError(
            f"connection_failed: {detail}",
            request_body=_cap(body.decode("utf-8", errors="replace")),
        )

    @staticmethod
    def _status_error(response: httpx.Response, content: bytes, body: bytes) -> TransportError:
        text = content.decode("utf-8", errors="replace")
        logger.warning("transport status_error status=%s reason=%s", response.status_code, response.reason_phrase)
        return TransportError(
            f"http_status_{response.status_code}",
            status_code=response.status_code,
            reason=response.reason_phrase,
            body=_cap(text),
            request_body=_cap(body.decode("utf-8", errors="replace")),
        )


def describe_error(exc: Any) -> str:
    if isinstance(exc, TransportError):
        return exc.describe()
    return f"{exc.__class__.__name__}: {exc}"
