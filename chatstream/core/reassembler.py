"""Byte stream -> newline-delimited JSON blobs -> parsed Responses."""

from __future__ import annotations

import codecs

from chatstream.adapters.base import ProviderAdapter
from chatstream.core.models import Response
from chatstream.util.logger import logger


class StreamReassembler:
    """Feeds transport chunks to the adapter for one request.

    Buffered requests collect every byte and parse once at ``finish``. Streamed
    requests split on ``\\n`` and parse each complete line as it arrives; a line
    cut by a chunk boundary is held back until the rest of it is delivered.
    """

    def __init__(self, adapter: ProviderAdapter, *, stream: bool, response: Response | None = None) -> None:
        self.adapter = adapter
        self.stream = stream
        self.response = response if response is not None else Response()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._buffer = bytearray()
        self._finished = False

    def feed(self, chunk: bytes) -> list[Response]:
        if self._finished:
            raise RuntimeError("reassembler already finished")
        if not chunk:
            return []
        if not self.stream:
            self._buffer.extend(chunk)
            return []

        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        # 最后一段没有换行结尾，留到下一个 chunk 再拼接
        self._pending = lines.pop()
        return self._parse_lines(lines)

    def finish(self) -> list[Response]:
        """Flush whatever the transport left behind after end-of-body."""
        if self._finished:
            return []
        self._finished = True
        if not self.stream:
            blob = self._decoder.decode(bytes(self._buffer), final=True)
            self._buffer.clear()
            if not blob.strip():
                logger.debug("buffered response body empty")
                return []
            return [self.adapter.parse_full_response(blob, self.response)]

        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._parse_lines([tail])

    def _parse_lines(self, lines: list[str]) -> list[Response]:
        parsed: list[Response] = []
        for line in lines:
            if not line.strip():
                continue
            if self.response.failed:
                logger.debug("stream aborted after error, fragment dropped")
                break
            if self.response.is_full_response:
                logger.debug("stream already complete, fragment dropped")
                break
            self.response = self.adapter.parse_streamed_fragment(line, self.response)
            # Response 会被下一行原地修改，这里保存当前快照
            parsed.append(self.response.model_copy())
        return parsed
