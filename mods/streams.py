"""Pass-through download streams handed from adapters to callers."""

from __future__ import annotations

from typing import AsyncIterator, Optional

import httpx

DEFAULT_CHUNK_SIZE = 64 * 1024


class DownloadStream:
    """
    Streaming handle over an open upstream response.

    Bytes are forwarded chunk by chunk; the payload is never buffered whole
    unless the caller asks for ``read()``. The underlying response is closed
    when iteration finishes or ``aclose()`` is called, whichever comes first.
    """

    def __init__(self, response: httpx.Response, *, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._response = response
        self.chunk_size = chunk_size
        self._closed = False

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def content_type(self) -> str:
        return self._response.headers.get("content-type", "application/octet-stream")

    @property
    def content_length(self) -> Optional[int]:
        """Length of the bytes ``iter_bytes`` yields, when known."""
        # Content-Length counts encoded bytes, but iteration yields decoded ones
        encoding = self._response.headers.get("content-encoding", "identity").strip().lower()
        if encoding not in ("", "identity"):
            return None
        value = self._response.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def closed(self) -> bool:
        return self._closed

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(self.chunk_size):
                yield chunk
        finally:
            await self.aclose()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_bytes()

    async def read(self) -> bytes:
        return b"".join([chunk async for chunk in self.iter_bytes()])

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()

    async def __aenter__(self) -> "DownloadStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
