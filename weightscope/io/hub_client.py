"""
Async Hugging Face Hub client for file listings, JSON files and byte ranges.

One client (and one underlying ``httpx.AsyncClient``) lives for a single
analysis run; nothing is pooled or cached across runs.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from weightscope import __version__
from weightscope.config import DEFAULT_REVISION, Settings
from weightscope.errors import (
    AuthRequired,
    HeaderParseError,
    HttpError,
    IndexParseError,
    RequestTimeout,
)
from weightscope.formats.safetensors import (
    TensorDescriptor,
    combine,
    extract_metadata_text,
    missing_metadata_range,
    parse_header_size,
    parse_header_text,
)

ByteRange = Tuple[int, int]
_TIMEOUTS = (httpx.TimeoutException, asyncio.TimeoutError)


class HubClient:
    """Fetches repository files for one ``model_id`` at one ``revision``.

    Use as an async context manager::

        async with HubClient("org/model", settings=Settings()) as hub:
            files = await hub.list_files()
    """

    def __init__(
        self,
        model_id: str,
        revision: str = DEFAULT_REVISION,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model_id = model_id
        self.revision = revision
        self.settings = settings or Settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        h = {
            "User-Agent": (
                f"weightscope/{__version__}; id={int(time.time() * 1000)}; "
                f"model_id={self.model_id}; revision={self.revision}"
            )
        }
        if self.settings.token:
            h["Authorization"] = f"Bearer {self.settings.token}"
        return h

    @property
    def tree_url(self) -> str:
        return (
            f"{self.settings.endpoint}/api/models/{self.model_id}"
            f"/tree/{self.revision}?recursive=true"
        )

    def resolve_url(self, path: str) -> str:
        return f"{self.settings.endpoint}/{self.model_id}/resolve/{self.revision}/{path}"

    async def __aenter__(self) -> "HubClient":
        self._client = httpx.AsyncClient(
            headers=self.headers,
            follow_redirects=True,
            timeout=self.settings.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("HubClient is not entered")
        return self._client

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        url = str(response.request.url)
        if response.status_code == 401:
            raise AuthRequired(token_provided=bool(self.settings.token), url=url)
        raise HttpError(response.status_code, response.reason_phrase, url)

    async def _get(self, url: str, byte_range: Optional[ByteRange] = None) -> httpx.Response:
        """GET with a deadline; a timed-out attempt is retried exactly once."""
        headers = {}
        if byte_range is not None:
            headers["Range"] = f"bytes={byte_range[0]}-{byte_range[1]}"
        try:
            return await self._send(url, headers)
        except _TIMEOUTS:
            logger.warning(
                "Request to {url} timed out after {t}s, retrying", url=url, t=self.settings.timeout
            )
        try:
            return await self._send(url, headers)
        except _TIMEOUTS:
            raise RequestTimeout(url, self.settings.timeout) from None

    async def _send(self, url: str, headers: Dict[str, str]) -> httpx.Response:
        logger.debug("GET {url} range={range}", url=url, range=headers.get("Range"))
        response = await asyncio.wait_for(
            self.client.get(url, headers=headers), self.settings.timeout
        )
        self._raise_for_status(response)
        return response

    @staticmethod
    def _decode_json(response: httpx.Response, source: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise IndexParseError(source, f"response is not valid JSON: {e}") from None

    async def fetch_json(self, path: str) -> Any:
        """Fetch and decode a JSON file from the repository."""
        response = await self._get(self.resolve_url(path))
        return self._decode_json(response, path)

    async def fetch_bytes(self, path: str, byte_range: Optional[ByteRange] = None) -> bytes:
        """Fetch a file, or only the inclusive ``byte_range`` of it."""
        response = await self._get(self.resolve_url(path), byte_range)
        return response.content

    async def list_files(self) -> List[str]:
        """Recursive listing of the repository, files only."""
        response = await self._get(self.tree_url)
        entries = self._decode_json(response, self.tree_url)
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise IndexParseError(self.tree_url, "expected a JSON array of tree entries")
        return [e["path"] for e in entries if e.get("type") == "file" and e.get("path")]

    async def fetch_header(self, path: str) -> Dict[str, TensorDescriptor]:
        """Read a safetensors header with a bounded probe and at most one follow-up range."""
        probe = self.settings.max_metadata_size
        buf = await self.fetch_bytes(path, (0, probe))
        try:
            header_size = parse_header_size(buf)
        except HeaderParseError as e:
            raise HeaderParseError(str(e), path=path) from None
        missing = missing_metadata_range(len(buf), header_size)
        if missing is not None:
            logger.debug(
                "{path}: header of {size} bytes exceeds probe, fetching bytes {a}-{b}",
                path=path,
                size=header_size,
                a=missing[0],
                b=missing[1],
            )
            buf = combine(buf, await self.fetch_bytes(path, missing))
        try:
            header = parse_header_text(extract_metadata_text(buf, header_size))
        except HeaderParseError as e:
            raise HeaderParseError(str(e), path=path) from None
        logger.debug(
            "{path}: {n} tensors in {size} header bytes", path=path, n=len(header), size=header_size
        )
        return header
