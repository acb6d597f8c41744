"""Shared fixtures: an in-memory Hub repository served through httpx.MockTransport."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

import httpx
import pytest

from weightscope.analysis.analyzer import analyze
from weightscope.analysis.base import ModelReport
from weightscope.config import Settings
from weightscope.formats.safetensors import encode_header

ENDPOINT = "https://hub.test"
MODEL_ID = "org/model"
TREE = "__tree__"


def safetensors_bytes(
    tensors: Mapping[str, Mapping[str, Any]],
    *,
    metadata: Optional[Dict[str, str]] = None,
    payload: int = 64,
) -> bytes:
    """Header for ``tensors`` followed by ``payload`` bytes of fake tensor data."""
    header: Dict[str, Any] = {}
    if metadata is not None:
        header["__metadata__"] = metadata
    offset = 0
    for name, meta in tensors.items():
        header[name] = {**meta, "data_offsets": [offset, offset + 4]}
        offset += 4
    return encode_header(header) + b"\0" * payload


class FakeHub:
    """A repository of JSON and binary files for one model id.

    Binary files honour ``Range: bytes=a-b`` with a 206 response. Paths listed
    in ``timeouts`` raise ``httpx.ReadTimeout`` for that many leading requests.
    """

    def __init__(self, model_id: str = MODEL_ID):
        self.model_id = model_id
        self.files: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []
        self.timeouts: Dict[str, int] = {}
        self.status: Optional[int] = None
        self.tree: Optional[Any] = None

    def add_json(self, path: str, value: Any) -> None:
        self.files[path] = value

    def add_safetensors(self, path: str, tensors: Mapping[str, Mapping[str, Any]], **kw: Any) -> None:
        self.files[path] = safetensors_bytes(tensors, **kw)

    def add_file(self, path: str, body: bytes = b"") -> None:
        self.files[path] = body

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _key(self, request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith(f"/api/models/{self.model_id}/tree/"):
            return TREE
        rest = path[len(f"/{self.model_id}/resolve/"):]
        return rest.split("/", 1)[1]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status)
        key = self._key(request)
        if self.timeouts.get(key, 0) > 0:
            self.timeouts[key] -= 1
            raise httpx.ReadTimeout("timed out", request=request)
        if key == TREE:
            if self.tree is not None:
                return httpx.Response(200, json=self.tree)
            listing = [{"type": "file", "path": p, "size": 1} for p in self.files]
            listing.append({"type": "directory", "path": "1_Dense"})
            return httpx.Response(200, json=listing)
        if key not in self.files:
            return httpx.Response(404)
        body = self.files[key]
        if not isinstance(body, bytes):
            return httpx.Response(200, json=body)
        rng = request.headers.get("Range")
        if rng:
            start, end = (int(x) for x in rng[len("bytes="):].split("-"))
            return httpx.Response(206, content=body[start : end + 1])
        return httpx.Response(200, content=body)

    def requests_for(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if self._key(r) == path]


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def settings() -> Settings:
    return Settings(endpoint=ENDPOINT, timeout=5.0)


@pytest.fixture
def run_analysis(hub: FakeHub, settings: Settings):
    def _run(**overrides: Any) -> ModelReport:
        return analyze(hub.model_id, "main", replace(settings, **overrides), transport=hub.transport)

    return _run
