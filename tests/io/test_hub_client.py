"""HubClient transport behaviour against a mocked Hub."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Awaitable, Callable, TypeVar

import pytest

from conftest import ENDPOINT, FakeHub, safetensors_bytes
from weightscope.config import Settings
from weightscope.errors import AuthRequired, HeaderParseError, HttpError, IndexParseError, RequestTimeout
from weightscope.formats.safetensors import TensorDescriptor
from weightscope.io.hub_client import HubClient

T = TypeVar("T")


def _with_client(hub: FakeHub, settings: Settings, fn: Callable[[HubClient], Awaitable[T]]) -> T:
    async def _go() -> T:
        async with HubClient(hub.model_id, "main", settings, transport=hub.transport) as client:
            return await fn(client)

    return asyncio.run(_go())


def test_urls(settings: Settings) -> None:
    client = HubClient("org/model", "v1.0", settings)
    assert client.tree_url == f"{ENDPOINT}/api/models/org/model/tree/v1.0?recursive=true"
    assert client.resolve_url("unet/model.safetensors") == f"{ENDPOINT}/org/model/resolve/v1.0/unet/model.safetensors"


def test_client_must_be_entered(settings: Settings) -> None:
    with pytest.raises(RuntimeError, match="not entered"):
        HubClient("org/model", settings=settings).client


def test_request_headers(hub: FakeHub, settings: Settings) -> None:
    hub.add_json("config.json", {})
    _with_client(hub, replace(settings, token="hf_test_token"), lambda c: c.fetch_json("config.json"))
    request = hub.requests[0]
    assert request.headers["Authorization"] == "Bearer hf_test_token"
    ua = request.headers["User-Agent"]
    assert ua.startswith("weightscope/")
    assert "model_id=org/model" in ua and "revision=main" in ua


def test_no_authorization_header_without_token(hub: FakeHub, settings: Settings) -> None:
    hub.add_json("config.json", {})
    _with_client(hub, settings, lambda c: c.fetch_json("config.json"))
    assert "Authorization" not in hub.requests[0].headers


def test_list_files_keeps_only_files(hub: FakeHub, settings: Settings) -> None:
    hub.add_json("config.json", {})
    hub.add_file("1_Dense/model.safetensors")
    files = _with_client(hub, settings, lambda c: c.list_files())
    assert files == ["config.json", "1_Dense/model.safetensors"]
    assert hub.requests[0].url.params["recursive"] == "true"


def test_401_without_token(hub: FakeHub, settings: Settings) -> None:
    hub.status = 401
    with pytest.raises(AuthRequired) as exc:
        _with_client(hub, settings, lambda c: c.list_files())
    assert exc.value.status == 401
    assert exc.value.token_provided is False
    assert "Please provide a Hugging Face token" in str(exc.value)


def test_401_with_token(hub: FakeHub, settings: Settings) -> None:
    hub.status = 401
    with pytest.raises(AuthRequired) as exc:
        _with_client(hub, replace(settings, token="bad"), lambda c: c.list_files())
    assert exc.value.token_provided is True
    assert "may be invalid or expired" in str(exc.value)


@pytest.mark.parametrize("status", [403, 404, 500, 503])
def test_other_errors_are_not_retried(hub: FakeHub, settings: Settings, status: int) -> None:
    hub.status = status
    with pytest.raises(HttpError) as exc:
        _with_client(hub, settings, lambda c: c.fetch_json("config.json"))
    assert not isinstance(exc.value, AuthRequired)
    assert exc.value.status == status
    assert f"status: {status}" in str(exc.value)
    assert len(hub.requests) == 1


def test_timeout_is_retried_once(hub: FakeHub, settings: Settings) -> None:
    hub.add_json("config.json", {"ok": True})
    hub.timeouts["config.json"] = 1
    assert _with_client(hub, settings, lambda c: c.fetch_json("config.json")) == {"ok": True}
    assert len(hub.requests) == 2


def test_second_timeout_is_final(hub: FakeHub, settings: Settings) -> None:
    hub.add_json("config.json", {"ok": True})
    hub.timeouts["config.json"] = 2
    with pytest.raises(RequestTimeout) as exc:
        _with_client(hub, settings, lambda c: c.fetch_json("config.json"))
    assert exc.value.url.endswith("/resolve/main/config.json")
    assert exc.value.timeout == settings.timeout
    assert len(hub.requests) == 2


def test_fetch_bytes_sends_range(hub: FakeHub, settings: Settings) -> None:
    hub.add_file("blob", bytes(range(20)))
    data = _with_client(hub, settings, lambda c: c.fetch_bytes("blob", (2, 5)))
    assert data == bytes([2, 3, 4, 5])
    assert hub.requests[0].headers["Range"] == "bytes=2-5"


def test_fetch_header_single_probe(hub: FakeHub, settings: Settings) -> None:
    hub.add_safetensors(
        "model.safetensors",
        {"layer.0.weight": {"dtype": "F32", "shape": [100, 100]}},
        metadata={"format": "pt"},
    )
    header = _with_client(hub, settings, lambda c: c.fetch_header("model.safetensors"))
    assert header == {"layer.0.weight": TensorDescriptor("F32", (100, 100))}
    assert [r.headers["Range"] for r in hub.requests] == ["bytes=0-200000"]


def test_fetch_header_follow_up_range_when_header_exceeds_probe(hub: FakeHub, settings: Settings) -> None:
    tensors = {f"layer.{i}.weight": {"dtype": "BF16", "shape": [64, 64]} for i in range(20)}
    body = safetensors_bytes(tensors)
    hub.add_file("model.safetensors", body)
    header_size = int.from_bytes(body[:8], "little")
    probe = 64
    assert header_size + 8 > probe + 1

    header = _with_client(
        hub, replace(settings, max_metadata_size=probe), lambda c: c.fetch_header("model.safetensors")
    )
    assert len(header) == 20
    assert [r.headers["Range"] for r in hub.requests] == [
        f"bytes=0-{probe}",
        f"bytes={probe + 1}-{header_size + 7}",
    ]


def test_fetch_header_too_short(hub: FakeHub, settings: Settings) -> None:
    hub.add_file("model.safetensors", b"\x01\x02")
    with pytest.raises(HeaderParseError) as exc:
        _with_client(hub, settings, lambda c: c.fetch_header("model.safetensors"))
    assert exc.value.path == "model.safetensors"


def test_fetch_header_invalid_json(hub: FakeHub, settings: Settings) -> None:
    hub.add_file("model.safetensors", (5).to_bytes(8, "little") + b"{oops")
    with pytest.raises(HeaderParseError, match="model.safetensors: Invalid JSON"):
        _with_client(hub, settings, lambda c: c.fetch_header("model.safetensors"))


def test_fetch_json_rejects_non_json_body(hub: FakeHub, settings: Settings) -> None:
    hub.add_file("model_index.json", b"<html>rate limited</html>")
    with pytest.raises(IndexParseError) as exc:
        _with_client(hub, settings, lambda c: c.fetch_json("model_index.json"))
    assert exc.value.path == "model_index.json"
    assert "not valid JSON" in str(exc.value)


@pytest.mark.parametrize(
    "tree",
    [
        {"error": "Repository not found"},
        ["model.safetensors", {"type": "file", "path": "config.json"}],
    ],
)
def test_list_files_rejects_malformed_listing(hub: FakeHub, settings: Settings, tree: object) -> None:
    hub.tree = tree
    with pytest.raises(IndexParseError) as exc:
        _with_client(hub, settings, lambda c: c.list_files())
    assert exc.value.path.endswith("/tree/main?recursive=true")
