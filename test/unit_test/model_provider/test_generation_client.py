from __future__ import annotations

from typing import Any, List
from unittest.mock import MagicMock

import httpx
import pytest
from pydantic_ai.models import test as pai_test

from agentlink_ai.model_provider.client import GenerationClient, ModelResponse
from agentlink_ai.model_provider.schemas import ProviderConfig, ProviderKind


def _config() -> ProviderConfig:
    return ProviderConfig(provider="openai", model_name="gpt-4o-mini")


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_returns_text_and_usage(self) -> None:
        client = GenerationClient(_config(), pai_test.TestModel(custom_output_text="hello world"))

        response = await client.generate("Say hello", max_tokens=16, temperature=0.2)

        assert isinstance(response, ModelResponse)
        assert response.content == "hello world"
        assert set(response.usage) == {"input_tokens", "output_tokens"}
        assert response.metadata == {"provider": "openai-chat", "model": "gpt-4o-mini"}

    @pytest.mark.asyncio
    async def test_generate_propagates_backend_errors(self) -> None:
        model = MagicMock()
        model.request.side_effect = RuntimeError("quota exceeded")
        client = GenerationClient(_config(), model)

        with pytest.raises(RuntimeError, match="quota exceeded"):
            await client.generate("hi")


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_yields_text_deltas(self) -> None:
        client = GenerationClient(_config(), pai_test.TestModel(custom_output_text="hello streaming world"))

        chunks = [chunk async for chunk in client.stream("hi")]

        assert "".join(chunks) == "hello streaming world"


class TestProbe:
    @pytest.mark.asyncio
    async def test_probe_succeeds_on_first_event(self) -> None:
        client = GenerationClient(_config(), pai_test.TestModel(custom_output_text="pong"))

        await client.probe()

    @pytest.mark.asyncio
    async def test_probe_raises_backend_errors(self) -> None:
        model = MagicMock()
        model.request_stream.side_effect = RuntimeError("401 unauthorized")
        client = GenerationClient(_config(), model)

        with pytest.raises(RuntimeError, match="401"):
            await client.probe()


def test_kind_and_repr() -> None:
    client = GenerationClient(_config(), pai_test.TestModel())

    assert client.kind is ProviderKind.OPENAI_CHAT
    assert "openai-chat" in repr(client)


class _RecordingTransport(httpx.MockTransport):
    def __init__(self, closed: List[str]) -> None:
        super().__init__(lambda request: httpx.Response(200))
        self._closed = closed

    def close(self) -> None:
        self._closed.append("sync")

    async def aclose(self) -> None:
        self._closed.append("async")


class TestClose:
    @pytest.mark.asyncio
    async def test_context_exit_closes_owned_http_clients(self) -> None:
        closed: List[str] = []
        owned: List[Any] = [
            httpx.AsyncClient(transport=_RecordingTransport(closed)),
            httpx.Client(transport=_RecordingTransport(closed)),
        ]

        async with GenerationClient(_config(), pai_test.TestModel(), owned) as client:
            assert not client.closed

        assert client.closed
        assert closed == ["async", "sync"]
        assert all(http_client.is_closed for http_client in owned)

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self) -> None:
        closed: List[str] = []
        client = GenerationClient(_config(), pai_test.TestModel(), [httpx.AsyncClient(transport=_RecordingTransport(closed))])

        await client.aclose()
        await client.aclose()

        assert closed == ["async"]

    @pytest.mark.asyncio
    async def test_aclose_without_http_clients(self) -> None:
        client = GenerationClient(_config(), pai_test.TestModel())

        await client.aclose()

        assert client.closed
