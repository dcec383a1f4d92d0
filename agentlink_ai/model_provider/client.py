"""Uniform generation client.

`GenerationClient` wraps the Pydantic AI `Model` built for one
`ProviderConfig` and exposes the same non-streaming and streaming
``generate`` calls whatever the backend is. Agent runtimes that drive
Pydantic AI directly use ``client.model``.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import httpx

from pydantic import BaseModel, Field
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    PartDeltaEvent,
    PartStartEvent,
    TextPart,
    TextPartDelta,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters
from pydantic_ai.settings import ModelSettings

from .schemas import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

HttpClient = Union[httpx.AsyncClient, httpx.Client]


class BuiltModel(NamedTuple):
    """A Pydantic AI model plus the HTTP clients opened to serve it."""

    model: Model
    http_clients: Tuple[HttpClient, ...] = ()


class ModelResponse(BaseModel):
    """Framework-agnostic model response.

    Attributes:
        content: The generated text content
        finish_reason: Why the generation finished (length, stop, etc.)
        usage: Token usage information
        metadata: Additional framework-specific metadata
    """

    content: str = Field(..., description="Generated text content")
    finish_reason: Optional[str] = Field(None, description="Why generation finished")
    usage: Dict[str, Any] = Field(default_factory=dict, description="Token usage info")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Framework-specific metadata")


def _settings(max_tokens: Optional[int], temperature: Optional[float]) -> ModelSettings:
    model_settings = ModelSettings()
    if max_tokens is not None:
        model_settings["max_tokens"] = max_tokens
    if temperature is not None:
        model_settings["temperature"] = temperature
    return model_settings


def _user_message(prompt: str) -> List[ModelMessage]:
    return [ModelRequest(parts=[UserPromptPart(content=prompt)])]


class GenerationClient:
    """Generation client bound to one provider config.

    The client owns the HTTP clients opened while building its model; release
    them with `aclose` or by using the client as an async context manager.
    """

    def __init__(self, config: ProviderConfig, model: Model, http_clients: Sequence[HttpClient] = ()) -> None:
        self.config = config
        self.model = model
        self._http_clients: List[HttpClient] = list(http_clients)
        self._closed = False

    def __repr__(self) -> str:
        return f"GenerationClient(provider={self.kind.value}, model={self.config.model_name!r})"

    @property
    def kind(self) -> ProviderKind:
        return self.config.resolved_kind

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Close the HTTP clients opened for this model. Idempotent."""
        if self._closed:
            return
        self._closed = True
        clients, self._http_clients = self._http_clients, []
        for http_client in clients:
            if isinstance(http_client, httpx.AsyncClient):
                await http_client.aclose()
            else:
                http_client.close()
        logger.debug(f"Closed {len(clients)} HTTP clients for {self.kind.value}:{self.config.model_name}")

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ModelResponse:
        """Generate a complete response for a single user prompt."""
        try:
            response = await self.model.request(
                _user_message(prompt),
                _settings(max_tokens, temperature),
                ModelRequestParameters(),
            )
        except Exception as e:
            logger.error(f"Generation failed for {self.kind.value}:{self.config.model_name}: {e}")
            raise

        usage = getattr(response, "usage", None)
        return ModelResponse(
            content="".join(part.content for part in response.parts if isinstance(part, TextPart)),
            finish_reason=getattr(response, "finish_reason", None),
            usage={
                "input_tokens": getattr(usage, "input_tokens", 0) or 0,
                "output_tokens": getattr(usage, "output_tokens", 0) or 0,
            },
            metadata={"provider": self.kind.value, "model": self.config.model_name},
        )

    async def stream(
        self,
        prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas as they are produced.

        Breaking out early is supported; close the iterator (e.g. with
        ``contextlib.aclosing``) to release the underlying HTTP stream promptly.
        """
        async with self.model.request_stream(
            _user_message(prompt),
            _settings(max_tokens, temperature),
            ModelRequestParameters(),
        ) as streamed:
            async for event in streamed:
                if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
                    if event.part.content:
                        yield event.part.content
                elif isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
                    if event.delta.content_delta:
                        yield event.delta.content_delta

    async def probe(self) -> None:
        """Send a one-token request and stop at the first streamed event.

        Raises whatever the backend raises before that first event.
        """
        async with self.model.request_stream(
            _user_message("hi"),
            _settings(1, None),
            ModelRequestParameters(),
        ) as streamed:
            async for _event in streamed:
                break
