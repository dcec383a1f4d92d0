"""Per-provider construction and probe strategies.

Each `ProviderKind` maps to one strategy in `PROVIDER_STRATEGIES`. A strategy
builds the Pydantic AI `Model` for a config and knows how to probe the backend
with a minimal real request. Adding a backend means adding a strategy and a
table entry; existing strategies stay untouched.

All HTTP clients are created on transports obtained from the injected
`TransportProvider`.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional, Protocol, runtime_checkable

import httpx
from google import genai
from google.genai import types as genai_types
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIResponsesModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from agentlink_ai.core.config import settings
from agentlink_ai.core.transport import TransportProvider

from .client import BuiltModel, GenerationClient
from .errors import ClientBuildError, ProbeFailureError
from .google_auth import GoogleAuthTransport, HttpxAuthRequest, load_vertex_credentials
from .schemas import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

OPENAI_VERSION_SUFFIX = "/v1"
PROBE_BODY_LIMIT = 512
# same defaults as the OpenAI SDK
OPENAI_HTTP_TIMEOUT = httpx.Timeout(600.0, connect=5.0)


def normalize_openai_base_url(base_url: Optional[str], default: Optional[str] = None) -> str:
    """Normalize an OpenAI-compatible base URL so it ends with ``/v1``.

    Empty input maps to the official endpoint. Otherwise trailing slashes are
    stripped and ``/v1`` is appended only when missing, so applying the
    function twice gives the same result.

    Examples:
        >>> normalize_openai_base_url("")
        'https://api.openai.com/v1'
        >>> normalize_openai_base_url("http://host/v1/")
        'http://host/v1'
        >>> normalize_openai_base_url("http://host")
        'http://host/v1'
    """
    if not base_url or not base_url.strip():
        return default or settings.model_provider.openai_default_base_url
    url = base_url.strip().rstrip("/")
    if not url.endswith(OPENAI_VERSION_SUFFIX):
        url += OPENAI_VERSION_SUFFIX
    return url


@runtime_checkable
class ProviderStrategy(Protocol):
    kind: ProviderKind

    def build_model(self, config: ProviderConfig, transport_provider: TransportProvider) -> BuiltModel: ...

    async def probe(self, config: ProviderConfig, transport_provider: TransportProvider) -> None: ...


class _GenerateProbeMixin:
    """Probe by building the real client and issuing a one-token streamed generation."""

    async def probe(self, config: ProviderConfig, transport_provider: TransportProvider) -> None:
        try:
            built = self.build_model(config, transport_provider)  # type: ignore[attr-defined]
        except Exception as e:
            raise ProbeFailureError(f"client creation failed: {e}") from e
        async with GenerationClient(config, built.model, built.http_clients) as client:
            try:
                await client.probe()
            except Exception as e:
                raise ProbeFailureError(f"request failed: {e}") from e


def _http_options(transport_provider: TransportProvider, async_transport: httpx.AsyncBaseTransport) -> genai_types.HttpOptions:
    return genai_types.HttpOptions(
        client_args={"transport": transport_provider.get_sync_transport()},
        async_client_args={"transport": async_transport},
    )


class GeminiStrategy(_GenerateProbeMixin):
    kind = ProviderKind.GEMINI

    def build_model(self, config: ProviderConfig, transport_provider: TransportProvider) -> BuiltModel:
        client = genai.Client(
            api_key=config.api_key,
            http_options=_http_options(transport_provider, transport_provider.get_transport()),
        )
        logger.debug("Creating Gemini model: %s", config.model_name)
        return BuiltModel(GoogleModel(config.model_name, provider=GoogleProvider(client=client)))


class VertexStrategy(_GenerateProbeMixin):
    kind = ProviderKind.VERTEX

    def build_model(self, config: ProviderConfig, transport_provider: TransportProvider) -> BuiltModel:
        auth_http = httpx.Client(transport=transport_provider.get_sync_transport())
        auth_request = HttpxAuthRequest(auth_http)
        try:
            credentials, detected_project = load_vertex_credentials(config.credentials_json, auth_request)
            project = config.project or detected_project
            if not project:
                raise ClientBuildError("Vertex AI requires a project (none configured or found in credentials)")
        except Exception:
            auth_http.close()
            raise

        auth_transport = GoogleAuthTransport(transport_provider.get_transport(), credentials, auth_request)
        client = genai.Client(
            vertexai=True,
            project=project,
            location=config.location or None,
            credentials=credentials,
            http_options=_http_options(transport_provider, auth_transport),
        )
        logger.debug("Creating Vertex AI model: %s (project=%s, location=%s)", config.model_name, project, config.location)
        return BuiltModel(GoogleModel(config.model_name, provider=GoogleProvider(client=client)), (auth_http,))


class _OpenAICompatibleStrategy:
    """Shared construction and probing for OpenAI-compatible backends."""

    kind: ProviderKind

    def _provider(self, config: ProviderConfig, http_client: httpx.AsyncClient) -> OpenAIProvider:
        return OpenAIProvider(
            base_url=normalize_openai_base_url(config.base_url),
            api_key=config.api_key or "",
            http_client=http_client,
        )

    def _http_client(self, transport_provider: TransportProvider) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=transport_provider.get_transport(), timeout=OPENAI_HTTP_TIMEOUT)

    async def probe(self, config: ProviderConfig, transport_provider: TransportProvider) -> None:
        """POST one minimal chat completion and require HTTP 200.

        The chat completions endpoint is used for both chat and responses
        configs since every OpenAI-compatible server implements it.
        """
        url = normalize_openai_base_url(config.base_url) + "/chat/completions"
        body = {
            "model": config.model_name,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "hi"}],
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key or ''}",
        }
        async with httpx.AsyncClient(transport=transport_provider.get_transport(), timeout=None) as http:
            try:
                response = await http.post(url, content=json.dumps(body), headers=headers)
            except httpx.HTTPError as e:
                raise ProbeFailureError(f"connection failed: {e}") from e

        if response.status_code == httpx.codes.OK:
            return
        snippet = response.content[:PROBE_BODY_LIMIT].decode("utf-8", errors="replace")
        raise ProbeFailureError(f"HTTP {response.status_code}: {snippet}")


class OpenAIChatStrategy(_OpenAICompatibleStrategy):
    kind = ProviderKind.OPENAI_CHAT

    def build_model(self, config: ProviderConfig, transport_provider: TransportProvider) -> BuiltModel:
        logger.debug("Creating OpenAI chat model: %s", config.model_name)
        http_client = self._http_client(transport_provider)
        model = OpenAIChatModel(config.model_name, provider=self._provider(config, http_client))
        return BuiltModel(model, (http_client,))


class OpenAIResponsesStrategy(_OpenAICompatibleStrategy):
    kind = ProviderKind.OPENAI_RESPONSES

    def build_model(self, config: ProviderConfig, transport_provider: TransportProvider) -> BuiltModel:
        logger.debug("Creating OpenAI responses model: %s", config.model_name)
        http_client = self._http_client(transport_provider)
        model = OpenAIResponsesModel(config.model_name, provider=self._provider(config, http_client))
        return BuiltModel(model, (http_client,))


PROVIDER_STRATEGIES: Dict[ProviderKind, ProviderStrategy] = {
    ProviderKind.GEMINI: GeminiStrategy(),
    ProviderKind.VERTEX: VertexStrategy(),
    ProviderKind.OPENAI_CHAT: OpenAIChatStrategy(),
    ProviderKind.OPENAI_RESPONSES: OpenAIResponsesStrategy(),
}
