"""Model provider factory.

Builds a `GenerationClient` from a `ProviderConfig` and probes connectivity
with a minimal real request. Backend-specific work is delegated to the
strategy registered for the config's kind in `PROVIDER_STRATEGIES`.

Typical usage:
    factory = ModelProviderFactory(ProxyTransportProvider())
    client = factory.build_client(config)
    response = await client.generate("Hello")

    error = await factory.check_connectivity(config)
    if error:
        print(f"Provider unreachable: {error}")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping, Optional

from agentlink_ai.core.config import settings
from agentlink_ai.core.transport import ProxyTransportProvider, TransportProvider

from .client import GenerationClient
from .errors import ClientBuildError, ModelProviderError, ProbeFailureError, UnsupportedProviderError
from .schemas import ProviderConfig, ProviderKind
from .strategies import PROVIDER_STRATEGIES, ProviderStrategy

logger = logging.getLogger(__name__)


class ModelProviderFactory:
    """Factory for generation clients bound to one transport provider."""

    def __init__(
        self,
        transport_provider: Optional[TransportProvider] = None,
        *,
        strategies: Optional[Mapping[ProviderKind, ProviderStrategy]] = None,
    ) -> None:
        self._transport_provider = transport_provider or ProxyTransportProvider.from_settings()
        self._strategies: Dict[ProviderKind, ProviderStrategy] = dict(
            strategies if strategies is not None else PROVIDER_STRATEGIES
        )

    @property
    def transport_provider(self) -> TransportProvider:
        return self._transport_provider

    def get_supported_providers(self) -> List[str]:
        return [kind.value for kind in self._strategies]

    def _strategy_for(self, config: ProviderConfig) -> ProviderStrategy:
        kind = config.resolved_kind
        strategy = self._strategies.get(kind)
        if strategy is None:
            raise UnsupportedProviderError(kind.value)
        return strategy

    def build_client(self, config: ProviderConfig) -> GenerationClient:
        """Build the generation client for `config`.

        No network call is made; credentials and connections are resolved
        lazily on first request. The caller owns the returned client and
        releases its HTTP clients with `GenerationClient.aclose`.

        Raises:
            UnsupportedProviderError: If the provider kind is unknown.
            ClientBuildError: If the backend client cannot be constructed.
        """
        strategy = self._strategy_for(config)
        try:
            built = strategy.build_model(config, self._transport_provider)
        except ModelProviderError:
            raise
        except Exception as e:
            logger.error(f"Failed to create {config.resolved_kind.value} client: {e}")
            raise ClientBuildError(f"failed to create {config.resolved_kind.value} client: {e}") from e
        logger.info(f"Created {config.resolved_kind.value} client for model {config.model_name}")
        return GenerationClient(config, built.model, built.http_clients)

    async def test_connectivity(self, config: ProviderConfig, timeout: Optional[float] = None) -> None:
        """Probe the backend with a minimal real request.

        Args:
            config: Provider configuration to probe.
            timeout: Deadline in seconds; defaults to ``MODEL_CONNECTIVITY_TIMEOUT``.

        Raises:
            UnsupportedProviderError: If the provider kind is unknown.
            ProbeFailureError: If the probe fails or misses the deadline. The
                message is human-readable and includes the HTTP status and body
                excerpt where one was received.
        """
        strategy = self._strategy_for(config)
        deadline = settings.model_provider.connectivity_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(deadline):
                await strategy.probe(config, self._transport_provider)
        except TimeoutError as e:
            raise ProbeFailureError(f"timed out after {deadline:g}s") from e
        except ModelProviderError:
            raise
        except Exception as e:
            raise ProbeFailureError(f"request failed: {e}") from e
        logger.info(f"Connectivity check succeeded for {config.resolved_kind.value}:{config.model_name}")

    async def check_connectivity(self, config: ProviderConfig, timeout: Optional[float] = None) -> str:
        """Like `test_connectivity` but returns the failure message, or ``""`` on success.

        Unsupported providers are reported the same way.
        """
        try:
            await self.test_connectivity(config, timeout)
        except ModelProviderError as e:
            logger.warning(f"Connectivity check failed for {config.provider}:{config.model_name}: {e}")
            return str(e)
        return ""
