"""HTTP transport provider interfaces.

Defines the `TransportProvider` protocol consumed by the model provider factory
and the MCP connection manager. Every outbound HTTP request made by this
package (model calls, credential refreshes, MCP traffic) is issued through a
transport obtained from an injected provider, so a system-wide proxy policy
applies uniformly.

`ProxyTransportProvider` is the stock implementation: plain `httpx`
transports with an optional proxy URL.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import httpx


@runtime_checkable
class TransportProvider(Protocol):
    """Protocol for supplying proxy-aware `httpx` transports.

    Implementations may return a shared transport or a fresh one per call;
    callers never close the transport they receive through a client that
    they did not create themselves.

    Examples:
        >>> transport = provider.get_transport()
        >>> client = httpx.AsyncClient(transport=transport)
    """

    def get_transport(self) -> httpx.AsyncBaseTransport:
        """Return the transport used by async HTTP clients."""
        ...

    def get_sync_transport(self) -> httpx.BaseTransport:
        """Return the transport used by blocking HTTP clients.

        Blocking clients are only used where a third-party SDK requires them,
        e.g. Google credential refreshes.
        """
        ...


class ProxyTransportProvider(TransportProvider):
    """Transport provider with an optional static proxy.

    Args:
        proxy_url: Proxy URL (``http://``, ``https://`` or ``socks5://``). ``None``
            means direct connections.
        verify: TLS verification flag forwarded to `httpx`.
        retries: Connection retries performed by the transport itself.
    """

    def __init__(self, proxy_url: Optional[str] = None, *, verify: bool = True, retries: int = 0) -> None:
        self._proxy_url = proxy_url or None
        self._verify = verify
        self._retries = retries

    @classmethod
    def from_settings(cls) -> "ProxyTransportProvider":
        from agentlink_ai.core.config import settings

        return cls(settings.proxy_url)

    @property
    def proxy_url(self) -> Optional[str]:
        return self._proxy_url

    def get_transport(self) -> httpx.AsyncBaseTransport:
        return httpx.AsyncHTTPTransport(proxy=self._proxy_url, verify=self._verify, retries=self._retries)

    def get_sync_transport(self) -> httpx.BaseTransport:
        return httpx.HTTPTransport(proxy=self._proxy_url, verify=self._verify, retries=self._retries)
