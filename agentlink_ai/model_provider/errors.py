from __future__ import annotations


class ModelProviderError(Exception):
    pass


class UnsupportedProviderError(ModelProviderError, ValueError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class ClientBuildError(ModelProviderError):
    """Raised when a client cannot be constructed, e.g. credentials cannot be loaded."""


class ProbeFailureError(ModelProviderError):
    """Raised by connectivity probes; the message is meant for the user."""
