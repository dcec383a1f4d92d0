from .client import BuiltModel, GenerationClient, ModelResponse
from .errors import (
    ClientBuildError,
    ModelProviderError,
    ProbeFailureError,
    UnsupportedProviderError,
)
from .factory import ModelProviderFactory
from .schemas import ProviderConfig, ProviderKind
from .strategies import PROVIDER_STRATEGIES, normalize_openai_base_url

__all__ = [
    "PROVIDER_STRATEGIES",
    "BuiltModel",
    "ClientBuildError",
    "GenerationClient",
    "ModelProviderError",
    "ModelProviderFactory",
    "ModelResponse",
    "ProbeFailureError",
    "ProviderConfig",
    "ProviderKind",
    "UnsupportedProviderError",
    "normalize_openai_base_url",
]
