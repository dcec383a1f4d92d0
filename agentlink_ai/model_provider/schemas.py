"""Generation provider configuration records."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import UnsupportedProviderError


class ProviderKind(str, Enum):
    """Supported generation backends."""

    GEMINI = "gemini"
    VERTEX = "vertex"
    OPENAI_CHAT = "openai-chat"
    OPENAI_RESPONSES = "openai-responses"
    # legacy: resolved through ``use_responses``
    OPENAI = "openai"

    def __str__(self) -> str:
        return self.value


class ProviderConfig(BaseModel):
    """One generation provider configuration.

    Attributes:
        id: Identifier of the config in the configuration store
        provider: Backend kind
        api_key: API key (Gemini and OpenAI-compatible backends)
        credentials_json: Google service account / authorized user JSON (Vertex AI only);
            empty means application default credentials
        base_url: OpenAI-compatible base URL; empty means the official endpoint
        project: Google Cloud project (Vertex AI only)
        location: Google Cloud location (Vertex AI only)
        model_name: Model to call
        use_responses: Select the Responses API for the legacy ``openai`` kind
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )

    id: str = Field(default="", description="Config identifier")
    provider: str = Field(..., min_length=1, description="Backend kind, one of `ProviderKind`")
    api_key: Optional[str] = Field(None, description="API key")
    credentials_json: Optional[str] = Field(None, description="Google credentials JSON blob")
    base_url: Optional[str] = Field(None, description="OpenAI-compatible base URL")
    project: Optional[str] = Field(None, description="Google Cloud project")
    location: Optional[str] = Field(None, description="Google Cloud location")
    model_name: str = Field(..., min_length=1, description="Model name")
    use_responses: bool = Field(False, description="Use the Responses API for OpenAI-compatible backends")

    @property
    def resolved_kind(self) -> ProviderKind:
        """The concrete backend, with the legacy ``openai`` kind resolved.

        Raises:
            UnsupportedProviderError: If ``provider`` names no known backend.
        """
        try:
            kind = ProviderKind(str(self.provider).strip().lower())
        except ValueError:
            raise UnsupportedProviderError(self.provider) from None
        if kind is ProviderKind.OPENAI:
            return ProviderKind.OPENAI_RESPONSES if self.use_responses else ProviderKind.OPENAI_CHAT
        return kind
