"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class McpSettings(BaseModel):
    """MCP tool server connection configuration."""

    connection_test_timeout: float = Field(
        default=5.0,
        alias="MCP_CONNECTION_TEST_TIMEOUT",
        gt=0,
        description="Deadline in seconds for a single MCP connection test",
    )
    tool_catalog_timeout: float = Field(
        default=10.0,
        alias="MCP_TOOL_CATALOG_TIMEOUT",
        gt=0,
        description="Deadline in seconds for listing the tools of one MCP server",
    )
    streamable_http_max_retries: int = Field(
        default=3,
        alias="MCP_STREAMABLE_HTTP_MAX_RETRIES",
        ge=0,
        description="Connection retries for streamable HTTP MCP servers",
    )
    client_name: str = Field(
        default="agentlink-ai",
        alias="MCP_CLIENT_NAME",
        description="Client implementation name announced during MCP initialization",
    )

    model_config = {"populate_by_name": True}


class ModelProviderSettings(BaseModel):
    """Generation provider configuration."""

    connectivity_timeout: float = Field(
        default=15.0,
        alias="MODEL_CONNECTIVITY_TIMEOUT",
        gt=0,
        description="Default deadline in seconds for a model connectivity probe",
    )
    openai_default_base_url: str = Field(
        default="https://api.openai.com/v1",
        alias="OPENAI_DEFAULT_BASE_URL",
        description="Base URL used when an OpenAI-compatible config leaves it empty",
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="AGENTLINK_AI_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Also write DEBUG logs to <LOG_FILE_DIR>/agentlink_ai.log",
        alias="ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Network Configuration
    # =====================================================================
    proxy_url: Optional[str] = Field(
        default=None,
        description="Proxy URL applied to every outbound HTTP request (optional)",
        alias="AGENTLINK_AI_PROXY_URL",
    )

    # =====================================================================
    # MCP Configuration
    # =====================================================================
    mcp_connection_test_timeout: float = Field(default=5.0, alias="MCP_CONNECTION_TEST_TIMEOUT")
    mcp_tool_catalog_timeout: float = Field(default=10.0, alias="MCP_TOOL_CATALOG_TIMEOUT")
    mcp_streamable_http_max_retries: int = Field(default=3, alias="MCP_STREAMABLE_HTTP_MAX_RETRIES")
    mcp_client_name: str = Field(default="agentlink-ai", alias="MCP_CLIENT_NAME")

    # =====================================================================
    # Model Provider Configuration
    # =====================================================================
    model_connectivity_timeout: float = Field(default=15.0, alias="MODEL_CONNECTIVITY_TIMEOUT")
    openai_default_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_DEFAULT_BASE_URL")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def mcp(self) -> McpSettings:
        """Get MCP configuration from environment variables."""
        return McpSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def model_provider(self) -> ModelProviderSettings:
        """Get model provider configuration from environment variables."""
        return ModelProviderSettings.model_validate(self.model_dump(by_alias=True))


settings = Settings()
