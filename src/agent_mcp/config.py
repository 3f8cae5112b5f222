"""Configuration management for Agent MCP"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Server settings
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("MCP_SERVER_ADDRESS", "HOST"))
    port: int = Field(default=8001, validation_alias=AliasChoices("MCP_SERVER_PORT", "PORT"))
    log_level: str = "info"
    config_path: str = "config/agent_mcp.yaml"

    # Upstreams
    eth_rpc: str = "http://127.0.0.1:8545"
    brave_api_key: str | None = None
    brave_base_url: str = "https://api.search.brave.com/res/v1"
    zero_x_api_key: str | None = None
    zero_x_base_url: str = "https://api.0x.org"

    # Dispatch
    default_timeout: float = Field(default=30.0, gt=0)
    tool_timeouts: dict[str, float] = Field(default_factory=dict)
    disabled_tools: list[str] = Field(default_factory=list)
    receipt_poll_interval: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def has_brave_key(self) -> bool:
        """Check if a Brave Search API key is configured"""
        return bool(self.brave_api_key)

    @property
    def has_zero_x_key(self) -> bool:
        """Check if a 0x API key is configured"""
        return bool(self.zero_x_api_key)


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with explicit overrides on top."""
    return Settings(**overrides)
