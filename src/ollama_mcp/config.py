"""Environment-driven server settings."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AliasChoices, Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ollama_mcp.exceptions import ConfigError
from ollama_mcp.ollama.client import DEFAULT_BASE_URL
from ollama_mcp.server.transport_security import TransportSecuritySettings

Transport = Literal["stdio", "http", "streamable"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Server settings.

    Every field is read from the environment variable named by its alias,
    or from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    transport: Transport = Field("stdio", validation_alias="MCP_TRANSPORT")

    # HTTP settings
    host: str = Field("0.0.0.0", validation_alias="MCP_HTTP_HOST")
    port: int = Field(8080, ge=1, le=65535, validation_alias=AliasChoices("PORT", "MCP_HTTP_PORT"))
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="MCP_HTTP_ALLOWED_ORIGINS"
    )
    allowed_hosts: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="MCP_HTTP_ALLOWED_HOSTS"
    )
    enable_dns_rebinding_protection: bool = Field(False, validation_alias="MCP_HTTP_ENABLE_DNS_PROTECTION")

    # Backend settings
    ollama_base_url: str = Field(DEFAULT_BASE_URL, validation_alias="OLLAMA_BASE_URL")
    ollama_timeout: float | None = Field(None, gt=0, validation_alias="OLLAMA_TIMEOUT")
    ollama_retries: int = Field(0, ge=0, validation_alias="OLLAMA_RETRIES")

    log_level: LogLevel = Field("INFO", validation_alias="MCP_LOG_LEVEL")

    @field_validator("transport", "log_level", mode="before")
    @classmethod
    def _normalize_case(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value.upper() if info.field_name == "log_level" else value.lower()
        return value

    @field_validator("allowed_origins", "allowed_hosts", mode="before")
    @classmethod
    def _split_comma_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def uses_http(self) -> bool:
        return self.transport in ("http", "streamable")

    @property
    def transport_security(self) -> TransportSecuritySettings:
        return TransportSecuritySettings(
            enable_dns_rebinding_protection=self.enable_dns_rebinding_protection,
            allowed_hosts=self.allowed_hosts,
            allowed_origins=self.allowed_origins,
        )


def load_settings(**overrides: Any) -> Settings:
    """Read settings from the environment.

    Raises:
        ConfigError: a variable holds an invalid value.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from exc
