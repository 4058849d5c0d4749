"""
SDK configuration models and helpers.

Centralizes settings so the API clients, the OAuth session and the webhook
receiver share one configuration surface, populated from ``PARTNER_*``
environment variables or explicit keyword arguments.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional, Union

from pydantic import AnyHttpUrl, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://api.contio.ai"
DEFAULT_AUTHORIZATION_URL = "https://auth.contio.ai/oauth2/authorize"
DEFAULT_TOKEN_URL = "https://auth.contio.ai/oauth2/token"
DEFAULT_SCOPES: tuple[str, ...] = ("openid", "profile", "meetings:read", "meetings:write")
DEFAULT_SIGNATURE_HEADER = "X-Contio-Signature"


def _split_words(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(part for part in value.replace(",", " ").split() if part)


class _PartnerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True, extra="ignore"
    )


class OAuthSettings(_PartnerSettings):
    """Partner app identity used for the OAuth flows."""

    client_id: str = Field(..., validation_alias="PARTNER_CLIENT_ID")
    client_secret: SecretStr = Field(..., validation_alias="PARTNER_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="PARTNER_REDIRECT_URI")
    authorization_url: str = Field(
        DEFAULT_AUTHORIZATION_URL, validation_alias="PARTNER_AUTHORIZATION_URL"
    )
    token_url: str = Field(DEFAULT_TOKEN_URL, validation_alias="PARTNER_TOKEN_URL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_SCOPES,
        validation_alias="PARTNER_SCOPES",
        description="Scopes requested by default; comma or space separated in env.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_words(value)


class ApiKeySettings(_PartnerSettings):
    """API key used by the admin endpoints."""

    api_key: Optional[SecretStr] = Field(None, validation_alias="PARTNER_API_KEY")
    header_name: str = Field("X-API-Key", validation_alias="PARTNER_API_KEY_HEADER")
    client_id: Optional[str] = Field(None, validation_alias="PARTNER_CLIENT_ID")


class ClientSettings(_PartnerSettings):
    """Transport and retry behaviour shared by every API client."""

    base_url: str = Field(DEFAULT_API_BASE_URL, validation_alias="PARTNER_API_BASE_URL")
    timeout: float = Field(30.0, gt=0, validation_alias="PARTNER_API_TIMEOUT")
    retries: int = Field(3, ge=0, validation_alias="PARTNER_API_RETRIES")
    retry_delay_ms: int = Field(1000, ge=0, validation_alias="PARTNER_API_RETRY_DELAY_MS")
    default_timezone: Optional[str] = Field(
        None,
        validation_alias="PARTNER_DEFAULT_TIMEZONE",
        description="IANA name or abbreviation sent as X-Client-Timezone.",
    )
    verify_tls: bool = Field(
        True,
        validation_alias="PARTNER_API_VERIFY_TLS",
        description="Disable only for local development hosts with self-signed certs.",
    )


class WebhookSettings(_PartnerSettings):
    """Inbound webhook verification settings."""

    secret: Optional[SecretStr] = Field(None, validation_alias="PARTNER_WEBHOOK_SECRET")
    signature_header: str = Field(
        DEFAULT_SIGNATURE_HEADER, validation_alias="PARTNER_WEBHOOK_SIGNATURE_HEADER"
    )
    skip_verification: bool = Field(
        False,
        validation_alias="PARTNER_WEBHOOK_SKIP_VERIFICATION",
        description="Local development only. Never enable in production.",
    )
    paths: Annotated[tuple[str, ...], NoDecode] = Field(
        ("/webhooks/partner",), validation_alias="PARTNER_WEBHOOK_PATHS"
    )

    @field_validator("paths", mode="before")
    @classmethod
    def _split_paths(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_words(value)


class SDKSettings(_PartnerSettings):
    """Root settings object for the SDK."""

    environment: str = Field("development", validation_alias="PARTNER_ENV")
    log_level: str = Field("INFO", validation_alias="PARTNER_LOG_LEVEL")
    client: ClientSettings = Field(default_factory=ClientSettings)
    api_key: ApiKeySettings = Field(default_factory=ApiKeySettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)


EnvFile = Union[str, Path, None]


def load_settings(env_file: EnvFile = ".env") -> SDKSettings:
    """Build settings from the environment, then ``env_file``.

    Variables already set in the environment win over the file. A missing
    file is ignored.
    """
    return SDKSettings(
        _env_file=env_file,
        client=ClientSettings(_env_file=env_file),
        api_key=ApiKeySettings(_env_file=env_file),
        webhook=WebhookSettings(_env_file=env_file),
    )  # type: ignore[call-arg]


@lru_cache()
def get_settings() -> SDKSettings:
    """Return a cached settings object."""
    return load_settings()


@lru_cache()
def get_oauth_settings() -> OAuthSettings:
    """Return cached OAuth settings; raises ``ValidationError`` when unset."""
    return OAuthSettings()  # type: ignore[call-arg]


__all__ = [
    "ApiKeySettings",
    "ClientSettings",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_AUTHORIZATION_URL",
    "DEFAULT_SCOPES",
    "DEFAULT_SIGNATURE_HEADER",
    "DEFAULT_TOKEN_URL",
    "OAuthSettings",
    "SDKSettings",
    "WebhookSettings",
    "get_oauth_settings",
    "get_settings",
    "load_settings",
]
