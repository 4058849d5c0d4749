"""Credential holders for the two ways a partner app authenticates."""

from __future__ import annotations

import base64
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, SecretStr

from partner_sdk.core.config import (
    DEFAULT_AUTHORIZATION_URL,
    DEFAULT_SCOPES,
    DEFAULT_TOKEN_URL,
    ApiKeySettings,
    OAuthSettings,
)

CLIENT_ID_HEADER = "X-Client-ID"


class ApiKeyCredential(BaseModel):
    """API key plus the header it travels in.

    The key is only replaced through :meth:`rotate`; it never appears in
    ``repr`` or log output.
    """

    model_config = ConfigDict(validate_assignment=True)

    api_key: SecretStr
    header_name: str = "X-API-Key"
    client_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: ApiKeySettings) -> "ApiKeyCredential":
        if settings.api_key is None:
            raise ValueError("PARTNER_API_KEY is not configured.")
        return cls(
            api_key=settings.api_key,
            header_name=settings.header_name,
            client_id=settings.client_id,
        )

    def headers(self) -> Dict[str, str]:
        """Return the headers that authenticate an admin request."""
        headers = {self.header_name: self.api_key.get_secret_value()}
        if self.client_id:
            headers[CLIENT_ID_HEADER] = self.client_id
        return headers

    def rotate(self, api_key: str) -> None:
        """Swap in a new key, e.g. after rotating it in the dashboard."""
        self.api_key = SecretStr(api_key)


class OAuthIdentity(BaseModel):
    """Partner app identity used against the authorization server."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    redirect_uri: str
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    authorization_url: str = DEFAULT_AUTHORIZATION_URL
    token_url: str = DEFAULT_TOKEN_URL

    @classmethod
    def from_settings(cls, settings: OAuthSettings) -> "OAuthIdentity":
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=str(settings.redirect_uri),
            scopes=settings.scopes,
            authorization_url=settings.authorization_url,
            token_url=settings.token_url,
        )

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)

    @property
    def revocation_url(self) -> str:
        return self.token_url.replace("/token", "/revoke")

    def auth_server_url(self, path: str) -> str:
        """Resolve a sibling endpoint of the authorization URL."""
        return self.authorization_url.replace("/oauth2/authorize", path)

    def basic_auth_header(self) -> str:
        """``client_secret_basic`` credentials for the token endpoints."""
        raw = f"{self.client_id}:{self.client_secret.get_secret_value()}"
        return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")


Credential = Union[ApiKeyCredential, OAuthIdentity]


__all__ = ["ApiKeyCredential", "CLIENT_ID_HEADER", "Credential", "OAuthIdentity"]
