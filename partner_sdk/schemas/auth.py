"""Schemas related to OAuth flows and API error bodies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TokenSet(BaseModel):
    """Access/refresh token pair held by an :class:`OAuthSession`.

    Replaced wholesale on every exchange or refresh, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    id_token: Optional[str] = Field(None, repr=False)
    expires_at: Optional[datetime] = Field(
        None, description="Absent means the token is treated as never expiring."
    )
    scopes: Optional[List[str]] = None

    @classmethod
    def from_token_response(
        cls, payload: Dict[str, Any], *, now: Optional[datetime] = None
    ) -> "TokenSet":
        """Build a token set from a token endpoint response body."""
        issued_at = now or datetime.now(timezone.utc)
        expires_in = payload.get("expires_in")
        expires_at = (
            issued_at + timedelta(seconds=int(expires_in)) if expires_in else None
        )
        scope = payload.get("scope")
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            id_token=payload.get("id_token"),
            expires_at=expires_at,
            scopes=scope.split() if scope else None,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return current >= expires_at


class TokenMetadata(BaseModel):
    """Result of token introspection (RFC 7662)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    active: bool
    scope: Optional[str] = None
    client_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("client_id", "clientId")
    )
    username: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.exp is None:
            return None
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class PasswordlessChallenge(_CamelModel):
    session: str
    challenge_name: str
    challenge_params: Optional[Dict[str, str]] = None
    user_provisioned: Optional[bool] = None


class PasswordlessVerification(_CamelModel):
    redirect_url: Optional[str] = None


class ConsentStatus(_CamelModel):
    has_consent: bool
    requires_consent: bool
    redirect_url: Optional[str] = None


class PartnerInfo(_CamelModel):
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None


class UserInfo(BaseModel):
    """OIDC standard claims about the authenticated user."""

    model_config = ConfigDict(extra="allow")

    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body returned by the partner API."""

    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = None


__all__ = [
    "ConsentStatus",
    "ErrorResponse",
    "PartnerInfo",
    "PasswordlessChallenge",
    "PasswordlessVerification",
    "TokenMetadata",
    "TokenSet",
    "UserInfo",
]
