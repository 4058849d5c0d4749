"""
OAuth session management for partner apps.

:class:`OAuthSession` owns one user's token set: it builds the consent URL,
exchanges authorization codes, refreshes, revokes and introspects tokens, and
wraps the auxiliary identity endpoints of the authorization server. Tokens
are opaque, so validity is checked through introspection, never decoded.

Nothing here retries; retries belong to the API clients layered on top.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type, Union
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from partner_sdk.clients.credentials import OAuthIdentity
from partner_sdk.core.config import OAuthSettings
from partner_sdk.core.logging import mask_secret
from partner_sdk.schemas.auth import (
    ConsentStatus,
    PartnerInfo,
    PasswordlessChallenge,
    PasswordlessVerification,
    TokenMetadata,
    TokenSet,
    UserInfo,
)

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class OAuthError(Exception):
    """Base class for token lifecycle failures.

    ``status_code`` and ``response_body`` are set when the authorization
    server answered; transport failures are chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class AuthExchangeFailed(OAuthError):
    """Raised when a code exchange or client-credentials grant fails."""


class AuthRefreshFailed(OAuthError):
    """Raised when the refresh grant fails; held tokens are left as they were."""


class NoRefreshToken(OAuthError):
    """Raised before any I/O when no refresh token is available."""


class NoAccessToken(OAuthError):
    """Raised before any I/O when no access token is available."""


class RevocationFailed(OAuthError):
    """Raised when the revocation endpoint rejects the request."""


class IntrospectionFailed(OAuthError):
    """Raised when token introspection fails."""


class IdentityRequestFailed(OAuthError):
    """Raised when an auxiliary identity endpoint fails."""


class OAuthSession:
    """Manage one OAuth session end to end.

    The held :class:`TokenSet` is a single cell replaced wholesale. Concurrent
    refreshes that would spend the same refresh token share one request.
    """

    def __init__(
        self,
        identity: OAuthIdentity,
        *,
        tokens: Optional[TokenSet] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: Union[bool, str] = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._identity = identity
        self._tokens = tokens
        self._timeout = timeout
        self._transport = transport
        self._verify = verify
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._refreshes: Dict[str, "asyncio.Future[TokenSet]"] = {}

    @classmethod
    def from_settings(cls, settings: OAuthSettings, **kwargs: Any) -> "OAuthSession":
        return cls(OAuthIdentity.from_settings(settings), **kwargs)

    @property
    def identity(self) -> OAuthIdentity:
        return self._identity

    # ------------------------------------------------------------------
    # Held token state
    # ------------------------------------------------------------------

    @property
    def tokens(self) -> Optional[TokenSet]:
        return self._tokens

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.access_token if self._tokens else None

    def set_tokens(self, tokens: TokenSet) -> None:
        """Restore a token set the caller persisted earlier."""
        self._tokens = tokens

    def clear_tokens(self) -> None:
        self._tokens = None

    def is_expired(self) -> bool:
        """Return ``True`` once the held access token has passed ``expires_at``.

        A missing token set or one without ``expires_at`` is never expired.
        """
        if self._tokens is None:
            return False
        return self._tokens.is_expired(self._clock())

    # ------------------------------------------------------------------
    # Authorization code flow
    # ------------------------------------------------------------------

    def build_authorization_url(
        self, state: Optional[str] = None, login_hint: Optional[str] = None
    ) -> str:
        """Construct the consent URL to redirect the user to."""
        params = {
            "client_id": self._identity.client_id,
            "redirect_uri": self._identity.redirect_uri,
            "response_type": "code",
            "scope": self._identity.scope_string,
        }
        if state:
            params["state"] = state
        if login_hint:
            params["login_hint"] = login_hint
        return f"{self._identity.authorization_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code and hold the resulting tokens."""
        payload = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._identity.redirect_uri,
            },
            error_cls=AuthExchangeFailed,
            action="Authorization code exchange",
        )
        self._tokens = self._parse_tokens(payload, AuthExchangeFailed)
        logger.info("Exchanged authorization code for client %s", self._identity.client_id)
        return self._tokens

    async def refresh(self, refresh_token: Optional[str] = None) -> TokenSet:
        """Refresh the access token with ``refresh_token`` or the held one."""
        token = refresh_token or (self._tokens.refresh_token if self._tokens else None)
        if not token:
            raise NoRefreshToken("No refresh token available.")

        inflight = self._refreshes.get(token)
        if inflight is None:
            inflight = asyncio.ensure_future(self._refresh(token))
            self._refreshes[token] = inflight
            inflight.add_done_callback(
                lambda future, key=token: self._forget_refresh(key, future)
            )
        return await asyncio.shield(inflight)

    async def _refresh(self, refresh_token: str) -> TokenSet:
        payload = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            error_cls=AuthRefreshFailed,
            action="Token refresh",
        )
        tokens = self._parse_tokens(payload, AuthRefreshFailed)
        if tokens.refresh_token is None:
            tokens = tokens.model_copy(update={"refresh_token": refresh_token})
        self._tokens = tokens
        logger.info("Refreshed access token %s", mask_secret(tokens.access_token))
        return tokens

    def _forget_refresh(self, key: str, future: "asyncio.Future[TokenSet]") -> None:
        if self._refreshes.get(key) is future:
            del self._refreshes[key]
        if not future.cancelled():
            # Mark the outcome as retrieved when every waiter went away.
            future.exception()

    async def client_credentials_token(
        self, scopes: Optional[List[str]] = None
    ) -> TokenSet:
        """Obtain a session-less token for server-to-server calls."""
        payload = await self._token_request(
            {
                "grant_type": "client_credentials",
                "scope": " ".join(scopes) if scopes else self._identity.scope_string,
            },
            error_cls=AuthExchangeFailed,
            action="Client credentials grant",
        )
        tokens = self._parse_tokens(payload, AuthExchangeFailed)
        if tokens.refresh_token is not None:
            tokens = tokens.model_copy(update={"refresh_token": None})
        self._tokens = tokens
        return tokens

    async def revoke(self, token: str, token_type_hint: str = "access_token") -> None:
        """Revoke ``token`` server side. Held tokens are left for the caller."""
        await self._send(
            "POST",
            self._identity.revocation_url,
            error_cls=RevocationFailed,
            action="Token revocation",
            data={"token": token, "token_type_hint": token_type_hint},
            headers=self._basic_headers(FORM_CONTENT_TYPE),
        )
        logger.info("Revoked %s %s", token_type_hint, mask_secret(token))

    async def introspect(self, token: str) -> TokenMetadata:
        """Check whether ``token`` is active and return its metadata."""
        response = await self._send(
            "POST",
            self._identity.auth_server_url("/oauth2/introspect"),
            error_cls=IntrospectionFailed,
            action="Token introspection",
            data={"token": token},
            headers=self._basic_headers(FORM_CONTENT_TYPE),
        )
        return self._parse_model(response, TokenMetadata, IntrospectionFailed)

    # ------------------------------------------------------------------
    # Auxiliary identity endpoints
    # ------------------------------------------------------------------

    async def initiate_passwordless_auth(
        self, email: str, name: Optional[str] = None
    ) -> PasswordlessChallenge:
        """Send a one-time code to ``email`` for embedded sign-in."""
        body: Dict[str, Any] = {"client_id": self._identity.client_id, "email": email}
        if name:
            body["name"] = name
        response = await self._send(
            "POST",
            self._identity.auth_server_url("/auth/initiate"),
            error_cls=IdentityRequestFailed,
            action="Passwordless initiation",
            json=body,
            headers=self._basic_headers("application/json"),
        )
        return self._parse_model(response, PasswordlessChallenge, IdentityRequestFailed)

    async def verify_passwordless_auth(
        self, email: str, code: str, session: str
    ) -> PasswordlessVerification:
        response = await self._send(
            "POST",
            self._identity.auth_server_url("/auth/verify"),
            error_cls=IdentityRequestFailed,
            action="Passwordless verification",
            json={
                "client_id": self._identity.client_id,
                "email": email,
                "code": code,
                "session": session,
            },
            headers=self._basic_headers("application/json"),
        )
        return self._parse_model(
            response, PasswordlessVerification, IdentityRequestFailed
        )

    async def check_consent(self, email: str) -> ConsentStatus:
        """Report whether ``email`` already consented to the configured scopes."""
        response = await self._send(
            "POST",
            self._identity.auth_server_url("/oauth2/check-consent"),
            error_cls=IdentityRequestFailed,
            action="Consent check",
            json={
                "client_id": self._identity.client_id,
                "email": email,
                "scope": self._identity.scope_string,
            },
            headers=self._basic_headers("application/json"),
        )
        return self._parse_model(response, ConsentStatus, IdentityRequestFailed)

    async def get_user_info(self, access_token: Optional[str] = None) -> UserInfo:
        token = access_token or self.access_token
        if not token:
            raise NoAccessToken("No access token available.")
        response = await self._send(
            "GET",
            self._identity.auth_server_url("/oauth2/userInfo"),
            error_cls=IdentityRequestFailed,
            action="User info lookup",
            headers={"Authorization": f"Bearer {token}"},
        )
        return self._parse_model(response, UserInfo, IdentityRequestFailed)

    async def list_scopes(self) -> List[str]:
        response = await self._send(
            "GET",
            self._identity.auth_server_url("/oauth2/scopes"),
            error_cls=IdentityRequestFailed,
            action="Scope listing",
            headers={"Authorization": self._identity.basic_auth_header()},
        )
        payload = self._json(response, IdentityRequestFailed)
        return list(payload.get("scopes") or []) if isinstance(payload, dict) else []

    async def get_partner_info(self) -> PartnerInfo:
        """Fetch public branding for the partner app; no authentication."""
        response = await self._send(
            "GET",
            self._identity.auth_server_url(
                f"/v1/partner/info/{self._identity.client_id}/public"
            ),
            error_cls=IdentityRequestFailed,
            action="Partner info lookup",
        )
        return self._parse_model(response, PartnerInfo, IdentityRequestFailed)

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    def _basic_headers(self, content_type: str) -> Dict[str, str]:
        return {
            "Authorization": self._identity.basic_auth_header(),
            "Content-Type": content_type,
        }

    async def _token_request(
        self, form: Dict[str, str], *, error_cls: Type[OAuthError], action: str
    ) -> Dict[str, Any]:
        response = await self._send(
            "POST",
            self._identity.token_url,
            error_cls=error_cls,
            action=action,
            data=form,
            headers=self._basic_headers(FORM_CONTENT_TYPE),
        )
        payload = self._json(response, error_cls)
        if not isinstance(payload, dict):
            raise error_cls(f"{action} returned an unexpected payload.")
        return payload

    async def _send(
        self,
        method: str,
        url: str,
        *,
        error_cls: Type[OAuthError],
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport, verify=self._verify
            ) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise error_cls(f"{action} failed: {exc}") from exc

        if not response.is_success:
            raise error_cls(
                f"{action} failed with status {response.status_code}.",
                status_code=response.status_code,
                response_body=response.text,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, error_cls: Type[OAuthError]) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise error_cls(
                "Authorization server returned a non-JSON body.",
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

    def _parse_tokens(
        self, payload: Dict[str, Any], error_cls: Type[OAuthError]
    ) -> TokenSet:
        if not payload.get("access_token"):
            raise error_cls("Incomplete token payload returned by the token endpoint.")
        try:
            return TokenSet.from_token_response(payload, now=self._clock())
        except (ValidationError, TypeError, ValueError) as exc:
            raise error_cls("Malformed token payload returned by the token endpoint.") from exc

    def _parse_model(
        self,
        response: httpx.Response,
        model: Type[BaseModel],
        error_cls: Type[OAuthError],
    ) -> Any:
        payload = self._json(response, error_cls)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise error_cls(
                f"Unexpected {model.__name__} payload.",
                status_code=response.status_code,
                response_body=response.text,
            ) from exc


__all__ = [
    "AuthExchangeFailed",
    "AuthRefreshFailed",
    "IdentityRequestFailed",
    "IntrospectionFailed",
    "NoAccessToken",
    "NoRefreshToken",
    "OAuthError",
    "OAuthSession",
    "RevocationFailed",
]
