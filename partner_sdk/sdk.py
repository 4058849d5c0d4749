"""Convenience bundle wiring credentials to the API clients."""

from __future__ import annotations

from typing import Any, Optional

from partner_sdk.clients.admin import PartnerAdminClient
from partner_sdk.clients.credentials import ApiKeyCredential, OAuthIdentity
from partner_sdk.clients.oauth import OAuthSession
from partner_sdk.clients.user import PartnerUserClient
from partner_sdk.core.config import OAuthSettings, SDKSettings


class PartnerSDK:
    """Hold the OAuth session, user client and admin client of one partner app.

    Either half may be absent: an app that only uses the admin API has no
    ``oauth``/``user`` and vice versa.
    """

    def __init__(
        self,
        *,
        oauth: Optional[OAuthSession] = None,
        api_key: Optional[ApiKeyCredential] = None,
        **client_kwargs: Any,
    ) -> None:
        if oauth is None and api_key is None:
            raise ValueError("Either OAuth or API key configuration must be provided")
        self.oauth = oauth
        self.api_key = api_key
        self.user = PartnerUserClient(oauth, **client_kwargs) if oauth else None
        self.admin = PartnerAdminClient(api_key, **client_kwargs) if api_key else None

    @classmethod
    def for_user(cls, identity: OAuthIdentity, **client_kwargs: Any) -> "PartnerSDK":
        return cls(oauth=OAuthSession(identity), **client_kwargs)

    @classmethod
    def for_admin(
        cls,
        api_key: str,
        *,
        client_id: Optional[str] = None,
        **client_kwargs: Any,
    ) -> "PartnerSDK":
        credential = ApiKeyCredential(api_key=api_key, client_id=client_id)
        return cls(api_key=credential, **client_kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: SDKSettings,
        oauth_settings: Optional[OAuthSettings] = None,
    ) -> "PartnerSDK":
        """Build whichever halves the environment configures."""
        oauth = OAuthSession.from_settings(oauth_settings) if oauth_settings else None
        api_key = None
        if settings.api_key.api_key is not None:
            api_key = ApiKeyCredential.from_settings(settings.api_key)
            if api_key.client_id is None and oauth is not None:
                api_key = api_key.model_copy(
                    update={"client_id": oauth.identity.client_id}
                )
        return cls(
            oauth=oauth,
            api_key=api_key,
            **PartnerUserClient.settings_kwargs(settings.client),
        )

    async def aclose(self) -> None:
        for client in (self.user, self.admin):
            if client is not None:
                await client.aclose()

    async def __aenter__(self) -> "PartnerSDK":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = ["PartnerSDK"]
