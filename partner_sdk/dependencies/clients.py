"""
Factory functions to provide shared SDK clients as FastAPI dependencies.

Each factory builds its object once per process. Call ``cache_clear()`` on a
factory after changing the environment (tests do this).
"""

from functools import lru_cache

from partner_sdk.clients import (
    ApiKeyCredential,
    OAuthSession,
    PartnerAdminClient,
    PartnerUserClient,
)
from partner_sdk.core.config import get_oauth_settings
from partner_sdk.dependencies.config import get_sdk_settings
from partner_sdk.webhooks import WebhookEventHandler


@lru_cache()
def get_oauth_session() -> OAuthSession:
    """Provide the process-wide OAuth session for the partner app."""
    return OAuthSession.from_settings(get_oauth_settings())


@lru_cache()
def get_user_client() -> PartnerUserClient:
    """Provide a user API client bound to the shared OAuth session."""
    settings = get_sdk_settings()
    return PartnerUserClient.from_settings(get_oauth_session(), settings.client)


@lru_cache()
def get_admin_client() -> PartnerAdminClient:
    """Provide an admin API client; requires ``PARTNER_API_KEY``."""
    settings = get_sdk_settings()
    credential = ApiKeyCredential.from_settings(settings.api_key)
    return PartnerAdminClient.from_settings(credential, settings.client)


@lru_cache()
def get_webhook_handler() -> WebhookEventHandler:
    """Provide the webhook dispatcher; register handlers on it at startup."""
    secret = get_sdk_settings().webhook.secret
    if secret is None:
        raise ValueError("PARTNER_WEBHOOK_SECRET is not configured.")
    return WebhookEventHandler(secret.get_secret_value())


__all__ = [
    "get_admin_client",
    "get_oauth_session",
    "get_user_client",
    "get_webhook_handler",
]
