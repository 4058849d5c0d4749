"""Expose the API clients and their credential types."""

from .admin import PartnerAdminClient
from .base import (
    ApiKeyAuth,
    BaseClient,
    HttpError,
    NetworkError,
    OAuthBearerAuth,
    PartnerAPIError,
    RequestError,
    RequestOptions,
)
from .credentials import ApiKeyCredential, OAuthIdentity
from .oauth import (
    AuthExchangeFailed,
    AuthRefreshFailed,
    IdentityRequestFailed,
    IntrospectionFailed,
    NoAccessToken,
    NoRefreshToken,
    OAuthError,
    OAuthSession,
    RevocationFailed,
)
from .user import PartnerUserClient

__all__ = [
    "ApiKeyAuth",
    "ApiKeyCredential",
    "AuthExchangeFailed",
    "AuthRefreshFailed",
    "BaseClient",
    "HttpError",
    "IdentityRequestFailed",
    "IntrospectionFailed",
    "NetworkError",
    "NoAccessToken",
    "NoRefreshToken",
    "OAuthBearerAuth",
    "OAuthError",
    "OAuthIdentity",
    "OAuthSession",
    "PartnerAPIError",
    "PartnerAdminClient",
    "PartnerUserClient",
    "RequestError",
    "RequestOptions",
    "RevocationFailed",
]
