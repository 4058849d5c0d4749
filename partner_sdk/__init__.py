"""Python client for the partner API: OAuth, admin/user endpoints and webhooks."""

__version__ = "1.4.0"

from .clients import (  # noqa: E402
    ApiKeyCredential,
    HttpError,
    NetworkError,
    OAuthIdentity,
    OAuthSession,
    PartnerAdminClient,
    PartnerAPIError,
    PartnerUserClient,
    RequestError,
    RequestOptions,
)
from .sdk import PartnerSDK  # noqa: E402
from .webhooks import (  # noqa: E402
    WebhookEventHandler,
    WebhookVerificationMiddleware,
    WebhookVerifier,
    parse_webhook,
    verify_webhook_signature,
)

__all__ = [
    "ApiKeyCredential",
    "HttpError",
    "NetworkError",
    "OAuthIdentity",
    "OAuthSession",
    "PartnerAPIError",
    "PartnerAdminClient",
    "PartnerSDK",
    "PartnerUserClient",
    "RequestError",
    "RequestOptions",
    "WebhookEventHandler",
    "WebhookVerificationMiddleware",
    "WebhookVerifier",
    "__version__",
    "parse_webhook",
    "verify_webhook_signature",
]
