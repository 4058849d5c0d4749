"""Public schema exports."""

from .auth import (
    ConsentStatus,
    ErrorResponse,
    PartnerInfo,
    PasswordlessChallenge,
    PasswordlessVerification,
    TokenMetadata,
    TokenSet,
    UserInfo,
)
from .webhooks import (
    EVENT_MODELS,
    WEBHOOK_EVENT_TYPES,
    MeetingCreatedEvent,
    UnknownWebhookEvent,
    WebhookEnvelope,
    WebhookEvent,
    WebhookEventType,
    WebhookUserContext,
    build_webhook_event,
)

__all__ = [
    "ConsentStatus",
    "EVENT_MODELS",
    "ErrorResponse",
    "MeetingCreatedEvent",
    "PartnerInfo",
    "PasswordlessChallenge",
    "PasswordlessVerification",
    "TokenMetadata",
    "TokenSet",
    "UnknownWebhookEvent",
    "UserInfo",
    "WEBHOOK_EVENT_TYPES",
    "WebhookEnvelope",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookUserContext",
    "build_webhook_event",
]
