"""Webhook verification, parsing and dispatch."""

from .handler import WebhookEventHandler
from .middleware import (
    WebhookVerificationMiddleware,
    get_webhook_event,
    has_webhook_event,
)
from .verifier import (
    DecodeFailed,
    EnvelopeValidationFailed,
    InvalidSignatureFormat,
    MissingSignature,
    SignatureMismatch,
    VerificationFailure,
    VerificationResult,
    WebhookError,
    WebhookVerificationError,
    WebhookVerifier,
    parse_webhook,
    sign_payload,
    verify_signature,
    verify_webhook_signature,
)

__all__ = [
    "DecodeFailed",
    "EnvelopeValidationFailed",
    "InvalidSignatureFormat",
    "MissingSignature",
    "SignatureMismatch",
    "VerificationFailure",
    "VerificationResult",
    "WebhookError",
    "WebhookEventHandler",
    "WebhookVerificationError",
    "WebhookVerificationMiddleware",
    "WebhookVerifier",
    "get_webhook_event",
    "has_webhook_event",
    "parse_webhook",
    "sign_payload",
    "verify_signature",
    "verify_webhook_signature",
]
