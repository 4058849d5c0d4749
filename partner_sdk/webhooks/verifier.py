"""
HMAC-SHA256 verification and parsing of inbound webhook deliveries.

The signature header carries ``sha256=<hex>`` computed over the exact raw
request body. Verification must run on those bytes before any JSON decoding.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type, Union

from pydantic import ValidationError

from partner_sdk.schemas.webhooks import (
    REQUIRED_ENVELOPE_FIELDS,
    WebhookEvent,
    build_webhook_event,
)

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="
_HEX_DIGEST = re.compile(r"^(?:[0-9a-fA-F]{2})+$")

Payload = Union[str, bytes]


class WebhookError(Exception):
    """Base class for webhook ingestion failures."""


class WebhookVerificationError(WebhookError):
    """The delivery could not be authenticated."""


class MissingSignature(WebhookVerificationError):
    pass


class InvalidSignatureFormat(WebhookVerificationError):
    pass


class SignatureMismatch(WebhookVerificationError):
    pass


class DecodeFailed(WebhookError):
    """Verified body is not a JSON object."""


class EnvelopeValidationFailed(WebhookError):
    """Verified JSON lacks required envelope fields or has the wrong shape."""


class VerificationFailure(str, Enum):
    MISSING_SIGNATURE = "missing_signature"
    INVALID_FORMAT = "invalid_format"
    MISMATCH = "mismatch"


_FAILURE_ERRORS: dict[VerificationFailure, Type[WebhookVerificationError]] = {
    VerificationFailure.MISSING_SIGNATURE: MissingSignature,
    VerificationFailure.INVALID_FORMAT: InvalidSignatureFormat,
    VerificationFailure.MISMATCH: SignatureMismatch,
}


@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    error: Optional[str] = None
    failure: Optional[VerificationFailure] = None

    def raise_for_failure(self) -> None:
        """Raise the matching :class:`WebhookVerificationError` if invalid."""
        if self.is_valid:
            return
        error_cls = _FAILURE_ERRORS.get(self.failure, WebhookVerificationError)  # type: ignore[arg-type]
        raise error_cls(self.error or "Webhook verification failed")


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def sign_payload(secret: str, payload: Payload) -> str:
    """Return the signature header value for ``payload``."""
    digest = hmac.new(secret.encode("utf-8"), _as_bytes(payload), hashlib.sha256)
    return SIGNATURE_PREFIX + digest.hexdigest()


def verify_signature(
    secret: str, payload: Payload, signature: Optional[str]
) -> VerificationResult:
    """Check ``signature`` against the HMAC of the raw ``payload``."""
    if not signature:
        return VerificationResult(
            False, "Missing webhook signature", VerificationFailure.MISSING_SIGNATURE
        )
    if not signature.startswith(SIGNATURE_PREFIX):
        return VerificationResult(
            False,
            "Invalid signature format. Expected: sha256=<hex>",
            VerificationFailure.INVALID_FORMAT,
        )

    provided = signature[len(SIGNATURE_PREFIX) :]
    if not _HEX_DIGEST.match(provided):
        return VerificationResult(
            False,
            "Invalid signature format. Expected: sha256=<hex>",
            VerificationFailure.INVALID_FORMAT,
        )

    expected = sign_payload(secret, payload)[len(SIGNATURE_PREFIX) :]
    if len(provided) != len(expected):
        return VerificationResult(
            False, "Signature length mismatch", VerificationFailure.MISMATCH
        )
    if not hmac.compare_digest(provided.lower(), expected):
        return VerificationResult(
            False, "Signature mismatch", VerificationFailure.MISMATCH
        )
    return VerificationResult(True)


def verify_webhook_signature(
    payload: Payload, signature: Optional[str], secret: str
) -> bool:
    return verify_signature(secret, payload, signature).is_valid


def decode_event(payload: Payload) -> WebhookEvent:
    """Decode an already-verified body into a typed event."""
    try:
        decoded = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeFailed("Failed to parse webhook payload as JSON") from exc
    if not isinstance(decoded, dict):
        raise DecodeFailed("Webhook payload must be a JSON object")

    missing = [field for field in REQUIRED_ENVELOPE_FIELDS if not decoded.get(field)]
    if missing:
        raise EnvelopeValidationFailed(
            "Invalid webhook payload: missing " + ", ".join(missing)
        )
    malformed = [
        field for field in REQUIRED_ENVELOPE_FIELDS if not isinstance(decoded[field], str)
    ]
    if malformed:
        raise EnvelopeValidationFailed(
            "Invalid webhook payload: " + ", ".join(malformed) + " must be a string"
        )

    try:
        return build_webhook_event(decoded)
    except ValidationError as exc:
        raise EnvelopeValidationFailed(f"Invalid webhook payload: {exc}") from exc


class WebhookVerifier:
    """Verify and parse deliveries signed with one shared secret."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Webhook secret is required")
        self._secret = secret

    def verify(self, payload: Payload, signature: Optional[str]) -> VerificationResult:
        return verify_signature(self._secret, payload, signature)

    def parse(self, payload: Payload, signature: Optional[str]) -> WebhookEvent:
        """Verify ``payload`` and return the typed event.

        Raises a :class:`WebhookVerificationError` subclass before any JSON is
        decoded when the signature does not check out.
        """
        result = self.verify(payload, signature)
        if not result.is_valid:
            logger.debug("Rejected webhook delivery: %s", result.error)
        result.raise_for_failure()
        return decode_event(payload)


def parse_webhook(
    payload: Payload, signature: Optional[str], secret: str
) -> WebhookEvent:
    return WebhookVerifier(secret).parse(payload, signature)


__all__ = [
    "DecodeFailed",
    "EnvelopeValidationFailed",
    "InvalidSignatureFormat",
    "MissingSignature",
    "SIGNATURE_PREFIX",
    "SignatureMismatch",
    "VerificationFailure",
    "VerificationResult",
    "WebhookError",
    "WebhookVerificationError",
    "WebhookVerifier",
    "decode_event",
    "parse_webhook",
    "sign_payload",
    "verify_signature",
    "verify_webhook_signature",
]
