"""
Starlette/FastAPI middleware that authenticates webhook deliveries.

Requests to the configured paths are verified against the raw body before any
route runs. On success the parsed event is attached to ``request.state``; on
failure the request is rejected with ``401`` (or handed to ``on_error``).
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Iterable, Optional, Union

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from partner_sdk.core.config import DEFAULT_SIGNATURE_HEADER, WebhookSettings
from partner_sdk.schemas.webhooks import WebhookEvent
from partner_sdk.webhooks.verifier import (
    InvalidSignatureFormat,
    MissingSignature,
    SignatureMismatch,
    VerificationFailure,
    VerificationResult,
    WebhookError,
    WebhookVerifier,
    decode_event,
)

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_PATHS = ("/webhooks/partner",)

ErrorHook = Callable[[Request, WebhookError], Union[Response, Awaitable[Response]]]

_FAILURES = {
    MissingSignature: VerificationFailure.MISSING_SIGNATURE,
    InvalidSignatureFormat: VerificationFailure.INVALID_FORMAT,
    SignatureMismatch: VerificationFailure.MISMATCH,
}


class WebhookVerificationMiddleware(BaseHTTPMiddleware):
    """
    Verify webhook signatures on the configured paths.

    Downstream routes read ``request.state.webhook_event`` (see
    :func:`get_webhook_event`) instead of decoding the body again.
    ``skip_verification`` trusts unsigned payloads and is meant for local
    development only.
    """

    def __init__(
        self,
        app: ASGIApp,
        secret: Optional[str] = None,
        *,
        signature_header: str = DEFAULT_SIGNATURE_HEADER,
        paths: Optional[Iterable[str]] = None,
        on_error: Optional[ErrorHook] = None,
        skip_verification: bool = False,
    ) -> None:
        super().__init__(app)
        if not secret and not skip_verification:
            raise ValueError("Webhook secret is required unless skip_verification is true")
        self.signature_header = signature_header
        self.paths = tuple(paths) if paths is not None else DEFAULT_WEBHOOK_PATHS
        self.on_error = on_error
        self.skip_verification = skip_verification
        self._verifier = None if skip_verification else WebhookVerifier(secret or "")
        if skip_verification:
            logger.warning(
                "Webhook signature verification is disabled for %s; "
                "do not run this configuration in production.",
                ", ".join(self.paths),
            )

    @classmethod
    def settings_kwargs(cls, settings: WebhookSettings) -> dict:
        """Translate :class:`WebhookSettings` into ``add_middleware`` keywords."""
        secret = settings.secret.get_secret_value() if settings.secret else None
        return {
            "secret": secret,
            "signature_header": settings.signature_header,
            "paths": settings.paths,
            "skip_verification": settings.skip_verification,
        }

    def _matches(self, path: str) -> bool:
        return any(path == bound or path.startswith(bound + "/") for bound in self.paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or not self._matches(request.url.path):
            return await call_next(request)

        body = await request.body()
        request.state.webhook_raw_payload = body
        try:
            event = self._authenticate(body, request.headers.get(self.signature_header))
        except WebhookError as exc:
            logger.info(
                "Rejected webhook delivery on %s: %s", request.url.path, exc
            )
            request.state.webhook_verification = VerificationResult(
                False, str(exc), _FAILURES.get(type(exc))
            )
            return await self._reject(request, exc)

        request.state.webhook_event = event
        request.state.webhook_verification = VerificationResult(True)
        return await call_next(request)

    def _authenticate(self, body: bytes, signature: Optional[str]) -> WebhookEvent:
        if self._verifier is None:
            return decode_event(body)
        if not signature:
            raise MissingSignature(f"Missing {self.signature_header} header")
        return self._verifier.parse(body, signature)

    async def _reject(self, request: Request, exc: WebhookError) -> Response:
        if self.on_error is not None:
            response = self.on_error(request, exc)
            if inspect.isawaitable(response):
                response = await response
            return response
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Webhook verification failed", "message": str(exc)},
        )


def has_webhook_event(request: Request) -> bool:
    """Return whether the middleware attached a verified event."""
    verification = getattr(request.state, "webhook_verification", None)
    return (
        getattr(request.state, "webhook_event", None) is not None
        and verification is not None
        and verification.is_valid
    )


def get_webhook_event(request: Request) -> WebhookEvent:
    """FastAPI dependency returning the verified event for this request."""
    if not has_webhook_event(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Webhook event not verified",
        )
    return request.state.webhook_event


__all__ = [
    "DEFAULT_WEBHOOK_PATHS",
    "ErrorHook",
    "WebhookVerificationMiddleware",
    "get_webhook_event",
    "has_webhook_event",
]
