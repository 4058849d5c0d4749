try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import json
import logging

import httpx
import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from partner_sdk.core.config import WebhookSettings
from partner_sdk.schemas.webhooks import WebhookEnvelope
from partner_sdk.webhooks.middleware import (
    WebhookVerificationMiddleware,
    get_webhook_event,
    has_webhook_event,
)
from partner_sdk.webhooks.verifier import SignatureMismatch, sign_payload

SECRET = "whsec_middleware"
WEBHOOK_PATH = "/webhooks/partner"

BODY = json.dumps(
    {
        "event_type": "meeting.completed",
        "event_id": "evt_42",
        "timestamp": "2024-05-01T12:00:00Z",
        "partner_app_id": "app_1",
        "data": {"meeting_id": "m_9", "duration_minutes": 30},
    }
).encode()


def _build_app(**middleware_kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(WebhookVerificationMiddleware, **middleware_kwargs)

    @app.post(WEBHOOK_PATH)
    async def receive(
        request: Request, event: WebhookEnvelope = Depends(get_webhook_event)
    ) -> dict:
        return {
            "event_type": event.event_type,
            "event_id": event.event_id,
            "raw_matches": request.state.webhook_raw_payload == BODY,
        }

    @app.post("/other")
    async def other(request: Request) -> dict:
        return {"has_event": has_webhook_event(request)}

    return app


async def _post(app: FastAPI, path: str, body: bytes, headers: dict | None = None):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.post(path, content=body, headers=headers or {})


@pytest.mark.anyio
async def test_valid_delivery_reaches_route_with_parsed_event() -> None:
    app = _build_app(secret=SECRET)

    response = await _post(
        app, WEBHOOK_PATH, BODY, {"X-Contio-Signature": sign_payload(SECRET, BODY)}
    )

    assert response.status_code == 200
    assert response.json() == {
        "event_type": "meeting.completed",
        "event_id": "evt_42",
        "raw_matches": True,
    }


@pytest.mark.anyio
async def test_bad_signature_is_rejected_with_401() -> None:
    app = _build_app(secret=SECRET)

    response = await _post(
        app, WEBHOOK_PATH, BODY, {"X-Contio-Signature": sign_payload("nope", BODY)}
    )

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "Webhook verification failed"
    assert body["message"] == "Signature mismatch"


@pytest.mark.anyio
async def test_signed_envelope_with_object_event_type_is_rejected_with_401() -> None:
    app = _build_app(secret=SECRET)
    body = json.dumps({**json.loads(BODY), "event_type": {"x": 1}}).encode()

    response = await _post(
        app, WEBHOOK_PATH, body, {"X-Contio-Signature": sign_payload(SECRET, body)}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Webhook verification failed"
    assert "event_type" in response.json()["message"]


@pytest.mark.anyio
async def test_missing_header_names_the_header() -> None:
    app = _build_app(secret=SECRET)

    response = await _post(app, WEBHOOK_PATH, BODY)

    assert response.status_code == 401
    assert response.json()["message"] == "Missing X-Contio-Signature header"


@pytest.mark.anyio
async def test_custom_signature_header() -> None:
    app = _build_app(secret=SECRET, signature_header="X-Partner-Signature")

    response = await _post(
        app, WEBHOOK_PATH, BODY, {"X-Partner-Signature": sign_payload(SECRET, BODY)}
    )

    assert response.status_code == 200


@pytest.mark.anyio
async def test_unbound_paths_pass_through_untouched() -> None:
    app = _build_app(secret=SECRET)

    response = await _post(app, "/other", b"{}")

    assert response.status_code == 200
    assert response.json() == {"has_event": False}


@pytest.mark.anyio
async def test_on_error_hook_replaces_default_response() -> None:
    seen = []

    async def on_error(request: Request, exc: Exception) -> JSONResponse:
        seen.append((type(exc), request.state.webhook_verification.failure))
        return JSONResponse(status_code=400, content={"rejected": str(exc)})

    app = _build_app(secret=SECRET, on_error=on_error)

    response = await _post(
        app, WEBHOOK_PATH, BODY, {"X-Contio-Signature": sign_payload("nope", BODY)}
    )

    assert response.status_code == 400
    assert response.json() == {"rejected": "Signature mismatch"}
    assert seen[0][0] is SignatureMismatch
    assert seen[0][1].value == "mismatch"


@pytest.mark.anyio
async def test_skip_verification_trusts_unsigned_payloads(caplog) -> None:
    app = _build_app(skip_verification=True)

    with caplog.at_level(logging.WARNING):
        response = await _post(app, WEBHOOK_PATH, BODY)

    assert response.status_code == 200
    assert response.json()["event_id"] == "evt_42"
    assert "verification is disabled" in caplog.text


@pytest.mark.anyio
async def test_skip_verification_still_rejects_malformed_json() -> None:
    app = _build_app(skip_verification=True)

    response = await _post(app, WEBHOOK_PATH, b"not-json")

    assert response.status_code == 401


def test_secret_required_unless_verification_skipped() -> None:
    with pytest.raises(ValueError):
        WebhookVerificationMiddleware(FastAPI(), secret=None)


def test_settings_kwargs_translate_webhook_settings() -> None:
    settings = WebhookSettings(
        secret="from-env", paths="/hooks/a,/hooks/b", signature_header="X-Sig"
    )

    kwargs = WebhookVerificationMiddleware.settings_kwargs(settings)

    assert kwargs == {
        "secret": "from-env",
        "signature_header": "X-Sig",
        "paths": ("/hooks/a", "/hooks/b"),
        "skip_verification": False,
    }
