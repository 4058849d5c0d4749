try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import json
import socket
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from partner_sdk.clients.base import (
    TIMEZONE_HEADER,
    ApiKeyAuth,
    AuthStrategy,
    BaseClient,
    HttpError,
    NetworkError,
    OAuthBearerAuth,
    RequestError,
    RequestOptions,
)
from partner_sdk.clients.credentials import ApiKeyCredential, OAuthIdentity
from partner_sdk.clients.oauth import NoAccessToken, OAuthSession
from partner_sdk.core.config import ClientSettings
from partner_sdk.schemas.auth import TokenSet
from partner_sdk.utils.http import (
    Backoff,
    Failed,
    ResponseClass,
    RetryPolicy,
    Succeeded,
    classify_response,
    parse_retry_after,
    request_with_retry,
    transition,
)


class Recorder:
    """Mock transport handler replaying a scripted list of outcomes."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(handler, fake_sleep, *, auth=None, **kwargs) -> BaseClient:
    return BaseClient(
        auth or ApiKeyAuth(ApiKeyCredential(api_key="key-1")),
        base_url="https://api.example.com/v1/partner/admin",
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Retry state machine
# ---------------------------------------------------------------------------


def test_retry_policy_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay_ms=-5)


def test_backoff_delay_doubles_per_attempt() -> None:
    policy = RetryPolicy(base_delay_ms=250)

    assert [policy.backoff_delay(n) for n in range(3)] == [0.25, 0.5, 1.0]


def test_transition_classifies_responses() -> None:
    policy = RetryPolicy(max_retries=2)

    assert isinstance(transition(policy, 0, response=httpx.Response(200)), Succeeded)
    assert isinstance(transition(policy, 0, response=httpx.Response(404)), Failed)
    assert transition(policy, 1, response=httpx.Response(502)) == Backoff(1, 2.0)
    assert isinstance(transition(policy, 2, response=httpx.Response(502)), Failed)


def test_transition_uses_retry_after_for_rate_limits() -> None:
    policy = RetryPolicy()
    limited = httpx.Response(429, headers={"Retry-After": "7"})

    assert transition(policy, 0, response=limited) == Backoff(0, 7.0)


def test_transition_never_retries_unsendable_errors() -> None:
    policy = RetryPolicy()
    dns_failure = httpx.ConnectError("name resolution failed")
    dns_failure.__cause__ = socket.gaierror(-2, "Name or service not known")

    assert isinstance(transition(policy, 0, error=httpx.UnsupportedProtocol("x")), Failed)
    assert isinstance(transition(policy, 0, error=dns_failure), Failed)
    assert transition(policy, 0, error=httpx.ConnectError("refused")) == Backoff(0, 1.0)


def test_parse_retry_after_accepts_seconds_and_http_dates() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    later = format_datetime(now + timedelta(seconds=30), usegmt=True)
    earlier = format_datetime(now - timedelta(seconds=30), usegmt=True)

    assert parse_retry_after("120") == 120.0
    assert parse_retry_after(later, now=now) == 30.0
    assert parse_retry_after(earlier, now=now) == 0.0
    assert parse_retry_after("soon") is None
    assert parse_retry_after(None) is None


@pytest.mark.anyio
async def test_request_with_retry_returns_final_response_after_backoff(fake_sleep) -> None:
    outcomes = [
        httpx.Response(503),
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200),
    ]
    calls: list[str] = []

    async def send(path: str) -> httpx.Response:
        calls.append(path)
        return outcomes.pop(0)

    response = await request_with_retry(
        send, "/meetings", policy=RetryPolicy(base_delay_ms=100), sleep=fake_sleep
    )

    assert response.status_code == 200
    assert calls == ["/meetings"] * 3
    assert fake_sleep.delays == [0.1, 2.0]
    assert classify_response(response) is ResponseClass.SUCCESS


@pytest.mark.anyio
async def test_request_with_retry_reraises_terminal_errors(fake_sleep) -> None:
    async def send() -> httpx.Response:
        raise httpx.InvalidURL("bad url")

    with pytest.raises(httpx.InvalidURL):
        await request_with_retry(send, sleep=fake_sleep)
    assert fake_sleep.delays == []


# ---------------------------------------------------------------------------
# BaseClient.request
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_success_returns_decoded_body_without_retry(fake_sleep) -> None:
    handler = Recorder(httpx.Response(200, json={"id": "app-1"}))
    client = _client(handler, fake_sleep)

    assert await client.get("/app") == {"id": "app-1"}
    assert len(handler.requests) == 1
    assert str(handler.requests[0].url) == "https://api.example.com/v1/partner/admin/app"
    assert fake_sleep.delays == []


@pytest.mark.anyio
async def test_server_errors_back_off_exponentially_then_succeed(fake_sleep) -> None:
    handler = Recorder(
        httpx.Response(503),
        httpx.Response(502),
        httpx.Response(200, json={"ok": True}),
    )
    client = _client(handler, fake_sleep)

    assert await client.get("/workflows") == {"ok": True}
    assert len(handler.requests) == 3
    assert fake_sleep.delays == [1.0, 2.0]


@pytest.mark.anyio
async def test_rate_limit_honours_retry_after(fake_sleep) -> None:
    handler = Recorder(
        httpx.Response(429, headers={"Retry-After": "5"}),
        httpx.Response(200, json=[]),
    )
    client = _client(handler, fake_sleep)

    assert await client.get("/workflows") == []
    assert fake_sleep.delays == [5.0]


@pytest.mark.anyio
async def test_rate_limit_without_retry_after_uses_backoff(fake_sleep) -> None:
    handler = Recorder(httpx.Response(429), httpx.Response(204))
    client = _client(handler, fake_sleep, retry_policy=RetryPolicy(base_delay_ms=100))

    assert await client.delete("/workflows/wf-1") is None
    assert fake_sleep.delays == [0.1]


@pytest.mark.anyio
async def test_client_errors_fail_fast_with_structured_error(fake_sleep) -> None:
    body = {"error": "Workflow name is required", "code": "validation_error", "request_id": "req-9"}
    handler = Recorder(httpx.Response(400, json=body))
    client = _client(handler, fake_sleep)

    with pytest.raises(HttpError) as exc_info:
        await client.post("/workflows", {"name": ""})

    error = exc_info.value
    assert error.status_code == 400
    assert error.code == "validation_error"
    assert error.message == "Workflow name is required"
    assert error.request_id == "req-9"
    assert error.response == body
    assert len(handler.requests) == 1
    assert fake_sleep.delays == []


@pytest.mark.anyio
async def test_error_message_falls_back_when_body_is_not_json(fake_sleep) -> None:
    handler = Recorder(httpx.Response(404, text="not here"))
    client = _client(handler, fake_sleep)

    with pytest.raises(HttpError) as exc_info:
        await client.get("/app")

    assert exc_info.value.code == "unknown_error"
    assert exc_info.value.message == "An error occurred"
    assert exc_info.value.response == "not here"


@pytest.mark.anyio
async def test_exhausted_retries_surface_last_status(fake_sleep) -> None:
    handler = Recorder(httpx.Response(500, json={"message": "boom"}))
    client = _client(handler, fake_sleep, retry_policy=RetryPolicy(max_retries=2))

    with pytest.raises(HttpError) as exc_info:
        await client.get("/app")

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "boom"
    assert len(handler.requests) == 3
    assert fake_sleep.delays == [1.0, 2.0]


@pytest.mark.anyio
async def test_repeated_rate_limits_back_off_twice_then_succeed(fake_sleep) -> None:
    handler = Recorder(
        httpx.Response(429),
        httpx.Response(429),
        httpx.Response(200, json={"ok": True}),
    )
    client = _client(handler, fake_sleep)

    assert await client.get("/workflows") == {"ok": True}
    assert len(handler.requests) == 3
    assert fake_sleep.delays == [1.0, 2.0]


@pytest.mark.anyio
async def test_rate_limit_past_budget_surfaces_last_429(fake_sleep) -> None:
    handler = Recorder(
        httpx.Response(429, headers={"Retry-After": "1"}, json={"error": "Slow down"})
    )
    client = _client(handler, fake_sleep, retry_policy=RetryPolicy(max_retries=2))

    with pytest.raises(HttpError) as exc_info:
        await client.get("/workflows")

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Slow down"
    assert len(handler.requests) == 3
    assert fake_sleep.delays == [1.0, 1.0]


@pytest.mark.anyio
async def test_retry_after_http_date_matches_seconds_form(
    fake_sleep, frozen_now, monkeypatch
) -> None:
    class FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return frozen_now

    monkeypatch.setattr("partner_sdk.utils.http.datetime", FrozenDatetime)
    in_two_seconds = format_datetime(frozen_now + timedelta(seconds=2), usegmt=True)
    handler = Recorder(
        httpx.Response(429, headers={"Retry-After": in_two_seconds}),
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json={}),
    )
    client = _client(handler, fake_sleep)

    await client.get("/workflows")

    assert fake_sleep.delays == [2.0, 2.0]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error",
    [httpx.DecodingError("bad gzip stream"), httpx.TooManyRedirects("redirect loop")],
)
async def test_other_httpx_failures_raise_request_error(fake_sleep, error) -> None:
    handler = Recorder(error)
    client = _client(handler, fake_sleep)

    with pytest.raises(RequestError) as exc_info:
        await client.get("/app")

    assert exc_info.value.code == "request_error"
    assert exc_info.value.__cause__ is error
    assert len(handler.requests) == 1
    assert fake_sleep.delays == []


def test_settings_kwargs_carry_tls_verification() -> None:
    settings = ClientSettings(verify_tls=False)

    kwargs = BaseClient.settings_kwargs(settings)
    client = BaseClient(ApiKeyAuth(ApiKeyCredential(api_key="k")), **kwargs)

    assert kwargs["verify"] is False
    assert client._verify is False


@pytest.mark.anyio
async def test_zero_retries_means_single_attempt(fake_sleep) -> None:
    handler = Recorder(httpx.Response(503))
    client = _client(handler, fake_sleep, retry_policy=RetryPolicy(max_retries=0))

    with pytest.raises(HttpError):
        await client.get("/app")

    assert len(handler.requests) == 1


@pytest.mark.anyio
async def test_connection_failures_retry_then_raise_network_error(fake_sleep) -> None:
    handler = Recorder(httpx.ConnectError("connection refused"))
    client = _client(handler, fake_sleep)

    with pytest.raises(NetworkError) as exc_info:
        await client.get("/app")

    assert exc_info.value.code == "network_error"
    assert len(handler.requests) == 4
    assert fake_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.anyio
async def test_unsendable_request_is_not_retried(fake_sleep) -> None:
    handler = Recorder(httpx.UnsupportedProtocol("unsupported scheme"))
    client = _client(handler, fake_sleep)

    with pytest.raises(RequestError) as exc_info:
        await client.get("/app")

    assert exc_info.value.code == "request_error"
    assert len(handler.requests) == 1
    assert fake_sleep.delays == []


@pytest.mark.anyio
async def test_auth_headers_are_recomputed_for_every_attempt(fake_sleep) -> None:
    class RotatingAuth(AuthStrategy):
        def __init__(self) -> None:
            self.calls = 0

        async def headers(self):
            self.calls += 1
            return {"X-API-Key": f"key-{self.calls}"}

    handler = Recorder(httpx.Response(503), httpx.Response(200, json={}))
    client = _client(handler, fake_sleep, auth=RotatingAuth())

    await client.get("/app")

    assert [r.headers["X-API-Key"] for r in handler.requests] == ["key-1", "key-2"]


@pytest.mark.anyio
async def test_timezone_overlay_and_default_headers(fake_sleep) -> None:
    handler = Recorder(httpx.Response(200, json={}))
    client = _client(handler, fake_sleep, default_timezone="UTC")

    await client.get("/app")
    await client.get("/app", options=RequestOptions(timezone="Europe/Berlin"))

    first, second = handler.requests
    assert first.headers[TIMEZONE_HEADER] == "UTC"
    assert second.headers[TIMEZONE_HEADER] == "Europe/Berlin"
    assert first.headers["User-Agent"].startswith("partner-sdk-python/")


@pytest.mark.anyio
async def test_none_params_are_dropped_and_body_is_json(fake_sleep) -> None:
    handler = Recorder(httpx.Response(201, json={"id": "wf-1"}))
    client = _client(handler, fake_sleep)

    await client.get("/webhook-deliveries", params={"status": None, "limit": 10})
    await client.post("/workflows", {"name": "Sync"})

    listing, created = handler.requests
    assert dict(listing.url.params) == {"limit": "10"}
    assert json.loads(created.content) == {"name": "Sync"}


# ---------------------------------------------------------------------------
# Bearer auth hook
# ---------------------------------------------------------------------------


def _session(token_handler, *, expires_at, clock_now) -> OAuthSession:
    identity = OAuthIdentity(
        client_id="client-123",
        client_secret="s3cret",
        redirect_uri="https://partner.example.com/callback",
    )
    return OAuthSession(
        identity,
        tokens=TokenSet(access_token="old-token", refresh_token="r-1", expires_at=expires_at),
        transport=httpx.MockTransport(token_handler),
        clock=lambda: clock_now,
    )


@pytest.mark.anyio
async def test_bearer_auth_refreshes_expired_token_before_request(
    fake_sleep, frozen_now
) -> None:
    token_calls: list[httpx.Request] = []

    def token_handler(request: httpx.Request) -> httpx.Response:
        token_calls.append(request)
        return httpx.Response(200, json={"access_token": "new-token", "expires_in": 3600})

    session = _session(
        token_handler, expires_at=frozen_now - timedelta(seconds=1), clock_now=frozen_now
    )
    handler = Recorder(httpx.Response(200, json={}))
    client = _client(handler, fake_sleep, auth=OAuthBearerAuth(session))

    await client.get("/profile")

    assert len(token_calls) == 1
    assert handler.requests[0].headers["Authorization"] == "Bearer new-token"
    assert session.tokens.refresh_token == "r-1"


@pytest.mark.anyio
async def test_failed_refresh_still_sends_stale_token(fake_sleep, frozen_now, caplog) -> None:
    session = _session(
        lambda request: httpx.Response(400, json={"error": "invalid_grant"}),
        expires_at=frozen_now - timedelta(seconds=1),
        clock_now=frozen_now,
    )
    handler = Recorder(httpx.Response(401, json={"error": "Token expired"}))
    client = _client(handler, fake_sleep, auth=OAuthBearerAuth(session))

    with caplog.at_level("WARNING"), pytest.raises(HttpError) as exc_info:
        await client.get("/profile")

    assert exc_info.value.status_code == 401
    assert handler.requests[0].headers["Authorization"] == "Bearer old-token"
    assert "Pre-request token refresh failed" in caplog.text


@pytest.mark.anyio
async def test_bearer_auth_without_tokens_raises_before_sending(fake_sleep) -> None:
    identity = OAuthIdentity(
        client_id="client-123",
        client_secret="s3cret",
        redirect_uri="https://partner.example.com/callback",
    )
    handler = Recorder(httpx.Response(200, json={}))
    client = _client(handler, fake_sleep, auth=OAuthBearerAuth(OAuthSession(identity)))

    with pytest.raises(NoAccessToken):
        await client.get("/profile")

    assert handler.requests == []
