"""
Base HTTP client shared by the partner API facades.

Every call goes through :meth:`BaseClient.request`: the auth hook runs before
each attempt, the retry loop in :mod:`partner_sdk.utils.http` decides what to
retry, and terminal failures surface as :class:`PartnerAPIError` subclasses.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from partner_sdk import __version__
from partner_sdk.clients.credentials import ApiKeyCredential
from partner_sdk.clients.oauth import NoAccessToken, OAuthError, OAuthSession
from partner_sdk.core.config import DEFAULT_API_BASE_URL, ClientSettings
from partner_sdk.schemas.auth import ErrorResponse
from partner_sdk.utils.http import RetryPolicy, is_unsendable, request_with_retry

logger = logging.getLogger(__name__)

TIMEZONE_HEADER = "X-Client-Timezone"
USER_AGENT = f"partner-sdk-python/{__version__}"
DEFAULT_ERROR_CODE = "unknown_error"
DEFAULT_ERROR_MESSAGE = "An error occurred"


class PartnerAPIError(Exception):
    """Structured failure of one API call."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.response = response
        self.request_id = request_id

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


class HttpError(PartnerAPIError):
    """Terminal non-2xx response; ``response`` holds the decoded body."""


class NetworkError(PartnerAPIError):
    """No response was received before the retry budget ran out."""


class RequestError(PartnerAPIError):
    """The request could not be built or sent at all."""


class RequestOptions:
    """Per-call overlay. Only changes headers, never retry behaviour."""

    def __init__(self, *, timezone: Optional[str] = None) -> None:
        self.timezone = timezone

    def headers(self) -> Dict[str, str]:
        if self.timezone:
            return {TIMEZONE_HEADER: self.timezone}
        return {}


class AuthStrategy(abc.ABC):
    """Produces the authentication headers for one outbound attempt."""

    @abc.abstractmethod
    async def headers(self) -> Dict[str, str]:
        raise NotImplementedError


class ApiKeyAuth(AuthStrategy):
    def __init__(self, credential: ApiKeyCredential) -> None:
        self.credential = credential

    async def headers(self) -> Dict[str, str]:
        return self.credential.headers()


class OAuthBearerAuth(AuthStrategy):
    """Bearer auth that refreshes an expired session before the request."""

    def __init__(self, session: OAuthSession) -> None:
        self.session = session

    async def headers(self) -> Dict[str, str]:
        if self.session.is_expired():
            try:
                await self.session.refresh()
            except OAuthError as exc:
                # Fall through with the stale token.
                logger.warning("Pre-request token refresh failed: %s", exc)
        token = self.session.access_token
        if not token:
            raise NoAccessToken("No access token available. Please authenticate first.")
        return {"Authorization": f"Bearer {token}"}


class BaseClient:
    """Execute authenticated JSON requests with retry and backoff."""

    def __init__(
        self,
        auth: AuthStrategy,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        default_timezone: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: Union[bool, str] = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._auth = auth
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retry_policy = retry_policy or RetryPolicy()
        self._default_timezone = default_timezone
        self._transport = transport
        self._verify = verify
        self._sleep = sleep
        self._http: Optional[httpx.AsyncClient] = None

    @staticmethod
    def settings_kwargs(settings: ClientSettings) -> Dict[str, Any]:
        """Translate :class:`ClientSettings` into constructor keywords."""
        return {
            "base_url": settings.base_url,
            "timeout": settings.timeout,
            "retry_policy": RetryPolicy(
                max_retries=settings.retries, base_delay_ms=settings.retry_delay_ms
            ),
            "default_timezone": settings.default_timezone,
            "verify": settings.verify_tls,
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def _auth_headers(self) -> Dict[str, str]:
        """Return headers authenticating the next attempt."""
        return await self._auth.headers()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
            if self._default_timezone:
                headers[TIMEZONE_HEADER] = self._default_timezone
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
                verify=self._verify,
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "BaseClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Verb helpers
    # ------------------------------------------------------------------

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        return await self.request("GET", path, params=params, options=options)

    async def post(
        self, path: str, body: Any = None, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.request("POST", path, body=body, options=options)

    async def put(
        self, path: str, body: Any = None, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.request("PUT", path, body=body, options=options)

    async def patch(
        self, path: str, body: Any = None, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.request("PATCH", path, body=body, options=options)

    async def delete(self, path: str, options: Optional[RequestOptions] = None) -> Any:
        return await self.request("DELETE", path, options=options)

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        """Run one logical request and return the decoded JSON body."""
        overlay = options.headers() if options else {}
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        try:
            response = await request_with_retry(
                self._send_once,
                method,
                path,
                body=body,
                params=params or None,
                extra_headers=overlay,
                policy=self._retry_policy,
                sleep=self._sleep,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(
                "No response received from server (timeout)", "network_error"
            ) from exc
        except httpx.TransportError as exc:
            if is_unsendable(exc):
                raise RequestError(str(exc) or "Request could not be sent", "request_error") from exc
            raise NetworkError("No response received from server", "network_error") from exc
        except httpx.InvalidURL as exc:
            raise RequestError(str(exc), "request_error") from exc
        except httpx.HTTPError as exc:
            raise RequestError(str(exc) or "Request failed", "request_error") from exc

        if not response.is_success:
            raise self._error_from_response(response)
        return self._decode(response)

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        body: Any,
        params: Optional[Dict[str, Any]],
        extra_headers: Dict[str, str],
    ) -> httpx.Response:
        headers = dict(extra_headers)
        headers.update(await self._auth_headers())
        return await self._client().request(
            method,
            path,
            json=body,
            params=params,
            headers=headers,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_from_response(response: httpx.Response) -> HttpError:
        """Build the structured error for a terminal non-2xx response."""
        body: Any = None
        parsed: Optional[ErrorResponse] = None
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        if isinstance(body, dict):
            try:
                parsed = ErrorResponse.model_validate(body)
            except ValidationError:
                parsed = None

        message = DEFAULT_ERROR_MESSAGE
        code = DEFAULT_ERROR_CODE
        request_id = None
        if parsed is not None:
            message = parsed.error or parsed.message or DEFAULT_ERROR_MESSAGE
            code = parsed.code or DEFAULT_ERROR_CODE
            request_id = parsed.request_id
        return HttpError(
            message,
            code,
            status_code=response.status_code,
            response=body,
            request_id=request_id,
        )


__all__ = [
    "ApiKeyAuth",
    "AuthStrategy",
    "BaseClient",
    "HttpError",
    "NetworkError",
    "OAuthBearerAuth",
    "PartnerAPIError",
    "RequestError",
    "RequestOptions",
    "TIMEZONE_HEADER",
    "USER_AGENT",
]
