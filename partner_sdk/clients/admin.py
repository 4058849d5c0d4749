"""Partner Admin API client for API key-authenticated endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from partner_sdk.clients.base import ApiKeyAuth, BaseClient, RequestOptions
from partner_sdk.clients.credentials import ApiKeyCredential
from partner_sdk.core.config import DEFAULT_API_BASE_URL, ClientSettings

ADMIN_API_PREFIX = "/v1/partner/admin"
ROLLBACK_CREDENTIAL_TYPES = ("api-key", "client-secret")

logger = logging.getLogger(__name__)


class PartnerAdminClient(BaseClient):
    """App configuration, workflows, webhook deliveries, user connections
    and credential rotation.
    """

    def __init__(
        self,
        credential: ApiKeyCredential,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            ApiKeyAuth(credential),
            base_url=f"{base_url.rstrip('/')}{ADMIN_API_PREFIX}",
            **kwargs,
        )
        self.credential = credential

    @classmethod
    def from_settings(
        cls, credential: ApiKeyCredential, settings: ClientSettings, **kwargs: Any
    ) -> "PartnerAdminClient":
        return cls(credential, **{**cls.settings_kwargs(settings), **kwargs})

    async def get_app(self, options: Optional[RequestOptions] = None) -> Any:
        return await self.get("/app", options=options)

    async def list_workflows(self, options: Optional[RequestOptions] = None) -> Any:
        return await self.get("/workflows", options=options)

    async def create_workflow(
        self, workflow: Dict[str, Any], options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.post("/workflows", workflow, options=options)

    async def delete_workflow(
        self, workflow_id: str, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.delete(f"/workflows/{workflow_id}", options=options)

    async def list_webhook_deliveries(
        self,
        *,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        params = {"status": status, "limit": limit, "offset": offset}
        return await self.get("/webhook-deliveries", params=params, options=options)

    async def retry_webhook_delivery(
        self, delivery_id: str, options: Optional[RequestOptions] = None
    ) -> Any:
        """Ask the server to re-send a failed delivery."""
        return await self.post(
            f"/webhook-deliveries/{delivery_id}/retry", options=options
        )

    async def list_user_connections(
        self,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        params = {"limit": limit, "offset": offset}
        return await self.get("/user-connections", params=params, options=options)

    # ------------------------------------------------------------------
    # Credential management
    # ------------------------------------------------------------------

    async def get_credential_status(
        self, options: Optional[RequestOptions] = None
    ) -> Any:
        """Age, status and recommended action for every partner credential."""
        return await self.get("/credentials", options=options)

    async def rotate_api_key(
        self,
        confirmation_token: str,
        *,
        reason: Optional[str] = None,
        grace_period_hours: Optional[int] = None,
        apply: bool = True,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        """Rotate the API key; old and new keys both work during the grace period.

        With ``apply`` the new key replaces the one held by this client, so
        the following requests already authenticate with it.
        """
        result = await self.post(
            "/credentials/api-key/rotate",
            _rotation_body(confirmation_token, reason, grace_period_hours),
            options=options,
        )
        new_key = result.get("new_credential") if isinstance(result, dict) else None
        if apply and new_key:
            self.credential.rotate(new_key)
            logger.info("Partner API key rotated; client now uses the new key")
        return result

    async def rotate_webhook_secret(
        self,
        confirmation_token: str,
        *,
        reason: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        """Rotate the webhook secret. Takes effect immediately, with no rollback."""
        return await self.post(
            "/credentials/webhook-secret/rotate",
            _rotation_body(confirmation_token, reason, None),
            options=options,
        )

    async def rotate_client_secret(
        self,
        confirmation_token: str,
        *,
        reason: Optional[str] = None,
        grace_period_hours: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        return await self.post(
            "/credentials/client-secret/rotate",
            _rotation_body(confirmation_token, reason, grace_period_hours),
            options=options,
        )

    async def rollback_credential(
        self,
        credential_type: str,
        rollback_token: str,
        options: Optional[RequestOptions] = None,
    ) -> None:
        """Undo a rotation with its single-use rollback token."""
        if credential_type not in ROLLBACK_CREDENTIAL_TYPES:
            raise ValueError(
                "credential_type must be one of "
                + ", ".join(ROLLBACK_CREDENTIAL_TYPES)
            )
        await self.post(
            f"/credentials/{credential_type}/rollback",
            {"rollback_token": rollback_token},
            options=options,
        )

    async def get_credential_history(
        self,
        *,
        credential_type: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        params = {
            "credential_type": credential_type,
            "action": action,
            "limit": limit,
            "offset": offset,
        }
        return await self.get("/credentials/history", params=params, options=options)


def _rotation_body(
    confirmation_token: str, reason: Optional[str], grace_period_hours: Optional[int]
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"confirmation_token": confirmation_token}
    if reason:
        body["reason"] = reason
    if grace_period_hours is not None:
        body["grace_period_hours"] = grace_period_hours
    return body


__all__ = ["ADMIN_API_PREFIX", "PartnerAdminClient", "ROLLBACK_CREDENTIAL_TYPES"]
