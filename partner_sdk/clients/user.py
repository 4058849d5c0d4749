"""Partner User API client for OAuth-authenticated endpoints."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

from partner_sdk.clients.base import BaseClient, OAuthBearerAuth, RequestOptions
from partner_sdk.clients.oauth import OAuthSession
from partner_sdk.core.config import DEFAULT_API_BASE_URL, ClientSettings

USER_API_PREFIX = "/v1/partner/user"
PAGE_SIZE = 100


class PartnerUserClient(BaseClient):
    """Meetings, action items, calendar and profile of the user behind ``session``.

    Expired access tokens are refreshed before each request.
    """

    def __init__(
        self,
        session: OAuthSession,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            OAuthBearerAuth(session),
            base_url=f"{base_url.rstrip('/')}{USER_API_PREFIX}",
            **kwargs,
        )
        self.session = session

    @classmethod
    def from_settings(
        cls, session: OAuthSession, settings: ClientSettings, **kwargs: Any
    ) -> "PartnerUserClient":
        return cls(session, **{**cls.settings_kwargs(settings), **kwargs})

    async def ensure_valid_token(self) -> None:
        """Refresh the session now if its access token has expired.

        Useful before a batch of calls; a failed refresh raises the
        :class:`~partner_sdk.clients.oauth.OAuthError` instead of sending
        the stale token.
        """
        if self.session.is_expired():
            await self.session.refresh()

    async def _collect_pages(
        self, fetch: Callable[..., Awaitable[Any]], **params: Any
    ) -> List[Any]:
        """Walk ``limit``/``offset`` pages until ``total`` items were requested."""
        items: List[Any] = []
        offset = 0
        while True:
            page = await fetch(limit=PAGE_SIZE, offset=offset, **params) or {}
            items.extend(page.get("items") or [])
            offset += PAGE_SIZE
            if offset >= (page.get("total") or 0):
                return items

    async def get_profile(self, options: Optional[RequestOptions] = None) -> Any:
        return await self.get("/profile", options=options)

    async def list_meetings(
        self,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        params = {
            "limit": limit,
            "offset": offset,
            "start_date": start_date,
            "end_date": end_date,
        }
        return await self.get("/meetings", params=params, options=options)

    async def get_all_meetings(
        self,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> List[Any]:
        return await self._collect_pages(
            self.list_meetings, start_date=start_date, end_date=end_date, options=options
        )

    async def get_meeting(
        self, meeting_id: str, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.get(f"/meetings/{meeting_id}", options=options)

    async def create_meeting(
        self, meeting: Dict[str, Any], options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.post("/meetings", meeting, options=options)

    async def update_meeting(
        self,
        meeting_id: str,
        changes: Dict[str, Any],
        options: Optional[RequestOptions] = None,
    ) -> Any:
        return await self.put(f"/meetings/{meeting_id}", changes, options=options)

    async def delete_meeting(
        self, meeting_id: str, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.delete(f"/meetings/{meeting_id}", options=options)

    async def list_action_items(
        self,
        *,
        meeting_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        params = {
            "meeting_id": meeting_id,
            "status": status,
            "limit": limit,
            "offset": offset,
        }
        return await self.get("/action-items", params=params, options=options)

    async def get_all_action_items(
        self,
        *,
        meeting_id: Optional[str] = None,
        status: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> List[Any]:
        return await self._collect_pages(
            self.list_action_items, meeting_id=meeting_id, status=status, options=options
        )

    async def create_action_item(
        self, item: Dict[str, Any], options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.post("/action-items", item, options=options)

    async def update_action_item(
        self,
        action_item_id: str,
        changes: Dict[str, Any],
        options: Optional[RequestOptions] = None,
    ) -> Any:
        return await self.patch(
            f"/action-items/{action_item_id}", changes, options=options
        )

    async def list_calendar_events(
        self,
        *,
        start: str,
        end: str,
        direction: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Optional[RequestOptions] = None,
    ) -> Any:
        """List synced calendar events between ``start`` and ``end``."""
        params = {
            "start": start,
            "end": end,
            "direction": direction,
            "limit": limit,
            "offset": offset,
        }
        return await self.get("/calendar/events", params=params, options=options)

    async def get_all_calendar_events(
        self,
        *,
        start: str,
        end: str,
        direction: Optional[str] = None,
        options: Optional[RequestOptions] = None,
    ) -> List[Any]:
        return await self._collect_pages(
            self.list_calendar_events,
            start=start,
            end=end,
            direction=direction,
            options=options,
        )

    async def get_calendar_event(
        self, calendar_event_id: str, options: Optional[RequestOptions] = None
    ) -> Any:
        return await self.get(f"/calendar/events/{calendar_event_id}", options=options)


__all__ = ["PAGE_SIZE", "PartnerUserClient", "USER_API_PREFIX"]
