"""Typed dispatcher routing verified webhook events to registered callables."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from partner_sdk.schemas.webhooks import WebhookEvent, WebhookEventType
from partner_sdk.webhooks.verifier import Payload, WebhookVerifier

logger = logging.getLogger(__name__)

EventCallback = Callable[[WebhookEvent], Union[None, Awaitable[None]]]


def _event_key(event_type: Union[str, WebhookEventType]) -> str:
    if isinstance(event_type, WebhookEventType):
        return event_type.value
    return event_type


class WebhookEventHandler:
    """Verify deliveries and fan them out to handlers, one at a time.

    The catch-all handler runs first, then the handlers registered for the
    event type in registration order. Handlers may be plain functions or
    coroutines; an exception from any of them stops dispatch and propagates.

    Example::

        handler = WebhookEventHandler(secret)
        handler.on("meeting.created", notify_team).on_any(audit)
        await handler.handle(raw_body, request.headers["X-Contio-Signature"])
    """

    def __init__(self, secret: str) -> None:
        self._verifier = WebhookVerifier(secret)
        self._handlers: Dict[str, List[EventCallback]] = {}
        self._catch_all: Optional[EventCallback] = None

    @property
    def verifier(self) -> WebhookVerifier:
        return self._verifier

    def on(
        self, event_type: Union[str, WebhookEventType], handler: EventCallback
    ) -> "WebhookEventHandler":
        self._handlers.setdefault(_event_key(event_type), []).append(handler)
        return self

    def on_any(self, handler: EventCallback) -> "WebhookEventHandler":
        """Set the handler invoked for every event; replaces any previous one."""
        self._catch_all = handler
        return self

    def has_handler(self, event_type: Union[str, WebhookEventType]) -> bool:
        return bool(self._handlers.get(_event_key(event_type)))

    async def handle(self, payload: Payload, signature: Optional[str]) -> WebhookEvent:
        """Verify, parse and dispatch one delivery, returning the event."""
        event = self._verifier.parse(payload, signature)
        await self.dispatch(event)
        return event

    async def dispatch(self, event: WebhookEvent) -> None:
        """Run handlers for an event that has already been verified."""
        callbacks: List[EventCallback] = []
        if self._catch_all is not None:
            callbacks.append(self._catch_all)
        callbacks.extend(self._handlers.get(event.event_type, ()))

        if not callbacks:
            logger.debug("No handler registered for webhook %s", event.event_type)
        for callback in callbacks:
            await _invoke(callback, event)


async def _invoke(callback: EventCallback, event: WebhookEvent) -> Any:
    result = callback(event)
    if inspect.isawaitable(result):
        return await result
    return result


__all__ = ["EventCallback", "WebhookEventHandler"]
