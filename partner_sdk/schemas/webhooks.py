"""
Pydantic models for webhook deliveries.

Every delivery shares one envelope; ``event_type`` selects the shape of
``data``. Known event types map to typed models, anything else parses into
:class:`UnknownWebhookEvent` with the raw decoded ``data`` so new server-side
events do not break older clients. Payloads are intentionally minimal, so data
fields are optional and unknown keys are preserved.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventType(str, Enum):
    ACTION_ITEM_COMPLETED = "action_item.completed"
    ACTION_ITEM_CREATED = "action_item.created"
    ACTION_ITEM_UPDATED = "action_item.updated"
    AGENDA_ITEM_CREATED = "agenda_item.created"
    AGENDA_ITEM_DELETED = "agenda_item.deleted"
    AGENDA_ITEM_UPDATED = "agenda_item.updated"
    CALENDAR_EVENT_CREATED = "calendar_event.created"
    CALENDAR_EVENT_DELETED = "calendar_event.deleted"
    CALENDAR_EVENT_UPDATED = "calendar_event.updated"
    MEETING_COMPLETED = "meeting.completed"
    MEETING_CREATED = "meeting.created"
    MEETING_UPDATED = "meeting.updated"
    PARTICIPANT_ADDED = "participant.added"
    PARTICIPANT_REMOVED = "participant.removed"
    USER_CONNECTION_REVOKED = "user.connection.revoked"
    WORKFLOW_ASSIGNMENT_CREATED = "workflow.assignment.created"


WEBHOOK_EVENT_TYPES: tuple[str, ...] = tuple(item.value for item in WebhookEventType)

REQUIRED_ENVELOPE_FIELDS: tuple[str, ...] = (
    "event_type",
    "event_id",
    "timestamp",
    "partner_app_id",
)


class _WebhookModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    @property
    def additional_properties(self) -> Dict[str, Any]:
        """Keys present on the wire that this model does not declare."""
        return dict(self.model_extra or {})


class WebhookUserContext(_WebhookModel):
    """User the event was delivered on behalf of."""

    id: str
    email: Optional[str] = None


class ActionItemCompletedData(_WebhookModel):
    action_item_id: Optional[str] = None
    assignee_id: Optional[str] = None
    completed_at: Optional[str] = None
    completed_by_user_id: Optional[str] = None
    meeting_id: Optional[str] = None


class ActionItemCreatedData(_WebhookModel):
    action_item_id: Optional[str] = None
    assignee_id: Optional[str] = None
    created_at: Optional[str] = None
    meeting_id: Optional[str] = None
    title: Optional[str] = None


class ActionItemUpdatedData(_WebhookModel):
    action_item_id: Optional[str] = None
    is_completed: Optional[bool] = None
    meeting_id: Optional[str] = None
    status: Optional[str] = Field(
        None,
        description="needs_review, accepted, in_progress, completed, cancelled or blocked.",
    )
    updated_at: Optional[str] = None
    workspace_id: Optional[str] = None


class AgendaItemCreatedData(_WebhookModel):
    agenda_item_id: Optional[str] = None
    created_at: Optional[str] = None
    item_type: Optional[str] = None
    meeting_id: Optional[str] = None
    title: Optional[str] = None


class AgendaItemDeletedData(_WebhookModel):
    agenda_item_id: Optional[str] = None
    deleted_at: Optional[str] = None
    meeting_id: Optional[str] = None


class AgendaItemUpdatedData(_WebhookModel):
    agenda_item_id: Optional[str] = None
    item_type: Optional[str] = None
    meeting_id: Optional[str] = None
    status: Optional[str] = None
    title: Optional[str] = None
    updated_at: Optional[str] = None


class CalendarEventData(_WebhookModel):
    attendee_count: Optional[int] = None
    calendar_event_id: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: Optional[bool] = None
    start_time: Optional[str] = None
    title: Optional[str] = None


class CalendarEventDeletedData(_WebhookModel):
    calendar_event_id: Optional[str] = None


class MeetingCompletedData(_WebhookModel):
    completed_at: Optional[str] = None
    meeting_id: Optional[str] = None
    title: Optional[str] = None
    workspace_id: Optional[str] = None


class MeetingCreatedData(_WebhookModel):
    created_at: Optional[str] = None
    created_by_user_id: Optional[str] = None
    meeting_id: Optional[str] = None
    title: Optional[str] = None
    workspace_id: Optional[str] = None


class MeetingUpdatedData(_WebhookModel):
    meeting_id: Optional[str] = None
    scheduled_start: Optional[str] = None
    title: Optional[str] = None
    updated_at: Optional[str] = None
    workspace_id: Optional[str] = None


class ParticipantInfo(_WebhookModel):
    participant_id: Optional[str] = None
    role: Optional[str] = None
    user_id: Optional[str] = None
    guest_email: Optional[str] = None


class ParticipantAddedData(_WebhookModel):
    added_at: Optional[str] = None
    meeting_id: Optional[str] = None
    participants: List[ParticipantInfo] = Field(default_factory=list)


class ParticipantRemovedData(_WebhookModel):
    guest_email: Optional[str] = None
    meeting_id: Optional[str] = None
    participant_id: Optional[str] = None
    removed_at: Optional[str] = None
    user_id: Optional[str] = None


class UserConnectionRevokedData(_WebhookModel):
    connection_id: Optional[str] = None
    revoked_at: Optional[str] = None


class WorkflowAssignmentCreatedData(_WebhookModel):
    action_item_id: Optional[str] = None
    assignment_id: Optional[str] = None
    confidence_score: Optional[float] = None
    created_at: Optional[str] = None
    meeting_id: Optional[str] = None
    status: Optional[str] = None
    workflow_data_payload: Optional[Dict[str, Any]] = None
    workflow_id: Optional[str] = None
    workflow_name: Optional[str] = None
    workspace_id: Optional[str] = None


class WebhookEnvelope(_WebhookModel):
    """Fields shared by every webhook delivery."""

    event_type: str
    event_id: str = Field(..., description="Unique per delivery; deduplicate on it.")
    timestamp: str = Field(..., description="RFC 3339 time the event occurred.")
    partner_app_id: str
    for_user: Optional[WebhookUserContext] = None

    @property
    def occurred_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))


class ActionItemCompletedEvent(WebhookEnvelope):
    event_type: Literal["action_item.completed"]
    data: ActionItemCompletedData = Field(default_factory=ActionItemCompletedData)


class ActionItemCreatedEvent(WebhookEnvelope):
    event_type: Literal["action_item.created"]
    data: ActionItemCreatedData = Field(default_factory=ActionItemCreatedData)


class ActionItemUpdatedEvent(WebhookEnvelope):
    event_type: Literal["action_item.updated"]
    data: ActionItemUpdatedData = Field(default_factory=ActionItemUpdatedData)


class AgendaItemCreatedEvent(WebhookEnvelope):
    event_type: Literal["agenda_item.created"]
    data: AgendaItemCreatedData = Field(default_factory=AgendaItemCreatedData)


class AgendaItemDeletedEvent(WebhookEnvelope):
    event_type: Literal["agenda_item.deleted"]
    data: AgendaItemDeletedData = Field(default_factory=AgendaItemDeletedData)


class AgendaItemUpdatedEvent(WebhookEnvelope):
    event_type: Literal["agenda_item.updated"]
    data: AgendaItemUpdatedData = Field(default_factory=AgendaItemUpdatedData)


class CalendarEventCreatedEvent(WebhookEnvelope):
    event_type: Literal["calendar_event.created"]
    data: CalendarEventData = Field(default_factory=CalendarEventData)


class CalendarEventDeletedEvent(WebhookEnvelope):
    event_type: Literal["calendar_event.deleted"]
    data: CalendarEventDeletedData = Field(default_factory=CalendarEventDeletedData)


class CalendarEventUpdatedEvent(WebhookEnvelope):
    event_type: Literal["calendar_event.updated"]
    data: CalendarEventData = Field(default_factory=CalendarEventData)


class MeetingCompletedEvent(WebhookEnvelope):
    event_type: Literal["meeting.completed"]
    data: MeetingCompletedData = Field(default_factory=MeetingCompletedData)


class MeetingCreatedEvent(WebhookEnvelope):
    event_type: Literal["meeting.created"]
    data: MeetingCreatedData = Field(default_factory=MeetingCreatedData)


class MeetingUpdatedEvent(WebhookEnvelope):
    event_type: Literal["meeting.updated"]
    data: MeetingUpdatedData = Field(default_factory=MeetingUpdatedData)


class ParticipantAddedEvent(WebhookEnvelope):
    event_type: Literal["participant.added"]
    data: ParticipantAddedData = Field(default_factory=ParticipantAddedData)


class ParticipantRemovedEvent(WebhookEnvelope):
    event_type: Literal["participant.removed"]
    data: ParticipantRemovedData = Field(default_factory=ParticipantRemovedData)


class UserConnectionRevokedEvent(WebhookEnvelope):
    event_type: Literal["user.connection.revoked"]
    data: UserConnectionRevokedData = Field(default_factory=UserConnectionRevokedData)


class WorkflowAssignmentCreatedEvent(WebhookEnvelope):
    event_type: Literal["workflow.assignment.created"]
    data: WorkflowAssignmentCreatedData = Field(
        default_factory=WorkflowAssignmentCreatedData
    )


class UnknownWebhookEvent(WebhookEnvelope):
    """Event type this client version does not know; ``data`` stays raw."""

    data: Any = None


KnownWebhookEvent = Union[
    ActionItemCompletedEvent,
    ActionItemCreatedEvent,
    ActionItemUpdatedEvent,
    AgendaItemCreatedEvent,
    AgendaItemDeletedEvent,
    AgendaItemUpdatedEvent,
    CalendarEventCreatedEvent,
    CalendarEventDeletedEvent,
    CalendarEventUpdatedEvent,
    MeetingCompletedEvent,
    MeetingCreatedEvent,
    MeetingUpdatedEvent,
    ParticipantAddedEvent,
    ParticipantRemovedEvent,
    UserConnectionRevokedEvent,
    WorkflowAssignmentCreatedEvent,
]

WebhookEvent = Union[KnownWebhookEvent, UnknownWebhookEvent]

EVENT_MODELS: Dict[str, Type[WebhookEnvelope]] = {
    "action_item.completed": ActionItemCompletedEvent,
    "action_item.created": ActionItemCreatedEvent,
    "action_item.updated": ActionItemUpdatedEvent,
    "agenda_item.created": AgendaItemCreatedEvent,
    "agenda_item.deleted": AgendaItemDeletedEvent,
    "agenda_item.updated": AgendaItemUpdatedEvent,
    "calendar_event.created": CalendarEventCreatedEvent,
    "calendar_event.deleted": CalendarEventDeletedEvent,
    "calendar_event.updated": CalendarEventUpdatedEvent,
    "meeting.completed": MeetingCompletedEvent,
    "meeting.created": MeetingCreatedEvent,
    "meeting.updated": MeetingUpdatedEvent,
    "participant.added": ParticipantAddedEvent,
    "participant.removed": ParticipantRemovedEvent,
    "user.connection.revoked": UserConnectionRevokedEvent,
    "workflow.assignment.created": WorkflowAssignmentCreatedEvent,
}


def build_webhook_event(payload: Dict[str, Any]) -> WebhookEvent:
    """Validate a decoded envelope into its typed model.

    Raises ``pydantic.ValidationError`` when the payload does not fit.
    """
    event_type = payload.get("event_type")
    model = (
        EVENT_MODELS.get(event_type, UnknownWebhookEvent)
        if isinstance(event_type, str)
        else UnknownWebhookEvent
    )
    return model.model_validate(payload)  # type: ignore[return-value]


__all__ = [
    "ActionItemCompletedData",
    "ActionItemCompletedEvent",
    "ActionItemCreatedData",
    "ActionItemCreatedEvent",
    "ActionItemUpdatedData",
    "ActionItemUpdatedEvent",
    "AgendaItemCreatedData",
    "AgendaItemCreatedEvent",
    "AgendaItemDeletedData",
    "AgendaItemDeletedEvent",
    "AgendaItemUpdatedData",
    "AgendaItemUpdatedEvent",
    "CalendarEventCreatedEvent",
    "CalendarEventData",
    "CalendarEventDeletedData",
    "CalendarEventDeletedEvent",
    "CalendarEventUpdatedEvent",
    "EVENT_MODELS",
    "KnownWebhookEvent",
    "MeetingCompletedData",
    "MeetingCompletedEvent",
    "MeetingCreatedData",
    "MeetingCreatedEvent",
    "MeetingUpdatedData",
    "MeetingUpdatedEvent",
    "ParticipantAddedData",
    "ParticipantAddedEvent",
    "ParticipantInfo",
    "ParticipantRemovedData",
    "ParticipantRemovedEvent",
    "REQUIRED_ENVELOPE_FIELDS",
    "UnknownWebhookEvent",
    "UserConnectionRevokedData",
    "UserConnectionRevokedEvent",
    "WEBHOOK_EVENT_TYPES",
    "WebhookEnvelope",
    "WebhookEvent",
    "WebhookEventType",
    "WorkflowAssignmentCreatedData",
    "WorkflowAssignmentCreatedEvent",
    "WebhookUserContext",
]
