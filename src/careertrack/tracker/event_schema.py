from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from careertrack.core.models import ApplicationStatus, _new_id, _utc_now


class _EventBase(BaseModel):
    """
    Description: Immutable audit record shared fields.
    Layer: L8
    Input: application mutation
    Output: append-only event row
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=_new_id)
    application_id: str
    user_id: str
    created_at: datetime = Field(default_factory=_utc_now)
    # Insertion order assigned by the store; tiebreak for equal timestamps.
    seq: Optional[int] = None


class CreatedEvent(_EventBase):
    event_type: Literal["created"] = "created"
    initial_status: ApplicationStatus = ApplicationStatus.APPLIED


class StatusChangeEvent(_EventBase):
    event_type: Literal["status_change"] = "status_change"
    old_status: Optional[ApplicationStatus] = None
    new_status: ApplicationStatus


class DeadlineSetEvent(_EventBase):
    event_type: Literal["deadline_set"] = "deadline_set"
    deadline: date


class DeadlineUpdatedEvent(_EventBase):
    event_type: Literal["deadline_updated"] = "deadline_updated"
    old_deadline: date
    new_deadline: date


class DeadlineRemovedEvent(_EventBase):
    event_type: Literal["deadline_removed"] = "deadline_removed"
    old_deadline: date


class ReminderEnabledEvent(_EventBase):
    event_type: Literal["reminder_enabled"] = "reminder_enabled"


class ReminderDisabledEvent(_EventBase):
    event_type: Literal["reminder_disabled"] = "reminder_disabled"


class FollowUpSentEvent(_EventBase):
    event_type: Literal["follow_up_sent"] = "follow_up_sent"
    note: Optional[str] = None


class NextFollowUpScheduledEvent(_EventBase):
    event_type: Literal["next_follow_up_scheduled"] = "next_follow_up_scheduled"
    next_follow_up_date: date


class DeletedEvent(_EventBase):
    event_type: Literal["deleted"] = "deleted"
    final_status: ApplicationStatus


ApplicationEvent = Annotated[
    Union[
        CreatedEvent,
        StatusChangeEvent,
        DeadlineSetEvent,
        DeadlineUpdatedEvent,
        DeadlineRemovedEvent,
        ReminderEnabledEvent,
        ReminderDisabledEvent,
        FollowUpSentEvent,
        NextFollowUpScheduledEvent,
        DeletedEvent,
    ],
    Field(discriminator="event_type"),
]

# Events whose payload defines which status the application is in.
STATUS_DEFINING_TYPES = frozenset({"created", "status_change"})

_event_adapter: TypeAdapter[ApplicationEvent] = TypeAdapter(ApplicationEvent)


def parse_event(data: Dict[str, Any]) -> ApplicationEvent:
    return _event_adapter.validate_python(data)


def _iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_legacy_slots(event: ApplicationEvent) -> Tuple[Optional[str], Optional[str]]:
    """
    Description: Flatten a typed event into the (old_value, new_value) pair the
    events table stores.
    Layer: L8
    Input: ApplicationEvent
    Output: (old_value, new_value) text slots
    """
    if isinstance(event, CreatedEvent):
        return None, event.initial_status.value
    if isinstance(event, StatusChangeEvent):
        return (event.old_status.value if event.old_status else None), event.new_status.value
    if isinstance(event, DeadlineSetEvent):
        return None, _iso_date(event.deadline)
    if isinstance(event, DeadlineUpdatedEvent):
        return _iso_date(event.old_deadline), _iso_date(event.new_deadline)
    if isinstance(event, DeadlineRemovedEvent):
        return _iso_date(event.old_deadline), None
    if isinstance(event, FollowUpSentEvent):
        return None, event.note
    if isinstance(event, NextFollowUpScheduledEvent):
        return None, _iso_date(event.next_follow_up_date)
    if isinstance(event, DeletedEvent):
        return event.final_status.value, None
    return None, None


def from_legacy_slots(
    *,
    event_type: str,
    old_value: Optional[str],
    new_value: Optional[str],
    base: Dict[str, Any],
) -> ApplicationEvent:
    """
    Description: Rebuild a typed event from a stored row.
    Layer: L8
    Input: event_type + old/new text slots + shared fields
    Output: ApplicationEvent
    """
    data: Dict[str, Any] = dict(base)
    data["event_type"] = event_type
    if event_type == "created":
        data["initial_status"] = new_value or ApplicationStatus.APPLIED.value
    elif event_type == "status_change":
        data["old_status"] = old_value
        data["new_status"] = new_value
    elif event_type == "deadline_set":
        data["deadline"] = new_value
    elif event_type == "deadline_updated":
        data["old_deadline"] = old_value
        data["new_deadline"] = new_value
    elif event_type == "deadline_removed":
        data["old_deadline"] = old_value
    elif event_type == "follow_up_sent":
        data["note"] = new_value
    elif event_type == "next_follow_up_scheduled":
        data["next_follow_up_date"] = new_value
    elif event_type == "deleted":
        data["final_status"] = old_value
    return parse_event(data)


class EnrichedEvent(BaseModel):
    """
    Description: Event joined with its application's platform and role at read time.
    Layer: L9
    Input: ApplicationEvent + application join fields
    Output: analytics replay row
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: ApplicationEvent
    platform: Optional[str] = None
    role: Optional[str] = None
