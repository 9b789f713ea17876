from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    """Description: Get current UTC timestamp.
    Layer: L0
    Input: None
    Output: datetime (UTC)
    """
    return datetime.now(timezone.utc)


def _iso_utc(dt: datetime) -> str:
    """Description: Convert datetime to ISO-8601 UTC text, keeping microseconds.
    Layer: L0
    Input: datetime
    Output: str (e.g., 2026-02-20T12:34:56.123456+00:00)
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_iso(value: str) -> datetime:
    """Description: Parse stored ISO text back into an aware UTC datetime.
    Layer: L0
    Input: str
    Output: datetime (UTC)
    """
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class ApplicationStatus(str, Enum):
    """Pipeline stages, in pipeline order."""

    APPLIED = "Applied"
    OA = "OA"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class Application(BaseModel):
    """
    Description: One tracked job/internship application (aggregate root).
    Layer: L1
    Input: user-entered fields + pipeline status
    Output: persisted application snapshot
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_id)
    user_id: str
    company: str
    role: str
    platform: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.APPLIED
    applied_date: date = Field(default_factory=lambda: _utc_now().date())
    deadline_date: Optional[date] = None
    reminder_enabled: bool = False
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class ApplicationFields(BaseModel):
    """
    Description: User-editable fields for a new application. A new application
    created from these fields starts at Applied.
    Layer: L1
    Input: form/API fields
    Output: validated create request
    """

    model_config = ConfigDict(extra="forbid")

    company: str
    role: str
    platform: Optional[str] = None
    applied_date: Optional[date] = None
    deadline_date: Optional[date] = None
    reminder_enabled: bool = False

    @field_validator("company", "role")
    @classmethod
    def _require_text(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("platform")
    @classmethod
    def _blank_platform_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ApplicationInput(ApplicationFields):
    """Programmatic create payload; imports and seeding may start past Applied."""

    status: ApplicationStatus = ApplicationStatus.APPLIED


class ApplicationUpdate(BaseModel):
    """
    Description: Partial update. Only fields explicitly set are applied, so an
    explicit `deadline_date=None` clears the deadline while omitting it keeps it.
    Layer: L1
    Input: subset of editable fields
    Output: validated patch
    """

    model_config = ConfigDict(extra="forbid")

    company: Optional[str] = None
    role: Optional[str] = None
    platform: Optional[str] = None
    status: Optional[ApplicationStatus] = None
    applied_date: Optional[date] = None
    deadline_date: Optional[date] = None
    reminder_enabled: Optional[bool] = None


class Note(BaseModel):
    """Free-text annotation on an application. Never mutated."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_id)
    application_id: str
    user_id: str
    content: str
    created_at: datetime = Field(default_factory=_utc_now)


class FollowUp(BaseModel):
    """Record of outreach sent for an application."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_id)
    application_id: str
    user_id: str
    note: Optional[str] = None
    followed_up_at: datetime = Field(default_factory=_utc_now)
    next_follow_up_date: Optional[date] = None
    created_at: datetime = Field(default_factory=_utc_now)


SuggestionActionType = Literal["dismissed", "snoozed"]


class SuggestionAction(BaseModel):
    """
    Description: Per-user ledger entry hiding a regenerated suggestion.
    Layer: L9
    Input: user_id + suggestion_key + action
    Output: dismissal or snooze record (keyed, not tied to an application row)
    """

    model_config = ConfigDict(extra="forbid")

    user_id: str
    suggestion_key: str
    action_type: SuggestionActionType
    snooze_until: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utc_now)
