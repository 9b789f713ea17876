from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from careertrack.config import Settings, get_settings
from careertrack.core.errors import (
    ApplicationLimitError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    require_user,
)
from careertrack.core.models import (
    Application,
    ApplicationInput,
    ApplicationStatus,
    ApplicationUpdate,
    FollowUp,
    Note,
    _utc_now,
)
from careertrack.storage.repositories import ApplicationRepository, FollowUpRepository, NoteRepository
from careertrack.tracker.event_log_service import EventLogService
from careertrack.tracker.event_schema import ApplicationEvent
from careertrack.tracker.filters import ApplicationFilters, filter_applications
from careertrack.tracker.status_machine import transition_error

log = logging.getLogger("tracker")


class ApplicationService:
    """
    Description: Repository-facing service for application mutations. Every
    mutation checks authentication first, validates status changes with the
    state machine, writes the application row, then appends lifecycle events.
    Layer: L8
    Input: user_id + create/update/transition/delete requests
    Output: persisted Application snapshots + event log entries
    """

    def __init__(
        self,
        *,
        applications: ApplicationRepository,
        events: EventLogService,
        notes: NoteRepository,
        follow_ups: FollowUpRepository,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._apps = applications
        self._events = events
        self._notes = notes
        self._follow_ups = follow_ups
        self._settings = settings or get_settings()
        self._clock = clock

    # ── reads ────────────────────────────────────────────────────────────────

    def get(self, user_id: Optional[str], application_id: str) -> Application:
        uid = require_user(user_id)
        app = self._apps.get(uid, application_id)
        if app is None:
            raise NotFoundError("Application", application_id)
        return app

    def list(self, user_id: Optional[str], filters: Optional[ApplicationFilters] = None) -> List[Application]:
        uid = require_user(user_id)
        apps = self._apps.list(uid)
        if filters is None:
            return apps
        return filter_applications(apps, filters)

    def timeline(self, user_id: Optional[str], application_id: str) -> List[ApplicationEvent]:
        uid = require_user(user_id)
        self.get(uid, application_id)
        return self._events.timeline(uid, application_id)

    def notes(self, user_id: Optional[str], application_id: str) -> List[Note]:
        uid = require_user(user_id)
        self.get(uid, application_id)
        return self._notes.list_notes(uid, application_id)

    def follow_ups(self, user_id: Optional[str], application_id: str) -> List[FollowUp]:
        uid = require_user(user_id)
        self.get(uid, application_id)
        return self._follow_ups.list_follow_ups(uid, application_id)

    def remaining_slots(self, user_id: Optional[str]) -> Optional[int]:
        """Free slots under `application_limit`, or None when uncapped."""
        uid = require_user(user_id)
        limit = self._settings.application_limit
        if limit is None:
            return None
        return max(0, limit - len(self._apps.list(uid)))

    # ── mutations ────────────────────────────────────────────────────────────

    def create(self, user_id: Optional[str], payload: ApplicationInput) -> Application:
        uid = require_user(user_id)

        limit = self._settings.application_limit
        if limit is not None and len(self._apps.list(uid)) >= limit:
            raise ApplicationLimitError(limit)

        now = self._clock()
        app = Application(
            user_id=uid,
            company=payload.company,
            role=payload.role,
            platform=payload.platform,
            status=payload.status,
            applied_date=payload.applied_date or now.date(),
            deadline_date=payload.deadline_date,
            reminder_enabled=payload.reminder_enabled,
            created_at=now,
            updated_at=now,
        )
        created = self._apps.create(app)
        self._events.append_best_effort(self._events.events_for_create(created))
        log.info("Created application %s (%s - %s)", created.id, created.company, created.role)
        return created

    def transition_status(
        self, user_id: Optional[str], application_id: str, target: ApplicationStatus | str
    ) -> Application:
        """
        Description: Move an application one step along the pipeline.
        Layer: L8
        Input: user_id + application_id + target status
        Output: updated Application (raises InvalidTransitionError when illegal)
        """
        uid = require_user(user_id)
        current = self.get(uid, application_id)

        err = transition_error(current.status, target)
        if err is not None:
            raise InvalidTransitionError(err, application_id)

        new_status = ApplicationStatus(target)
        updated = self._apps.update(
            uid,
            application_id,
            {"status": new_status, "updated_at": self._clock()},
            expected_status=current.status.value,
        )
        self._events.append_best_effort(self._events.events_for_status_change(updated, current.status))
        log.info("Application %s: %s -> %s", application_id, current.status.value, new_status.value)
        return updated

    def update(self, user_id: Optional[str], application_id: str, patch: ApplicationUpdate) -> Application:
        """
        Description: Apply field edits (and at most one legal status step).
        Layer: L8
        Input: user_id + application_id + ApplicationUpdate (explicitly-set fields only)
        Output: updated Application with status/deadline/reminder events appended
        """
        uid = require_user(user_id)
        current = self.get(uid, application_id)

        requested = patch.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}
        for field, value in requested.items():
            if field in ("company", "role"):
                value = (value or "").strip()
                if not value:
                    raise ValidationError(f"{field} must not be empty")
            elif field == "platform" and value is not None:
                value = value.strip() or None
            elif field in ("status", "applied_date", "reminder_enabled") and value is None:
                raise ValidationError(f"{field} cannot be cleared")
            if getattr(current, field) != value:
                changes[field] = value

        expected_status: Optional[str] = None
        if "status" in changes:
            err = transition_error(current.status, changes["status"])
            if err is not None:
                raise InvalidTransitionError(err, application_id)
            expected_status = current.status.value

        if not changes:
            return current

        changes["updated_at"] = self._clock()
        updated = self._apps.update(uid, application_id, changes, expected_status=expected_status)
        self._events.append_best_effort(self._events.events_for_update(current, updated))
        return updated

    def delete(self, user_id: Optional[str], application_id: str) -> None:
        uid = require_user(user_id)
        current = self.get(uid, application_id)
        # Recorded before the row goes; the cascade below removes it with the rest.
        self._events.append_best_effort(self._events.events_for_delete(current))
        self._apps.delete(uid, application_id)
        log.info("Deleted application %s", application_id)

    def add_note(self, user_id: Optional[str], application_id: str, content: str) -> Note:
        uid = require_user(user_id)
        self.get(uid, application_id)
        text = (content or "").strip()
        if not text:
            raise ValidationError("Note content must not be empty")
        return self._notes.add_note(
            Note(application_id=application_id, user_id=uid, content=text, created_at=self._clock())
        )

    def log_follow_up(
        self,
        user_id: Optional[str],
        application_id: str,
        *,
        note: Optional[str] = None,
        next_follow_up_date: Optional[date] = None,
    ) -> FollowUp:
        uid = require_user(user_id)
        self.get(uid, application_id)
        now = self._clock()
        follow_up = self._follow_ups.add_follow_up(
            FollowUp(
                application_id=application_id,
                user_id=uid,
                note=(note or "").strip() or None,
                followed_up_at=now,
                next_follow_up_date=next_follow_up_date,
                created_at=now,
            )
        )
        self._events.append_best_effort(self._events.events_for_follow_up(follow_up))
        return follow_up
