from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from careertrack.core.errors import TrackerError
from careertrack.core.models import Application, ApplicationStatus, FollowUp, _utc_now
from careertrack.storage.repositories import EventRepository
from careertrack.tracker.event_schema import (
    ApplicationEvent,
    CreatedEvent,
    DeadlineRemovedEvent,
    DeadlineSetEvent,
    DeadlineUpdatedEvent,
    DeletedEvent,
    EnrichedEvent,
    FollowUpSentEvent,
    NextFollowUpScheduledEvent,
    ReminderDisabledEvent,
    ReminderEnabledEvent,
    StatusChangeEvent,
)

log = logging.getLogger("tracker.events")


class EventLogService:
    """
    Description: Append-only lifecycle log per application. Knows which events
    each mutation must produce and appends them best-effort after the primary write.
    Layer: L8
    Input: application snapshots before/after a mutation
    Output: ApplicationEvent rows + ordered replays
    """

    def __init__(self, repo: EventRepository, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._repo = repo
        self._clock = clock
        self.dropped_events = 0

    # ── event construction ───────────────────────────────────────────────────

    def events_for_create(self, app: Application) -> List[ApplicationEvent]:
        base = {"application_id": app.id, "user_id": app.user_id, "created_at": self._clock()}
        events: List[ApplicationEvent] = [CreatedEvent(initial_status=app.status, **base)]
        if app.deadline_date is not None:
            events.append(DeadlineSetEvent(deadline=app.deadline_date, **base))
        if app.reminder_enabled:
            events.append(ReminderEnabledEvent(**base))
        return events

    def events_for_update(self, before: Application, after: Application) -> List[ApplicationEvent]:
        """
        Description: Diff two snapshots of the same application into lifecycle events.
        Layer: L8
        Input: snapshot before + snapshot after the write
        Output: status/deadline/reminder events in that order (possibly empty)
        """
        base = {"application_id": after.id, "user_id": after.user_id, "created_at": self._clock()}
        events: List[ApplicationEvent] = []

        if before.status != after.status:
            events.append(StatusChangeEvent(old_status=before.status, new_status=after.status, **base))

        events.extend(self._deadline_events(before.deadline_date, after.deadline_date, base))

        if before.reminder_enabled != after.reminder_enabled:
            events.append(ReminderEnabledEvent(**base) if after.reminder_enabled else ReminderDisabledEvent(**base))
        return events

    @staticmethod
    def _deadline_events(old: Optional[date], new: Optional[date], base: dict) -> List[ApplicationEvent]:
        if old == new:
            return []
        if old is None:
            return [DeadlineSetEvent(deadline=new, **base)]
        if new is None:
            return [DeadlineRemovedEvent(old_deadline=old, **base)]
        return [DeadlineUpdatedEvent(old_deadline=old, new_deadline=new, **base)]

    def events_for_status_change(
        self, app: Application, old_status: ApplicationStatus
    ) -> List[ApplicationEvent]:
        if old_status == app.status:
            return []
        return [
            StatusChangeEvent(
                application_id=app.id,
                user_id=app.user_id,
                old_status=old_status,
                new_status=app.status,
                created_at=self._clock(),
            )
        ]

    def events_for_follow_up(self, follow_up: FollowUp) -> List[ApplicationEvent]:
        base = {"application_id": follow_up.application_id, "user_id": follow_up.user_id, "created_at": self._clock()}
        events: List[ApplicationEvent] = [FollowUpSentEvent(note=follow_up.note, **base)]
        if follow_up.next_follow_up_date is not None:
            events.append(NextFollowUpScheduledEvent(next_follow_up_date=follow_up.next_follow_up_date, **base))
        return events

    def events_for_delete(self, app: Application) -> List[ApplicationEvent]:
        return [
            DeletedEvent(
                application_id=app.id,
                user_id=app.user_id,
                final_status=app.status,
                created_at=self._clock(),
            )
        ]

    # ── append ───────────────────────────────────────────────────────────────

    def append_best_effort(self, events: List[ApplicationEvent]) -> bool:
        """
        Description: Append events after a successful primary write. Failures are
        logged and counted on `dropped_events`, never raised: the primary
        mutation stands and analytics may be missing these events.
        Layer: L8
        Input: events for one mutation
        Output: True when every event was appended
        """
        ok = True
        for ev in events:
            try:
                self._repo.append(ev)
            except TrackerError as e:
                ok = False
                self.dropped_events += 1
                log.error(
                    "Event append failed (analytics incomplete): type=%s application=%s error=%s",
                    ev.event_type,
                    ev.application_id,
                    e,
                )
        return ok

    # ── read ─────────────────────────────────────────────────────────────────

    def timeline(self, user_id: str, application_id: str) -> List[ApplicationEvent]:
        """Events for one application, newest first (insertion order breaks ties)."""
        events = self._repo.list_by_application(user_id, application_id)
        return sorted(events, key=lambda e: (e.created_at, e.seq or 0), reverse=True)

    def replay(self, user_id: str) -> List[EnrichedEvent]:
        """All of a user's events oldest first, joined with platform/role."""
        events = self._repo.list_by_user(user_id)
        return sorted(events, key=lambda e: (e.event.created_at, e.event.seq or 0))
