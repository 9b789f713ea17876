from datetime import date, datetime, timedelta, timezone

from careertrack.core.errors import PersistenceError
from careertrack.core.models import Application, ApplicationStatus, FollowUp
from careertrack.storage.sqlite_store import SqliteTrackerStore
from careertrack.tracker.event_log_service import EventLogService
from careertrack.tracker.event_schema import (
    CreatedEvent,
    DeadlineRemovedEvent,
    DeadlineUpdatedEvent,
    DeletedEvent,
    FollowUpSentEvent,
    NextFollowUpScheduledEvent,
    ReminderDisabledEvent,
    StatusChangeEvent,
    from_legacy_slots,
    to_legacy_slots,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _app(**overrides) -> Application:
    data = dict(
        id="app1",
        user_id="u1",
        company="Acme",
        role="SWE Intern",
        platform="LinkedIn",
        applied_date=date(2026, 3, 2),
        created_at=T0,
        updated_at=T0,
    )
    data.update(overrides)
    return Application(**data)


def test_create_events_include_deadline_and_reminder() -> None:
    svc = EventLogService(repo=None, clock=lambda: T0)  # type: ignore[arg-type]
    events = svc.events_for_create(_app(deadline_date=date(2026, 3, 9), reminder_enabled=True))
    assert [e.event_type for e in events] == ["created", "deadline_set", "reminder_enabled"]
    assert events[0].initial_status == ApplicationStatus.APPLIED


def test_update_diff_produces_status_deadline_and_reminder_events() -> None:
    svc = EventLogService(repo=None, clock=lambda: T0)  # type: ignore[arg-type]
    before = _app(deadline_date=date(2026, 3, 9), reminder_enabled=True)
    after = _app(status=ApplicationStatus.OA, deadline_date=date(2026, 3, 12), reminder_enabled=False)

    events = svc.events_for_update(before, after)
    assert [e.event_type for e in events] == ["status_change", "deadline_updated", "reminder_disabled"]
    assert isinstance(events[0], StatusChangeEvent)
    assert events[0].old_status == ApplicationStatus.APPLIED
    assert events[0].new_status == ApplicationStatus.OA
    assert isinstance(events[1], DeadlineUpdatedEvent)
    assert isinstance(events[2], ReminderDisabledEvent)

    removed = svc.events_for_update(after, _app(status=ApplicationStatus.OA))
    assert len(removed) == 1 and isinstance(removed[0], DeadlineRemovedEvent)

    assert svc.events_for_update(before, before) == []


def test_follow_up_and_delete_events() -> None:
    svc = EventLogService(repo=None, clock=lambda: T0)  # type: ignore[arg-type]
    fu = FollowUp(application_id="app1", user_id="u1", note="pinged recruiter", next_follow_up_date=date(2026, 3, 9))
    events = svc.events_for_follow_up(fu)
    assert isinstance(events[0], FollowUpSentEvent) and events[0].note == "pinged recruiter"
    assert isinstance(events[1], NextFollowUpScheduledEvent)

    deleted = svc.events_for_delete(_app(status=ApplicationStatus.INTERVIEW))
    assert isinstance(deleted[0], DeletedEvent)
    assert deleted[0].final_status == ApplicationStatus.INTERVIEW


def test_legacy_slots_keep_old_and_new_values() -> None:
    ev = StatusChangeEvent(application_id="a", user_id="u", old_status="OA", new_status="Interview", created_at=T0)
    assert to_legacy_slots(ev) == ("OA", "Interview")

    rebuilt = from_legacy_slots(
        event_type="status_change",
        old_value="OA",
        new_value="Interview",
        base={"application_id": "a", "user_id": "u", "created_at": T0},
    )
    assert isinstance(rebuilt, StatusChangeEvent)
    assert rebuilt.old_status == ApplicationStatus.OA

    created = from_legacy_slots(
        event_type="created", old_value=None, new_value=None, base={"application_id": "a", "user_id": "u"}
    )
    assert isinstance(created, CreatedEvent)
    assert created.initial_status == ApplicationStatus.APPLIED


def test_store_orders_events_and_enriches_with_platform_role(tmp_path) -> None:
    store = SqliteTrackerStore(tmp_path / "events.db")
    store.create(_app())
    svc = EventLogService(store)

    # Same timestamp: insertion order must break the tie.
    svc.append_best_effort(
        [
            CreatedEvent(application_id="app1", user_id="u1", created_at=T0),
            StatusChangeEvent(application_id="app1", user_id="u1", old_status="Applied", new_status="OA", created_at=T0),
            StatusChangeEvent(
                application_id="app1",
                user_id="u1",
                old_status="OA",
                new_status="Interview",
                created_at=T0 + timedelta(days=1),
            ),
        ]
    )

    replay = svc.replay("u1")
    assert [e.event.event_type for e in replay] == ["created", "status_change", "status_change"]
    assert all(e.platform == "LinkedIn" and e.role == "SWE Intern" for e in replay)
    assert replay[0].event.seq < replay[1].event.seq

    timeline = svc.timeline("u1", "app1")
    assert [getattr(e, "new_status", None) for e in timeline] == [
        ApplicationStatus.INTERVIEW,
        ApplicationStatus.OA,
        None,
    ]

    assert svc.replay("someone-else") == []


def test_append_failure_is_logged_and_recorded_not_raised(tmp_path, monkeypatch, caplog) -> None:
    store = SqliteTrackerStore(tmp_path / "events.db")
    svc = EventLogService(store)

    def _boom(event) -> None:
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "append", _boom)

    ev = CreatedEvent(application_id="app1", user_id="u1", created_at=T0)
    with caplog.at_level("ERROR", logger="tracker.events"):
        ok = svc.append_best_effort([ev])

    assert ok is False
    assert svc.dropped_events == 1

    ok = svc.append_best_effort([ev, ev])
    assert ok is False
    assert svc.dropped_events == 3
    assert "Event append failed" in caplog.text
