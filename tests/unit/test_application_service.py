from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from careertrack.config import Settings
from careertrack.core.errors import (
    ApplicationLimitError,
    AuthenticationError,
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    TransitionErrorKind,
    ValidationError,
)
from careertrack.core.models import ApplicationFields, ApplicationInput, ApplicationStatus, ApplicationUpdate
from careertrack.storage.sqlite_store import SqliteTrackerStore
from careertrack.tracker.application_service import ApplicationService
from careertrack.tracker.event_log_service import EventLogService
from careertrack.tracker.filters import ApplicationFilters

S = ApplicationStatus


class _Clock:
    """Monotonic fake clock: each call advances one minute."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(minutes=1)
        return self.now


def _build(tmp_path, **settings_overrides):
    settings = Settings(database_path=str(tmp_path / "tracker.db"), **settings_overrides)
    store = SqliteTrackerStore(settings.database_path)
    clock = _Clock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
    events = EventLogService(store, clock=clock)
    svc = ApplicationService(
        applications=store, events=events, notes=store, follow_ups=store, settings=settings, clock=clock
    )
    return svc, store, events


def _types(events) -> list:
    return [e.event_type for e in events]


def test_create_appends_created_event(tmp_path) -> None:
    svc, _, events = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="  Acme ", role="SWE Intern", platform=" "))

    assert app.company == "Acme"
    assert app.platform is None
    assert app.status == S.APPLIED
    assert _types(svc.timeline("u1", app.id)) == ["created"]


def test_only_programmatic_create_may_start_past_applied(tmp_path) -> None:
    with pytest.raises(PydanticValidationError):
        ApplicationFields(company="Acme", role="SWE", status="Offer")

    svc, _, _ = _build(tmp_path)
    seeded = svc.create("u1", ApplicationInput(company="Acme", role="SWE", status=S.OA))
    assert seeded.status == S.OA
    created = svc.timeline("u1", seeded.id)[0]
    assert created.event_type == "created"
    assert created.initial_status == S.OA


def test_illegal_transition_leaves_application_and_log_untouched(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))

    with pytest.raises(InvalidTransitionError) as exc:
        svc.transition_status("u1", app.id, S.INTERVIEW)

    assert exc.value.kind == TransitionErrorKind.ILLEGAL_SKIP
    assert svc.get("u1", app.id).status == S.APPLIED
    assert _types(svc.timeline("u1", app.id)) == ["created"]


def test_full_walk_then_terminal_lock(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))

    for target in (S.OA, S.INTERVIEW, S.OFFER, S.ACCEPTED):
        app = svc.transition_status("u1", app.id, target)
    assert app.status == S.ACCEPTED

    for target in (S.REJECTED, S.OFFER, S.APPLIED):
        with pytest.raises(InvalidTransitionError) as exc:
            svc.transition_status("u1", app.id, target)
        assert exc.value.kind == TransitionErrorKind.TERMINAL

    timeline = svc.timeline("u1", app.id)
    assert _types(timeline) == ["status_change"] * 4 + ["created"]
    assert timeline[0].new_status == S.ACCEPTED


def test_unknown_target_is_classified(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))
    with pytest.raises(InvalidTransitionError) as exc:
        svc.transition_status("u1", app.id, "Ghosted")
    assert exc.value.kind == TransitionErrorKind.UNKNOWN_TARGET


def test_lost_race_raises_and_appends_nothing(tmp_path, monkeypatch) -> None:
    svc, store, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))
    stale = store.get("u1", app.id)

    # Another writer moves the row on after our read.
    store.update("u1", app.id, {"status": S.OA}, expected_status="Applied")
    monkeypatch.setattr(store, "get", lambda user_id, application_id: stale)

    with pytest.raises(ConcurrentModificationError):
        svc.transition_status("u1", app.id, S.OA)

    assert _types(store.list_by_application("u1", app.id)) == ["created"]


def test_missing_user_short_circuits_before_storage(tmp_path) -> None:
    class _Untouchable:
        def __getattr__(self, name):
            raise AssertionError(f"store touched: {name}")

    untouchable = _Untouchable()
    svc = ApplicationService(
        applications=untouchable,
        events=EventLogService(untouchable),
        notes=untouchable,
        follow_ups=untouchable,
        settings=Settings(database_path=str(tmp_path / "unused.db")),
    )

    for user_id in (None, "", "   "):
        with pytest.raises(AuthenticationError):
            svc.create(user_id, ApplicationInput(company="Acme", role="SWE"))
        with pytest.raises(AuthenticationError):
            svc.transition_status(user_id, "app1", S.OA)
        with pytest.raises(AuthenticationError):
            svc.list(user_id)


def test_update_records_field_events_and_validates_status(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))

    app = svc.update("u1", app.id, ApplicationUpdate(deadline_date=date(2026, 3, 20), reminder_enabled=True))
    app = svc.update("u1", app.id, ApplicationUpdate(status=S.OA, deadline_date=date(2026, 3, 25)))
    app = svc.update("u1", app.id, ApplicationUpdate(deadline_date=None))

    assert app.status == S.OA
    assert app.deadline_date is None
    assert _types(reversed(svc.timeline("u1", app.id))) == [
        "created",
        "deadline_set",
        "reminder_enabled",
        "status_change",
        "deadline_updated",
        "deadline_removed",
    ]

    with pytest.raises(InvalidTransitionError):
        svc.update("u1", app.id, ApplicationUpdate(status=S.OFFER))
    with pytest.raises(ValidationError):
        svc.update("u1", app.id, ApplicationUpdate(status=None))
    with pytest.raises(ValidationError):
        svc.update("u1", app.id, ApplicationUpdate(company="   "))


def test_noop_update_returns_current_without_events(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))
    same = svc.update("u1", app.id, ApplicationUpdate(company="Acme"))
    assert same == app
    assert _types(svc.timeline("u1", app.id)) == ["created"]


def test_application_limit(tmp_path) -> None:
    svc, _, _ = _build(tmp_path, application_limit=1)
    assert svc.remaining_slots("u1") == 1
    svc.create("u1", ApplicationInput(company="Acme", role="SWE"))
    assert svc.remaining_slots("u1") == 0
    with pytest.raises(ApplicationLimitError):
        svc.create("u1", ApplicationInput(company="Globex", role="SWE"))
    # Limits are per user.
    svc.create("u2", ApplicationInput(company="Globex", role="SWE"))


def test_notes_follow_ups_and_delete(tmp_path) -> None:
    svc, store, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))

    with pytest.raises(ValidationError):
        svc.add_note("u1", app.id, "   ")
    svc.add_note("u1", app.id, "first")
    svc.add_note("u1", app.id, "second")
    assert [n.content for n in svc.notes("u1", app.id)] == ["second", "first"]

    fu = svc.log_follow_up("u1", app.id, note="emailed", next_follow_up_date=date(2026, 3, 9))
    assert svc.follow_ups("u1", app.id) == [fu]
    assert _types(svc.timeline("u1", app.id))[:2] == ["next_follow_up_scheduled", "follow_up_sent"]

    svc.delete("u1", app.id)
    with pytest.raises(NotFoundError):
        svc.get("u1", app.id)
    with pytest.raises(NotFoundError):
        svc.delete("u1", app.id)
    assert store.list_by_application("u1", app.id) == []
    assert store.list_notes("u1", app.id) == []


def test_users_cannot_see_each_others_applications(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    app = svc.create("u1", ApplicationInput(company="Acme", role="SWE"))
    with pytest.raises(NotFoundError):
        svc.get("u2", app.id)
    with pytest.raises(NotFoundError):
        svc.transition_status("u2", app.id, S.OA)
    assert svc.list("u2") == []


def test_list_applies_filters(tmp_path) -> None:
    svc, _, _ = _build(tmp_path)
    svc.create("u1", ApplicationInput(company="Acme", role="Data Intern", platform="Indeed", applied_date=date(2026, 1, 5)))
    svc.create("u1", ApplicationInput(company="Globex", role="SWE", platform="LinkedIn", applied_date=date(2026, 2, 1)))

    out = svc.list("u1", ApplicationFilters(search="data"))
    assert [a.company for a in out] == ["Acme"]
    out = svc.list("u1", ApplicationFilters(sort_order="oldest"))
    assert [a.company for a in out] == ["Acme", "Globex"]
