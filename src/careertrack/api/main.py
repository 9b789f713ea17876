"""
src/careertrack/api/main.py
===========================
FastAPI boundary for careertrack.
  - Caller identity comes from the `X-User-Id` header
  - /applications          → CRUD + filters
  - /applications/{id}/... → transition, timeline, notes, follow-ups
  - /analytics, /insights, /suggestions, /progress/weekly → read-side dashboard
Tracker errors are mapped to HTTP status codes in one place.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from careertrack.analytics.analytics_schema import ApplicationAnalytics
from careertrack.analytics.dashboard_service import DashboardService
from careertrack.analytics.insight_schema import CareerInsight
from careertrack.analytics.progress_service import WeeklyProgress
from careertrack.analytics.suggestion_schema import SmartSuggestion
from careertrack.analytics.suggestion_service import SuggestionActionService
from careertrack.api.request_models import (
    FollowUpRequest,
    NextStatusesResponse,
    NoteRequest,
    OkResponse,
    SnoozeRequest,
    TransitionRequest,
)
from careertrack.config import Settings, get_settings
from careertrack.core.errors import (
    ApplicationLimitError,
    AuthenticationError,
    ConstraintViolationError,
    InvalidTransitionError,
    NotFoundError,
    TrackerError,
    ValidationError,
)
from careertrack.core.models import (
    Application,
    ApplicationFields,
    ApplicationInput,
    ApplicationStatus,
    ApplicationUpdate,
    FollowUp,
    Note,
)
from careertrack.storage.sqlite_store import SqliteSuggestionActionStore, SqliteTrackerStore
from careertrack.tracker.application_service import ApplicationService
from careertrack.tracker.event_log_service import EventLogService
from careertrack.tracker.event_schema import ApplicationEvent
from careertrack.tracker.filters import ApplicationFilters, unique_platforms
from careertrack.tracker.status_machine import is_terminal, valid_next_statuses

log = logging.getLogger("api")


@dataclass
class Services:
    applications: ApplicationService
    dashboard: DashboardService
    suggestion_actions: SuggestionActionService
    events: EventLogService


def build_services(settings: Settings) -> Services:
    """
    Description: Wire SQLite stores into the tracker and dashboard services.
    Layer: L8
    Input: Settings (database path + rule thresholds)
    Output: Services bundle stored on app.state
    """
    db_path = settings.resolved_database_path()
    store = SqliteTrackerStore(db_path)
    ledger = SuggestionActionService(SqliteSuggestionActionStore(db_path), settings=settings)
    events = EventLogService(store)
    log.info("Using database %s", db_path)
    return Services(
        applications=ApplicationService(
            applications=store, events=events, notes=store, follow_ups=store, settings=settings
        ),
        dashboard=DashboardService(
            applications=store, events=events, follow_ups=store, actions=ledger, settings=settings
        ),
        suggestion_actions=ledger,
        events=events,
    )


def _status_for(exc: TrackerError) -> int:
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ApplicationLimitError):
        return 403
    if isinstance(exc, (InvalidTransitionError, ConstraintViolationError)):
        return 409
    if isinstance(exc, ValidationError):
        return 422
    return 500


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("careertrack API starting up (%s)", settings.environment)
        app.state.services = build_services(settings)
        yield
        log.info("careertrack API shutting down")

    app = FastAPI(
        title="careertrack API",
        version="1.0.0",
        description="Application tracker: status pipeline, event log, analytics, insights, suggestions",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(_request: Request, exc: TrackerError) -> JSONResponse:
        status = _status_for(exc)
        detail = {"code": exc.code, "message": str(exc)}
        if isinstance(exc, InvalidTransitionError):
            detail["kind"] = exc.kind.value
        if status >= 500:
            log.error("Unhandled tracker error: %s", exc)
        return JSONResponse(status_code=status, content={"detail": detail})

    _register_routes(app)
    return app


def _services(request: Request) -> Services:
    return request.app.state.services


def _user(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    # Services raise AuthenticationError for a missing caller.
    return x_user_id


def _register_routes(app: FastAPI) -> None:
    # ── Health ───────────────────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ── Applications ─────────────────────────────────────────────────────────

    @app.get("/applications", response_model=List[Application])
    def list_applications(
        search: str = "",
        status: Optional[ApplicationStatus] = None,
        platform: Optional[str] = None,
        sort_order: str = "newest",
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        if sort_order not in ("newest", "oldest"):
            raise ValidationError("sort_order must be 'newest' or 'oldest'")
        filters = ApplicationFilters(search=search, status=status, platform=platform, sort_order=sort_order)
        return svc.applications.list(user_id, filters)

    @app.get("/applications/platforms", response_model=List[str])
    def list_platforms(user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)):
        return unique_platforms(svc.applications.list(user_id))

    @app.post("/applications", response_model=Application, status_code=201)
    def create_application(
        body: ApplicationFields,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        # Over HTTP an application always starts at Applied.
        return svc.applications.create(user_id, ApplicationInput(**body.model_dump()))

    @app.get("/applications/{application_id}", response_model=Application)
    def get_application(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        return svc.applications.get(user_id, application_id)

    @app.patch("/applications/{application_id}", response_model=Application)
    def update_application(
        application_id: str,
        body: ApplicationUpdate,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        return svc.applications.update(user_id, application_id, body)

    @app.delete("/applications/{application_id}", response_model=OkResponse)
    def delete_application(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        svc.applications.delete(user_id, application_id)
        return OkResponse(message=f"deleted {application_id}")

    @app.post("/applications/{application_id}/transition", response_model=Application)
    def transition_application(
        application_id: str,
        body: TransitionRequest,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        return svc.applications.transition_status(user_id, application_id, body.status)

    @app.get("/applications/{application_id}/next-statuses", response_model=NextStatusesResponse)
    def next_statuses(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        app_row = svc.applications.get(user_id, application_id)
        return NextStatusesResponse(
            current=app_row.status,
            terminal=is_terminal(app_row.status),
            next_statuses=sorted(valid_next_statuses(app_row.status), key=list(ApplicationStatus).index),
        )

    @app.get("/applications/{application_id}/timeline", response_model=List[ApplicationEvent])
    def timeline(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        return svc.applications.timeline(user_id, application_id)

    @app.get("/applications/{application_id}/notes", response_model=List[Note])
    def list_notes(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        return svc.applications.notes(user_id, application_id)

    @app.post("/applications/{application_id}/notes", response_model=Note, status_code=201)
    def add_note(
        application_id: str,
        body: NoteRequest,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        return svc.applications.add_note(user_id, application_id, body.content)

    @app.get("/applications/{application_id}/follow-ups", response_model=List[FollowUp])
    def list_follow_ups(
        application_id: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        return svc.applications.follow_ups(user_id, application_id)

    @app.post("/applications/{application_id}/follow-ups", response_model=FollowUp, status_code=201)
    def log_follow_up(
        application_id: str,
        body: FollowUpRequest,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        return svc.applications.log_follow_up(
            user_id, application_id, note=body.note, next_follow_up_date=body.next_follow_up_date
        )

    # ── Dashboard ────────────────────────────────────────────────────────────

    @app.get("/analytics", response_model=ApplicationAnalytics)
    def analytics(user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)):
        return svc.dashboard.analytics(user_id)

    @app.get("/insights", response_model=List[CareerInsight])
    def insights(
        display: bool = False, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        return svc.dashboard.insights(user_id, for_display=display)

    @app.get("/suggestions", response_model=List[SmartSuggestion])
    def suggestions(user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)):
        return svc.dashboard.suggestions(user_id)

    @app.post("/suggestions/{suggestion_key}/dismiss", response_model=OkResponse)
    def dismiss_suggestion(
        suggestion_key: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        svc.suggestion_actions.dismiss(user_id, suggestion_key)
        return OkResponse(message="Suggestion dismissed")

    @app.post("/suggestions/{suggestion_key}/snooze", response_model=OkResponse)
    def snooze_suggestion(
        suggestion_key: str,
        body: Optional[SnoozeRequest] = None,
        user_id: Optional[str] = Depends(_user),
        svc: Services = Depends(_services),
    ):
        until = svc.suggestion_actions.snooze(user_id, suggestion_key, body.days if body else None)
        return OkResponse(message=f"Snoozed until {until.isoformat()}")

    @app.delete("/suggestions/{suggestion_key}", response_model=OkResponse)
    def clear_suggestion_action(
        suggestion_key: str, user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)
    ):
        svc.suggestion_actions.clear(user_id, suggestion_key)
        return OkResponse(message="Suggestion action cleared")

    @app.get("/progress/weekly", response_model=WeeklyProgress)
    def weekly_progress(user_id: Optional[str] = Depends(_user), svc: Services = Depends(_services)):
        return svc.dashboard.weekly_progress(user_id)


logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

app = create_app()
