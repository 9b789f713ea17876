"""Persistence contracts consumed by the tracker services.

Every method is scoped by ``user_id`` (row-level isolation). Implementations
raise ``NotFoundError`` for missing rows, ``ConstraintViolationError`` for
rejected writes and ``PersistenceError`` for any other storage failure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from careertrack.core.models import Application, FollowUp, Note, SuggestionAction, SuggestionActionType
from careertrack.tracker.event_schema import ApplicationEvent, EnrichedEvent


class ApplicationRepository(Protocol):
    def create(self, application: Application) -> Application: ...

    def update(
        self,
        user_id: str,
        application_id: str,
        changes: Dict[str, Any],
        *,
        expected_status: Optional[str] = None,
    ) -> Application: ...

    def delete(self, user_id: str, application_id: str) -> None: ...

    def get(self, user_id: str, application_id: str) -> Optional[Application]: ...

    def list(self, user_id: str) -> List[Application]: ...


class EventRepository(Protocol):
    def append(self, event: ApplicationEvent) -> None: ...

    def list_by_application(self, user_id: str, application_id: str) -> List[ApplicationEvent]: ...

    def list_by_user(self, user_id: str) -> List[EnrichedEvent]: ...


class SuggestionActionStore(Protocol):
    def upsert(
        self,
        user_id: str,
        suggestion_key: str,
        action_type: SuggestionActionType,
        snooze_until: Optional[datetime] = None,
    ) -> None: ...

    def list_for_user(self, user_id: str) -> List[SuggestionAction]: ...

    def delete(self, user_id: str, suggestion_key: str) -> None: ...


class NoteRepository(Protocol):
    def add_note(self, note: Note) -> Note: ...

    def list_notes(self, user_id: str, application_id: str) -> List[Note]: ...


class FollowUpRepository(Protocol):
    def add_follow_up(self, follow_up: FollowUp) -> FollowUp: ...

    def list_follow_ups(self, user_id: str, application_id: Optional[str] = None) -> List[FollowUp]: ...
