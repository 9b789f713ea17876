from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from careertrack.analytics.analytics_schema import PlatformMetrics, RoleMetrics
from careertrack.analytics.suggestion_schema import PRIORITY_ORDER, TYPE_ORDER, SmartSuggestion
from careertrack.config import Settings, get_settings
from careertrack.core.errors import ValidationError, require_user
from careertrack.core.models import Application, ApplicationStatus, SuggestionAction, _utc_now
from careertrack.storage.repositories import SuggestionActionStore

log = logging.getLogger("analytics.suggestions")

NON_FINAL_STATUSES = frozenset({ApplicationStatus.APPLIED, ApplicationStatus.OA, ApplicationStatus.INTERVIEW})


def follow_up_key(application_id: str) -> str:
    return f"follow_up_{application_id}"


def deadline_key(application_id: str) -> str:
    return f"deadline_{application_id}"


def platform_key(platform: str) -> str:
    return f"platform_insight_{platform}"


def role_key(role: str) -> str:
    return f"role_insight_{role}"


class SuggestionService:
    """
    Description: Rule-based nudges from current application state plus the
    platform/role slices of analytics. Stateless; callers filter the result
    against the user's dismiss/snooze ledger.
    Layer: L9
    Input: applications + platform/role metrics + now
    Output: List[SmartSuggestion] sorted by priority, then type
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def generate(
        self,
        *,
        applications: Iterable[Application],
        platform_metrics: List[PlatformMetrics],
        role_metrics: List[RoleMetrics],
        now: Optional[datetime] = None,
    ) -> List[SmartSuggestion]:
        now = now or _utc_now()
        apps = [a for a in applications if a.status in NON_FINAL_STATUSES]

        out: List[SmartSuggestion] = []
        out.extend(self._stale(apps, now))
        out.extend(self._deadlines(apps, now))

        platform = self._platform(platform_metrics, now)
        if platform is not None:
            out.append(platform)
        role = self._role(role_metrics, now)
        if role is not None:
            out.append(role)

        out.sort(key=lambda s: (PRIORITY_ORDER[s.priority], TYPE_ORDER[s.type]))
        return out

    def _stale(self, apps: List[Application], now: datetime) -> List[SmartSuggestion]:
        cfg = self._settings
        out: List[SmartSuggestion] = []
        for app in apps:
            idle_days = (now - app.updated_at).days
            if idle_days < cfg.stale_days:
                continue
            out.append(
                SmartSuggestion(
                    key=follow_up_key(app.id),
                    type="follow_up",
                    priority="high" if idle_days >= cfg.stale_high_priority_days else "medium",
                    message=f"Follow up on {app.company} – {app.role}. No updates for {idle_days} days.",
                    application_id=app.id,
                    company=app.company,
                    role=app.role,
                    created_at=now,
                )
            )
        return out

    def _deadlines(self, apps: List[Application], now: datetime) -> List[SmartSuggestion]:
        cfg = self._settings
        today = now.date()
        out: List[SmartSuggestion] = []
        for app in apps:
            if app.deadline_date is None:
                continue
            days_left = (app.deadline_date - today).days
            if days_left < 0 or days_left > cfg.upcoming_deadline_days:
                continue
            if days_left == 0:
                message = f"Deadline TODAY for {app.company} – {app.role}!"
            else:
                unit = "day" if days_left == 1 else "days"
                message = f"Deadline in {days_left} {unit} for {app.company} – {app.role}."
            out.append(
                SmartSuggestion(
                    key=deadline_key(app.id),
                    type="deadline",
                    priority="high" if days_left <= cfg.urgent_deadline_days else "medium",
                    message=message,
                    application_id=app.id,
                    company=app.company,
                    role=app.role,
                    created_at=now,
                )
            )
        return out

    @staticmethod
    def _platform(metrics: List[PlatformMetrics], now: datetime) -> Optional[SmartSuggestion]:
        qualifying = [p for p in metrics if p.total >= 2]
        if len(qualifying) < 2:
            return None
        best = sorted(qualifying, key=lambda p: -p.interview_rate)[0]
        if best.interview_rate < 30:
            return None
        return SmartSuggestion(
            key=platform_key(best.platform),
            type="platform_insight",
            priority="low",
            message=(
                f"You have {best.interview_rate}% interview success on {best.platform}. "
                "Consider applying more there."
            ),
            created_at=now,
        )

    @staticmethod
    def _role(metrics: List[RoleMetrics], now: datetime) -> Optional[SmartSuggestion]:
        qualifying = [r for r in metrics if r.total >= 2]
        if len(qualifying) < 2:
            return None
        best = sorted(qualifying, key=lambda r: -r.conversion_rate)[0]
        if best.conversion_rate > 0:
            message = (
                f"Your success rate is higher for {best.role} roles ({best.conversion_rate}% accepted). "
                "Focus on similar roles."
            )
        elif best.reached_interview >= 2:
            message = f"{best.role} roles have good traction with {best.reached_interview} interviews. Keep applying!"
        else:
            return None
        return SmartSuggestion(
            key=role_key(best.role),
            type="role_insight",
            priority="low",
            message=message,
            created_at=now,
        )


def generate_suggestions(
    applications: Iterable[Application],
    platform_metrics: List[PlatformMetrics],
    role_metrics: List[RoleMetrics],
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> List[SmartSuggestion]:
    return SuggestionService(settings).generate(
        applications=applications, platform_metrics=platform_metrics, role_metrics=role_metrics, now=now
    )


def is_hidden(key: str, actions: Iterable[SuggestionAction], now: datetime) -> bool:
    """Dismissed keys stay hidden; snoozed keys are hidden until `snooze_until` passes."""
    for action in actions:
        if action.suggestion_key != key:
            continue
        if action.action_type == "dismissed":
            return True
        if action.action_type == "snoozed" and action.snooze_until is not None:
            return action.snooze_until > now
        return False
    return False


def filter_suggestions(
    suggestions: Iterable[SmartSuggestion], actions: Iterable[SuggestionAction], now: Optional[datetime] = None
) -> List[SmartSuggestion]:
    now = now or _utc_now()
    ledger = list(actions)
    return [s for s in suggestions if not is_hidden(s.key, ledger, now)]


class SuggestionActionService:
    """
    Description: Dismiss/snooze ledger operations. Authentication is checked
    before the store is touched.
    Layer: L9
    Input: user_id + suggestion key
    Output: ledger writes; is_hidden lookups
    """

    def __init__(
        self,
        store: SuggestionActionStore,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    @staticmethod
    def _uid(user_id: Optional[str]) -> str:
        return require_user(user_id)

    @staticmethod
    def _key(suggestion_key: str) -> str:
        key = (suggestion_key or "").strip()
        if not key:
            raise ValidationError("suggestion_key must not be empty")
        return key

    def actions(self, user_id: Optional[str]) -> List[SuggestionAction]:
        uid = self._uid(user_id)
        return self._store.list_for_user(uid)

    def dismiss(self, user_id: Optional[str], suggestion_key: str) -> None:
        uid = self._uid(user_id)
        key = self._key(suggestion_key)
        self._store.upsert(uid, key, "dismissed", None)
        log.info("Dismissed suggestion %s", key)

    def snooze(self, user_id: Optional[str], suggestion_key: str, days: Optional[int] = None) -> datetime:
        uid = self._uid(user_id)
        key = self._key(suggestion_key)
        days = self._settings.default_snooze_days if days is None else days
        if days <= 0:
            raise ValidationError("Snooze days must be positive")
        until = self._clock() + timedelta(days=days)
        self._store.upsert(uid, key, "snoozed", until)
        log.info("Snoozed suggestion %s for %d days", key, days)
        return until

    def clear(self, user_id: Optional[str], suggestion_key: str) -> None:
        uid = self._uid(user_id)
        self._store.delete(uid, self._key(suggestion_key))

    def is_hidden(self, user_id: Optional[str], suggestion_key: str) -> bool:
        return is_hidden(suggestion_key, self.actions(user_id), self._clock())
