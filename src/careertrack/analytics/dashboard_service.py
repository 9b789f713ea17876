from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from careertrack.analytics.analytics_schema import ApplicationAnalytics
from careertrack.analytics.analytics_service import AnalyticsService
from careertrack.analytics.insight_schema import CareerInsight
from careertrack.analytics.insight_service import InsightService, select_for_display
from careertrack.analytics.progress_service import WeeklyProgress, build_weekly_progress
from careertrack.analytics.suggestion_schema import SmartSuggestion
from careertrack.analytics.suggestion_service import SuggestionActionService, SuggestionService, filter_suggestions
from careertrack.config import Settings, get_settings
from careertrack.core.errors import require_user
from careertrack.core.models import _utc_now
from careertrack.storage.repositories import ApplicationRepository, FollowUpRepository
from careertrack.tracker.event_log_service import EventLogService

log = logging.getLogger("analytics")


class DashboardService:
    """
    Description: Read-side facade. Every call replays the event log from scratch
    and derives analytics, insights and suggestions from it.
    Layer: L9
    Input: user_id
    Output: ApplicationAnalytics / CareerInsight list / filtered SmartSuggestion list / WeeklyProgress
    """

    def __init__(
        self,
        *,
        applications: ApplicationRepository,
        events: EventLogService,
        follow_ups: FollowUpRepository,
        actions: SuggestionActionService,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._apps = applications
        self._events = events
        self._follow_ups = follow_ups
        self._actions = actions
        self._settings = settings or get_settings()
        self._clock = clock
        self._analytics = AnalyticsService()
        self._insights = InsightService()
        self._suggestions = SuggestionService(self._settings)

    def analytics(self, user_id: Optional[str]) -> ApplicationAnalytics:
        uid = require_user(user_id)
        return self._analytics.build(events=self._events.replay(uid), now=self._clock())

    def insights(self, user_id: Optional[str], *, for_display: bool = False) -> List[CareerInsight]:
        insights = self._insights.generate(self.analytics(user_id))
        return select_for_display(insights) if for_display else insights

    def suggestions(self, user_id: Optional[str]) -> List[SmartSuggestion]:
        uid = require_user(user_id)
        now = self._clock()
        analytics = self._analytics.build(events=self._events.replay(uid), now=now)
        generated = self._suggestions.generate(
            applications=self._apps.list(uid),
            platform_metrics=analytics.platform_metrics,
            role_metrics=analytics.role_metrics,
            now=now,
        )
        visible = filter_suggestions(generated, self._actions.actions(uid), now)
        log.debug("Suggestions for %s: %d generated, %d visible", uid, len(generated), len(visible))
        return visible

    def weekly_progress(self, user_id: Optional[str]) -> WeeklyProgress:
        uid = require_user(user_id)
        return build_weekly_progress(
            applications=self._apps.list(uid),
            events=[e.event for e in self._events.replay(uid)],
            follow_ups=self._follow_ups.list_follow_ups(uid),
            now=self._clock(),
        )
