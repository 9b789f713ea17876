from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from careertrack.core.models import Application, ApplicationStatus, FollowUp, _utc_now
from careertrack.tracker.event_schema import ApplicationEvent, StatusChangeEvent

WINDOW_DAYS = 7


class WeeklyProgress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    applications_added: int = 0
    status_changes: int = 0
    interviews_scheduled: int = 0
    follow_ups_sent: int = 0
    upcoming_deadlines: int = 0


def build_weekly_progress(
    *,
    applications: Iterable[Application],
    events: Iterable[ApplicationEvent],
    follow_ups: Iterable[FollowUp],
    now: Optional[datetime] = None,
) -> WeeklyProgress:
    """
    Description: Activity counters for the trailing week plus deadlines coming up.
    Layer: L9
    Input: a user's applications, events, follow-ups
    Output: WeeklyProgress (window starts at midnight UTC seven days ago)
    """
    now = now or _utc_now()
    since = datetime.combine((now - timedelta(days=WINDOW_DAYS)).date(), time.min, tzinfo=timezone.utc)
    today = now.date()
    horizon = today + timedelta(days=WINDOW_DAYS)

    apps = list(applications)
    recent_changes = [e for e in events if isinstance(e, StatusChangeEvent) and e.created_at >= since]

    return WeeklyProgress(
        applications_added=sum(1 for a in apps if a.created_at >= since),
        status_changes=len(recent_changes),
        interviews_scheduled=sum(1 for e in recent_changes if e.new_status == ApplicationStatus.INTERVIEW),
        follow_ups_sent=sum(1 for f in follow_ups if f.followed_up_at >= since),
        upcoming_deadlines=sum(
            1
            for a in apps
            if a.reminder_enabled and a.deadline_date is not None and today <= a.deadline_date <= horizon
        ),
    )
