from __future__ import annotations

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from careertrack.analytics.analytics_schema import (
    ApplicationAnalytics,
    FunnelMetrics,
    OutcomeRate,
    PlatformMetrics,
    RoleMetrics,
    StatusMetrics,
    TimeInStatusMetrics,
    TransitionMetrics,
)
from careertrack.core.models import ApplicationStatus, _utc_now
from careertrack.tracker.event_schema import STATUS_DEFINING_TYPES, CreatedEvent, EnrichedEvent
from careertrack.tracker.status_machine import APPLICATION_STATUSES, is_terminal

S = ApplicationStatus

FUNNEL_STAGES: Tuple[ApplicationStatus, ...] = (S.APPLIED, S.OA, S.INTERVIEW, S.OFFER, S.ACCEPTED)

# "Reached stage X" means the application reached X or any later funnel stage.
# Rejected is not a funnel stage, so it never counts towards OA/Interview/Offer.
_REACHED_AT_LEAST: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    stage: frozenset(FUNNEL_STAGES[i:]) for i, stage in enumerate(FUNNEL_STAGES)
}

DEFAULT_BUCKET = "Other"
_SECONDS_PER_DAY = 86400.0


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half-up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _days_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / _SECONDS_PER_DAY)


@dataclass
class _AppAccumulator:
    platform: Optional[str]
    role: Optional[str]
    reached: Set[ApplicationStatus] = field(default_factory=set)
    # (entered_at, status) for each status-defining event, oldest first
    stages: List[Tuple[datetime, ApplicationStatus]] = field(default_factory=list)
    created_at: Optional[datetime] = None
    first_change_at: Optional[datetime] = None

    def has_reached(self, stage: ApplicationStatus) -> bool:
        return bool(self.reached & _REACHED_AT_LEAST[stage])


@dataclass
class _GroupCounter:
    total: int = 0
    reached_interview: int = 0
    reached_offer: int = 0
    accepted: int = 0

    def add(self, acc: _AppAccumulator) -> None:
        self.total += 1
        if acc.has_reached(S.INTERVIEW):
            self.reached_interview += 1
        if acc.has_reached(S.OFFER):
            self.reached_offer += 1
        if S.ACCEPTED in acc.reached:
            self.accepted += 1


def empty_analytics() -> ApplicationAnalytics:
    """Well-defined zero value: every status and funnel stage present with zero counts."""
    return ApplicationAnalytics(
        status_counts=[StatusMetrics(status=s) for s in APPLICATION_STATUSES],
        conversion_funnel=[
            FunnelMetrics(stage=stage, count=0, percentage=100 if stage == S.APPLIED else 0)
            for stage in FUNNEL_STAGES
        ],
    )


class AnalyticsService:
    """
    Description: Replays a user's full event stream into funnel, outcome,
    platform, role and time-in-status metrics. No caching; every call starts
    from scratch.
    Layer: L9
    Input: enriched events (any order; sorted by time then insertion order)
    Output: ApplicationAnalytics
    """

    def build(self, *, events: Iterable[EnrichedEvent], now: Optional[datetime] = None) -> ApplicationAnalytics:
        now = now or _utc_now()
        ordered = sorted(events, key=lambda e: (e.event.created_at, e.event.seq or 0))
        if not ordered:
            return empty_analytics()

        status_entries: Dict[ApplicationStatus, int] = {}
        transitions: "OrderedDict[Tuple[ApplicationStatus, ApplicationStatus], int]" = OrderedDict()
        apps: "OrderedDict[str, _AppAccumulator]" = OrderedDict()

        for enriched in ordered:
            ev = enriched.event
            if ev.event_type not in STATUS_DEFINING_TYPES:
                continue

            acc = apps.get(ev.application_id)
            if acc is None:
                acc = _AppAccumulator(platform=enriched.platform, role=enriched.role)
                apps[ev.application_id] = acc

            if isinstance(ev, CreatedEvent):
                acc.reached.add(S.APPLIED)
                acc.reached.add(ev.initial_status)
                acc.stages.append((ev.created_at, ev.initial_status))
                if acc.created_at is None:
                    acc.created_at = ev.created_at
            else:
                status_entries[ev.new_status] = status_entries.get(ev.new_status, 0) + 1
                if ev.old_status is not None:
                    key = (ev.old_status, ev.new_status)
                    transitions[key] = transitions.get(key, 0) + 1
                acc.reached.add(ev.new_status)
                acc.stages.append((ev.created_at, ev.new_status))
                if acc.created_at is not None and acc.first_change_at is None:
                    acc.first_change_at = ev.created_at

        accs = list(apps.values())
        total_apps = len(accs)
        response_rate, avg_time_to_response = self._response_metrics(accs)

        return ApplicationAnalytics(
            total_events=len(ordered),
            total_applications=total_apps,
            status_counts=self._status_counts(status_entries),
            transition_counts=[
                TransitionMetrics(from_status=a, to_status=b, count=n) for (a, b), n in transitions.items()
            ],
            outcome_rate=self._outcome_rate(accs),
            conversion_funnel=self._funnel(accs),
            platform_metrics=self._platform_metrics(accs),
            role_metrics=self._role_metrics(accs),
            time_in_status=self._time_in_status(accs, now),
            response_rate=response_rate,
            avg_time_to_response=avg_time_to_response,
        )

    @staticmethod
    def _status_counts(entries: Dict[ApplicationStatus, int]) -> List[StatusMetrics]:
        total = sum(entries.values())
        return [
            StatusMetrics(status=s, count=entries.get(s, 0), percentage=percent(entries.get(s, 0), total))
            for s in APPLICATION_STATUSES
        ]

    @staticmethod
    def _outcome_rate(accs: List[_AppAccumulator]) -> OutcomeRate:
        accepted = sum(1 for a in accs if S.ACCEPTED in a.reached)
        rejected = sum(1 for a in accs if S.ACCEPTED not in a.reached and S.REJECTED in a.reached)
        pending = len(accs) - accepted - rejected
        total = len(accs)
        return OutcomeRate(
            accepted=percent(accepted, total),
            rejected=percent(rejected, total),
            pending=percent(pending, total),
            accepted_count=accepted,
            rejected_count=rejected,
            pending_count=pending,
        )

    @staticmethod
    def _funnel(accs: List[_AppAccumulator]) -> List[FunnelMetrics]:
        applied = len(accs)
        funnel: List[FunnelMetrics] = []
        for stage in FUNNEL_STAGES:
            if stage == S.APPLIED:
                funnel.append(FunnelMetrics(stage=stage, count=applied, percentage=100))
                continue
            count = sum(1 for a in accs if a.has_reached(stage))
            funnel.append(FunnelMetrics(stage=stage, count=count, percentage=percent(count, applied)))
        return funnel

    @staticmethod
    def _group(accs: List[_AppAccumulator], attr: str) -> "OrderedDict[str, _GroupCounter]":
        groups: "OrderedDict[str, _GroupCounter]" = OrderedDict()
        for acc in accs:
            name = getattr(acc, attr) or DEFAULT_BUCKET
            groups.setdefault(name, _GroupCounter()).add(acc)
        # Stable: ties keep first-seen order.
        return OrderedDict(sorted(groups.items(), key=lambda kv: -kv[1].total))

    def _platform_metrics(self, accs: List[_AppAccumulator]) -> List[PlatformMetrics]:
        return [
            PlatformMetrics(
                platform=name,
                total=g.total,
                reached_interview=g.reached_interview,
                reached_offer=g.reached_offer,
                interview_rate=percent(g.reached_interview, g.total),
                offer_rate=percent(g.reached_offer, g.total),
            )
            for name, g in self._group(accs, "platform").items()
        ]

    def _role_metrics(self, accs: List[_AppAccumulator]) -> List[RoleMetrics]:
        return [
            RoleMetrics(
                role=name,
                total=g.total,
                reached_interview=g.reached_interview,
                reached_offer=g.reached_offer,
                accepted=g.accepted,
                interview_rate=percent(g.reached_interview, g.total),
                conversion_rate=percent(g.accepted, g.total),
            )
            for name, g in self._group(accs, "role").items()
        ]

    @staticmethod
    def _time_in_status(accs: List[_AppAccumulator], now: datetime) -> List[TimeInStatusMetrics]:
        """
        Description: A status is entered at its defining event and exited at the
        next one; the current status runs until `now` unless it is terminal.
        Layer: L9
        Input: per-application stage history + now
        Output: avg/min/max days per status with at least one duration
        """
        durations: Dict[ApplicationStatus, List[float]] = {}
        for acc in accs:
            for i, (entered, status) in enumerate(acc.stages):
                if i + 1 < len(acc.stages):
                    exited: Optional[datetime] = acc.stages[i + 1][0]
                elif not is_terminal(status):
                    exited = now
                else:
                    exited = None
                if exited is not None:
                    durations.setdefault(status, []).append(_days_between(entered, exited))

        out: List[TimeInStatusMetrics] = []
        for status in APPLICATION_STATUSES:
            values = durations.get(status)
            if not values:
                continue
            out.append(
                TimeInStatusMetrics(
                    status=status,
                    avg_days=round(sum(values) / len(values), 1),
                    min_days=round(min(values), 1),
                    max_days=round(max(values), 1),
                    count=len(values),
                )
            )
        return out

    @staticmethod
    def _response_metrics(accs: List[_AppAccumulator]) -> Tuple[int, int]:
        responded = sum(1 for a in accs if a.reached - {S.APPLIED})
        waits = [
            _days_between(a.created_at, a.first_change_at)
            for a in accs
            if a.created_at is not None and a.first_change_at is not None
        ]
        avg_wait = round_half_up(sum(waits) / len(waits)) if waits else 0
        return percent(responded, len(accs)), avg_wait


def build_analytics(events: Iterable[EnrichedEvent], now: Optional[datetime] = None) -> ApplicationAnalytics:
    return AnalyticsService().build(events=events, now=now)
