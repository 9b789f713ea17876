from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from careertrack.core.models import ApplicationStatus


class StatusMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ApplicationStatus
    count: int = 0
    percentage: int = 0


class TransitionMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    from_status: ApplicationStatus
    to_status: ApplicationStatus
    count: int


class FunnelMetrics(BaseModel):
    """One funnel stage: applications that ever reached this stage or a later one."""

    model_config = ConfigDict(extra="forbid")

    stage: ApplicationStatus
    count: int = 0
    percentage: int = 0


class OutcomeRate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    accepted: int = 0
    rejected: int = 0
    pending: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    pending_count: int = 0


class PlatformMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    platform: str
    total: int = 0
    reached_interview: int = 0
    reached_offer: int = 0
    interview_rate: int = 0
    offer_rate: int = 0


class RoleMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: str
    total: int = 0
    reached_interview: int = 0
    reached_offer: int = 0
    accepted: int = 0
    interview_rate: int = 0
    conversion_rate: int = 0


class TimeInStatusMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ApplicationStatus
    avg_days: float
    min_days: float
    max_days: float
    count: int


class ApplicationAnalytics(BaseModel):
    """
    Description: Analytics snapshot derived by replaying a user's event log.
    Layer: L9
    Input: enriched event stream
    Output: funnel / outcome / platform / role / timing metrics
    """

    model_config = ConfigDict(extra="forbid")

    total_events: int = 0
    total_applications: int = 0
    status_counts: List[StatusMetrics] = Field(default_factory=list)
    transition_counts: List[TransitionMetrics] = Field(default_factory=list)
    outcome_rate: OutcomeRate = Field(default_factory=OutcomeRate)
    conversion_funnel: List[FunnelMetrics] = Field(default_factory=list)
    platform_metrics: List[PlatformMetrics] = Field(default_factory=list)
    role_metrics: List[RoleMetrics] = Field(default_factory=list)
    time_in_status: List[TimeInStatusMetrics] = Field(default_factory=list)
    response_rate: int = 0
    avg_time_to_response: int = 0
