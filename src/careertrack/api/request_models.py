from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from careertrack.core.models import ApplicationStatus


class TransitionRequest(BaseModel):
    """
    Description: Request model for POST /applications/{id}/transition.
    Layer: L8
    Input: raw target status text (unknown values are reported as unknown_target)
    Output: normalized transition request
    """

    model_config = ConfigDict(extra="forbid")

    status: str


class NoteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str


class FollowUpRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note: Optional[str] = None
    next_follow_up_date: Optional[date] = None


class SnoozeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    days: Optional[int] = Field(default=None, gt=0)


class NextStatusesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: ApplicationStatus
    terminal: bool
    next_statuses: List[ApplicationStatus]


class OkResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ok: bool = True
    message: str = ""
