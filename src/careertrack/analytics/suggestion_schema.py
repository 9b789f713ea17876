from __future__ import annotations

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict

SuggestionType = Literal["follow_up", "platform_insight", "role_insight", "deadline", "stale"]
SuggestionPriority = Literal["high", "medium", "low"]

PRIORITY_ORDER: Dict[str, int] = {"high": 0, "medium": 1, "low": 2}
TYPE_ORDER: Dict[str, int] = {
    "deadline": 0,
    "follow_up": 1,
    "stale": 2,
    "platform_insight": 3,
    "role_insight": 4,
}


class SmartSuggestion(BaseModel):
    """
    Description: Actionable nudge regenerated on every request.
    Layer: L9
    Input: produced by SuggestionService
    Output: `key` is deterministic so dismiss/snooze actions survive regeneration
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str
    type: SuggestionType
    priority: SuggestionPriority
    message: str
    application_id: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    created_at: datetime
