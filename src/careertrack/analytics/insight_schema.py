from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

InsightType = Literal["positive", "warning", "insight"]
InsightCategory = Literal["platform", "role", "timeline", "conversion", "general"]


class CareerInsight(BaseModel):
    """
    Description: One rule-derived observation about a user's search.
    Layer: L9
    Input: produced by InsightService from ApplicationAnalytics
    Output: stable id + type/category + human message + short display value
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    type: InsightType
    category: InsightCategory
    message: str
    value: Optional[str] = None
