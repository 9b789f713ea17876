from __future__ import annotations

from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from careertrack.core.models import Application, ApplicationStatus


class ApplicationFilters(BaseModel):
    """
    Description: List view filter state.
    Layer: L1
    Input: search text + status/platform selection + sort order
    Output: criteria for filter_applications
    """

    model_config = ConfigDict(extra="forbid")

    search: str = ""
    status: Optional[ApplicationStatus] = None
    platform: Optional[str] = None
    sort_order: Literal["newest", "oldest"] = "newest"


def unique_platforms(applications: Iterable[Application]) -> List[str]:
    return sorted({a.platform for a in applications if a.platform})


def filter_applications(applications: Iterable[Application], filters: ApplicationFilters) -> List[Application]:
    """Case-insensitive search over company/role/platform, then status/platform filters, sorted by applied date."""
    result = list(applications)

    needle = filters.search.strip().lower()
    if needle:
        result = [
            a
            for a in result
            if needle in a.company.lower()
            or needle in a.role.lower()
            or (a.platform is not None and needle in a.platform.lower())
        ]

    if filters.status is not None:
        result = [a for a in result if a.status == filters.status]

    if filters.platform is not None:
        result = [a for a in result if a.platform == filters.platform]

    result.sort(key=lambda a: a.applied_date, reverse=filters.sort_order == "newest")
    return result
