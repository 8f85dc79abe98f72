"""
Report filter/query engine.

One declarative criteria object drives both the citizen "my reports" view
and the staff dashboards. It can be evaluated over reports already in
memory (``evaluate``) or turned into a push-down plan that a store executes
(``build_query_plan``). Both paths must return the same reports in the
same order.
"""

from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from civic_tracker.models.report import PriorityLevel, Report, ReportCategory, ReportStatus

SEARCH_FIELDS: Tuple[str, ...] = ("title", "report_number", "location_text")

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    RECENTLY_UPDATED = "recently_updated"


# Timestamp field and direction per order; report_number breaks ties
_SORT_KEYS = {
    SortOrder.NEWEST: ("created_at", DESCENDING),
    SortOrder.OLDEST: ("created_at", ASCENDING),
    SortOrder.RECENTLY_UPDATED: ("updated_at", DESCENDING),
}


class ReportCriteria(BaseModel):
    """
    Conjunction of optional predicates.

    ``"all"`` or an empty value for status/category/priority means
    no constraint, as does an empty search string.
    """
    status: Optional[ReportStatus] = None
    category: Optional[ReportCategory] = None
    priority: Optional[PriorityLevel] = None
    owner_id: Optional[str] = None
    search: str = ""
    sort: SortOrder = SortOrder.NEWEST

    @field_validator("status", "category", "priority", mode="before")
    @classmethod
    def _all_means_unconstrained(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("", "all"):
            return None
        return value

    @field_validator("search", mode="before")
    @classmethod
    def _normalize_search(cls, value):
        return (value or "").strip()

    @field_validator("owner_id", mode="before")
    @classmethod
    def _blank_owner_is_none(cls, value):
        return value or None


class QueryPlan(BaseModel):
    """Store-executable form of a ReportCriteria."""
    filters: List[Tuple[str, str, Any]] = Field(default_factory=list)
    search: str = ""
    search_fields: Tuple[str, ...] = SEARCH_FIELDS
    order_by: List[Tuple[str, str]] = Field(default_factory=list)


def build_query_plan(criteria: ReportCriteria) -> QueryPlan:
    filters = []
    if criteria.status is not None:
        filters.append(("status", "==", criteria.status.value))
    if criteria.category is not None:
        filters.append(("category", "==", criteria.category.value))
    if criteria.priority is not None:
        filters.append(("priority", "==", criteria.priority.value))
    if criteria.owner_id is not None:
        filters.append(("owner_id", "==", criteria.owner_id))

    field, direction = _SORT_KEYS[criteria.sort]
    return QueryPlan(
        filters=filters,
        search=criteria.search.lower(),
        order_by=[(field, direction), ("report_number", direction)],
    )


def matches_search(report: Report, search: str) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in (getattr(report, name) or "").lower() for name in SEARCH_FIELDS)


def matches(report: Report, criteria: ReportCriteria) -> bool:
    if criteria.status is not None and report.status != criteria.status:
        return False
    if criteria.category is not None and report.category != criteria.category:
        return False
    if criteria.priority is not None and report.priority != criteria.priority:
        return False
    if criteria.owner_id is not None and report.owner_id != criteria.owner_id:
        return False
    return matches_search(report, criteria.search)


def sort_reports(reports: Iterable[Report], sort: SortOrder = SortOrder.NEWEST) -> List[Report]:
    field, direction = _SORT_KEYS[sort]
    return sorted(
        reports,
        key=lambda report: (getattr(report, field), report.report_number),
        reverse=direction == DESCENDING,
    )


def evaluate(reports: Iterable[Report], criteria: ReportCriteria) -> List[Report]:
    """Filter and order ``reports`` in memory."""
    return sort_reports((r for r in reports if matches(r, criteria)), criteria.sort)
