"""
In-memory report store.

Used when USE_MOCK_DB is set and throughout the test suite. A single lock
serializes writers, which gives the same per-record atomicity the
Firestore store gets from transactions. Records are kept as plain dicts,
the way Firestore documents are, and converted to models on the way out.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4
import threading
import logging

from civic_tracker.core.errors import (
    AlreadyRatedError,
    ConcurrentModificationError,
    NotFoundError,
    StoreFailureError,
)
from civic_tracker.models.report import Report, ReportStatus, ReportUpdate
from civic_tracker.models.user import Profile
from civic_tracker.services.report_filter import DESCENDING, QueryPlan
from .base import ReportStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryReportStore(ReportStore):
    """Lock-guarded dictionaries standing in for the report, update and profile tables."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = threading.RLock()
        self._reports: Dict[str, Dict] = {}
        self._numbers: Dict[str, str] = {}  # report_number -> report id
        self._updates: Dict[str, List[Dict]] = {}
        self._profiles: Dict[str, Dict] = {}
        self._counters: Dict[str, int] = {}
        self._last_stamp: Optional[datetime] = None

    def _now(self) -> datetime:
        # Never hand out a timestamp earlier than one already issued
        now = self._clock()
        if self._last_stamp is not None and now < self._last_stamp:
            now = self._last_stamp
        self._last_stamp = now
        return now

    def _require(self, report_id: str) -> Dict:
        record = self._reports.get(report_id)
        if record is None:
            raise NotFoundError(f"Report {report_id} not found", field="report_id")
        return record

    def increment_counter(self, bucket: str) -> int:
        with self._lock:
            value = self._counters.get(bucket, 0) + 1
            self._counters[bucket] = value
            return value

    def create_report(self, data: Dict) -> Report:
        with self._lock:
            number = data["report_number"]
            if number in self._numbers:
                raise StoreFailureError(
                    f"Report number {number} already exists", field="report_number"
                )
            now = self._now()
            record = dict(data)
            record["id"] = record.get("id") or uuid4().hex
            record["created_at"] = now
            record["updated_at"] = now
            self._reports[record["id"]] = record
            self._numbers[number] = record["id"]
            self._updates[record["id"]] = []
            return Report(**record)

    def get_report(self, report_id: str) -> Optional[Report]:
        with self._lock:
            record = self._reports.get(report_id)
            return Report(**record) if record else None

    def get_report_by_number(self, report_number: str) -> Optional[Report]:
        with self._lock:
            report_id = self._numbers.get(report_number)
            return self.get_report(report_id) if report_id else None

    def apply_transition(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_status: ReportStatus,
        history_entry: Dict
    ) -> Report:
        with self._lock:
            record = self._require(report_id)
            if record["status"] != ReportStatus(expected_status).value:
                raise ConcurrentModificationError(
                    f"Report {report_id} changed from {ReportStatus(expected_status).value} "
                    f"to {record['status']} concurrently",
                    field="status",
                )
            now = self._now()
            update = dict(history_entry, id=uuid4().hex, report_id=report_id, created_at=now)
            # Build both rows before touching state so a failure leaves nothing behind
            ReportUpdate(**update)
            record["status"] = ReportStatus(new_status).value
            record["updated_at"] = now
            self._updates[report_id].append(update)
            return Report(**record)

    def apply_rating(self, report_id: str, rating: int, feedback: Optional[str]) -> Report:
        with self._lock:
            record = self._require(report_id)
            if record.get("citizen_rating") is not None:
                raise AlreadyRatedError(report_id)
            record["citizen_rating"] = rating
            record["citizen_feedback"] = feedback
            record["updated_at"] = self._now()
            return Report(**record)

    def update_report_fields(self, report_id: str, fields: Dict) -> Report:
        with self._lock:
            record = self._require(report_id)
            record.update(fields)
            record["updated_at"] = self._now()
            return Report(**record)

    def query_reports(self, plan: QueryPlan, limit: Optional[int] = None) -> List[Report]:
        with self._lock:
            rows = [dict(record) for record in self._reports.values()]

        for field, op, value in plan.filters:
            if op != "==":
                raise StoreFailureError(f"Unsupported filter operator: {op}")
            rows = [row for row in rows if row.get(field) == value]

        if plan.search:
            rows = [
                row for row in rows
                if any(plan.search in str(row.get(name) or "").lower() for name in plan.search_fields)
            ]

        # Stable multi-key sort: apply keys from least to most significant
        for field, direction in reversed(plan.order_by):
            rows.sort(key=lambda row: row[field], reverse=direction == DESCENDING)

        if limit is not None:
            rows = rows[:limit]
        return [Report(**row) for row in rows]

    def list_updates(self, report_id: str) -> List[ReportUpdate]:
        with self._lock:
            return [ReportUpdate(**row) for row in self._updates.get(report_id, [])]

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._lock:
            record = self._profiles.get(user_id)
            return Profile(**record) if record else None

    def save_profile(self, profile: Profile) -> Profile:
        with self._lock:
            now = self._now()
            record = profile.model_dump()
            existing = self._profiles.get(profile.user_id)
            record["created_at"] = existing["created_at"] if existing else now
            record["updated_at"] = now
            self._profiles[profile.user_id] = record
            return Profile(**record)

    def ping(self) -> Dict:
        with self._lock:
            return {"connected": True, "backend": "memory", "reports": len(self._reports)}
