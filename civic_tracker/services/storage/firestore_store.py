"""
Firestore-backed report store.

Collections:
- reports          one document per report (auto ID)
- report_numbers   guard documents keyed by report number (uniqueness)
- report_updates   append-only history rows, report_id foreign key
- report_counters  one counter document per report-number bucket
- profiles         keyed by user ID

Multi-document writes run inside Firestore transactions, so a status change
and its history row commit together or not at all.
"""

from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Type
import logging

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from civic_tracker.core.errors import (
    AlreadyRatedError,
    CivicTrackerError,
    ConcurrentModificationError,
    NotFoundError,
    StoreFailureError,
)
from civic_tracker.models.report import Report, ReportStatus, ReportUpdate
from civic_tracker.models.user import Profile
from civic_tracker.services.report_filter import DESCENDING, QueryPlan
from civic_tracker.utils.firestore_helpers import snapshot_to_dict, where_filter
from .base import ReportStore

logger = logging.getLogger(__name__)

REPORTS = "reports"
REPORT_NUMBERS = "report_numbers"
REPORT_UPDATES = "report_updates"
REPORT_COUNTERS = "report_counters"
PROFILES = "profiles"

# Start of the ValueError firestore.transactional raises once every commit
# attempt was aborted by contention
COMMIT_RETRIES_EXHAUSTED = "Failed to commit transaction"


@contextmanager
def _store_call(action: str):
    """Translate Firestore client failures into StoreFailureError."""
    try:
        yield
    except google_exceptions.GoogleAPIError as e:
        logger.error(f"Firestore {action} failed: {e}", exc_info=True)
        raise StoreFailureError(f"Store failure during {action}: {e}") from e


class FirestoreReportStore(ReportStore):

    def __init__(self, db):
        self.db = db

    def _report_ref(self, report_id: str):
        return self.db.collection(REPORTS).document(report_id)

    def _read_report(self, report_id: str) -> Report:
        snapshot = self._report_ref(report_id).get()
        if not snapshot.exists:
            raise NotFoundError(f"Report {report_id} not found", field="report_id")
        return Report(**snapshot_to_dict(snapshot))

    def _run_transaction(
        self,
        action: str,
        body: Callable,
        contention_error: Type[CivicTrackerError]
    ):
        """
        Run ``body(transaction)`` with Firestore's retry-on-abort loop.

        When every attempt is aborted, ``contention_error`` is raised
        instead of the SDK's ValueError.
        """
        with _store_call(action):
            try:
                return firestore.transactional(body)(self.db.transaction())
            except ValueError as e:
                if not str(e).startswith(COMMIT_RETRIES_EXHAUSTED):
                    raise
                logger.warning(f"Firestore {action} gave up under contention: {e}")
                raise contention_error(f"Contention during {action}, retry the request") from e

    def increment_counter(self, bucket: str) -> int:
        counter_ref = self.db.collection(REPORT_COUNTERS).document(bucket)

        def _increment(transaction):
            snapshot = counter_ref.get(transaction=transaction)
            value = (snapshot.to_dict() or {}).get("value", 0) + 1
            transaction.set(counter_ref, {"value": value, "updated_at": firestore.SERVER_TIMESTAMP})
            return value

        return self._run_transaction("counter increment", _increment, StoreFailureError)

    def create_report(self, data: Dict) -> Report:
        report_ref = self.db.collection(REPORTS).document()
        guard_ref = self.db.collection(REPORT_NUMBERS).document(data["report_number"])

        payload = dict(data)
        payload["id"] = report_ref.id
        payload["created_at"] = firestore.SERVER_TIMESTAMP
        payload["updated_at"] = firestore.SERVER_TIMESTAMP

        def _create(transaction):
            if guard_ref.get(transaction=transaction).exists:
                raise StoreFailureError(
                    f"Report number {data['report_number']} already exists",
                    field="report_number",
                )
            transaction.create(guard_ref, {"report_id": report_ref.id})
            transaction.create(report_ref, payload)

        self._run_transaction("report creation", _create, StoreFailureError)
        logger.info(f"Report saved to Firestore: {report_ref.id} ({data['report_number']})")
        with _store_call("report read"):
            return self._read_report(report_ref.id)

    def get_report(self, report_id: str) -> Optional[Report]:
        with _store_call("report read"):
            snapshot = self._report_ref(report_id).get()
        if not snapshot.exists:
            return None
        return Report(**snapshot_to_dict(snapshot))

    def get_report_by_number(self, report_number: str) -> Optional[Report]:
        with _store_call("report number lookup"):
            query = where_filter(self.db.collection(REPORTS), "report_number", "==", report_number)
            docs = list(query.limit(1).stream())
        if not docs:
            return None
        return Report(**snapshot_to_dict(docs[0]))

    def apply_transition(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_status: ReportStatus,
        history_entry: Dict
    ) -> Report:
        report_ref = self._report_ref(report_id)
        update_ref = self.db.collection(REPORT_UPDATES).document()
        expected = ReportStatus(expected_status).value
        target = ReportStatus(new_status).value

        def _transition(transaction):
            snapshot = report_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"Report {report_id} not found", field="report_id")
            current = snapshot.get("status")
            if current != expected:
                raise ConcurrentModificationError(
                    f"Report {report_id} changed from {expected} to {current} concurrently",
                    field="status",
                )
            transaction.update(report_ref, {
                "status": target,
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            transaction.set(update_ref, dict(
                history_entry,
                id=update_ref.id,
                report_id=report_id,
                created_at=firestore.SERVER_TIMESTAMP,
            ))

        self._run_transaction("status transition", _transition, ConcurrentModificationError)
        with _store_call("report read"):
            return self._read_report(report_id)

    def apply_rating(self, report_id: str, rating: int, feedback: Optional[str]) -> Report:
        report_ref = self._report_ref(report_id)

        def _rate(transaction):
            snapshot = report_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"Report {report_id} not found", field="report_id")
            if (snapshot.to_dict() or {}).get("citizen_rating") is not None:
                raise AlreadyRatedError(report_id)
            transaction.update(report_ref, {
                "citizen_rating": rating,
                "citizen_feedback": feedback,
                "updated_at": firestore.SERVER_TIMESTAMP,
            })

        self._run_transaction("rating", _rate, ConcurrentModificationError)
        with _store_call("report read"):
            return self._read_report(report_id)

    def update_report_fields(self, report_id: str, fields: Dict) -> Report:
        report_ref = self._report_ref(report_id)

        def _update(transaction):
            if not report_ref.get(transaction=transaction).exists:
                raise NotFoundError(f"Report {report_id} not found", field="report_id")
            transaction.update(report_ref, dict(fields, updated_at=firestore.SERVER_TIMESTAMP))

        self._run_transaction("report update", _update, ConcurrentModificationError)
        with _store_call("report read"):
            return self._read_report(report_id)

    def query_reports(self, plan: QueryPlan, limit: Optional[int] = None) -> List[Report]:
        query = self.db.collection(REPORTS)
        for field, op, value in plan.filters:
            query = where_filter(query, field, op, value)
        for field, direction in plan.order_by:
            query = query.order_by(
                field,
                direction=firestore.Query.DESCENDING if direction == DESCENDING else firestore.Query.ASCENDING,
            )
        # Firestore has no substring match; free text is applied after streaming
        if limit is not None and not plan.search:
            query = query.limit(limit)

        with _store_call("report query"):
            docs = query.stream()
            reports = []
            for doc in docs:
                data = snapshot_to_dict(doc)
                if plan.search and not any(
                    plan.search in str(data.get(name) or "").lower() for name in plan.search_fields
                ):
                    continue
                reports.append(Report(**data))
                if limit is not None and len(reports) >= limit:
                    break
        return reports

    def list_updates(self, report_id: str) -> List[ReportUpdate]:
        query = where_filter(self.db.collection(REPORT_UPDATES), "report_id", "==", report_id)
        query = query.order_by("created_at", direction=firestore.Query.ASCENDING)
        with _store_call("history read"):
            return [ReportUpdate(**snapshot_to_dict(doc)) for doc in query.stream()]

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with _store_call("profile read"):
            snapshot = self.db.collection(PROFILES).document(user_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict()
        data["user_id"] = snapshot.id
        return Profile(**data)

    def save_profile(self, profile: Profile) -> Profile:
        profile_ref = self.db.collection(PROFILES).document(profile.user_id)
        payload = profile.model_dump(mode="json", exclude={"created_at", "updated_at"})
        payload["updated_at"] = firestore.SERVER_TIMESTAMP

        def _save(transaction):
            data = dict(payload)
            # created_at is stamped once, by whichever writer creates the document
            if not profile_ref.get(transaction=transaction).exists:
                data["created_at"] = firestore.SERVER_TIMESTAMP
            transaction.set(profile_ref, data, merge=True)

        self._run_transaction("profile write", _save, StoreFailureError)
        return self.get_profile(profile.user_id)

    def ping(self) -> Dict:
        with _store_call("health check"):
            collections = list(self.db.collections())
        return {"connected": True, "backend": "firestore", "collections_count": len(collections)}
