from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

from civic_tracker.models.report import Report, ReportStatus, ReportUpdate
from civic_tracker.models.user import Profile
from civic_tracker.services.report_filter import QueryPlan

logger = logging.getLogger(__name__)


class ReportStore(ABC):
    """
    Persistent store for reports, their history and profiles.

    Contract:
    - Every write method is atomic: readers never observe half of it.
    - ``increment_counter`` is linearizable across processes.
    - ``apply_transition`` compares the stored status with
      ``expected_status`` and raises ConcurrentModificationError on mismatch.
    - ``apply_rating`` raises AlreadyRatedError if a rating already exists.
    - Missing reports raise NotFoundError from write methods; reads return None.
    - Connectivity or constraint failures raise StoreFailureError.
    - created_at/updated_at are stamped by the store.
    """

    @abstractmethod
    def increment_counter(self, bucket: str) -> int:
        """Atomically increment and return the counter for ``bucket`` (first value 1)."""
        raise NotImplementedError

    @abstractmethod
    def create_report(self, data: Dict) -> Report:
        """Insert a report. ``data`` carries every field except timestamps."""
        raise NotImplementedError

    @abstractmethod
    def get_report(self, report_id: str) -> Optional[Report]:
        raise NotImplementedError

    @abstractmethod
    def get_report_by_number(self, report_number: str) -> Optional[Report]:
        raise NotImplementedError

    @abstractmethod
    def apply_transition(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_status: ReportStatus,
        history_entry: Dict
    ) -> Report:
        """Set status/updated_at and append one history row, as one unit."""
        raise NotImplementedError

    @abstractmethod
    def apply_rating(self, report_id: str, rating: int, feedback: Optional[str]) -> Report:
        raise NotImplementedError

    @abstractmethod
    def update_report_fields(self, report_id: str, fields: Dict) -> Report:
        """Update staff-managed fields (priority, assignment) and updated_at."""
        raise NotImplementedError

    @abstractmethod
    def query_reports(self, plan: QueryPlan, limit: Optional[int] = None) -> List[Report]:
        raise NotImplementedError

    @abstractmethod
    def list_updates(self, report_id: str) -> List[ReportUpdate]:
        """History rows for a report, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Profile]:
        raise NotImplementedError

    @abstractmethod
    def save_profile(self, profile: Profile) -> Profile:
        raise NotImplementedError

    def ping(self) -> Dict:
        """Lightweight connectivity check used by /health/db."""
        return {"connected": True}
