"""
Report service - Business logic for the civic report lifecycle.

DESIGN NOTE:
- Every request is validated (identity, capability, transition, rating
  preconditions) before anything is written
- Status change + history row are one store transaction
- Citizens only ever see their own reports
- Audit events are published after commit and never block the caller
"""

from typing import List, Optional
import logging

from civic_tracker.core.errors import InvalidInputError, NotFoundError, NotYetResolvableError, AlreadyRatedError
from civic_tracker.core.settings import settings
from civic_tracker.models.report import (
    PriorityLevel,
    Report,
    ReportCreate,
    ReportStats,
    ReportStatus,
    ReportUpdate,
)
from civic_tracker.models.user import Profile
from civic_tracker.services.audit import AuditSink, StatusChangeEvent, get_audit_sink, publish_safely
from civic_tracker.services.capabilities import (
    Capability,
    is_staff,
    require_authenticated,
    require_capability,
)
from civic_tracker.services.identifier_generator import ReportNumberGenerator
from civic_tracker.services.report_filter import ReportCriteria, build_query_plan
from civic_tracker.services.status_workflow import StatusWorkflowEngine
from civic_tracker.services.storage import ReportStore, get_report_store

logger = logging.getLogger(__name__)


class ReportService:
    """
    Entry point for every report operation, citizen or staff.
    """

    def __init__(
        self,
        store: ReportStore,
        number_generator: ReportNumberGenerator,
        audit_sink: AuditSink,
        list_limit: Optional[int] = None
    ):
        self.store = store
        self.number_generator = number_generator
        self.audit_sink = audit_sink
        self.list_limit = list_limit
        self.workflow = StatusWorkflowEngine()

    @staticmethod
    def _scope_to_caller(criteria: ReportCriteria, caller: Optional[Profile]) -> ReportCriteria:
        caller = require_authenticated(caller)
        if not is_staff(caller):
            criteria = criteria.model_copy(update={"owner_id": caller.user_id})
        return criteria

    def _load(self, report_id: str) -> Report:
        report = self.store.get_report(report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found", field="report_id")
        return report

    def create_report(self, owner: Optional[Profile], report_data: ReportCreate) -> Report:
        """
        Create a new report owned by ``owner`` in status ``open``.

        The report number is obtained first; if the counter is unavailable
        nothing is written.
        """
        owner = require_authenticated(owner)
        report_number = self.number_generator.next()

        report = self.store.create_report({
            "report_number": report_number,
            "owner_id": owner.user_id,
            "category": report_data.category.value,
            "title": report_data.title,
            "description": report_data.description,
            "location_text": report_data.location_text,
            "priority": report_data.priority.value,
            "status": ReportStatus.OPEN.value,
            "latitude": report_data.latitude,
            "longitude": report_data.longitude,
            "image_urls": list(report_data.image_urls),
            "assigned_department": None,
            "assigned_officer_id": None,
            "citizen_rating": None,
            "citizen_feedback": None,
        })
        logger.info(f"Report created: {report.report_number} ({report.id}) by {owner.user_id}")
        return report

    def get_report(self, report_id: str, caller: Optional[Profile]) -> Report:
        caller = require_authenticated(caller)
        report = self._load(report_id)
        require_capability(caller, report, Capability.VIEW)
        return report

    def get_report_by_number(self, report_number: str, caller: Optional[Profile]) -> Report:
        """Tracking lookup by the number shown to citizens."""
        caller = require_authenticated(caller)
        report = self.store.get_report_by_number(report_number)
        if report is None:
            raise NotFoundError(f"Report {report_number} not found", field="report_number")
        require_capability(caller, report, Capability.VIEW)
        return report

    def transition_status(
        self,
        report_id: str,
        actor: Optional[Profile],
        new_status: ReportStatus,
        message: str,
        internal_notes: Optional[str] = None
    ) -> Report:
        """
        Move a report to its next lifecycle state.

        Raises:
            UnauthenticatedError, NotFoundError, ForbiddenError,
            InvalidInputError, InvalidTransitionError,
            ConcurrentModificationError (retry after re-reading the report)
        """
        actor = require_authenticated(actor)
        report = self._load(report_id)
        require_capability(actor, report, Capability.EDIT_STATUS)

        try:
            new_status = ReportStatus(new_status)
        except ValueError:
            raise InvalidInputError(f"Unknown status: {new_status}", field="status")
        if not (message or "").strip():
            raise InvalidInputError("A status update message is required", field="message")

        self.workflow.validate_transition(report.status, new_status, actor.role)

        history_entry = self.workflow.build_history_entry(
            report_id=report.id,
            new_status=new_status,
            changed_by=actor.user_id,
            message=message.strip(),
            internal_notes=internal_notes,
        )
        updated = self.store.apply_transition(report.id, report.status, new_status, history_entry)

        logger.info(
            f"Report {report.report_number}: {report.status.value} -> {new_status.value} "
            f"by {actor.user_id} ({actor.role.value})"
        )
        publish_safely(self.audit_sink, StatusChangeEvent(
            report_id=updated.id,
            report_number=updated.report_number,
            from_status=report.status,
            to_status=new_status,
            changed_by=actor.user_id,
            message=message.strip(),
            occurred_at=updated.updated_at,
        ))
        return updated

    def rate_report(
        self,
        report_id: str,
        caller: Optional[Profile],
        rating: int,
        feedback: Optional[str] = None
    ) -> Report:
        """Record the owner's one-time satisfaction rating on a resolved report."""
        caller = require_authenticated(caller)
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputError("Rating must be an integer from 1 to 5", field="citizen_rating")

        report = self._load(report_id)
        require_capability(caller, report, Capability.RATE)

        if not self.workflow.is_rateable(report.status):
            raise NotYetResolvableError(report.id, report.status.value)
        if report.is_rated:
            raise AlreadyRatedError(report.id)

        updated = self.store.apply_rating(report.id, rating, (feedback or "").strip() or None)
        logger.info(f"Report {report.report_number} rated {rating} by {caller.user_id}")
        return updated

    def list_reports(self, criteria: ReportCriteria, caller: Optional[Profile]) -> List[Report]:
        """
        Reports matching ``criteria``, pushed down to the store.

        Citizens are always scoped to their own reports.
        """
        criteria = self._scope_to_caller(criteria, caller)
        return self.store.query_reports(build_query_plan(criteria), limit=self.list_limit)

    def get_report_history(self, report_id: str, caller: Optional[Profile]) -> List[ReportUpdate]:
        """History oldest first; internal notes only for callers allowed to see them."""
        caller = require_authenticated(caller)
        report = self._load(report_id)
        granted = require_capability(caller, report, Capability.VIEW)

        updates = self.store.list_updates(report.id)
        if Capability.VIEW_INTERNAL_NOTES not in granted:
            updates = [update.redacted() for update in updates]
        return updates

    def update_priority(
        self,
        report_id: str,
        actor: Optional[Profile],
        priority: PriorityLevel
    ) -> Report:
        actor = require_authenticated(actor)
        report = self._load(report_id)
        require_capability(actor, report, Capability.EDIT_PRIORITY)

        try:
            priority = PriorityLevel(priority)
        except ValueError:
            raise InvalidInputError(f"Unknown priority: {priority}", field="priority")

        updated = self.store.update_report_fields(report.id, {"priority": priority.value})
        logger.info(
            f"Report {report.report_number} priority {report.priority.value} -> "
            f"{priority.value} by {actor.user_id}"
        )
        return updated

    def assign_report(
        self,
        report_id: str,
        actor: Optional[Profile],
        department: Optional[str] = None,
        officer_id: Optional[str] = None
    ) -> Report:
        """Set the responsible department and/or officer."""
        actor = require_authenticated(actor)
        report = self._load(report_id)
        require_capability(actor, report, Capability.ASSIGN)

        if officer_id:
            officer = self.store.get_profile(officer_id)
            if officer is None or not officer.is_staff:
                raise InvalidInputError(
                    f"{officer_id} is not a staff member", field="assigned_officer_id"
                )

        updated = self.store.update_report_fields(report.id, {
            "assigned_department": department or None,
            "assigned_officer_id": officer_id or None,
        })
        logger.info(
            f"Report {report.report_number} assigned to department={department} "
            f"officer={officer_id} by {actor.user_id}"
        )
        return updated

    def dashboard_stats(self, criteria: ReportCriteria, caller: Optional[Profile]) -> ReportStats:
        """Per-status and urgent counts over the reports visible to the caller."""
        criteria = self._scope_to_caller(criteria.model_copy(update={"status": None}), caller)
        # Counts cover every matching report, not just the first list_limit rows
        reports = self.store.query_reports(build_query_plan(criteria), limit=None)
        stats = ReportStats(total=len(reports))
        for report in reports:
            setattr(stats, report.status.value, getattr(stats, report.status.value) + 1)
            if report.priority == PriorityLevel.URGENT:
                stats.urgent += 1
        return stats


# Global service instance (singleton pattern)
_report_service = None


def get_report_service() -> ReportService:
    """
    Get or create ReportService singleton instance.

    Returns:
        ReportService: The global report service instance
    """
    global _report_service
    if _report_service is None:
        store = get_report_store()
        _report_service = ReportService(
            store=store,
            number_generator=ReportNumberGenerator(store, prefix=settings.REPORT_NUMBER_PREFIX),
            audit_sink=get_audit_sink(),
            list_limit=settings.REPORT_LIST_LIMIT,
        )
    return _report_service
