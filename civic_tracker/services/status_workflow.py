"""
Status Workflow Engine - strict report lifecycle state machine.

DESIGN PRINCIPLES:
- No skipping states
- No backward transitions
- Every accepted transition produces exactly one history entry
- Invalid transitions rejected before any write
"""

from typing import Dict, FrozenSet, List, Optional, Tuple

from civic_tracker.core.errors import ForbiddenError, InvalidTransitionError
from civic_tracker.models.report import ReportStatus
from civic_tracker.models.user import STAFF_ROLES, UserRole
import logging

logger = logging.getLogger(__name__)


STATUS_ORDER: Tuple[ReportStatus, ...] = (
    ReportStatus.OPEN,
    ReportStatus.ACKNOWLEDGED,
    ReportStatus.IN_PROGRESS,
    ReportStatus.RESOLVED,
    ReportStatus.CLOSED,
)

# Progress shown to citizens tracking their reports
STATUS_PROGRESS: Dict[ReportStatus, int] = {
    ReportStatus.OPEN: 25,
    ReportStatus.ACKNOWLEDGED: 50,
    ReportStatus.IN_PROGRESS: 75,
    ReportStatus.RESOLVED: 100,
    ReportStatus.CLOSED: 100,
}

RATEABLE_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.CLOSED})


class StatusWorkflowEngine:
    """
    Strict state machine for report status transitions.

    Rules:
    - Only the (from, to) pairs in ALLOWED_TRANSITIONS exist
    - Each pair names the roles that may perform it
    - Same-status requests are not transitions and are rejected
    """

    # Allowed transitions map: {(from_status, to_status): roles permitted}
    ALLOWED_TRANSITIONS: Dict[Tuple[ReportStatus, ReportStatus], FrozenSet[UserRole]] = {
        (ReportStatus.OPEN, ReportStatus.ACKNOWLEDGED): STAFF_ROLES,
        (ReportStatus.ACKNOWLEDGED, ReportStatus.IN_PROGRESS): STAFF_ROLES,
        (ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED): STAFF_ROLES,
        (ReportStatus.RESOLVED, ReportStatus.CLOSED): frozenset(
            {UserRole.ADMIN, UserRole.DEPARTMENT_HEAD}
        ),
    }

    @staticmethod
    def rank(status: ReportStatus) -> int:
        """Position of a status in the lifecycle (open == 0)."""
        return STATUS_ORDER.index(ReportStatus(status))

    @staticmethod
    def progress(status: ReportStatus) -> int:
        return STATUS_PROGRESS[ReportStatus(status)]

    @classmethod
    def is_terminal(cls, status: ReportStatus) -> bool:
        """True when no outgoing transition exists."""
        status = ReportStatus(status)
        return not any(source == status for source, _ in cls.ALLOWED_TRANSITIONS)

    @staticmethod
    def is_rateable(status: ReportStatus) -> bool:
        return ReportStatus(status) in RATEABLE_STATUSES

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition exists in the table.

        Args:
            from_status: Current status
            to_status: Desired new status

        Returns:
            True if transition is allowed, False otherwise
        """
        try:
            key = (ReportStatus(from_status), ReportStatus(to_status))
        except ValueError:
            return False
        return key in cls.ALLOWED_TRANSITIONS

    @classmethod
    def get_allowed_transitions(
        cls,
        current_status: str,
        role: Optional[UserRole] = None
    ) -> List[str]:
        """
        Get list of allowed next statuses from current status.

        Args:
            current_status: Current status string
            role: When given, only transitions this role may perform

        Returns:
            List of allowed next status strings
        """
        try:
            current = ReportStatus(current_status)
        except ValueError:
            return []
        return [
            target.value
            for (source, target), roles in cls.ALLOWED_TRANSITIONS.items()
            if source == current and (role is None or role in roles)
        ]

    @classmethod
    def validate_transition(
        cls,
        current_status: str,
        new_status: str,
        role: UserRole
    ) -> Tuple[ReportStatus, ReportStatus]:
        """
        Validate a transition for an acting role.

        Raises:
            InvalidTransitionError: Pair is not in the transition table
            ForbiddenError: Pair exists but the role may not perform it
        """
        current_value = getattr(current_status, "value", current_status)
        new_value = getattr(new_status, "value", new_status)
        if not cls.is_valid_transition(current_value, new_value):
            raise InvalidTransitionError(
                current_value,
                new_value,
                allowed=cls.get_allowed_transitions(current_value),
            )

        key = (ReportStatus(current_value), ReportStatus(new_value))
        if role not in cls.ALLOWED_TRANSITIONS[key]:
            role_value = getattr(role, "value", role)
            raise ForbiddenError(
                f"Role {role_value} may not move a report from {current_value} to {new_value}",
                field="status",
            )
        return key

    @staticmethod
    def build_history_entry(
        report_id: str,
        new_status: ReportStatus,
        changed_by: str,
        message: str,
        internal_notes: Optional[str] = None
    ) -> Dict:
        """
        Create the history row written alongside a transition.

        ``created_at`` is stamped by the store at commit time.
        """
        return {
            "report_id": report_id,
            "status": ReportStatus(new_status).value,
            "message": message,
            "internal_notes": internal_notes or None,
            "updated_by": changed_by,
        }
