"""
Role & capability resolver.

Single place that decides what an acting profile may do to a report.
Pure: the answer depends only on (profile, report).
"""

from enum import Enum
from typing import FrozenSet, Optional

from civic_tracker.core.errors import ForbiddenError, UnauthenticatedError
from civic_tracker.models.report import Report
from civic_tracker.models.user import Profile, UserRole


class Capability(str, Enum):
    VIEW = "view"
    EDIT_STATUS = "edit_status"
    EDIT_PRIORITY = "edit_priority"
    ASSIGN = "assign"
    RATE = "rate"
    VIEW_INTERNAL_NOTES = "view_internal_notes"


_STAFF_BASE = frozenset({Capability.VIEW, Capability.EDIT_STATUS, Capability.VIEW_INTERNAL_NOTES})
_MANAGER_EXTRA = frozenset({Capability.EDIT_PRIORITY, Capability.ASSIGN})

ROLE_CAPABILITIES = {
    UserRole.CITIZEN: frozenset(),
    UserRole.FIELD_OFFICER: _STAFF_BASE,
    UserRole.DEPARTMENT_HEAD: _STAFF_BASE | _MANAGER_EXTRA,
    UserRole.ADMIN: _STAFF_BASE | _MANAGER_EXTRA,
}

_OWNER_CAPABILITIES = frozenset({Capability.VIEW, Capability.RATE})


def capabilities_for(profile: Optional[Profile], report: Report) -> FrozenSet[Capability]:
    """Capabilities ``profile`` holds on ``report``. No profile means none."""
    if profile is None:
        return frozenset()

    granted = ROLE_CAPABILITIES[profile.role]
    if report.owner_id == profile.user_id:
        granted = granted | _OWNER_CAPABILITIES
    return granted


def require_authenticated(profile: Optional[Profile]) -> Profile:
    if profile is None:
        raise UnauthenticatedError()
    return profile


def require_capability(
    profile: Optional[Profile],
    report: Report,
    capability: Capability
) -> FrozenSet[Capability]:
    """
    Raise unless ``profile`` holds ``capability`` on ``report``.

    Returns the full capability set so callers can make further
    decisions (e.g. note redaction) without resolving twice.
    """
    profile = require_authenticated(profile)
    granted = capabilities_for(profile, report)
    if capability not in granted:
        raise ForbiddenError(
            f"User {profile.user_id} ({profile.role.value}) lacks "
            f"'{capability.value}' on report {report.report_number}",
            field=capability.value,
        )
    return granted


def is_staff(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.is_staff


def can_manage_profiles(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.role == UserRole.ADMIN
