"""
Admin endpoints - staff dashboard and report management.

SCOPE OF STAFF:
- Move reports forward through the lifecycle (any staff role)
- Close resolved reports (admin / department head)
- Change priority and assignment (admin / department head)
- Change user roles (admin)

NOT in scope:
- Editing report content written by citizens
- Deleting reports or history
"""

from typing import List
from fastapi import APIRouter, Depends
import logging

from civic_tracker.core.errors import ForbiddenError
from civic_tracker.models.report import (
    AssignmentRequest,
    PriorityUpdateRequest,
    Report,
    ReportStats,
    StatusUpdateRequest,
)
from civic_tracker.models.user import Profile, RoleUpdateRequest
from civic_tracker.routes.dependencies import get_current_profile, get_report_criteria
from civic_tracker.services.capabilities import is_staff
from civic_tracker.services.profile_service import ProfileService, get_profile_service
from civic_tracker.services.report_filter import ReportCriteria
from civic_tracker.services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def require_staff(profile: Profile = Depends(get_current_profile)) -> Profile:
    if not is_staff(profile):
        raise ForbiddenError(f"User {profile.user_id} is not staff", field="role")
    return profile


@router.get("/reports", response_model=List[Report])
def dashboard_reports(
    criteria: ReportCriteria = Depends(get_report_criteria),
    profile: Profile = Depends(require_staff),
    service: ReportService = Depends(get_report_service),
):
    """All reports matching the dashboard filters."""
    return service.list_reports(criteria, profile)


@router.get("/stats", response_model=ReportStats)
def dashboard_stats(
    criteria: ReportCriteria = Depends(get_report_criteria),
    profile: Profile = Depends(require_staff),
    service: ReportService = Depends(get_report_service),
):
    """Totals per status plus urgent count; the status filter is ignored."""
    return service.dashboard_stats(criteria, profile)


@router.patch("/reports/{report_id}/status", response_model=Report)
def update_status(
    report_id: str,
    request: StatusUpdateRequest,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """
    Move a report to its next status.

    **Rules:**
    - open → acknowledged → in_progress → resolved → closed, no skipping
    - No backward moves
    - Closing requires admin or department head
    - 409 concurrent_modification means another change landed first; re-read and retry
    """
    return service.transition_status(
        report_id,
        profile,
        request.status,
        request.message,
        request.internal_notes,
    )


@router.patch("/reports/{report_id}/priority", response_model=Report)
def update_priority(
    report_id: str,
    request: PriorityUpdateRequest,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    return service.update_priority(report_id, profile, request.priority)


@router.patch("/reports/{report_id}/assignment", response_model=Report)
def update_assignment(
    report_id: str,
    request: AssignmentRequest,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    return service.assign_report(
        report_id,
        profile,
        department=request.assigned_department,
        officer_id=request.assigned_officer_id,
    )


@router.patch("/profiles/{user_id}/role", response_model=Profile)
def update_role(
    user_id: str,
    request: RoleUpdateRequest,
    profile: Profile = Depends(get_current_profile),
    profile_service: ProfileService = Depends(get_profile_service),
):
    return profile_service.update_role(profile, user_id, request.role, request.department)
