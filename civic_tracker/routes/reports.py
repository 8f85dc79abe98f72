"""
Report endpoints - submission, tracking and rating for any signed-in user.
Citizens only ever see their own reports here; staff see all of them.
"""

from typing import List
from fastapi import APIRouter, Depends, status
import logging

from civic_tracker.models.report import RatingRequest, Report, ReportCreate, ReportUpdate
from civic_tracker.models.user import Profile
from civic_tracker.routes.dependencies import get_current_profile, get_report_criteria
from civic_tracker.services.report_filter import ReportCriteria
from civic_tracker.services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", response_model=Report, status_code=status.HTTP_201_CREATED)
def submit_report(
    report: ReportCreate,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """
    Submit a new civic report.

    Assigns the report ID and report number; the report starts as ``open``.
    """
    logger.info(f"POST /reports - category={report.category.value} user={profile.user_id}")
    return service.create_report(profile, report)


@router.get("", response_model=List[Report])
def list_reports(
    criteria: ReportCriteria = Depends(get_report_criteria),
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """
    List reports visible to the caller, newest first unless ``sort`` says otherwise.
    """
    return service.list_reports(criteria, profile)


@router.get("/number/{report_number}", response_model=Report)
def track_report(
    report_number: str,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """Look up a report by the number given to the citizen at submission."""
    return service.get_report_by_number(report_number, profile)


@router.get("/{report_id}", response_model=Report)
def get_report(
    report_id: str,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    return service.get_report(report_id, profile)


@router.get("/{report_id}/history", response_model=List[ReportUpdate])
def get_report_history(
    report_id: str,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """
    Status history, oldest first.

    ``internal_notes`` is blank for callers without staff access.
    """
    return service.get_report_history(report_id, profile)


@router.post("/{report_id}/rating", response_model=Report)
def rate_report(
    report_id: str,
    request: RatingRequest,
    profile: Profile = Depends(get_current_profile),
    service: ReportService = Depends(get_report_service),
):
    """Rate a resolved report (owner only, once)."""
    return service.rate_report(report_id, profile, request.rating, request.feedback)
