"""
Shared FastAPI dependencies: acting profile and list criteria.
"""

from typing import Optional

from fastapi import Depends, Query, Request
from pydantic import ValidationError

from civic_tracker.core.errors import InvalidInputError
from civic_tracker.models.user import Profile
from civic_tracker.services.identity import IdentityProvider, get_identity_provider
from civic_tracker.services.profile_service import ProfileService, get_profile_service
from civic_tracker.services.report_filter import ReportCriteria


def get_current_profile(
    request: Request,
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    profile_service: ProfileService = Depends(get_profile_service),
) -> Profile:
    """Authenticate the request and load the caller's profile."""
    credentials = request.headers.get(identity_provider.credential_header)
    user_id = identity_provider.resolve_user_id(credentials)
    return profile_service.profile_for_identity(user_id)


def get_report_criteria(
    status: str = Query("all", description="Status or 'all'"),
    category: str = Query("all", description="Category or 'all'"),
    priority: str = Query("all", description="Priority or 'all'"),
    search: str = Query("", max_length=200, description="Matches title, report number, location"),
    sort: str = Query("newest", description="newest | oldest | recently_updated"),
) -> ReportCriteria:
    try:
        return ReportCriteria(
            status=status,
            category=category,
            priority=priority,
            search=search,
            sort=sort,
        )
    except ValidationError as e:
        first = e.errors()[0]
        field: Optional[str] = str(first["loc"][0]) if first.get("loc") else None
        raise InvalidInputError(f"Invalid filter: {first['msg']}", field=field)
