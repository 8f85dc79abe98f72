"""
Profile endpoints.
"""

from fastapi import APIRouter, Depends

from civic_tracker.models.user import Profile
from civic_tracker.routes.dependencies import get_current_profile

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=Profile)
def get_my_profile(profile: Profile = Depends(get_current_profile)):
    """Profile of the signed-in user, provisioned as citizen on first call."""
    return profile
