"""
Profile Service - role metadata for authenticated identities.

A user's permissions change only through update_role; nothing about a
report can grant or revoke them.
"""

from typing import Optional
import logging

from civic_tracker.core.errors import ForbiddenError, NotFoundError
from civic_tracker.models.user import Profile, UserRole
from civic_tracker.services.capabilities import can_manage_profiles, require_authenticated
from civic_tracker.services.storage import ReportStore, get_report_store

logger = logging.getLogger(__name__)


class ProfileService:

    def __init__(self, store: ReportStore):
        self.store = store

    def profile_for_identity(self, user_id: str) -> Profile:
        """
        Load the profile for a verified identity.

        New identities get a citizen profile, the same default a
        sign-up produces.
        """
        profile = self.store.get_profile(user_id)
        if profile is None:
            profile = self.store.save_profile(Profile(user_id=user_id, role=UserRole.CITIZEN))
            logger.info(f"Provisioned citizen profile for {user_id}")
        return profile

    def get_profile(self, user_id: str) -> Profile:
        profile = self.store.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"Profile {user_id} not found", field="user_id")
        return profile

    def update_role(
        self,
        actor: Optional[Profile],
        user_id: str,
        role: UserRole,
        department: Optional[str] = None
    ) -> Profile:
        """Change a user's role (admin only)."""
        actor = require_authenticated(actor)
        if not can_manage_profiles(actor):
            raise ForbiddenError(
                f"User {actor.user_id} ({actor.role.value}) may not change roles",
                field="role",
            )

        target = self.get_profile(user_id)
        updated = target.model_copy(update={"role": role, "department": department})
        saved = self.store.save_profile(updated)
        logger.info(
            f"Admin {actor.user_id} changed role of {user_id}: "
            f"{target.role.value} -> {role.value}"
        )
        return saved


# Global service instance (singleton pattern)
_profile_service = None


def get_profile_service() -> ProfileService:
    """
    Get or create ProfileService singleton instance.

    Returns:
        ProfileService: The global profile service instance
    """
    global _profile_service
    if _profile_service is None:
        _profile_service = ProfileService(get_report_store())
    return _profile_service
