"""
Identity providers - turn request credentials into a user ID.

- FirebaseIdentityProvider: verifies a Firebase Auth ID token
  sent as "Authorization: Bearer <token>".
- HeaderIdentityProvider: trusts the X-User-ID header. Local development
  and tests only; never enable with real users.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

from firebase_admin import auth

from civic_tracker.core.errors import UnauthenticatedError
from civic_tracker.core.settings import settings

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):

    # Request header carrying the credentials this provider understands
    credential_header = "Authorization"

    @abstractmethod
    def resolve_user_id(self, credentials: Optional[str]) -> str:
        """Return the authenticated user ID or raise UnauthenticatedError."""
        raise NotImplementedError


class FirebaseIdentityProvider(IdentityProvider):

    def resolve_user_id(self, credentials: Optional[str]) -> str:
        if not credentials or not credentials.lower().startswith("bearer "):
            raise UnauthenticatedError("Missing bearer token")
        token = credentials[len("bearer "):].strip()
        if not token:
            raise UnauthenticatedError("Missing bearer token")

        # verify_id_token needs the default Firebase app
        from civic_tracker.config.firebase import initialize_firestore
        initialize_firestore()

        try:
            decoded = auth.verify_id_token(token)
        except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError,
                auth.RevokedIdTokenError, auth.CertificateFetchError) as e:
            logger.warning(f"Rejected ID token: {e}")
            raise UnauthenticatedError("Invalid or expired token") from e
        return decoded["uid"]


class HeaderIdentityProvider(IdentityProvider):

    credential_header = "X-User-ID"

    def resolve_user_id(self, credentials: Optional[str]) -> str:
        user_id = (credentials or "").strip()
        if not user_id:
            raise UnauthenticatedError("Missing X-User-ID header")
        return user_id


_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider is None:
        if settings.AUTH_MODE.lower() == "header":
            logger.warning("AUTH_MODE=header: trusting X-User-ID without verification")
            _identity_provider = HeaderIdentityProvider()
        else:
            _identity_provider = FirebaseIdentityProvider()
    return _identity_provider
