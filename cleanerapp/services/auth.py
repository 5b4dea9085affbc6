"""Cleaner sign-in flow: credential checks, role gate and password reset."""

import logging
from typing import Callable, Optional

from cleanerapp.config import settings
from cleanerapp.errors import AuthError, NotFound, StoreError, ValidationError
from cleanerapp.schemas.auth import CleanerProfile, SessionContext
from cleanerapp.services.identity import IdentityProvider
from cleanerapp.services.queries import JobQueries
from cleanerapp.services.store import RelationalStore

logger = logging.getLogger(__name__)

CLEANER_ROLE = "cleaner"
NOT_A_CLEANER = "This account is not authorized for the Cleaner app."

# session -> store acting as that subject
StoreFactory = Callable[[SessionContext], RelationalStore]


class CleanerAuth:
    """Only users whose role is 'cleaner' get past sign-in.

    Any other outcome of the role check signs the session out again so a
    half-authorized session is never left behind.
    """

    def __init__(self, identity: IdentityProvider, store_factory: StoreFactory):
        """Initialize with the identity provider and a per-session store factory."""
        self.identity = identity
        self.store_factory = store_factory

    def verify_cleaner(self, session: SessionContext) -> CleanerProfile:
        """
        Check the subject's role in the users table.

        Raises:
            AuthError: After signing out, if the lookup fails or the role is wrong
        """
        try:
            profile = JobQueries(self.store_factory(session), session).get_cleaner_profile()
        except (StoreError, NotFound) as e:
            logger.warning(f"Role lookup failed for {session.user_id}: {e.message}")
            self.identity.sign_out(session)
            raise AuthError(e.message) from e

        if profile.role != CLEANER_ROLE:
            logger.warning(f"Rejected sign-in for {session.user_id} with role {profile.role!r}")
            self.identity.sign_out(session)
            raise AuthError(NOT_A_CLEANER)
        return profile

    def sign_in(self, email: str, password: str):
        """
        Sign in with email and password and enforce the cleaner role.

        Returns:
            (SessionContext, CleanerProfile)

        Raises:
            ValidationError: If either field is empty (no network call)
            AuthError: With the provider message, or the role rejection message
        """
        if not (email or "").strip() or not password:
            raise ValidationError("Email and password are required.")

        session = self.identity.sign_in_with_password(email.strip().lower(), password)
        profile = self.verify_cleaner(session)
        logger.info(f"Cleaner {session.user_id} signed in")
        return session, profile

    def restore(self) -> Optional[SessionContext]:
        """Re-check an existing device session, if there is one."""
        session = self.identity.get_session()
        if session is None:
            return None
        self.verify_cleaner(session)
        return session

    def refresh(self, refresh_token: str) -> SessionContext:
        """
        Exchange a refresh token for a new session, role-gated again.

        Raises:
            ValidationError: If the token is empty (no network call)
            AuthError: With the provider message, or the role rejection message
        """
        if not (refresh_token or "").strip():
            raise ValidationError("Sign in to continue.")
        session = self.identity.refresh_session(refresh_token.strip())
        self.verify_cleaner(session)
        return session

    def sign_out(self, session: Optional[SessionContext] = None):
        self.identity.sign_out(session)

    def request_password_reset(self, email: str):
        """Send a reset link to the given address."""
        if not (email or "").strip():
            raise ValidationError("Enter your email above first.")
        self.identity.reset_password_for_email(email.strip().lower(), settings.RESET_REDIRECT_URL)
        logger.info("Password reset email requested")

    def verify_reset_code(self, code: str, code_verifier: Optional[str] = None) -> SessionContext:
        """Exchange the code from a reset link for a session."""
        if not (code or "").strip():
            raise ValidationError(
                "Missing reset code. Open the password reset link from your email on this device."
            )
        return self.identity.exchange_code_for_session(code.strip(), code_verifier)

    def update_password(self, session: SessionContext, password: str, confirm: str):
        """
        Set a new password after a verified reset.

        Raises:
            ValidationError: Too short or not confirmed (no network call)
            AuthError: With the provider's message
        """
        if not password or len(password) < settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters.")
        if password != confirm:
            raise ValidationError("Passwords do not match.")
        self.identity.update_password(session, password)
