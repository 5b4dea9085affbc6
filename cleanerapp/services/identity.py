"""Identity provider client (hosted auth REST API)."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from cleanerapp.config import settings
from cleanerapp.errors import AuthError, StoreError
from cleanerapp.schemas.auth import SessionContext
from cleanerapp.services.rest_client import BackendClient

logger = logging.getLogger(__name__)

# Listener signature: (event, session or None)
SessionListener = Callable[[str, Optional[SessionContext]], None]


class IdentityProvider(BackendClient):
    """Password sign-in, session refresh and password recovery.

    The provider remembers the current session for the device and notifies
    listeners whenever the signed-in subject changes.
    """

    def __init__(self, **kwargs):
        """Initialize the identity client."""
        super().__init__(**kwargs)
        self._session: Optional[SessionContext] = None
        self._listeners: List[SessionListener] = []
        self._lock = threading.Lock()

    # Session-change notifications

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set_session(self, event: str, session: Optional[SessionContext]):
        with self._lock:
            previous = self._session
            self._session = session
            listeners = list(self._listeners)

        previous_id = previous.user_id if previous else None
        current_id = session.user_id if session else None
        logger.info(f"Auth event {event} (subject changed: {previous_id != current_id})")
        for listener in listeners:
            listener(event, session)

    def get_session(self) -> Optional[SessionContext]:
        """Current session for this device, if any."""
        with self._lock:
            return self._session

    # Token grants

    @staticmethod
    def _session_from_grant(body: Dict[str, Any]) -> SessionContext:
        user = body.get("user") or {}
        expires_in = body.get("expires_in")
        expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in)) if expires_in else None
        )
        return SessionContext(
            user_id=user.get("id", ""),
            email=user.get("email"),
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=expires_at,
        )

    def _grant(self, grant_type: str, payload: Dict[str, Any]) -> SessionContext:
        response = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": grant_type},
            json=payload,
        )
        try:
            self._check(response)
        except StoreError as e:
            raise AuthError(e.message) from e
        session = self._session_from_grant(response.json())
        if not session.user_id:
            raise AuthError("Sign-in returned no user")
        return session

    def sign_in_with_password(self, email: str, password: str) -> SessionContext:
        """
        Sign in with an email/password credential.

        Raises:
            AuthError: With the provider's message on rejection
        """
        session = self._grant("password", {"email": email, "password": password})
        self._set_session("SIGNED_IN", session)
        return session

    def refresh_session(self, refresh_token: Optional[str] = None) -> SessionContext:
        """Exchange a refresh token for a fresh session."""
        current = self.get_session()
        token = refresh_token or (current.refresh_token if current else None)
        if not token:
            raise AuthError("No session to refresh")
        session = self._grant("refresh_token", {"refresh_token": token})
        self._set_session("TOKEN_REFRESHED", session)
        return session

    def exchange_code_for_session(self, code: str, code_verifier: Optional[str] = None) -> SessionContext:
        """Turn a password-reset link code into a session."""
        payload = {"auth_code": code}
        if code_verifier:
            payload["code_verifier"] = code_verifier
        session = self._grant("pkce", payload)
        self._set_session("PASSWORD_RECOVERY", session)
        return session

    def sign_out(self, session: Optional[SessionContext] = None):
        """Revoke the session server-side and forget it locally."""
        session = session or self.get_session()
        if session:
            response = self._request(
                "POST",
                "/auth/v1/logout",
                headers={"Authorization": f"Bearer {session.access_token}"},
            )
            if not response.is_success and response.status_code != 401:
                # Local sign-out still happens; the token simply expires
                logger.warning(f"Server-side sign-out failed: HTTP {response.status_code}")
        self._set_session("SIGNED_OUT", None)

    # Account operations

    def get_user(self, access_token: str) -> SessionContext:
        """Resolve an access token to its subject."""
        response = self._request(
            "GET",
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        try:
            self._check(response)
        except StoreError as e:
            raise AuthError(e.message) from e
        user = response.json()
        return SessionContext(user_id=user["id"], email=user.get("email"), access_token=access_token)

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None):
        """Send a password-reset email."""
        response = self._request(
            "POST",
            "/auth/v1/recover",
            params={"redirect_to": redirect_to or settings.RESET_REDIRECT_URL},
            json={"email": email},
        )
        try:
            self._check(response)
        except StoreError as e:
            raise AuthError(e.message) from e

    def update_password(self, session: SessionContext, password: str):
        """Set a new password for the session's subject."""
        response = self._request(
            "PUT",
            "/auth/v1/user",
            json={"password": password},
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
        try:
            self._check(response)
        except StoreError as e:
            raise AuthError(e.message) from e
        self._set_session("USER_UPDATED", session)
