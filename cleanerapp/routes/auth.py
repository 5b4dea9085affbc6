"""Authentication routes."""

import logging

from fastapi import APIRouter, Depends

from cleanerapp.dependencies import get_auth, get_queries, get_registry, get_session_context
from cleanerapp.schemas.auth import (
    CleanerProfile,
    PasswordResetRequest,
    PasswordUpdateRequest,
    RefreshRequest,
    ResetCodeRequest,
    SessionContext,
    SignInRequest,
    SignInResponse,
)
from cleanerapp.services.auth import CleanerAuth
from cleanerapp.services.job_session import ScreenRegistry
from cleanerapp.services.queries import JobQueries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-in", response_model=SignInResponse)
def sign_in(data: SignInRequest, auth: CleanerAuth = Depends(get_auth)):
    """Sign in a cleaner. Non-cleaner accounts are signed out again."""
    session, profile = auth.sign_in(data.email, data.password)
    return SignInResponse(
        user_id=session.user_id,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        name=profile.name,
        email=profile.email or session.email,
    )


@router.post("/refresh", response_model=SignInResponse)
def refresh(data: RefreshRequest, auth: CleanerAuth = Depends(get_auth)):
    """Renew an expiring session."""
    session = auth.refresh(data.refresh_token)
    return SignInResponse(
        user_id=session.user_id,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        email=session.email,
    )


@router.post("/sign-out")
def sign_out(
    session: SessionContext = Depends(get_session_context),
    auth: CleanerAuth = Depends(get_auth),
    registry: ScreenRegistry = Depends(get_registry),
):
    """Sign out and close every open job screen of the cleaner."""
    registry.close_all(session.user_id)
    auth.sign_out(session)
    return {"message": "Signed out."}


@router.get("/me", response_model=CleanerProfile)
def me(queries: JobQueries = Depends(get_queries)):
    """Profile of the signed-in cleaner."""
    return queries.get_cleaner_profile()


@router.post("/password-reset")
def request_password_reset(data: PasswordResetRequest, auth: CleanerAuth = Depends(get_auth)):
    """Email a password reset link."""
    auth.request_password_reset(data.email)
    return {"message": "Password reset email sent (check your inbox)."}


@router.post("/password-reset/verify", response_model=SignInResponse)
def verify_reset_code(data: ResetCodeRequest, auth: CleanerAuth = Depends(get_auth)):
    """Exchange the code from a reset link for a session."""
    session = auth.verify_reset_code(data.code, data.code_verifier)
    return SignInResponse(
        user_id=session.user_id,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        email=session.email,
    )


@router.post("/password")
def update_password(
    data: PasswordUpdateRequest,
    session: SessionContext = Depends(get_session_context),
    auth: CleanerAuth = Depends(get_auth),
):
    """Set a new password for the signed-in subject."""
    auth.update_password(session, data.password, data.confirm)
    return {"message": "Password updated."}
