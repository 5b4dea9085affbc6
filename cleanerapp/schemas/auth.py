"""Authentication schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SessionContext(BaseModel):
    """Authenticated subject, passed explicitly into queries and transitions."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    email: Optional[str] = None
    expires_at: Optional[datetime] = None


class CleanerProfile(BaseModel):
    """Row of the users table for the signed-in cleaner."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str


class SignInRequest(BaseModel):
    email: str = ""
    password: str = ""


class SignInResponse(BaseModel):
    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: str = ""


class PasswordResetRequest(BaseModel):
    email: str = ""


class ResetCodeRequest(BaseModel):
    code: str = ""
    code_verifier: Optional[str] = None


class PasswordUpdateRequest(BaseModel):
    password: str = ""
    confirm: str = ""
