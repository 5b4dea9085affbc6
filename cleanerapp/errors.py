"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a human-readable ``message`` that is safe to show to the
cleaner as-is. None of them are fatal; callers render the message next to a
retry / go back / sign in again control.
"""

from enum import Enum
from typing import Optional


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(AppError):
    """Sign-in, session or authorization failure."""


class NotFound(AppError):
    """A referenced job, task or row does not exist."""


class ValidationError(AppError):
    """Local, pre-network rejection (bad input or ineligible state)."""


class ActionInFlight(ValidationError):
    """The same action is already outstanding for this screen."""


class TransitionError(AppError):
    """Check-in/check-out persistence failed; local state is unchanged."""


class StoreError(AppError):
    """Opaque failure reported by an external store or provider."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class UploadErrorKind(str, Enum):
    TRANSCODE_FAILED = "transcode_failed"
    EMPTY_PAYLOAD = "empty_payload"
    BUCKET_MISSING = "bucket_missing"
    CREDENTIAL_FAILED = "credential_failed"
    STORE_UPLOAD_FAILED = "store_upload_failed"
    RECORD_INSERT_FAILED = "record_insert_failed"


class UploadError(AppError):
    """A photo upload step failed. Nothing from the attempt is presented as success."""

    def __init__(
        self,
        kind: UploadErrorKind,
        message: str,
        job_id: Optional[str] = None,
        photo_kind: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.job_id = job_id
        self.photo_kind = photo_kind
        self.step = step

    def with_context(self, job_id: str, photo_kind: str, step: str) -> "UploadError":
        """Fill in job/kind/step if the raising layer did not know them."""
        self.job_id = self.job_id or job_id
        self.photo_kind = self.photo_kind or photo_kind
        self.step = self.step or step
        return self

    def __str__(self) -> str:
        context = ", ".join(
            f"{name}={value}"
            for name, value in (("job", self.job_id), ("kind", self.photo_kind), ("step", self.step))
            if value
        )
        return f"{self.message} ({context})" if context else self.message
