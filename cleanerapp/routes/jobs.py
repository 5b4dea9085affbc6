"""Job routes: list, screen state, lifecycle actions and photos."""

import logging
import os
import shutil
import tempfile
from pathlib import PurePosixPath
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from cleanerapp.config import settings
from cleanerapp.dependencies import get_fresh_screen, get_queries, get_registry, get_screen, get_session_context
from cleanerapp.schemas.auth import SessionContext
from cleanerapp.schemas.job import JobDetailResponse, JobRow, JobSummary, TaskToggleResponse
from cleanerapp.schemas.photo import GalleryItem, PhotoKind, UploadResult
from cleanerapp.services.job_session import JobDetailSession, ScreenRegistry, detail_view
from cleanerapp.services.photo_upload import build_gallery
from cleanerapp.services.queries import JobQueries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=List[JobRow])
def list_upcoming_jobs(queries: JobQueries = Depends(get_queries)):
    """Scheduled and in-progress jobs of the signed-in cleaner."""
    return queries.list_upcoming_jobs()


@router.get("/{job_id}", response_model=JobDetailResponse)
def open_job(job_id: str, screen: JobDetailSession = Depends(get_fresh_screen)):
    """Job screen state, freshly loaded from the store."""
    return screen.detail()


@router.delete("/{job_id}/screen")
def close_job(
    job_id: str,
    session: SessionContext = Depends(get_session_context),
    registry: ScreenRegistry = Depends(get_registry),
):
    """Leave the job screen; results still in flight are discarded."""
    return {"closed": registry.close(session.user_id, job_id)}


@router.post("/{job_id}/check-in", response_model=JobDetailResponse)
def check_in(job_id: str, screen: JobDetailSession = Depends(get_screen)):
    """Record arrival at the job."""
    return detail_view(screen.check_in())


@router.post("/{job_id}/tasks/{task_id}/toggle", response_model=TaskToggleResponse)
def toggle_task(job_id: str, task_id: str, screen: JobDetailSession = Depends(get_screen)):
    """Flip a checklist item."""
    toggle = screen.toggle_task(task_id)
    return TaskToggleResponse(optimistic=detail_view(toggle.optimistic), settled=detail_view(toggle.settled))


@router.post("/{job_id}/photos", response_model=UploadResult)
def upload_photo(
    job_id: str,
    kind: PhotoKind = Form(...),
    file: UploadFile = File(...),
    signed_url: Optional[bool] = Form(default=None),
    screen: JobDetailSession = Depends(get_screen),
):
    """Upload a before/after photo captured on the device."""
    suffix = PurePosixPath(file.filename or "").suffix or ".jpg"
    tmp_dir = settings.UPLOAD_TMP_DIR or None
    if tmp_dir:
        os.makedirs(tmp_dir, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(suffix=suffix, dir=tmp_dir)
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(file.file, out)
        return screen.upload_photo(tmp_path, kind, signed_url=signed_url)
    finally:
        os.remove(tmp_path)


@router.get("/{job_id}/photos", response_model=List[GalleryItem])
def list_photos(job_id: str, screen: JobDetailSession = Depends(get_screen)):
    """Photos of the job with display URLs, newest first."""
    photos = screen.queries.list_photos_for_job(job_id)
    return build_gallery(photos, screen.uploader.resolver)


@router.post("/{job_id}/complete", response_model=JobDetailResponse)
def complete_job(job_id: str, screen: JobDetailSession = Depends(get_screen)):
    """Check out and mark the job completed once it is eligible."""
    return detail_view(screen.complete())


@router.get("/{job_id}/summary", response_model=JobSummary)
def job_summary(job_id: str, screen: JobDetailSession = Depends(get_screen)):
    """Completion summary for the confirmation screen."""
    return screen.summary()
