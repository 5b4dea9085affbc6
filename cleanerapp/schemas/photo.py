"""Photo-related schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PhotoKind(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class PhotoRow(BaseModel):
    """A row of the photos table (columns 'type' and 'image_url')."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    job_id: str
    kind: PhotoKind = Field(alias="type")
    storage_path: str = Field(alias="image_url")
    created_at: Optional[datetime] = None


class NormalizedImage(BaseModel):
    """Upload-ready description of a local image."""

    content_type: str
    extension: str
    uri: str


class UploadResult(BaseModel):
    """Result of a successful photo upload."""

    storage_path: str
    display_url: str
    photo: PhotoRow


class GalleryItem(BaseModel):
    """Photo with a resolved display URL."""

    path: str
    url: str
    kind: PhotoKind
    created_at: Optional[datetime] = None
