"""Classify captured photos and re-encode HEIC/HEIF to JPEG before upload."""

import io
import logging
import re
import tempfile
import uuid
from pathlib import Path, PurePosixPath
from typing import Callable, Optional
from urllib.parse import urlparse

from PIL import Image
from pillow_heif import register_heif_opener

from cleanerapp.config import settings
from cleanerapp.errors import UploadError, UploadErrorKind
from cleanerapp.schemas.photo import NormalizedImage
from cleanerapp.services.byte_loader import b64_to_bytes, local_path, split_data_uri

logger = logging.getLogger(__name__)

register_heif_opener()

HEIC_TYPES = {"image/heic", "image/heif"}
HEIC_SUFFIX_RE = re.compile(r"\.(heic|heif)(\?|$)", re.IGNORECASE)

# (uri, quality 1-100) -> path of the JPEG written
Transcoder = Callable[[str, int], str]


def extension_for_mime(mime: str) -> str:
    """File extension to store an image type under."""
    mime = (mime or "").lower()
    if mime in ("image/jpeg", "image/jpg"):
        return "jpg"
    if mime == "image/png":
        return "png"
    if mime == "image/webp":
        return "webp"
    # HEIC/HEIF are stored as JPEG after transcoding; unknown types default to JPEG
    return "jpg"


def classify(uri: str):
    """
    Content type and extension of a local image reference.

    Data URIs are classified by their declared type, other references by the
    trailing filename extension, and anything else as JPEG.

    Returns:
        (content_type, extension)
    """
    data_uri = split_data_uri(uri)
    if data_uri:
        mime = data_uri[0] or "image/jpeg"
        return mime, extension_for_mime(mime)

    path = urlparse(uri).path if "://" in uri else uri.split("?", 1)[0]
    ext = PurePosixPath(path).suffix.lstrip(".").lower() or "jpg"
    if ext == "jpeg":
        ext = "jpg"
    mime = f"image/{'jpeg' if ext == 'jpg' else ext}"
    return mime, ext


def is_heic(uri: str, content_type: str) -> bool:
    return content_type in HEIC_TYPES or bool(HEIC_SUFFIX_RE.search(uri))


def transcode_to_jpeg(uri: str, quality: int) -> str:
    """Re-encode an image (HEIC included) to a JPEG file in the upload temp dir."""
    data_uri = split_data_uri(uri)
    source = io.BytesIO(b64_to_bytes(data_uri[2])) if data_uri else local_path(uri)

    out_dir = Path(settings.UPLOAD_TMP_DIR or tempfile.gettempdir())
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{uuid.uuid4().hex}.jpg"

    with Image.open(source) as img:
        img.convert("RGB").save(str(out_path), "JPEG", quality=quality)
    return str(out_path)


class ImageNormalizer:
    """Turn a captured image reference into an upload-ready (type, extension, uri)."""

    def __init__(self, transcoder: Optional[Transcoder] = None, quality: Optional[int] = None):
        """Initialize the normalizer."""
        self.transcoder = transcoder or transcode_to_jpeg
        self.quality = quality or settings.HEIC_JPEG_QUALITY

    def normalize(self, uri: str) -> NormalizedImage:
        """
        Classify an image and transcode HEIC/HEIF to JPEG.

        Raises:
            UploadError: kind transcode_failed when re-encoding fails
        """
        content_type, extension = classify(uri)

        if not is_heic(uri, content_type):
            return NormalizedImage(content_type=content_type, extension=extension, uri=uri)

        try:
            working_uri = self.transcoder(uri, self.quality)
        except (OSError, ValueError) as e:
            raise UploadError(
                UploadErrorKind.TRANSCODE_FAILED,
                f"Could not convert HEIC image to JPEG: {e}",
                step="normalize",
            ) from e

        logger.info(f"HEIC->JPEG {working_uri}")
        return NormalizedImage(content_type="image/jpeg", extension="jpg", uri=working_uri)
