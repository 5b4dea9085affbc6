"""Photo upload pipeline: normalize, read, store, link to the job."""

import logging
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from cleanerapp.config import settings
from cleanerapp.errors import StoreError, UploadError, UploadErrorKind
from cleanerapp.schemas.photo import GalleryItem, PhotoKind, PhotoRow, UploadResult
from cleanerapp.services.byte_loader import ByteLoader, local_path, split_data_uri
from cleanerapp.services.image_normalizer import ImageNormalizer
from cleanerapp.services.object_store import ObjectStore
from cleanerapp.services.store import RelationalStore

logger = logging.getLogger(__name__)

UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_-]")
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def with_cache_buster(url: str, moment: datetime) -> str:
    """Append a cb=<ms> parameter so re-uploads are not served from client caches."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}cb={epoch_ms(moment)}"


def sanitize_job_id(job_id: str) -> str:
    return UNSAFE_PATH_CHARS.sub("", str(job_id))


def build_storage_path(job_id: str, kind: PhotoKind, extension: str, moment: datetime) -> str:
    """jobs/<job>/<kind>-<ms>-<random>.<ext>, unique per call."""
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(6))
    return f"jobs/{sanitize_job_id(job_id)}/{PhotoKind(kind).value}-{epoch_ms(moment)}-{suffix}.{extension}"


def discard_working_copy(uri: str):
    """Delete a file the normalizer created; data URIs have nothing on disk."""
    if split_data_uri(uri):
        return
    try:
        local_path(uri).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove working copy {uri}: {e}")


class PhotoUrlResolver:
    """Display URLs for stored photos: public, or signed when the bucket is private."""

    def __init__(
        self,
        object_store: ObjectStore,
        signed: Optional[bool] = None,
        ttl: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.object_store = object_store
        self.signed = settings.PHOTO_SIGNED_URLS if signed is None else signed
        self.ttl = ttl or settings.SIGNED_URL_TTL
        self.clock = clock

    def resolve(self, path: str, signed: Optional[bool] = None) -> str:
        """Cache-busted display URL for a storage path."""
        use_signed = self.signed if signed is None else signed
        if use_signed:
            url = self.object_store.create_signed_url(path, self.ttl)
        else:
            url = self.object_store.get_public_url(path)
        return with_cache_buster(url, self.clock())


def build_gallery(photos: Iterable[PhotoRow], resolver: PhotoUrlResolver) -> List[GalleryItem]:
    """Gallery items with resolved URLs, in the order given (newest first)."""
    return [
        GalleryItem(
            path=photo.storage_path,
            url=resolver.resolve(photo.storage_path),
            kind=photo.kind,
            created_at=photo.created_at,
        )
        for photo in photos
    ]


class PhotoUploadPipeline:
    """Upload one before/after photo for a job.

    Steps run in order and the photo row is inserted last, so a failure at any
    earlier step leaves at most an unreferenced object in storage. Nothing is
    retried here; a retry by the caller produces a new path.
    """

    def __init__(
        self,
        store: RelationalStore,
        object_store: ObjectStore,
        normalizer: Optional[ImageNormalizer] = None,
        loader: Optional[ByteLoader] = None,
        resolver: Optional[PhotoUrlResolver] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the pipeline."""
        self.store = store
        self.object_store = object_store
        self.normalizer = normalizer or ImageNormalizer()
        self.loader = loader or ByteLoader()
        self.resolver = resolver or PhotoUrlResolver(object_store, clock=clock)
        self.clock = clock

    def upload(
        self,
        job_id: str,
        local_uri: str,
        kind: PhotoKind,
        signed_url: Optional[bool] = None,
    ) -> UploadResult:
        """
        Upload a photo and record it against the job.

        Args:
            job_id: Job the photo belongs to
            local_uri: File path, file:// URI or data URI of the captured image
            kind: 'before' or 'after'
            signed_url: Override the configured public/signed display URL mode

        Returns:
            UploadResult with storage path, display URL and the inserted row

        Raises:
            UploadError: With job id, kind and failing step
        """
        kind = PhotoKind(kind)
        logger.info(f"Photo upload START job={job_id} kind={kind.value} bucket={self.object_store.bucket}")

        # Step 1: normalize
        try:
            image = self.normalizer.normalize(local_uri)
        except UploadError as e:
            raise e.with_context(job_id, kind.value, "normalize")

        try:
            # Step 2: bytes
            try:
                data = self.loader.load(image.uri)
            except UploadError as e:
                raise e.with_context(job_id, kind.value, "load_bytes")
            logger.info(f"Photo byte length {len(data)}")

            # Step 3: path
            path = build_storage_path(job_id, kind, image.extension, self.clock())
            logger.info(f"Photo path {path}")

            # Step 4: bucket sanity
            self._check_bucket(job_id, kind)

            # Step 5: upload
            self._put_object(path, data, image.content_type, job_id, kind)
        finally:
            if image.uri != local_uri:
                discard_working_copy(image.uri)

        # Step 6: display URL
        try:
            display_url = self.resolver.resolve(path, signed=signed_url)
        except StoreError as e:
            raise UploadError(
                UploadErrorKind.CREDENTIAL_FAILED,
                f"Signed URL failed: {e.message}",
                job_id=job_id,
                photo_kind=kind.value,
                step="display_url",
            ) from e

        # Step 7: link to the job
        try:
            row = self.store.insert(
                "photos",
                {
                    "job_id": job_id,
                    "type": kind.value,
                    "image_url": path,
                    "created_at": self.clock(),
                },
            )
        except StoreError as e:
            raise UploadError(
                UploadErrorKind.RECORD_INSERT_FAILED,
                e.message,
                job_id=job_id,
                photo_kind=kind.value,
                step="insert_record",
            ) from e

        logger.info(f"Photo upload SUCCESS {path}")
        return UploadResult(storage_path=path, display_url=display_url, photo=PhotoRow.model_validate(row))

    def _check_bucket(self, job_id: str, kind: PhotoKind):
        try:
            exists = self.object_store.bucket_exists()
        except StoreError as e:
            # Only a definite "not found" is fatal here; the upload reports anything else
            logger.warning(f"Bucket probe failed, continuing: {e.message}")
            return
        if not exists:
            raise UploadError(
                UploadErrorKind.BUCKET_MISSING,
                f'Storage bucket "{self.object_store.bucket}" not found',
                job_id=job_id,
                photo_kind=kind.value,
                step="probe_bucket",
            )

    def _put_object(self, path: str, data: bytes, content_type: str, job_id: str, kind: PhotoKind):
        try:
            signed = self.object_store.create_signed_upload_url(path)
        except StoreError as e:
            logger.warning(f"Signed upload unavailable, using direct upload: {e.message}")
            signed = None

        try:
            if signed:
                self.object_store.upload_to_signed_url(path, signed.token, data, content_type)
                logger.info("Signed upload OK")
            else:
                self.object_store.upload(path, data, content_type, upsert=True)
                logger.info("Direct upload OK")
        except StoreError as e:
            raise UploadError(
                UploadErrorKind.STORE_UPLOAD_FAILED,
                e.message,
                job_id=job_id,
                photo_kind=kind.value,
                step="upload",
            ) from e
