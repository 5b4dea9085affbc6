"""Object storage client (bucket-scoped) for the hosted storage REST API."""

import logging
from typing import NamedTuple, Optional
from urllib.parse import parse_qs, quote, urlparse

import httpx

from cleanerapp.config import settings
from cleanerapp.errors import StoreError
from cleanerapp.services.rest_client import BackendClient

logger = logging.getLogger(__name__)

BUCKET_NOT_FOUND = "bucket not found"


class SignedUpload(NamedTuple):
    """Short-lived credential for uploading one object path."""

    path: str
    token: str
    url: str


class ObjectStore(BackendClient):
    """Client for one storage bucket."""

    def __init__(self, bucket: Optional[str] = None, **kwargs):
        """Initialize the client for a bucket."""
        super().__init__(**kwargs)
        self.bucket = bucket or settings.PHOTO_BUCKET

    def _object_path(self, path: str) -> str:
        return f"{quote(self.bucket)}/{quote(path.lstrip('/'))}"

    def bucket_exists(self) -> bool:
        """
        Probe the bucket by listing at most one object.

        Returns:
            False if the backend reports the bucket as missing, True otherwise

        Raises:
            StoreError: On any other listing failure
        """
        response = self._request(
            "POST",
            f"/storage/v1/object/list/{quote(self.bucket)}",
            json={"prefix": "", "limit": 1, "offset": 0},
        )
        try:
            self._check(response)
        except StoreError as e:
            if BUCKET_NOT_FOUND in e.message.lower():
                return False
            raise
        return True

    def create_signed_upload_url(self, path: str) -> SignedUpload:
        """Issue a signed upload credential scoped to one path."""
        response = self._check(
            self._request("POST", f"/storage/v1/object/upload/sign/{self._object_path(path)}")
        )
        signed_url = response.json().get("url", "")
        token = parse_qs(urlparse(signed_url).query).get("token", [""])[0]
        if not token:
            raise StoreError("Signed upload URL did not include a token")
        return SignedUpload(path=path, token=token, url=f"{self.base_url}/storage/v1{signed_url}")

    def upload_to_signed_url(self, path: str, token: str, data: bytes, content_type: str) -> str:
        """Upload bytes with a previously issued credential. Returns the object key."""
        response = self._check(
            self._request(
                "PUT",
                f"/storage/v1/object/upload/sign/{self._object_path(path)}",
                params={"token": token},
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        )
        return response.json().get("Key", path)

    def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> str:
        """Direct upload with the caller's own storage permissions. Returns the object key."""
        response = self._check(
            self._request(
                "POST",
                f"/storage/v1/object/{self._object_path(path)}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
            )
        )
        return response.json().get("Key", path)

    def get_public_url(self, path: str) -> str:
        """Public URL of an object. No request is made."""
        return f"{self.base_url}/storage/v1/object/public/{self._object_path(path)}"

    def create_signed_url(self, path: str, expires_in: Optional[int] = None) -> str:
        """Time-limited read URL for an object in a private bucket."""
        expires_in = expires_in or settings.SIGNED_URL_TTL
        response = self._check(
            self._request(
                "POST",
                f"/storage/v1/object/sign/{self._object_path(path)}",
                json={"expiresIn": expires_in},
            )
        )
        signed = response.json().get("signedURL") or response.json().get("signedUrl")
        if not signed:
            raise StoreError("Signed URL failed")
        return f"{self.base_url}/storage/v1{signed}"
