"""Read raw bytes for a local image reference, with a base64 fallback path."""

import base64
import logging
import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import httpx

from cleanerapp.config import settings
from cleanerapp.errors import UploadError, UploadErrorKind

logger = logging.getLogger(__name__)

DATA_URI_RE = re.compile(r"^data:([^;,]+)?(;base64)?,", re.IGNORECASE)
NON_BASE64_RE = re.compile(r"[^A-Za-z0-9+/=]")


def local_path(uri: str) -> Path:
    """Filesystem path for a file:// URI or a plain path."""
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(url2pathname(unquote(parsed.path)))
    return Path(uri)


def split_data_uri(uri: str):
    """Return (mime, is_base64, payload) for a data URI, or None."""
    match = DATA_URI_RE.match(uri)
    if not match:
        return None
    return (match.group(1) or "").lower(), bool(match.group(2)), uri[match.end():]


def b64_to_bytes(text: str) -> bytes:
    """
    Decode base64 text leniently.

    Characters outside the base64 alphabet (line breaks, whitespace) are
    dropped, and missing '=' padding is restored.

    Raises:
        binascii.Error: If the cleaned text is still not valid base64
    """
    clean = NON_BASE64_RE.sub("", text)
    clean = clean.rstrip("=")
    if not clean:
        return b""
    clean += "=" * (-len(clean) % 4)
    return base64.b64decode(clean)


def fetch_bytes(uri: str) -> bytes:
    """Primary read: fetch the resource the way a network client would."""
    data_uri = split_data_uri(uri)
    if data_uri:
        _, is_base64, payload = data_uri
        return b64_to_bytes(payload) if is_base64 else unquote(payload).encode()

    scheme = urlparse(uri).scheme
    if scheme in ("http", "https"):
        response = httpx.get(uri, timeout=settings.HTTP_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        return response.content

    return local_path(uri).read_bytes()


def read_as_base64(uri: str) -> str:
    """Fallback read: the resource as base64 text."""
    data_uri = split_data_uri(uri)
    if data_uri and data_uri[1]:
        return data_uri[2]
    return base64.b64encode(local_path(uri).read_bytes()).decode("ascii")


class ByteLoader:
    """Return a non-empty byte payload for a local URI or fail with empty_payload."""

    def __init__(
        self,
        primary: Optional[Callable[[str], bytes]] = None,
        fallback: Optional[Callable[[str], str]] = None,
    ):
        """Initialize with read strategies (defaults work on local files and URLs)."""
        self.primary = primary or fetch_bytes
        self.fallback = fallback or read_as_base64

    def load(self, uri: str) -> bytes:
        """
        Read bytes, falling back to base64 when the primary read fails or is empty.

        Args:
            uri: Working local URI (file path, file:// URI, data URI or URL)

        Returns:
            Non-empty bytes

        Raises:
            UploadError: kind empty_payload when both strategies yield nothing
        """
        try:
            data = self.primary(uri)
            if data:
                logger.info(f"Primary read returned {len(data)} bytes")
                return data
            logger.warning("Primary read returned 0 bytes, using base64 fallback")
        except (OSError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Primary read failed ({e}), using base64 fallback")

        try:
            data = b64_to_bytes(self.fallback(uri))
        except (OSError, ValueError) as e:
            raise UploadError(
                UploadErrorKind.EMPTY_PAYLOAD,
                f"Image could not be read after all fallbacks: {e}",
                step="load_bytes",
            ) from e

        if not data:
            raise UploadError(
                UploadErrorKind.EMPTY_PAYLOAD,
                "Image byte length is 0 after all fallbacks",
                step="load_bytes",
            )
        logger.info(f"Fallback read returned {len(data)} bytes")
        return data
