"""Shared HTTP plumbing for the hosted backend's REST APIs."""

import logging
from typing import Dict, Optional

import httpx

from cleanerapp.config import settings
from cleanerapp.errors import StoreError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """Extract the displayable message from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


def error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        code = body.get("code") or body.get("error_code") or body.get("statusCode")
        return str(code) if code is not None else None
    return None


class BackendClient:
    """Base class for REST clients of the hosted backend.

    Requests carry the project API key and, when a session is present, the
    subject's access token so row-level and storage policies apply.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the client."""
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self.access_token = access_token
        self.client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT)

    def _build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build HTTP headers for the backend."""
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request and translate transport errors into StoreError."""
        headers = self._build_headers(kwargs.pop("headers", None))
        url = f"{self.base_url}{path}"
        try:
            return self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise StoreError(f"Network error: {e}") from e

    def _check(self, response: httpx.Response) -> httpx.Response:
        """Raise StoreError carrying the backend's message on non-2xx."""
        if response.is_success:
            return response
        raise StoreError(
            error_message(response),
            status_code=response.status_code,
            code=error_code(response),
        )

    def close(self):
        self.client.close()
