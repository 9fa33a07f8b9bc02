"""
Shared HTTP client for license probing and fetching.

Uses the async context manager pattern for ``httpx.AsyncClient`` resource
management: the client is created on entry and closed on exit, and a single
instance is shared by every probe and fetch of a run.
"""

from enum import Enum
from typing import Dict, Optional

import httpx

from .cli_config import NetworkConfig, get_config
from .url_normalizer import looks_like_html

# Content types accepted as text regardless of the body
TEXTUAL_MEDIA_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
}
# Content types that carry no information about the body on their own
OPAQUE_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
HTML_MEDIA_TYPES = {"text/html", "application/xhtml+xml"}


class ContentKind(Enum):
    """What a response body (or its headers, for HEAD) looks like."""

    TEXT = "text"
    HTML = "html"
    BINARY = "binary"
    UNKNOWN = "unknown"


def media_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


def classify_content(response: httpx.Response) -> ContentKind:
    """
    Classify the payload of ``response``.

    A body, when there is one, is authoritative. HEAD responses have none, so
    the ``Content-Type`` header is used instead.
    """
    kind = media_type(response)
    body = response.content

    if body:
        if b"\x00" in body[:8192]:
            return ContentKind.BINARY
        if looks_like_html(response.text):
            return ContentKind.HTML
        if (
            kind.startswith("text/")
            or kind in TEXTUAL_MEDIA_TYPES
            or kind in OPAQUE_MEDIA_TYPES
        ):
            return ContentKind.TEXT
        return ContentKind.BINARY

    if kind in HTML_MEDIA_TYPES:
        return ContentKind.HTML
    if kind.startswith("text/") or kind in TEXTUAL_MEDIA_TYPES:
        return ContentKind.TEXT
    return ContentKind.UNKNOWN


class LicenseHttpClient:
    """
    Owns the ``httpx.AsyncClient`` used for one report run.

    ``transport`` lets callers substitute the network layer, e.g. with
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        network_config: Optional[NetworkConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.network_config = network_config or get_config().network
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

        self._headers: Dict[str, str] = {
            "User-Agent": self.network_config.user_agent,
            "Accept": "text/plain, text/markdown;q=0.9, */*;q=0.5",
        }

    async def __aenter__(self) -> httpx.AsyncClient:
        """Initialize the HTTP client when entering the context."""
        config = self.network_config
        self.client = httpx.AsyncClient(
            headers=self._headers,
            timeout=httpx.Timeout(config.fetch_timeout, connect=config.connect_timeout),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive_connections,
            ),
            follow_redirects=True,
            transport=self.transport,
        )
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up the HTTP client when exiting the context."""
        if self.client:
            await self.client.aclose()
            self.client = None
