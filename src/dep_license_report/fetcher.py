"""
Retrieval and clean-up of license text.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from .error_handling import log_network_error
from .http_client import ContentKind, classify_content
from .structured_logging import get_resolver_logger
from .url_normalizer import reflow_license_text, to_raw_github_url


class FetchOutcome(Enum):
    """How a fetch ended."""

    TEXT = "text"  # usable license text
    ABSENT = "absent"  # server answered, but with nothing usable
    ERROR = "error"  # no answer


@dataclass(frozen=True)
class FetchResult:
    """Result of fetching one license URL."""

    url: str
    outcome: FetchOutcome
    text: Optional[str] = None
    reason: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return self.outcome is FetchOutcome.TEXT


class LicenseTextFetcher:
    """Downloads license files and reflows hard-wrapped text."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch(self, url: str) -> FetchResult:
        """
        GET ``url`` (GitHub blob pages are redirected to raw content).

        Never raises for network or content problems.
        """
        request_url = to_raw_github_url(url)

        try:
            response = await self.client.get(request_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log_network_error(
                "License text request failed",
                "fetcher",
                "fetch",
                url=request_url,
                exception=e,
            )
            return FetchResult(
                url=request_url, outcome=FetchOutcome.ERROR, reason=f"HTTP request error: {e}"
            )

        if response.is_error:
            return FetchResult(
                url=request_url,
                outcome=FetchOutcome.ABSENT,
                reason=f"HTTP {response.status_code}",
            )

        if not response.content.strip():
            return FetchResult(
                url=request_url, outcome=FetchOutcome.ABSENT, reason="Empty response body"
            )

        kind = classify_content(response)
        if kind is not ContentKind.TEXT:
            get_resolver_logger().info(
                "license_text_rejected", url=request_url, content=kind.value
            )
            return FetchResult(
                url=request_url,
                outcome=FetchOutcome.ABSENT,
                reason=f"Response content is {kind.value}, not plain text",
            )

        return FetchResult(
            url=request_url,
            outcome=FetchOutcome.TEXT,
            text=reflow_license_text(response.text),
        )

    async def fetch_license_text(self, url: str) -> Optional[str]:
        """The license text at ``url``, or ``None`` when there is none."""
        result = await self.fetch(url)
        return result.text
