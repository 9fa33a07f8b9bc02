"""
Existence probes for candidate license URLs.

A probe never raises for network conditions: transport errors, 404s,
timeouts and aborts all come back as a ``ProbeResult`` so the resolver gets a
terminal verdict for every candidate.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from .cli_config import get_config
from .http_client import ContentKind, classify_content
from .structured_logging import get_resolver_logger


class ProbeOutcome(Enum):
    """Verdict of a single probe."""

    VALID = "valid"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"
    ABORTED = "aborted"
    TIMEOUT = "timeout"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class ProbeResult:
    """Result of probing one candidate URL."""

    url: str
    outcome: ProbeOutcome
    reason: Optional[str] = None
    actual_url: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome is ProbeOutcome.VALID

    @property
    def is_indeterminate(self) -> bool:
        """Neither a success nor a recognized failure."""
        return self.outcome in (ProbeOutcome.INDETERMINATE, ProbeOutcome.TIMEOUT)


async def _cancel_and_wait(task: "asyncio.Future") -> None:
    if task.done():
        return
    task.cancel()
    await asyncio.wait({task})


class HypothesisProber:
    """Issues HEAD requests against candidate license URLs."""

    def __init__(self, client: httpx.AsyncClient, timeout: Optional[float] = None):
        """
        Args:
            client: Shared HTTP client (redirects must be followed)
            timeout: Seconds before an unanswered probe counts as a timeout
        """
        self.client = client
        self.timeout = timeout if timeout is not None else get_config().network.probe_timeout

    async def probe(
        self, url: str, abort_event: Optional[asyncio.Event] = None
    ) -> ProbeResult:
        """
        Probe ``url`` for plain-text content.

        When ``abort_event`` is set before the response arrives, the request
        is cancelled and the probe resolves as ``ABORTED``.
        """
        request_task = asyncio.ensure_future(self._request(url))
        abort_task = (
            asyncio.ensure_future(abort_event.wait()) if abort_event is not None else None
        )
        waiters = {request_task} if abort_task is None else {request_task, abort_task}

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if abort_task is not None:
                await _cancel_and_wait(abort_task)
            if not request_task.done():
                await _cancel_and_wait(request_task)

        if request_task in done:
            return request_task.result()

        if abort_task is not None and abort_task in done:
            get_resolver_logger().debug("probe_aborted", url=url)
            return ProbeResult(url=url, outcome=ProbeOutcome.ABORTED, reason="aborted")

        get_resolver_logger().warning("probe_timeout", url=url, timeout_seconds=self.timeout)
        return ProbeResult(
            url=url,
            outcome=ProbeOutcome.TIMEOUT,
            reason=f"No response within {self.timeout}s",
        )

    async def _request(self, url: str) -> ProbeResult:
        try:
            response = await self.client.head(url)
        except httpx.TimeoutException as e:
            return ProbeResult(
                url=url, outcome=ProbeOutcome.TIMEOUT, reason=f"HTTP request timed out: {e}"
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            get_resolver_logger().warning("probe_request_error", url=url, error=str(e))
            return ProbeResult(
                url=url,
                outcome=ProbeOutcome.TRANSPORT_ERROR,
                reason=f"HTTP request error: {e}",
            )

        return self.classify(url, response)

    @staticmethod
    def classify(url: str, response: httpx.Response) -> ProbeResult:
        """Turn a received response into a verdict."""
        if response.status_code == 404:
            return ProbeResult(url=url, outcome=ProbeOutcome.NOT_FOUND, reason="404 Not found")

        if response.status_code >= 400:
            return ProbeResult(
                url=url,
                outcome=ProbeOutcome.INDETERMINATE,
                reason=f"HTTP {response.status_code}",
            )

        kind = classify_content(response)
        if kind is ContentKind.TEXT:
            return ProbeResult(
                url=url,
                outcome=ProbeOutcome.VALID,
                actual_url=str(response.url),
            )

        return ProbeResult(
            url=url,
            outcome=ProbeOutcome.INDETERMINATE,
            reason=f"Response content is {kind.value}, not plain text",
        )
