"""
License URL resolution by speculative concurrent probing.

Every candidate filename under a base URL is probed at once. The first valid
responder aborts its siblings; all probes are still awaited before the
resolver returns, so no request outlives the call.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from .cli_config import get_config
from .error_handling import IndeterminateProbeError
from .prober import HypothesisProber, ProbeResult
from .structured_logging import get_resolver_logger

T = TypeVar("T")

ProbeFactory = Callable[[asyncio.Event], Awaitable[T]]


def _completed_with_winner(task: "asyncio.Future", is_winner: Callable[[T], bool]) -> bool:
    if task.cancelled() or task.exception() is not None:
        return False
    return is_winner(task.result())


async def race_until_valid(
    factories: Sequence[ProbeFactory], is_winner: Callable[[T], bool]
) -> List[T]:
    """
    Run all ``factories`` concurrently and abort the rest on the first winner.

    Each factory receives the shared abort event and must resolve (not raise)
    once it is set. Results are returned in factory order.
    """
    abort_event = asyncio.Event()
    tasks = [asyncio.ensure_future(factory(abort_event)) for factory in factories]

    try:
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            if any(_completed_with_winner(task, is_winner) for task in done):
                abort_event.set()
                break

        if pending:
            await asyncio.wait(pending)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    return [task.result() for task in tasks]


class LicenseUrlResolver:
    """Finds which candidate license filename a repository actually serves."""

    def __init__(
        self,
        prober: HypothesisProber,
        candidate_filenames: Optional[List[str]] = None,
    ):
        self.prober = prober
        self.candidate_filenames = list(
            candidate_filenames or get_config().license.candidate_filenames
        )

    def candidate_urls(self, base_url: str) -> List[str]:
        return [base_url + filename for filename in self.candidate_filenames]

    async def resolve_license_url(self, base_url: str) -> List[ProbeResult]:
        """
        Probe every candidate under ``base_url``.

        Returns:
            List[ProbeResult]: the valid probes in candidate order, possibly empty

        Raises:
            IndeterminateProbeError: nothing validated and some probe ended in
                an unrecognized state
        """
        logger = get_resolver_logger()
        urls = self.candidate_urls(base_url)

        def make_factory(candidate: str) -> ProbeFactory:
            return lambda abort_event: self.prober.probe(candidate, abort_event)

        results: List[ProbeResult] = await race_until_valid(
            [make_factory(url) for url in urls], lambda result: result.is_valid
        )

        valid = [result for result in results if result.is_valid]
        if valid:
            logger.info(
                "license_url_resolved",
                base_url=base_url,
                license_url=valid[0].url,
                actual_url=valid[0].actual_url,
            )
            return valid

        indeterminate = [result for result in results if result.is_indeterminate]
        if indeterminate:
            raise IndeterminateProbeError(
                base_url,
                [f"{result.url}: {result.reason}" for result in indeterminate],
            )

        logger.info(
            "license_url_not_found",
            base_url=base_url,
            reasons=[result.reason for result in results],
        )
        return []
