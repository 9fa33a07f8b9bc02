"""
Per-dependency license annotation.

Decides, for one ``DependencyRecord``, whether its ``license_url`` can be
fetched directly or whether the repository has to be probed for a license
file, then stores the outcome on the record. Nothing raised below this point
escapes ``annotate``: a dependency that cannot be resolved ends up with both
license fields set to ``None``.
"""

from typing import Optional

from .cli_config import get_config
from .dependency import DependencyRecord, LicenseStatus
from .error_handling import IndeterminateProbeError, log_resolution_error
from .fetcher import LicenseTextFetcher
from .resolver import LicenseUrlResolver
from .structured_logging import get_annotator_logger
from .url_normalizer import guess_base_url, is_direct_license_url


class DependencyLicenseAnnotator:
    """Populates ``license_url`` and ``license_text`` of dependency records."""

    def __init__(
        self,
        resolver: LicenseUrlResolver,
        fetcher: LicenseTextFetcher,
        guess_path: Optional[str] = None,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.guess_path = guess_path or get_config().license.guess_path

    async def annotate(self, dependency: DependencyRecord) -> None:
        """
        Resolve and store the license of ``dependency`` in place.

        Records that were already annotated are left untouched.
        """
        if dependency.is_annotated:
            return

        logger = get_annotator_logger()
        logger.info(
            "license_lookup_started",
            package_name=dependency.name,
            repository=dependency.repository,
        )

        try:
            await self._annotate(dependency)
        except IndeterminateProbeError as e:
            self._give_up(dependency, LicenseStatus.ERROR, str(e), e)
        except Exception as e:
            # A single dependency must never abort the whole report
            self._give_up(
                dependency, LicenseStatus.ERROR, f"Unexpected error: {e}", e
            )

    async def _annotate(self, dependency: DependencyRecord) -> None:
        logger = get_annotator_logger()
        license_url = dependency.license_url

        if is_direct_license_url(license_url):
            logger.info(
                "license_url_direct", package_name=dependency.name, license_url=license_url
            )
            await self._fetch_into(dependency, license_url)
            return

        if license_url is not None and license_url != dependency.repository:
            logger.warning(
                "license_url_unrecognized",
                package_name=dependency.name,
                license_url=license_url,
            )

        if not dependency.repository:
            self._give_up(dependency, LicenseStatus.NOT_FOUND, "No repository URL")
            return

        base_url = guess_base_url(dependency.repository, self.guess_path)
        candidates = await self.resolver.resolve_license_url(base_url)
        if not candidates:
            self._give_up(
                dependency, LicenseStatus.NOT_FOUND, "Could not find license URL"
            )
            return

        await self._fetch_into(dependency, candidates[0].url)

    async def _fetch_into(self, dependency: DependencyRecord, license_url: str) -> None:
        result = await self.fetcher.fetch(license_url)
        if not result.has_text:
            self._give_up(
                dependency,
                LicenseStatus.NOT_FOUND,
                f"Could not get license text from {result.url}: {result.reason}",
            )
            return

        dependency.mark_resolved(license_url, result.text)
        get_annotator_logger().info(
            "license_text_resolved",
            package_name=dependency.name,
            license_url=license_url,
            text_length=len(result.text),
        )

    def _give_up(
        self,
        dependency: DependencyRecord,
        status: LicenseStatus,
        reason: str,
        exception: Optional[Exception] = None,
    ) -> None:
        dependency.mark_unresolved(status)
        log_resolution_error(
            f"Could not get license text for {dependency.name}: {reason}",
            "annotator",
            "annotate",
            package_name=dependency.name,
            repository=dependency.repository,
            exception=exception,
        )
