"""
Report assembly.

Turns crawler output into dependency records, overlays extra metadata,
annotates every record with its license concurrently and wraps the result in
the report envelope.
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .annotator import DependencyLicenseAnnotator
from .cli_config import ComprehensiveConfig, get_config
from .dependency import DependencyRecord, LicenseStatus, is_package_dependency
from .extra import ExtraMetadata, extend_with_extra_info
from .fetcher import LicenseTextFetcher
from .http_client import LicenseHttpClient
from .prober import HypothesisProber
from .resolver import LicenseUrlResolver
from .structured_logging import get_report_logger


@dataclass
class LicenseReport:
    """The consolidated report for one package."""

    name: Optional[str]
    version: Optional[str]
    comment: str
    generated: str
    dependencies: List[DependencyRecord] = field(default_factory=list)

    def count_by_status(self) -> Dict[LicenseStatus, int]:
        counts = {status: 0 for status in LicenseStatus}
        for dependency in self.dependencies:
            if dependency.license_status is not None:
                counts[dependency.license_status] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "comment": self.comment,
            "generated": self.generated,
            "dependencies": [dependency.to_dict() for dependency in self.dependencies],
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        # json.dumps already writes None as null, which covers missing fields
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def parse_crawler_results(
    package_json: Mapping[str, Any],
    crawl: Mapping[str, Mapping[str, Any]],
    strict: bool = False,
) -> List[DependencyRecord]:
    """
    Build records from crawler output keyed by ``name@version``.

    With ``strict`` only the package's own declared dependencies are kept.
    """
    records = []
    for key, value in crawl.items():
        record = DependencyRecord.from_crawler_entry(key, value)
        if not strict or is_package_dependency(record, package_json):
            records.append(record)
    return records


def build_comment(command_line: str) -> str:
    return f'Dependency information automatically extracted with "{command_line}"'


class ReportAssembler:
    """Fans license annotation out over all dependencies of a package."""

    def __init__(
        self,
        config: Optional[ComprehensiveConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config()
        self.transport = transport

    def build_annotator(self, client: httpx.AsyncClient) -> DependencyLicenseAnnotator:
        prober = HypothesisProber(client, timeout=self.config.network.probe_timeout)
        resolver = LicenseUrlResolver(prober, self.config.license.candidate_filenames)
        return DependencyLicenseAnnotator(
            resolver, LicenseTextFetcher(client), self.config.license.guess_path
        )

    async def annotate_all(self, records: List[DependencyRecord]) -> None:
        """Annotate every record at once over one shared HTTP client."""
        logger = get_report_logger()
        start_time = time.monotonic()

        async with LicenseHttpClient(self.config.network, self.transport) as client:
            annotator = self.build_annotator(client)
            await asyncio.gather(*(annotator.annotate(record) for record in records))

        resolved = sum(
            1 for record in records if record.license_status is LicenseStatus.RESOLVED
        )
        logger.info(
            "annotation_completed",
            total_dependencies=len(records),
            resolved=resolved,
            unresolved=len(records) - resolved,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    async def build_report(
        self,
        package_json: Mapping[str, Any],
        crawl: Mapping[str, Mapping[str, Any]],
        command_line: str,
        extra: Optional[ExtraMetadata] = None,
        accumulated: Optional[Mapping[str, Any]] = None,
        strict: Optional[bool] = None,
    ) -> LicenseReport:
        """Assemble the full report for ``package_json`` from crawler output."""
        if strict is None:
            strict = self.config.report.strict

        records = parse_crawler_results(package_json, crawl, strict=strict)
        get_report_logger().info(
            "dependencies_collected", total_dependencies=len(records), strict=strict
        )

        if extra is not None:
            records = extend_with_extra_info(records, extra, accumulated)

        await self.annotate_all(records)

        return LicenseReport(
            name=package_json.get("name"),
            version=package_json.get("version"),
            comment=build_comment(command_line),
            generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            dependencies=records,
        )
