"""
Adapter for the external npm dependency crawler.

Discovering the dependency tree is left to ``npm-license-crawler``; this
module runs it in a subprocess, keeps its console chatter out of our output
and loads the JSON it produces.
"""

import asyncio
import json
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cli_config import get_config
from .error_handling import CrawlerError, ErrorCategory, get_error_handler
from .structured_logging import get_report_logger

CrawlResult = Dict[str, Dict[str, Any]]


def load_crawl_file(path: Path) -> CrawlResult:
    """Load crawler output previously written with ``--json``."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise CrawlerError(f"Could not read crawl results from {path}: {e}") from e

    if not isinstance(data, dict):
        raise CrawlerError(f"Crawl results in {path} must be a JSON object")
    return data


class NpmLicenseCrawler:
    """Runs ``npm-license-crawler`` against a project directory."""

    def __init__(
        self,
        command: Optional[List[str]] = None,
        timeout_seconds: Optional[int] = None,
    ):
        config = get_config()
        self.command = list(command or config.report.crawler_command)
        self.timeout_seconds = timeout_seconds or config.report.crawler_timeout_seconds
        self.error_handler = get_error_handler()

    def build_command(self, start_dir: Path, output_path: Path) -> List[str]:
        return [
            *self.command,
            "--start",
            str(start_dir),
            "--dependencies",
            "--json",
            str(output_path),
        ]

    async def crawl(self, start_dir: Path) -> CrawlResult:
        """
        Crawl the dependency tree of the project in ``start_dir``.

        Raises:
            CrawlerError: the crawler could not be run or failed
        """
        with tempfile.TemporaryDirectory(prefix="dep-license-report-") as tmp_dir:
            output_path = Path(tmp_dir) / "licenses.json"
            command = self.build_command(start_dir, output_path)
            get_report_logger().info("crawler_started", command=command[0], start=str(start_dir))

            stderr = await self._run_command(command, start_dir)

            if not output_path.exists():
                raise CrawlerError(
                    f"{command[0]} produced no output"
                    + (f": {stderr.strip()}" if stderr.strip() else "")
                )
            return load_crawl_file(output_path)

    async def _run_command(self, command: List[str], cwd: Path) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(cwd),
            )
        except OSError as e:
            self.error_handler.error(
                ErrorCategory.CRAWLER,
                f"Could not start {command[0]}",
                "crawler",
                "_run_command",
                exception=e,
                suggestions=["Install it with: npm install -g npm-license-crawler"],
            )
            raise CrawlerError(f"Could not start {command[0]}: {e}") from e

        try:
            _, stderr_data = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CrawlerError(
                f"{command[0]} timed out after {self.timeout_seconds}s"
            ) from None

        stderr = stderr_data.decode("utf-8", errors="replace") if stderr_data else ""
        if process.returncode:
            self.error_handler.error(
                ErrorCategory.CRAWLER,
                f"{command[0]} exited with status {process.returncode}",
                "crawler",
                "_run_command",
                details={"stderr": stderr[-500:]},
            )
            raise CrawlerError(
                f"{command[0]} exited with status {process.returncode}: {stderr.strip()}"
            )
        return stderr
