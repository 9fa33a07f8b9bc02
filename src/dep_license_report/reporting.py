"""
Console summary of a license report.

Provides color-coded output using Rich library. The JSON report itself is
written by ``LicenseReport.to_json``; this is the human-readable companion.
"""

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .dependency import DependencyRecord, LicenseStatus
from .report import LicenseReport

STATUS_STYLES = {
    LicenseStatus.RESOLVED: ("green", "Resolved"),
    LicenseStatus.NOT_FOUND: ("yellow", "Not Found"),
    LicenseStatus.ERROR: ("red", "Failed"),
}


def _license_names(licenses) -> str:
    if licenses is None:
        return "-"
    if isinstance(licenses, (list, tuple)):
        return ", ".join(str(name) for name in licenses)
    return str(licenses)


class LicenseReporter:
    """Formats and displays the outcome of license resolution."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def print_summary(self, report: LicenseReport, show_resolved: bool = True) -> None:
        """
        Print a summary of the report.

        Args:
            report: The assembled report
            show_resolved: Also list dependencies whose license text was found
        """
        self.console.print()
        self._print_header(report)

        if not report.dependencies:
            self.console.print("ℹ️  No dependencies in the report.", style="yellow")
            return

        self._print_counts(report)

        dependencies = report.dependencies
        if not show_resolved:
            dependencies = [
                dep
                for dep in dependencies
                if dep.license_status is not LicenseStatus.RESOLVED
            ]
        self._print_dependencies(dependencies)

    def _print_header(self, report: LicenseReport) -> None:
        package = report.name or "(unnamed package)"
        if report.version:
            package += f"@{report.version}"
        self.console.print(
            Panel(
                f"📜 License Report: {package}\n[dim]Generated {report.generated}[/dim]",
                title="[bold blue]dep-license-report[/bold blue]",
                border_style="blue",
            )
        )

    def _print_counts(self, report: LicenseReport) -> None:
        counts = report.count_by_status()

        table = Table(title="📊 Summary", box=box.ROUNDED, title_style="bold")
        table.add_column("Status", style="bold")
        table.add_column("Count", justify="right")

        for status, (color, label) in STATUS_STYLES.items():
            if counts[status]:
                table.add_row(f"[{color}]{label}[/{color}]", str(counts[status]))
        table.add_row("Total", str(len(report.dependencies)), style="bold")

        self.console.print(table)
        self.console.print()

    def _print_dependencies(self, dependencies: List[DependencyRecord]) -> None:
        if not dependencies:
            self.console.print("✅ License text found for every dependency.", style="green")
            return

        table = Table(title="📋 Dependencies", box=box.SIMPLE, title_style="bold")
        table.add_column("Package", style="bold")
        table.add_column("Version")
        table.add_column("Licenses")
        table.add_column("License URL", overflow="fold")
        table.add_column("Status", justify="center")

        for dep in dependencies:
            color, label = STATUS_STYLES.get(dep.license_status, ("white", "Pending"))
            table.add_row(
                dep.name,
                dep.version or "-",
                _license_names(dep.licenses),
                dep.license_url or "-",
                f"[{color}]{label}[/{color}]",
            )

        self.console.print(table)
        self.console.print()
