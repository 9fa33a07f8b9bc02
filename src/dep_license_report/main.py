import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .cli_config import create_sample_config, get_config, load_config
from .crawler import NpmLicenseCrawler, load_crawl_file
from .dependency import DependencyRecord
from .error_handling import LicenseReportError
from .extra import accumulate_extra_fields, load_dependencies_extra
from .http_client import LicenseHttpClient
from .report import LicenseReport, ReportAssembler
from .reporting import LicenseReporter
from .structured_logging import clear_run_context, configure_logging, set_run_context
from .url_normalizer import normalize_repository_url

PROGRAM_NAME = "dep-license-report"

# Report JSON goes to stdout; everything meant for humans goes to stderr
console = Console(stderr=True)


def read_package_json(start_dir: Path) -> Dict[str, Any]:
    """Read ``package.json`` from the project directory."""
    package_json_path = start_dir / "package.json"
    try:
        with open(package_json_path, encoding="utf-8") as f:
            package_json = json.load(f)
    except FileNotFoundError:
        raise click.ClickException(f"No package.json found in {start_dir}")
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Failed to read {package_json_path}: {str(e)}")

    if not isinstance(package_json, dict):
        raise click.ClickException(f"{package_json_path} must contain a JSON object")
    return package_json


def build_command_line(
    strict: bool,
    extra: Optional[str],
    accumulate: bool,
    output: Optional[str],
    quiet: bool,
) -> str:
    """The invocation recorded in the report comment."""
    args: List[str] = [PROGRAM_NAME, "generate"]
    if strict:
        args.append("--strict")
    if extra:
        args.extend(["--extra", extra])
    if not accumulate:
        args.append("--no-accumulate")
    if output:
        args.extend(["--output", output])
    if quiet:
        args.append("--quiet")
    return " ".join(args)


def write_report(report: LicenseReport, output: Optional[str]) -> None:
    report_json = report.to_json(indent=2)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(report_json)
            f.write("\n")
    else:
        click.echo(report_json)


async def async_generate_report(
    start_dir: Path,
    crawl_file: Optional[str],
    strict: bool,
    extra_path: Optional[str],
    accumulate: bool,
    command_line: str,
    quiet: bool,
) -> LicenseReport:
    """Collect dependencies, resolve their licenses and assemble the report."""
    package_json = read_package_json(start_dir)
    if not quiet:
        console.print(
            f"📁 Will read package.json from {start_dir / 'package.json'}", style="cyan"
        )

    extra = load_dependencies_extra(
        package_json, Path(extra_path) if extra_path else None
    )
    accumulated = accumulate_extra_fields(extra) if accumulate else {}

    if crawl_file:
        crawl = load_crawl_file(Path(crawl_file))
    else:
        crawl = await NpmLicenseCrawler().crawl(start_dir)

    if not quiet:
        console.print(f"🔍 Resolving licenses of {len(crawl)} packages...", style="blue")

    set_run_context(
        package_name=package_json.get("name"), total_dependencies=len(crawl)
    )
    try:
        return await ReportAssembler().build_report(
            package_json,
            crawl,
            command_line,
            extra=extra,
            accumulated=accumulated,
            strict=strict,
        )
    finally:
        clear_run_context()


async def async_lookup(repository: str, license_url: Optional[str]) -> DependencyRecord:
    """Annotate a single ad-hoc record."""
    repository = normalize_repository_url(repository)
    record = DependencyRecord(
        name=repository,
        version="",
        repository=repository,
        license_url=normalize_repository_url(license_url or repository),
    )

    assembler = ReportAssembler()
    async with LicenseHttpClient(assembler.config.network, assembler.transport) as client:
        await assembler.build_annotator(client).annotate(record)
    return record


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📜 dep-license-report: consolidated license report for npm projects

    Collects the dependency tree of a package and resolves the license text
    of every dependency from its repository.
    """
    if version:
        console.print(f"dep-license-report version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.option(
    "--strict",
    is_flag=True,
    help="Only show packages that are listed as dependencies",
)
@click.option(
    "--extra",
    "-e",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with extra information for each dependency",
)
@click.option(
    "--accumulate/--no-accumulate",
    "-A/-a",
    default=True,
    help="Augment every package with the accumulated set of extra fields",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the report to this file instead of stdout",
)
@click.option(
    "--quiet", "-q", is_flag=True, help="No output to console, except the generated data"
)
@click.option(
    "--start",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Project directory containing package.json",
    show_default=True,
)
@click.option(
    "--crawl-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Use previously saved npm-license-crawler JSON instead of running it",
)
@click.option(
    "--summary",
    is_flag=True,
    help="Print a table of license resolution results",
)
def generate(
    strict: bool,
    extra: Optional[str],
    accumulate: bool,
    output: Optional[str],
    quiet: bool,
    start: str,
    crawl_file: Optional[str],
    summary: bool,
) -> None:
    """
    Generate the license report of the package in the current directory.

    Examples:

      dep-license-report generate -o licenses.json

      dep-license-report generate --strict --extra extra.json

      dep-license-report generate --crawl-file crawl.json --summary
    """
    try:
        config = load_config()
        configure_logging(
            config.logging.log_level,
            config.logging.enable_json,
            quiet=quiet,
            log_format=config.logging.log_format,
        )

        final_strict = strict or config.report.strict
        final_accumulate = accumulate and config.report.accumulate

        if not quiet:
            console.print(
                Panel(
                    f"📜 [bold blue]dep-license-report[/bold blue] v{__version__}",
                    border_style="blue",
                )
            )

        command_line = build_command_line(
            final_strict, extra, final_accumulate, output, quiet
        )
        report = asyncio.run(
            async_generate_report(
                Path(start),
                crawl_file,
                final_strict,
                extra,
                final_accumulate,
                command_line,
                quiet,
            )
        )

        write_report(report, output)

        if summary and not quiet:
            LicenseReporter(console).print_summary(report)
        if not quiet:
            if output:
                console.print(f"💾 Report written to {output}", style="dim")
            console.print("Status: OK", style="green")

    except KeyboardInterrupt:
        console.print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except (click.ClickException, LicenseReportError, OSError) as e:
        message = e.format_message() if isinstance(e, click.ClickException) else str(e)
        console.print(f"❌ Error: {message}", style="red")
        console.print("Status: Error", style="red")
        sys.exit(1)


@cli.command()
@click.argument("repository")
@click.option(
    "--license-url",
    help="Known license URL; a direct link to a license file skips probing",
)
def lookup(repository: str, license_url: Optional[str]) -> None:
    """
    Resolve the license text of a single repository.

    Examples:

      dep-license-report lookup https://github.com/acme/widget

      dep-license-report lookup git+https://github.com/acme/widget.git
    """
    config = load_config()
    configure_logging(
        config.logging.log_level,
        config.logging.enable_json,
        log_format=config.logging.log_format,
    )

    record = asyncio.run(async_lookup(repository, license_url))

    if record.license_text is None:
        console.print(f"❌ No license text found for {record.repository}", style="red")
        sys.exit(1)

    console.print(f"✅ License URL: {record.license_url}", style="green")
    click.echo(record.license_text)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".dep-license-report.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        console.print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(
        Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue")
    )

    console.print("\n[bold cyan]🌐 Network Settings:[/bold cyan]")
    console.print(f"  User Agent: {current_config.network.user_agent}")
    console.print(f"  Probe Timeout: {current_config.network.probe_timeout}s")
    console.print(f"  Fetch Timeout: {current_config.network.fetch_timeout}s")
    console.print(f"  Connect Timeout: {current_config.network.connect_timeout}s")
    console.print(f"  Max Connections: {current_config.network.max_connections}")

    console.print("\n[bold cyan]📜 License Settings:[/bold cyan]")
    console.print(
        f"  Candidate Files: {', '.join(current_config.license.candidate_filenames)}"
    )
    console.print(f"  Guess Path: {current_config.license.guess_path}")

    console.print("\n[bold cyan]📊 Report Settings:[/bold cyan]")
    console.print(f"  Strict: {current_config.report.strict}")
    console.print(f"  Accumulate Extra Fields: {current_config.report.accumulate}")
    console.print(f"  Crawler: {' '.join(current_config.report.crawler_command)}")
    console.print(f"  Crawler Timeout: {current_config.report.crawler_timeout_seconds}s")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")


if __name__ == "__main__":
    cli()
