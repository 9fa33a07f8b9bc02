"""
Configuration management for dep-license-report.

Settings come from dataclass defaults, then an optional config file
(JSON or YAML), then ``DEP_LICENSE_REPORT_*`` environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

from .error_handling import ErrorCategory, get_error_handler

console = Console(stderr=True)


@dataclass
class NetworkConfig:
    """HTTP settings shared by the prober and the fetcher."""

    user_agent: str = "dep-license-report/1.1.0"
    probe_timeout: float = 10.0
    fetch_timeout: float = 30.0
    connect_timeout: float = 10.0
    max_connections: int = 100
    max_keepalive_connections: int = 20


@dataclass
class LicenseConfig:
    """Where to look for license files in a repository."""

    candidate_filenames: List[str] = field(
        default_factory=lambda: ["LICENSE", "LICENSE.txt", "LICENSE.md"]
    )
    guess_path: str = "raw/master"


@dataclass
class ReportConfig:
    """Report assembly settings."""

    strict: bool = False
    accumulate: bool = True
    crawler_command: List[str] = field(
        default_factory=lambda: ["npm-license-crawler"]
    )
    crawler_timeout_seconds: int = 300


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    enable_json: bool = True
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    license: LicenseConfig = field(default_factory=LicenseConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_global_config: Optional[ComprehensiveConfig] = None

CONFIG_SECTIONS = ("network", "license", "report", "logging")


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.probe_timeout <= 0:
        errors.append("network.probe_timeout must be positive")
    if config.network.fetch_timeout <= 0:
        errors.append("network.fetch_timeout must be positive")
    if config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive")
    if config.network.max_connections <= 0:
        errors.append("network.max_connections must be positive")

    if not config.license.candidate_filenames:
        errors.append("license.candidate_filenames must not be empty")
    if len(set(config.license.candidate_filenames)) != len(
        config.license.candidate_filenames
    ):
        errors.append("license.candidate_filenames must not contain duplicates")

    if not config.report.crawler_command:
        errors.append("report.crawler_command must not be empty")
    if config.report.crawler_timeout_seconds <= 0:
        errors.append("report.crawler_timeout_seconds must be positive")

    if config.logging.log_level.upper() not in {
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    }:
        errors.append(f"logging.log_level is not a known level: {config.logging.log_level}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        get_error_handler().warning(
            ErrorCategory.CONFIGURATION,
            f"Error loading config from {config_path}",
            "cli_config",
            "load_config_file",
            exception=e,
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".dep-license-report.json",
        Path.cwd() / ".dep-license-report.yaml",
        Path.cwd() / ".dep-license-report.yml",
        Path.home() / ".config" / "dep-license-report" / "config.json",
        Path.home() / ".config" / "dep-license-report" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    if user_agent := os.environ.get("DEP_LICENSE_REPORT_USER_AGENT"):
        config.network.user_agent = user_agent
    if probe_timeout := get_env_float("DEP_LICENSE_REPORT_PROBE_TIMEOUT"):
        config.network.probe_timeout = probe_timeout
    if fetch_timeout := get_env_float("DEP_LICENSE_REPORT_FETCH_TIMEOUT"):
        config.network.fetch_timeout = fetch_timeout
    if crawler_timeout := get_env_int("DEP_LICENSE_REPORT_CRAWLER_TIMEOUT"):
        config.report.crawler_timeout_seconds = crawler_timeout
    if guess_path := os.environ.get("DEP_LICENSE_REPORT_GUESS_PATH"):
        config.license.guess_path = guess_path
    if log_level := os.environ.get("DEP_LICENSE_REPORT_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in CONFIG_SECTIONS:
                if section_name in file_config:
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = ComprehensiveConfig()

    _global_config = config
    return config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    defaults = ComprehensiveConfig()
    sample_config = {
        "network": {
            "user_agent": defaults.network.user_agent,
            "probe_timeout": defaults.network.probe_timeout,
            "fetch_timeout": defaults.network.fetch_timeout,
            "connect_timeout": defaults.network.connect_timeout,
            "max_connections": defaults.network.max_connections,
            "max_keepalive_connections": defaults.network.max_keepalive_connections,
        },
        "license": {
            "candidate_filenames": defaults.license.candidate_filenames,
            "guess_path": defaults.license.guess_path,
        },
        "report": {
            "strict": defaults.report.strict,
            "accumulate": defaults.report.accumulate,
            "crawler_command": defaults.report.crawler_command,
            "crawler_timeout_seconds": defaults.report.crawler_timeout_seconds,
        },
        "logging": {
            "log_level": defaults.logging.log_level,
            "enable_json": defaults.logging.enable_json,
            "log_format": defaults.logging.log_format,
        },
    }

    return json.dumps(sample_config, indent=2)
