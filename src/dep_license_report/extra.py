"""
User-supplied "extra" metadata for dependency records.

Extra data can be inlined in ``package.json`` under ``dependenciesExtra`` or
kept in a separate JSON file. Both map a dependency name to arbitrary fields.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .dependency import DependencyRecord
from .error_handling import ExtraMetadataError, log_parsing_error
from .structured_logging import get_report_logger

DEPENDENCIES_EXTRA_FIELD = "dependenciesExtra"

ExtraMetadata = Dict[str, Dict[str, Any]]


def deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_extra_metadata(data: Any, source: str) -> ExtraMetadata:
    """Extra metadata must map each package name to an object of fields."""
    if not isinstance(data, dict):
        raise ExtraMetadataError(
            f"Extra metadata in {source} must be a JSON object keyed by package name"
        )
    for package_name, entry in data.items():
        if not isinstance(entry, dict):
            raise ExtraMetadataError(
                f"Extra metadata for {package_name!r} in {source} must be a JSON object, "
                f"not {type(entry).__name__}"
            )
    return data


def read_extra_file(extra_path: Path) -> ExtraMetadata:
    try:
        with open(extra_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log_parsing_error(
            "Could not read extra metadata file",
            "extra",
            "read_extra_file",
            file_path=str(extra_path),
            exception=e,
        )
        raise ExtraMetadataError(f"Could not read extra metadata from {extra_path}: {e}") from e

    return validate_extra_metadata(data, str(extra_path))


def load_dependencies_extra(
    package_json: Mapping[str, Any], extra_path: Optional[Path] = None
) -> Optional[ExtraMetadata]:
    """
    Collect extra metadata from ``package.json`` and/or ``extra_path``.

    The external file wins on collisions. Returns ``None`` when neither
    source is present.
    """
    logger = get_report_logger()
    inlined = package_json.get(DEPENDENCIES_EXTRA_FIELD)
    if inlined is not None:
        inlined = validate_extra_metadata(inlined, DEPENDENCIES_EXTRA_FIELD)
        logger.info("extra_metadata_inline", field=DEPENDENCIES_EXTRA_FIELD)

    external = None
    if extra_path is not None:
        logger.info("extra_metadata_file", path=str(extra_path))
        external = read_extra_file(extra_path)

    if inlined is not None and external is not None:
        logger.info(
            "extra_metadata_override",
            path=str(extra_path),
            field=DEPENDENCIES_EXTRA_FIELD,
        )
        return deep_merge(inlined, external)

    return external if external is not None else inlined


def accumulate_extra_fields(extra: Optional[ExtraMetadata]) -> Dict[str, None]:
    """Every field used by any entry, as a template of ``None`` values."""
    accumulated: Dict[str, None] = {}
    for entry in (extra or {}).values():
        if isinstance(entry, Mapping):
            for key in entry:
                accumulated[key] = None
    return accumulated


def extend_with_extra_info(
    records: List[DependencyRecord],
    extra: ExtraMetadata,
    accumulated: Optional[Mapping[str, Any]] = None,
) -> List[DependencyRecord]:
    """
    Overlay extra metadata onto each record.

    Precedence: extra fields, then the crawled fields, then the accumulated
    template. Extra fields may therefore replace crawled values, including
    ``licenseUrl``.
    """
    logger = get_report_logger()
    extended = []

    for record in records:
        entry_extra = extra.get(record.name)
        if entry_extra is None:
            logger.warning("extra_metadata_missing", package_name=record.name)
            entry_extra = {}

        merged: Dict[str, Any] = dict(accumulated or {})
        merged.update(record.to_dict())
        merged.update(entry_extra)

        extended.append(DependencyRecord.from_dict(merged))

    return extended
