# In src/dep_license_report/dependency.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .url_normalizer import normalize_repository_url


class LicenseStatus(Enum):
    """Outcome of license resolution for one dependency."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    ERROR = "error"


# Record attribute -> key in the crawler output and the report
FIELD_KEYS = {
    "name": "name",
    "version": "version",
    "licenses": "licenses",
    "repository": "repository",
    "license_url": "licenseUrl",
    "license_text": "licenseText",
    "parents": "parents",
}


def split_package_key(key: str) -> Tuple[str, str]:
    """Split ``name@version`` on the last ``@``; scoped names keep theirs."""
    name, separator, version = key.rpartition("@")
    if not separator or not name:
        return key, ""
    return name, version


@dataclass
class DependencyRecord:
    """One package of the dependency tree plus its license resolution."""

    name: str
    version: str
    licenses: Any = None
    repository: Optional[str] = None
    license_url: Optional[str] = None
    license_text: Optional[str] = None
    parents: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    license_status: Optional[LicenseStatus] = None

    @classmethod
    def from_crawler_entry(cls, key: str, value: Mapping[str, Any]) -> "DependencyRecord":
        name, version = split_package_key(key)
        return cls(
            name=name,
            version=version,
            licenses=value.get("licenses"),
            repository=normalize_repository_url(value.get("repository")),
            license_url=normalize_repository_url(value.get("licenseUrl")),
            parents=value.get("parents"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DependencyRecord":
        """Build a record from report-shaped data; unknown keys become ``extra``."""
        known_keys = set(FIELD_KEYS.values())
        values = {attr: data.get(key) for attr, key in FIELD_KEYS.items()}
        values["name"] = values["name"] or ""
        values["version"] = values["version"] or ""
        values["repository"] = normalize_repository_url(values["repository"])
        values["license_url"] = normalize_repository_url(values["license_url"])
        return cls(
            extra={key: value for key, value in data.items() if key not in known_keys},
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {key: getattr(self, attr) for attr, key in FIELD_KEYS.items()}
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @property
    def is_annotated(self) -> bool:
        return self.license_status is not None

    def mark_resolved(self, license_url: str, license_text: str) -> None:
        self.license_url = license_url
        self.license_text = license_text
        self.license_status = LicenseStatus.RESOLVED

    def mark_unresolved(self, status: LicenseStatus = LicenseStatus.NOT_FOUND) -> None:
        """Clear both license fields so no partial guess survives."""
        self.license_url = None
        self.license_text = None
        self.license_status = status


def is_package_dependency(record: DependencyRecord, package_json: Mapping[str, Any]) -> bool:
    """True for direct dependencies declared by the package itself."""
    dependencies = package_json.get("dependencies") or {}
    return record.name in dependencies and record.parents == package_json.get("name")
