# src/orbita_market/domain.py
"""
Marketplace domain objects.

- Package / Version / Publisher: catalog entries (owned by the catalog store)
- InstalledPackage: one row of the local installation ledger

These are plain dataclasses; persistence lives behind the repository
interfaces in orbita_market.repositories.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PackageType(str, Enum):
    ORBIT = "orbit"  # content/module package
    ENGINE = "engine"  # logic/plugin package

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in {t.value for t in cls}


@dataclass
class Publisher:
    name: str
    slug: str
    email: str = ""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    verified: bool = False
    package_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    def increment_package_count(self):
        self.package_count += 1


@dataclass
class Package:
    package_id: str  # e.g. "acme.test-orbit"
    type: PackageType
    name: str
    description: str = ""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    author: str = ""
    homepage: str = ""
    license: str = ""
    tags: List[str] = field(default_factory=list)
    latest_version: str = ""
    downloads: int = 0
    publisher_id: Optional[uuid.UUID] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def set_latest_version(self, version: str):
        self.latest_version = version
        self.updated_at = _utcnow()


@dataclass
class Version:
    package_ref: uuid.UUID  # Package.id
    version: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    min_api_version: str = ""
    changelog: str = ""
    checksum: str = ""  # "sha256:<hex>" or bare hex; empty = unverified
    download_url: str = ""  # empty = local/dev mode, nothing to fetch
    size: int = 0
    prerelease: bool = False
    deprecated: bool = False
    deprecation_message: str = ""
    published_at: datetime = field(default_factory=_utcnow)

    def deprecate(self, message: str = ""):
        self.deprecated = True
        self.deprecation_message = message

    @property
    def is_stable(self) -> bool:
        """Eligible as the implicit latest when the package pointer is empty."""
        return not self.prerelease and not self.deprecated


@dataclass
class InstalledPackage:
    package_id: str
    version: str
    type: PackageType
    install_path: str
    user_id: uuid.UUID
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    checksum: str = ""
    enabled: bool = True
    installed_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def update_version(self, version: str, install_path: str, checksum: str):
        self.version = version
        self.install_path = install_path
        self.checksum = checksum
        self.updated_at = _utcnow()

    def set_enabled(self, enabled: bool):
        self.enabled = enabled
        self.updated_at = _utcnow()


def parse_package_spec(spec: str):
    """
    Split "package-id@version" into its parts.

    Returns:
        Tuple of (package_id, version); version is "" when not given
    """
    package_id, _, version = spec.partition("@")
    return package_id, version
