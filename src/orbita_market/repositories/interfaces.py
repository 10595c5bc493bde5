# src/orbita_market/repositories/interfaces.py
"""
Storage contracts consumed by the distribution services.

Installer, Updater, Uninstaller and Publisher receive these as
constructor arguments; any backend that honours the contract can be
plugged in. The SQLAlchemy implementations live in
orbita_market.repositories.sql.

Lookups return None when nothing matches; they do not raise.
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from orbita_market.domain import (
    InstalledPackage,
    Package,
    PackageType,
    Publisher,
    Version,
)


class PackageRepository(ABC):
    """Catalog packages."""

    @abstractmethod
    def create(self, package: Package) -> None:
        pass

    @abstractmethod
    def update(self, package: Package) -> None:
        pass

    @abstractmethod
    def get_by_package_id(self, package_id: str) -> Optional[Package]:
        """Look up a package by its public id (e.g. "acme.orbit")."""
        pass

    @abstractmethod
    def increment_downloads(self, package_ref: uuid.UUID) -> None:
        pass


class VersionRepository(ABC):
    """Catalog versions."""

    @abstractmethod
    def create(self, version: Version) -> None:
        """
        Persist a new version.

        Raises:
            AlreadyExists: If (package, version) is already present
        """
        pass

    @abstractmethod
    def update(self, version: Version) -> None:
        pass

    @abstractmethod
    def get_by_package_and_version(
        self, package_ref: uuid.UUID, version: str
    ) -> Optional[Version]:
        pass

    @abstractmethod
    def get_latest_stable(self, package_ref: uuid.UUID) -> Optional[Version]:
        """Most recently published version for which `Version.is_stable` holds."""
        pass

    @abstractmethod
    def list_by_package(self, package_ref: uuid.UUID) -> List[Version]:
        pass


class PublisherRepository(ABC):
    @abstractmethod
    def create(self, publisher: Publisher) -> None:
        pass

    @abstractmethod
    def update(self, publisher: Publisher) -> None:
        pass

    @abstractmethod
    def get_by_id(self, publisher_id: uuid.UUID) -> Optional[Publisher]:
        pass


class InstalledPackageRepository(ABC):
    """
    The local installation ledger.

    At most one row exists per (package_id, user_id).
    """

    @abstractmethod
    def create(self, installed: InstalledPackage) -> None:
        """
        Raises:
            AlreadyInstalled: If the (package_id, user_id) pair already has a row
        """
        pass

    @abstractmethod
    def update(self, installed: InstalledPackage) -> None:
        pass

    @abstractmethod
    def delete(self, installed_id: uuid.UUID) -> None:
        pass

    @abstractmethod
    def get_by_package_id(
        self, package_id: str, user_id: uuid.UUID
    ) -> Optional[InstalledPackage]:
        pass

    @abstractmethod
    def list_by_user(
        self, user_id: uuid.UUID, package_type: Optional[PackageType] = None
    ) -> List[InstalledPackage]:
        pass

    @abstractmethod
    def count_by_install_path(
        self, install_path: str, exclude_id: Optional[uuid.UUID] = None
    ) -> int:
        """
        Number of ledger rows, across all users, recorded against `install_path`.

        Install directories are shared by every user holding the same
        version, so a directory may only be removed once this reaches zero.
        """
        pass
