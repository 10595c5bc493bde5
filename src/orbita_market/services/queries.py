# src/orbita_market/services/queries.py
"""Read-only views over the installation ledger."""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from orbita_market.domain import InstalledPackage, PackageType
from orbita_market.repositories.interfaces import (
    InstalledPackageRepository,
    PackageRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class AvailableUpdate:
    package_id: str
    installed_version: str
    latest_version: str


class InstalledPackageQueries:
    def __init__(
        self,
        installed_repo: InstalledPackageRepository,
        package_repo: PackageRepository,
    ):
        self.installed_repo = installed_repo
        self.package_repo = package_repo

    def list_installed(
        self, user_id: uuid.UUID, package_type: Optional[PackageType] = None
    ) -> List[InstalledPackage]:
        return self.installed_repo.list_by_user(user_id, package_type)

    def check_updates(self, user_id: uuid.UUID) -> List[AvailableUpdate]:
        """
        Compare each installed version with the catalog's latest pointer.

        Packages no longer in the catalog, or without a latest version,
        are skipped.
        """
        updates = []
        for installed in self.installed_repo.list_by_user(user_id):
            package = self.package_repo.get_by_package_id(installed.package_id)
            if package is None:
                logger.debug(f"{installed.package_id} not in catalog, skipping")
                continue
            if package.latest_version and package.latest_version != installed.version:
                updates.append(
                    AvailableUpdate(
                        package_id=installed.package_id,
                        installed_version=installed.version,
                        latest_version=package.latest_version,
                    )
                )
        return updates
