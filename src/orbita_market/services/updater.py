# src/orbita_market/services/updater.py
"""
Updater: moves an installed package to another catalog version.

The new version is staged in a sibling directory of the current one
({parent}/{new_version}). The ledger row is switched only after the new
directory is complete; the old directory is removed last, and only when
no other user still has it installed. Any failure before the switch
leaves the old installation untouched.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from orbita_market.archive.extract import SafeExtractor
from orbita_market.domain import InstalledPackage
from orbita_market.errors import (
    NotInstalled,
    PackageNotFound,
    PathValidationError,
    VersionNotFound,
)
from orbita_market.repositories.interfaces import (
    InstalledPackageRepository,
    PackageRepository,
    VersionRepository,
)
from orbita_market.security.paths import validate_path_in_dir
from orbita_market.services.cleanup import discard_on_failure, remove_tree_best_effort
from orbita_market.services.download import Downloader
from orbita_market.services.installer import (
    bump_downloads,
    install_path_in_use,
    stage_version,
)

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    installed: InstalledPackage
    old_version: str
    new_version: str
    message: str


class Updater:
    def __init__(
        self,
        package_repo: PackageRepository,
        version_repo: VersionRepository,
        installed_repo: InstalledPackageRepository,
        downloader: Downloader,
        extractor: Optional[SafeExtractor] = None,
    ):
        self.package_repo = package_repo
        self.version_repo = version_repo
        self.installed_repo = installed_repo
        self.downloader = downloader
        self.extractor = extractor or SafeExtractor()

    def update(self, package_id: str, user_id: uuid.UUID, version: str = "") -> UpdateResult:
        """
        Update an installed package to `version` (or the catalog latest).

        Updating to the version already installed is a no-op that touches
        neither the filesystem nor the ledger.
        """
        installed = self.installed_repo.get_by_package_id(package_id, user_id)
        if installed is None:
            raise NotInstalled(package_id)

        package = self.package_repo.get_by_package_id(package_id)
        if package is None:
            raise PackageNotFound(package_id)

        target_version = version or package.latest_version
        if not target_version:
            latest = self.version_repo.get_latest_stable(package.id)
            if latest is None:
                raise VersionNotFound(package_id, "latest")
            target_version = latest.version

        old_version = installed.version
        if target_version == old_version:
            return UpdateResult(
                installed=installed,
                old_version=old_version,
                new_version=old_version,
                message=f"Package {package_id} is already at version {old_version}",
            )

        target = self.version_repo.get_by_package_and_version(package.id, target_version)
        if target is None:
            raise VersionNotFound(package_id, target_version)

        if not installed.install_path:
            raise PathValidationError(f"no install path recorded for {package_id}")
        old_dir = Path(installed.install_path)
        new_dir = validate_path_in_dir(old_dir.parent / target.version, old_dir.parent)

        logger.info(f"Updating {package_id} {old_version} -> {target.version} in {new_dir}")

        created = stage_version(
            self.downloader,
            self.extractor,
            target,
            new_dir,
            reuse_existing=install_path_in_use(self.installed_repo, new_dir),
        )

        def keep_dir() -> bool:
            return not created or install_path_in_use(
                self.installed_repo, new_dir, exclude_id=installed.id
            )

        with discard_on_failure(new_dir, keep=keep_dir):
            installed.update_version(target.version, str(new_dir), target.checksum)
            self.installed_repo.update(installed)

        if install_path_in_use(self.installed_repo, old_dir):
            logger.info(f"Keeping {old_dir}: still used by other installations")
        else:
            remove_tree_best_effort(old_dir)

        bump_downloads(self.package_repo, package)

        return UpdateResult(
            installed=installed,
            old_version=old_version,
            new_version=target.version,
            message=f"Successfully updated {package_id} from {old_version} to {target.version}",
        )
