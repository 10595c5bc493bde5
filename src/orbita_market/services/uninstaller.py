# src/orbita_market/services/uninstaller.py
import logging
import shutil
import uuid
from dataclasses import dataclass

from orbita_market.errors import NotInstalled
from orbita_market.repositories.interfaces import InstalledPackageRepository
from orbita_market.security.paths import validate_path

logger = logging.getLogger(__name__)


@dataclass
class UninstallResult:
    package_id: str
    version: str
    message: str


class Uninstaller:
    """
    Removes an installed package's directory, then its ledger row.

    Install directories are shared between users holding the same
    version; the directory is left in place while another ledger row
    still references it.

    The two steps are not transactional: if the row deletion fails after
    the directory is gone, the ledger points at a missing directory and a
    second uninstall will finish the job.
    """

    def __init__(self, installed_repo: InstalledPackageRepository):
        self.installed_repo = installed_repo

    def uninstall(self, package_id: str, user_id: uuid.UUID) -> UninstallResult:
        installed = self.installed_repo.get_by_package_id(package_id, user_id)
        if installed is None:
            raise NotInstalled(package_id)

        if installed.install_path:
            install_dir = validate_path(installed.install_path)
            holders = self.installed_repo.count_by_install_path(
                installed.install_path, exclude_id=installed.id
            )
            if holders:
                logger.info(f"Keeping {install_dir}: still used by {holders} other installation(s)")
            elif install_dir.exists():
                # Removal errors abort the uninstall with the ledger row intact
                shutil.rmtree(install_dir)
            else:
                logger.warning(f"Install directory already gone: {install_dir}")

        self.installed_repo.delete(installed.id)
        logger.info(f"Uninstalled {package_id}@{installed.version}")

        return UninstallResult(
            package_id=package_id,
            version=installed.version,
            message=f"Successfully uninstalled {package_id}",
        )
