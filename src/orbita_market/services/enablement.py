# src/orbita_market/services/enablement.py
import logging
import uuid

from orbita_market.domain import InstalledPackage
from orbita_market.errors import AlreadyDisabled, AlreadyEnabled, NotInstalled
from orbita_market.repositories.interfaces import InstalledPackageRepository

logger = logging.getLogger(__name__)


class PackageToggle:
    """Flips the enabled flag of an installed package. Files are not touched."""

    def __init__(self, installed_repo: InstalledPackageRepository):
        self.installed_repo = installed_repo

    def enable(self, package_id: str, user_id: uuid.UUID) -> InstalledPackage:
        installed = self._get(package_id, user_id)
        if installed.enabled:
            raise AlreadyEnabled(package_id)
        return self._set(installed, True)

    def disable(self, package_id: str, user_id: uuid.UUID) -> InstalledPackage:
        installed = self._get(package_id, user_id)
        if not installed.enabled:
            raise AlreadyDisabled(package_id)
        return self._set(installed, False)

    def _get(self, package_id: str, user_id: uuid.UUID) -> InstalledPackage:
        installed = self.installed_repo.get_by_package_id(package_id, user_id)
        if installed is None:
            raise NotInstalled(package_id)
        return installed

    def _set(self, installed: InstalledPackage, enabled: bool) -> InstalledPackage:
        installed.set_enabled(enabled)
        self.installed_repo.update(installed)
        logger.info(f"{installed.package_id} {'enabled' if enabled else 'disabled'}")
        return installed
