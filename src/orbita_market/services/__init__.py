# src/orbita_market/services/__init__.py
"""
Distribution services: install, update, uninstall, enable/disable,
installed-package queries and publish.
"""

from orbita_market.services.download import Downloader
from orbita_market.services.installer import Installer, InstallResult
from orbita_market.services.updater import Updater, UpdateResult
from orbita_market.services.uninstaller import Uninstaller, UninstallResult
from orbita_market.services.enablement import PackageToggle
from orbita_market.services.queries import InstalledPackageQueries, AvailableUpdate
from orbita_market.services.publisher import PackagePublisher, PublishResult
from orbita_market.services.factory import MarketplaceServices, create_services

__all__ = [
    "Downloader",
    "Installer",
    "InstallResult",
    "Updater",
    "UpdateResult",
    "Uninstaller",
    "UninstallResult",
    "PackageToggle",
    "InstalledPackageQueries",
    "AvailableUpdate",
    "PackagePublisher",
    "PublishResult",
    "MarketplaceServices",
    "create_services",
]
