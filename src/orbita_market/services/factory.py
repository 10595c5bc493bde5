# src/orbita_market/services/factory.py
"""
Wires repositories, transport and services together from AppSettings.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import sqlalchemy as sa

from orbita_market.archive.builder import ArchiveBuilder
from orbita_market.archive.extract import SafeExtractor
from orbita_market.config import AppSettings
from orbita_market.db.access import get_engine
from orbita_market.db.setup import initialize_database
from orbita_market.repositories.sql import (
    SqlInstalledPackageRepository,
    SqlPackageRepository,
    SqlPublisherRepository,
    SqlVersionRepository,
)
from orbita_market.services.download import Downloader
from orbita_market.services.enablement import PackageToggle
from orbita_market.services.installer import Installer
from orbita_market.services.publisher import PackagePublisher
from orbita_market.services.queries import InstalledPackageQueries
from orbita_market.services.uninstaller import Uninstaller
from orbita_market.services.updater import Updater

logger = logging.getLogger(__name__)


@dataclass
class MarketplaceServices:
    installer: Installer
    updater: Updater
    uninstaller: Uninstaller
    toggle: PackageToggle
    queries: InstalledPackageQueries
    publisher: PackagePublisher
    downloader: Downloader

    def close(self):
        self.downloader.close()


def create_services(
    app_settings: Optional[AppSettings] = None,
    engine: Optional[sa.Engine] = None,
    http_client: Optional[httpx.Client] = None,
) -> MarketplaceServices:
    """
    Build every marketplace service sharing one engine and one downloader.

    Args:
        app_settings: Defaults to the module-level settings singleton
        engine: Defaults to an engine built from app_settings.database
        http_client: Defaults to a client owned by the Downloader
    """
    if app_settings is None:
        from orbita_market.config import settings as app_settings

    if engine is None:
        engine = get_engine(app_settings.database)
        initialize_database(engine)

    market = app_settings.marketplace

    package_repo = SqlPackageRepository(engine)
    version_repo = SqlVersionRepository(engine)
    publisher_repo = SqlPublisherRepository(engine)
    installed_repo = SqlInstalledPackageRepository(engine)

    downloader = Downloader(client=http_client, timeout=market.download_timeout_seconds)
    extractor = SafeExtractor(
        max_file_size=market.max_file_size_bytes,
        max_total_size=market.max_total_size_bytes,
        link_policy=market.link_policy,
    )

    logger.debug(f"Marketplace services ready (install root {market.install_root_path()})")

    return MarketplaceServices(
        installer=Installer(
            package_repo,
            version_repo,
            installed_repo,
            install_root=market.install_root_path(),
            downloader=downloader,
            extractor=extractor,
        ),
        updater=Updater(
            package_repo, version_repo, installed_repo, downloader, extractor
        ),
        uninstaller=Uninstaller(installed_repo),
        toggle=PackageToggle(installed_repo),
        queries=InstalledPackageQueries(installed_repo, package_repo),
        publisher=PackagePublisher(
            package_repo,
            version_repo,
            publisher_repo,
            builder=ArchiveBuilder(market.exclude_patterns),
            download_url_template=market.download_url_template,
            archive_store_dir=market.archive_store_dir,
        ),
        downloader=downloader,
    )
