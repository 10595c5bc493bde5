# src/orbita_market/services/publisher.py
"""
Publisher: turns a package source directory into a catalog version.

Steps:
1. Load and validate the manifest (orbit.json, then engine.json)
2. Authorize: the publisher must exist and own the package if it exists
3. Reject versions already in the catalog
4. Build the archive, then write package (new or latest pointer) and version rows

A dry run stops after step 3 without building anything or writing to
the catalog.

The built archive is either moved to the archive store
({store}/{package_id}/{version}/package.tar.gz) or deleted.
"""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from orbita_market.archive.builder import ArchiveBuilder, BuiltArchive
from orbita_market.archive.extract import DIR_MODE
from orbita_market.domain import Package, Publisher, Version
from orbita_market.errors import AlreadyExists, Unauthorized
from orbita_market.manifest import PackageManifest, load_manifest
from orbita_market.repositories.interfaces import (
    PackageRepository,
    PublisherRepository,
    VersionRepository,
)
from orbita_market.security.checksum import format_checksum
from orbita_market.security.paths import validate_path, validate_path_in_dir
from orbita_market.services.cleanup import remove_file_best_effort
from orbita_market.services.installer import ARCHIVE_FILE_NAME

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_URL_TEMPLATE = (
    "https://marketplace.orbita.dev/packages/{package_id}/{version}/download"
)


@dataclass
class PublishResult:
    package_id: str
    version: str
    checksum: str
    message: str
    dry_run: bool = False


class PackagePublisher:
    def __init__(
        self,
        package_repo: PackageRepository,
        version_repo: VersionRepository,
        publisher_repo: PublisherRepository,
        builder: Optional[ArchiveBuilder] = None,
        download_url_template: str = DEFAULT_DOWNLOAD_URL_TEMPLATE,
        archive_store_dir: Optional[Union[str, Path]] = None,
    ):
        self.package_repo = package_repo
        self.version_repo = version_repo
        self.publisher_repo = publisher_repo
        self.builder = builder or ArchiveBuilder()
        self.download_url_template = download_url_template
        self.archive_store_dir = archive_store_dir

    def publish(
        self,
        package_path: Union[str, Path],
        publisher_id: uuid.UUID,
        dry_run: bool = False,
    ) -> PublishResult:
        """
        Publish the package found at `package_path`.

        Raises:
            PathValidationError, ManifestNotFound, InvalidManifest,
            Unauthorized, AlreadyExists
        """
        package_dir = validate_path(package_path)
        manifest = load_manifest(package_dir)

        publisher = self.publisher_repo.get_by_id(publisher_id)
        if publisher is None:
            raise Unauthorized()

        package = self.package_repo.get_by_package_id(manifest.id)
        if package is not None:
            if package.publisher_id != publisher.id:
                raise Unauthorized()
            existing = self.version_repo.get_by_package_and_version(
                package.id, manifest.version
            )
            if existing is not None:
                raise AlreadyExists(manifest.id, manifest.version)

        if dry_run:
            logger.info(f"Dry run for {manifest.id}@{manifest.version} passed")
            return PublishResult(
                package_id=manifest.id,
                version=manifest.version,
                checksum="",
                message="Dry run successful - package would be published",
                dry_run=True,
            )

        built = self.builder.build(package_dir, manifest.id, manifest.version)
        stored = False
        try:
            checksum = format_checksum(built.checksum)
            self._record(manifest, publisher, package, built, checksum)
            stored = self._store_archive(built, manifest)
        finally:
            if not stored:
                remove_file_best_effort(built.path)

        logger.info(f"Published {manifest.id}@{manifest.version} ({checksum})")
        return PublishResult(
            package_id=manifest.id,
            version=manifest.version,
            checksum=checksum,
            message=f"Successfully published {manifest.id}@{manifest.version}",
        )

    def _record(
        self,
        manifest: PackageManifest,
        publisher: Publisher,
        package: Optional[Package],
        built: BuiltArchive,
        checksum: str,
    ):
        if package is None:
            package = Package(
                package_id=manifest.id,
                type=manifest.package_type,
                name=manifest.name,
                description=manifest.description,
                author=manifest.author,
                homepage=manifest.homepage,
                license=manifest.license,
                tags=list(manifest.tags),
                publisher_id=publisher.id,
            )
            self.package_repo.create(package)
            self._bump_package_count(publisher)

        version = Version(
            package_ref=package.id,
            version=manifest.version,
            min_api_version=manifest.min_api_version,
            checksum=checksum,
            download_url=self.download_url_template.format(
                package_id=manifest.id, version=manifest.version
            ),
            size=built.size,
        )
        self.version_repo.create(version)

        # Pointer moves only once the version row exists
        package.set_latest_version(manifest.version)
        self.package_repo.update(package)

    def _bump_package_count(self, publisher: Publisher):
        publisher.increment_package_count()
        try:
            self.publisher_repo.update(publisher)
        except Exception as e:
            logger.warning(f"Could not update package count for {publisher.slug}: {e}")

    def _store_archive(self, built: BuiltArchive, manifest: PackageManifest) -> bool:
        if not self.archive_store_dir:
            return False

        store_root = Path(self.archive_store_dir).expanduser()
        os.makedirs(store_root, mode=DIR_MODE, exist_ok=True)
        store_root = validate_path(store_root)
        target_dir = validate_path_in_dir(store_root / manifest.id / manifest.version, store_root)
        os.makedirs(target_dir, mode=DIR_MODE, exist_ok=True)
        target = target_dir / ARCHIVE_FILE_NAME
        shutil.move(os.fspath(built.path), os.fspath(target))
        logger.info(f"Stored archive at {target}")
        return True
