# src/orbita_market/repositories/sql.py
"""
SQLAlchemy-backed catalog and ledger repositories.

Each call opens its own short-lived Session against the engine; rows are
mapped to the domain dataclasses on the way out so services never hold
ORM state.
"""

import json
import logging
import uuid
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import Engine, select, update, delete, func

from orbita_market.db.base_session import SessionLocal
from orbita_market.db.models import (
    MkInstalledPackage,
    MkPackage,
    MkPublisher,
    MkVersion,
)
from orbita_market.domain import (
    InstalledPackage,
    Package,
    PackageType,
    Publisher,
    Version,
)
from orbita_market.errors import (
    AlreadyExists,
    AlreadyInstalled,
    NotInstalled,
    PackageNotFound,
    Unauthorized,
    VersionNotFound,
)
from orbita_market.repositories.interfaces import (
    InstalledPackageRepository,
    PackageRepository,
    PublisherRepository,
    VersionRepository,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Row <-> domain mapping
# =============================================================================


def _package_from_row(row: MkPackage) -> Package:
    return Package(
        id=row.id,
        package_id=row.package_id,
        type=PackageType(row.type),
        name=row.name,
        description=row.description or "",
        author=row.author or "",
        homepage=row.homepage or "",
        license=row.license or "",
        tags=json.loads(row.tags or "[]"),
        latest_version=row.latest_version or "",
        downloads=row.downloads or 0,
        publisher_id=row.publisher_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply_package(row: MkPackage, package: Package):
    row.package_id = package.package_id
    row.type = PackageType(package.type).value
    row.name = package.name
    row.description = package.description
    row.author = package.author
    row.homepage = package.homepage
    row.license = package.license
    row.tags = json.dumps(list(package.tags))
    row.latest_version = package.latest_version
    row.downloads = package.downloads
    row.publisher_id = package.publisher_id
    row.created_at = package.created_at
    row.updated_at = package.updated_at


def _version_from_row(row: MkVersion) -> Version:
    return Version(
        id=row.id,
        package_ref=row.package_ref,
        version=row.version,
        min_api_version=row.min_api_version or "",
        changelog=row.changelog or "",
        checksum=row.checksum or "",
        download_url=row.download_url or "",
        size=row.size or 0,
        prerelease=bool(row.prerelease),
        deprecated=bool(row.deprecated),
        deprecation_message=row.deprecation_message or "",
        published_at=row.published_at,
    )


def _apply_version(row: MkVersion, version: Version):
    row.package_ref = version.package_ref
    row.version = version.version
    row.min_api_version = version.min_api_version
    row.changelog = version.changelog
    row.checksum = version.checksum
    row.download_url = version.download_url
    row.size = version.size
    row.prerelease = version.prerelease
    row.deprecated = version.deprecated
    row.deprecation_message = version.deprecation_message
    row.published_at = version.published_at


def _publisher_from_row(row: MkPublisher) -> Publisher:
    return Publisher(
        id=row.id,
        name=row.name,
        slug=row.slug,
        email=row.email or "",
        verified=bool(row.verified),
        package_count=row.package_count or 0,
        created_at=row.created_at,
    )


def _apply_publisher(row: MkPublisher, publisher: Publisher):
    row.name = publisher.name
    row.slug = publisher.slug
    row.email = publisher.email
    row.verified = publisher.verified
    row.package_count = publisher.package_count
    row.created_at = publisher.created_at


def _installed_from_row(row: MkInstalledPackage) -> InstalledPackage:
    return InstalledPackage(
        id=row.id,
        package_id=row.package_id,
        version=row.version,
        type=PackageType(row.type),
        install_path=row.install_path or "",
        checksum=row.checksum or "",
        enabled=bool(row.enabled),
        user_id=row.user_id,
        installed_at=row.installed_at,
        updated_at=row.updated_at,
    )


def _apply_installed(row: MkInstalledPackage, installed: InstalledPackage):
    row.package_id = installed.package_id
    row.version = installed.version
    row.type = PackageType(installed.type).value
    row.install_path = installed.install_path
    row.checksum = installed.checksum
    row.enabled = installed.enabled
    row.user_id = installed.user_id
    row.installed_at = installed.installed_at
    row.updated_at = installed.updated_at


# =============================================================================
# Catalog
# =============================================================================


class SqlPackageRepository(PackageRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, package: Package) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = MkPackage(id=package.id)
            _apply_package(row, package)
            session.add(row)
            session.commit()
        logger.info(f"Catalog: created package {package.package_id}")

    def update(self, package: Package) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = session.get(MkPackage, package.id)
            if row is None:
                raise PackageNotFound(package.package_id)
            _apply_package(row, package)
            session.commit()

    def get_by_package_id(self, package_id: str) -> Optional[Package]:
        with SessionLocal(bind=self.engine) as session:
            row = session.execute(
                select(MkPackage).where(MkPackage.package_id == package_id)
            ).scalar_one_or_none()
            return _package_from_row(row) if row else None

    def increment_downloads(self, package_ref: uuid.UUID) -> None:
        with SessionLocal(bind=self.engine) as session:
            session.execute(
                update(MkPackage)
                .where(MkPackage.id == package_ref)
                .values(downloads=MkPackage.downloads + 1)
            )
            session.commit()


class SqlVersionRepository(VersionRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, version: Version) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = MkVersion(id=version.id)
            _apply_version(row, version)
            session.add(row)
            try:
                session.commit()
            except sa.exc.IntegrityError as e:
                session.rollback()
                raise AlreadyExists(str(version.package_ref), version.version) from e

    def update(self, version: Version) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = session.get(MkVersion, version.id)
            if row is None:
                raise VersionNotFound(str(version.package_ref), version.version)
            _apply_version(row, version)
            session.commit()

    def get_by_package_and_version(
        self, package_ref: uuid.UUID, version: str
    ) -> Optional[Version]:
        with SessionLocal(bind=self.engine) as session:
            row = session.execute(
                select(MkVersion).where(
                    MkVersion.package_ref == package_ref,
                    MkVersion.version == version,
                )
            ).scalar_one_or_none()
            return _version_from_row(row) if row else None

    def get_latest_stable(self, package_ref: uuid.UUID) -> Optional[Version]:
        # Version.is_stable expressed in SQL
        with SessionLocal(bind=self.engine) as session:
            row = session.execute(
                select(MkVersion)
                .where(
                    MkVersion.package_ref == package_ref,
                    MkVersion.prerelease.is_(False),
                    MkVersion.deprecated.is_(False),
                )
                .order_by(MkVersion.published_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _version_from_row(row) if row else None

    def list_by_package(self, package_ref: uuid.UUID) -> List[Version]:
        with SessionLocal(bind=self.engine) as session:
            rows = session.execute(
                select(MkVersion)
                .where(MkVersion.package_ref == package_ref)
                .order_by(MkVersion.published_at.desc())
            ).scalars()
            return [_version_from_row(row) for row in rows]


class SqlPublisherRepository(PublisherRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, publisher: Publisher) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = MkPublisher(id=publisher.id)
            _apply_publisher(row, publisher)
            session.add(row)
            session.commit()

    def update(self, publisher: Publisher) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = session.get(MkPublisher, publisher.id)
            if row is None:
                raise Unauthorized(f"unknown publisher: {publisher.id}")
            _apply_publisher(row, publisher)
            session.commit()

    def get_by_id(self, publisher_id: uuid.UUID) -> Optional[Publisher]:
        with SessionLocal(bind=self.engine) as session:
            row = session.get(MkPublisher, publisher_id)
            return _publisher_from_row(row) if row else None


# =============================================================================
# Local ledger
# =============================================================================


class SqlInstalledPackageRepository(InstalledPackageRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, installed: InstalledPackage) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = MkInstalledPackage(id=installed.id)
            _apply_installed(row, installed)
            session.add(row)
            try:
                session.commit()
            except sa.exc.IntegrityError as e:
                # Unique (package_id, user_id): a concurrent install won the race
                session.rollback()
                raise AlreadyInstalled(installed.package_id) from e

    def update(self, installed: InstalledPackage) -> None:
        with SessionLocal(bind=self.engine) as session:
            row = session.get(MkInstalledPackage, installed.id)
            if row is None:
                raise NotInstalled(installed.package_id)
            _apply_installed(row, installed)
            session.commit()

    def delete(self, installed_id: uuid.UUID) -> None:
        with SessionLocal(bind=self.engine) as session:
            session.execute(
                delete(MkInstalledPackage).where(MkInstalledPackage.id == installed_id)
            )
            session.commit()

    def get_by_package_id(
        self, package_id: str, user_id: uuid.UUID
    ) -> Optional[InstalledPackage]:
        with SessionLocal(bind=self.engine) as session:
            row = session.execute(
                select(MkInstalledPackage).where(
                    MkInstalledPackage.package_id == package_id,
                    MkInstalledPackage.user_id == user_id,
                )
            ).scalar_one_or_none()
            return _installed_from_row(row) if row else None

    def list_by_user(
        self, user_id: uuid.UUID, package_type: Optional[PackageType] = None
    ) -> List[InstalledPackage]:
        stmt = select(MkInstalledPackage).where(MkInstalledPackage.user_id == user_id)
        if package_type is not None:
            stmt = stmt.where(MkInstalledPackage.type == PackageType(package_type).value)
        stmt = stmt.order_by(MkInstalledPackage.package_id)

        with SessionLocal(bind=self.engine) as session:
            return [_installed_from_row(row) for row in session.execute(stmt).scalars()]

    def count_by_install_path(
        self, install_path: str, exclude_id: Optional[uuid.UUID] = None
    ) -> int:
        stmt = select(func.count()).select_from(MkInstalledPackage).where(
            MkInstalledPackage.install_path == install_path
        )
        if exclude_id is not None:
            stmt = stmt.where(MkInstalledPackage.id != exclude_id)

        with SessionLocal(bind=self.engine) as session:
            return session.execute(stmt).scalar_one()
