"""
Pytest fixtures and configuration for Orbita Marketplace tests.
"""
import io
import json
import tarfile
import uuid
from pathlib import Path

import httpx
import pytest
from sqlalchemy import create_engine

from orbita_market.archive.extract import SafeExtractor
from orbita_market.db.setup import initialize_database
from orbita_market.domain import Package, PackageType, Publisher, Version
from orbita_market.repositories.sql import (
    SqlInstalledPackageRepository,
    SqlPackageRepository,
    SqlPublisherRepository,
    SqlVersionRepository,
)
from orbita_market.services.download import Downloader


# =============================================================================
# Archive helpers
# =============================================================================


def make_tar_gz(path, files=None, dirs=(), modes=None, symlinks=None):
    """
    Write a gzip tar at `path`.

    files: {name: bytes}; dirs: names; modes: {name: mode}; symlinks: {name: target}
    """
    files = files or {}
    modes = modes or {}
    symlinks = symlinks or {}

    with tarfile.open(path, "w:gz") as tf:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = modes.get(name, 0o755)
            tf.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tf.addfile(info, io.BytesIO(data))
        for name, target in symlinks.items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tf.addfile(info)
    return Path(path)


@pytest.fixture
def tar_factory(tmp_path):
    """Build tar.gz archives in a scratch directory; returns (path, bytes)."""
    scratch = tmp_path / "archives"
    scratch.mkdir()

    def _make(name="package.tar.gz", **kwargs):
        path = make_tar_gz(scratch / name, **kwargs)
        return path, path.read_bytes()

    return _make


@pytest.fixture
def two_entry_archive(tar_factory):
    """A valid package archive with exactly two entries."""
    return tar_factory(
        name="acme.tar.gz",
        files={
            "orbit.json": json.dumps({"id": "acme.test-orbit", "version": "1.0.0"}).encode(),
            "README.md": b"# Test orbit\n",
        },
    )


# =============================================================================
# Database / repositories
# =============================================================================


@pytest.fixture(scope="function")
def test_db_engine(tmp_path):
    """Create a test database engine with cleanup."""
    db_path = tmp_path / "test_orbita_market.sqlite3"
    engine = create_engine(f"sqlite:///{db_path}")

    # Initialize with reset
    initialize_database(engine, reset_tables=True)

    yield engine

    engine.dispose()


@pytest.fixture
def package_repo(test_db_engine):
    return SqlPackageRepository(test_db_engine)


@pytest.fixture
def version_repo(test_db_engine):
    return SqlVersionRepository(test_db_engine)


@pytest.fixture
def publisher_repo(test_db_engine):
    return SqlPublisherRepository(test_db_engine)


@pytest.fixture
def installed_repo(test_db_engine):
    return SqlInstalledPackageRepository(test_db_engine)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def publisher(publisher_repo):
    """A registered publisher."""
    pub = Publisher(name="Acme", slug="acme", email="dev@acme.test")
    publisher_repo.create(pub)
    return pub


# =============================================================================
# Catalog seeding
# =============================================================================


@pytest.fixture
def seed_catalog(package_repo, version_repo):
    """
    Register package versions directly in the catalog.

    Returns a callable:
        seed(package_id, version, url="", checksum="", type=ORBIT, latest=True, **version_fields)
    """

    def _seed(
        package_id,
        version,
        url="",
        checksum="",
        package_type=PackageType.ORBIT,
        latest=True,
        **version_fields,
    ):
        package = package_repo.get_by_package_id(package_id)
        if package is None:
            package = Package(package_id=package_id, type=package_type, name=package_id)
            package_repo.create(package)

        ver = Version(
            package_ref=package.id,
            version=version,
            checksum=checksum,
            download_url=url,
            **version_fields,
        )
        version_repo.create(ver)

        if latest:
            package.set_latest_version(version)
            package_repo.update(package)
        return package, ver

    return _seed


# =============================================================================
# HTTP transport
# =============================================================================


class ArchiveServer:
    """In-memory HTTP server for archives, backed by httpx.MockTransport."""

    BASE_URL = "https://packages.test"

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.error = None

    def serve(self, path: str, body: bytes, status_code: int = 200) -> str:
        url = f"{self.BASE_URL}/{path.lstrip('/')}"
        self.routes[url] = (status_code, body)
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if self.error is not None:
            raise self.error
        status_code, body = self.routes.get(str(request.url), (404, b"not found"))
        return httpx.Response(status_code, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def archive_server():
    return ArchiveServer()


@pytest.fixture
def downloader(archive_server):
    client = archive_server.client()
    yield Downloader(client=client)
    client.close()


@pytest.fixture
def extractor():
    return SafeExtractor()


@pytest.fixture
def install_root(tmp_path):
    root = tmp_path / "install_root"
    root.mkdir()
    return root
