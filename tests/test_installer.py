import gc
import hashlib
import logging
import threading
import uuid
from pathlib import Path

import httpx
import pytest

from orbita_market.domain import Package, PackageType
from orbita_market.errors import (
    AlreadyInstalled,
    ChecksumMismatch,
    DownloadFailed,
    PackageNotFound,
    PathValidationError,
    UnsafeArchivePath,
    VersionNotFound,
)
from orbita_market.repositories.sql import SqlInstalledPackageRepository
from orbita_market.services.installer import ARCHIVE_FILE_NAME, Installer


@pytest.fixture
def installer(package_repo, version_repo, installed_repo, install_root, downloader, extractor):
    return Installer(
        package_repo,
        version_repo,
        installed_repo,
        install_root=install_root,
        downloader=downloader,
        extractor=extractor,
    )


@pytest.fixture
def served_orbit(archive_server, seed_catalog, two_entry_archive):
    """acme.test-orbit@1.0.0 served with a correct checksum."""
    _, data = two_entry_archive
    url = archive_server.serve("acme.test-orbit/1.0.0.tar.gz", data)
    checksum = "sha256:" + hashlib.sha256(data).hexdigest()
    package, version = seed_catalog("acme.test-orbit", "1.0.0", url=url, checksum=checksum)
    return package, version


class TestInstall:
    def test_install_from_server(self, installer, served_orbit, installed_repo, package_repo, user_id):
        """Valid archive with a matching checksum installs under orbits/<id>/<version>."""
        result = installer.install("acme.test-orbit", user_id, "1.0.0")

        install_path = result.installed.install_path
        assert install_path.replace("\\", "/").endswith("orbits/acme.test-orbit/1.0.0")
        assert result.message == "Successfully installed acme.test-orbit@1.0.0"

        install_dir = Path(install_path)
        assert sorted(p.name for p in install_dir.iterdir()) == ["README.md", "orbit.json"]
        assert not (install_dir / ARCHIVE_FILE_NAME).exists()

        row = installed_repo.get_by_package_id("acme.test-orbit", user_id)
        assert row.version == "1.0.0"
        assert row.enabled
        assert row.checksum == served_orbit[1].checksum
        assert package_repo.get_by_package_id("acme.test-orbit").downloads == 1

    def test_install_twice(self, installer, served_orbit, installed_repo, user_id):
        """Second install is refused and leaves the first untouched."""
        first = installer.install("acme.test-orbit", user_id)
        install_dir = Path(first.installed.install_path)
        before = sorted(p.name for p in install_dir.iterdir())

        with pytest.raises(AlreadyInstalled):
            installer.install("acme.test-orbit", user_id)

        assert sorted(p.name for p in install_dir.iterdir()) == before
        assert installed_repo.get_by_package_id("acme.test-orbit", user_id).id == first.installed.id

    def test_checksum_mismatch_cleans_up(
        self, installer, archive_server, seed_catalog, two_entry_archive, install_root, installed_repo, user_id
    ):
        """Tampered archive aborts and the install directory is gone."""
        _, data = two_entry_archive
        url = archive_server.serve("acme.test-orbit/1.0.0.tar.gz", data)
        seed_catalog("acme.test-orbit", "1.0.0", url=url, checksum="sha256:" + "deadbeef" * 8)

        with pytest.raises(ChecksumMismatch):
            installer.install("acme.test-orbit", user_id, "1.0.0")

        assert not (install_root / "orbits" / "acme.test-orbit" / "1.0.0").exists()
        assert installed_repo.get_by_package_id("acme.test-orbit", user_id) is None

    def test_unknown_package(self, installer, user_id):
        with pytest.raises(PackageNotFound):
            installer.install("ghost.orbit", user_id)

    def test_unknown_version(self, installer, served_orbit, user_id):
        with pytest.raises(VersionNotFound) as exc_info:
            installer.install("acme.test-orbit", user_id, "9.9.9")
        assert exc_info.value.version == "9.9.9"

    def test_latest_pointer_used(self, installer, archive_server, seed_catalog, tar_factory, user_id):
        _, old = tar_factory(name="old.tar.gz", files={"v.txt": b"1"})
        _, new = tar_factory(name="new.tar.gz", files={"v.txt": b"2"})
        seed_catalog("acme.orbit", "1.0.0", url=archive_server.serve("1.tgz", old))
        seed_catalog("acme.orbit", "2.0.0", url=archive_server.serve("2.tgz", new))

        result = installer.install("acme.orbit", user_id)
        assert result.installed.version == "2.0.0"

    def test_latest_stable_fallback(self, installer, seed_catalog, user_id):
        """With no latest pointer the newest stable version is installed."""
        seed_catalog("acme.orbit", "1.0.0", latest=False)
        seed_catalog("acme.orbit", "2.0.0-rc1", latest=False, prerelease=True)

        assert installer.install("acme.orbit", user_id).installed.version == "1.0.0"

    def test_no_versions_at_all(self, installer, package_repo, user_id):
        package_repo.create(Package(package_id="empty.orbit", type=PackageType.ORBIT, name="E"))
        with pytest.raises(VersionNotFound):
            installer.install("empty.orbit", user_id)

    def test_engine_layout(self, installer, seed_catalog, user_id):
        seed_catalog("acme.engine", "0.1.0", package_type=PackageType.ENGINE)
        result = installer.install("acme.engine", user_id)
        assert result.installed.install_path.replace("\\", "/").endswith("engines/acme.engine/0.1.0")
        assert result.installed.type is PackageType.ENGINE

    def test_empty_url_records_without_download(self, installer, seed_catalog, archive_server, user_id):
        """Local/dev versions without a URL install an empty directory."""
        seed_catalog("dev.orbit", "0.0.1")

        result = installer.install("dev.orbit", user_id)

        install_dir = Path(result.installed.install_path)
        assert install_dir.is_dir()
        assert list(install_dir.iterdir()) == []
        assert archive_server.requests == []

    def test_http_error(self, installer, seed_catalog, install_root, user_id):
        seed_catalog("acme.orbit", "1.0.0", url="https://packages.test/missing.tar.gz")

        with pytest.raises(DownloadFailed) as exc_info:
            installer.install("acme.orbit", user_id)

        assert exc_info.value.status_code == 404
        assert not (install_root / "orbits" / "acme.orbit" / "1.0.0").exists()

    def test_transport_error(self, installer, seed_catalog, archive_server, user_id):
        seed_catalog("acme.orbit", "1.0.0", url="https://packages.test/a.tar.gz")
        archive_server.error = httpx.ConnectError("connection refused")

        with pytest.raises(DownloadFailed):
            installer.install("acme.orbit", user_id)

    def test_malicious_archive_cleaned_up(
        self, installer, seed_catalog, archive_server, tar_factory, install_root, tmp_path, user_id
    ):
        _, data = tar_factory(files={"ok.txt": b"ok", "../../../escaped.txt": b"x"})
        seed_catalog("evil.orbit", "1.0.0", url=archive_server.serve("evil.tgz", data))

        with pytest.raises(UnsafeArchivePath):
            installer.install("evil.orbit", user_id)

        assert not (install_root / "orbits" / "evil.orbit" / "1.0.0").exists()
        assert not (tmp_path / "escaped.txt").exists()

    def test_package_id_cannot_escape_root(self, installer, seed_catalog, user_id):
        seed_catalog("../../outside", "1.0.0")
        with pytest.raises(PathValidationError):
            installer.install("../../outside", user_id)

    def test_ledger_failure_removes_directory(
        self, package_repo, version_repo, test_db_engine, install_root, downloader, seed_catalog, user_id
    ):
        class BrokenLedger(SqlInstalledPackageRepository):
            def create(self, installed):
                raise RuntimeError("disk full")

        seed_catalog("acme.orbit", "1.0.0")
        installer = Installer(
            package_repo,
            version_repo,
            BrokenLedger(test_db_engine),
            install_root=install_root,
            downloader=downloader,
        )

        with pytest.raises(RuntimeError, match="disk full"):
            installer.install("acme.orbit", user_id)

        assert not (install_root / "orbits" / "acme.orbit" / "1.0.0").exists()

    def test_download_counter_failure_is_ignored(
        self, installer, seed_catalog, package_repo, monkeypatch, user_id
    ):
        seed_catalog("acme.orbit", "1.0.0")

        def broken(package_ref):
            raise RuntimeError("counter offline")

        monkeypatch.setattr(package_repo, "increment_downloads", broken)

        result = installer.install("acme.orbit", user_id)
        assert result.installed.version == "1.0.0"

    def test_concurrent_installs_same_pair(self, installer, served_orbit, installed_repo, user_id):
        """Only one of several concurrent installs for the same user succeeds."""
        outcomes = []

        def run():
            try:
                installer.install("acme.test-orbit", user_id)
                outcomes.append("ok")
            except AlreadyInstalled:
                outcomes.append("already")

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["already", "already", "already", "ok"]
        assert len(installed_repo.list_by_user(user_id)) == 1

    def test_users_are_independent(self, installer, served_orbit, installed_repo):
        """Two users share one version directory and each gets a ledger row."""
        first = installer.install("acme.test-orbit", uuid.uuid4())
        second = installer.install("acme.test-orbit", uuid.uuid4())

        assert first.installed.id != second.installed.id
        assert first.installed.install_path == second.installed.install_path
        install_dir = Path(first.installed.install_path)
        assert sorted(p.name for p in install_dir.iterdir()) == ["README.md", "orbit.json"]
        assert installed_repo.count_by_install_path(str(install_dir)) == 2

    def test_failed_install_keeps_other_users_directory(
        self, installer, archive_server, served_orbit, installed_repo
    ):
        """A tampered download for one user leaves another user's install intact."""
        alice, bob = uuid.uuid4(), uuid.uuid4()
        install_dir = Path(installer.install("acme.test-orbit", alice).installed.install_path)

        archive_server.serve("acme.test-orbit/1.0.0.tar.gz", b"tampered bytes")
        with pytest.raises(ChecksumMismatch):
            installer.install("acme.test-orbit", bob)

        assert sorted(p.name for p in install_dir.iterdir()) == ["README.md", "orbit.json"]
        assert installed_repo.get_by_package_id("acme.test-orbit", alice) is not None
        assert installed_repo.get_by_package_id("acme.test-orbit", bob) is None
        # No scratch directories are left beside the version
        assert [p.name for p in install_dir.parent.iterdir()] == ["1.0.0"]

    def test_ledger_failure_keeps_other_users_directory(
        self, installer, served_orbit, package_repo, version_repo, test_db_engine, install_root, downloader
    ):
        class BrokenLedger(SqlInstalledPackageRepository):
            def create(self, installed):
                raise RuntimeError("disk full")

        install_dir = Path(installer.install("acme.test-orbit", uuid.uuid4()).installed.install_path)

        broken = Installer(
            package_repo,
            version_repo,
            BrokenLedger(test_db_engine),
            install_root=install_root,
            downloader=downloader,
        )
        with pytest.raises(RuntimeError, match="disk full"):
            broken.install("acme.test-orbit", uuid.uuid4())

        assert (install_dir / "orbit.json").is_file()

    def test_unreferenced_leftover_directory_is_replaced(
        self, installer, served_orbit, install_root, user_id
    ):
        leftover = install_root / "orbits" / "acme.test-orbit" / "1.0.0"
        leftover.mkdir(parents=True)
        (leftover / "stale.txt").write_text("from a crashed install")

        installer.install("acme.test-orbit", user_id)

        assert sorted(p.name for p in leftover.iterdir()) == ["README.md", "orbit.json"]

    def test_archive_entry_named_like_download(
        self, installer, archive_server, seed_catalog, tar_factory, user_id
    ):
        """An entry called package.tar.gz is extracted, not confused with the download."""
        inner = b"bundled data, not the download"
        _, data = tar_factory(
            name="outer.tar.gz",
            files={"orbit.json": b"{}", ARCHIVE_FILE_NAME: inner},
        )
        url = archive_server.serve("nested.tgz", data)
        seed_catalog("acme.nested", "1.0.0", url=url, checksum=hashlib.sha256(data).hexdigest())

        result = installer.install("acme.nested", user_id)

        install_dir = Path(result.installed.install_path)
        assert (install_dir / ARCHIVE_FILE_NAME).read_bytes() == inner
        assert (install_dir / "orbit.json").read_bytes() == b"{}"

    def test_lock_map_does_not_grow(self, installer, seed_catalog):
        seed_catalog("acme.orbit", "1.0.0")

        for _ in range(3):
            installer.install("acme.orbit", uuid.uuid4())

        gc.collect()
        assert len(installer._locks) == 0

    def test_invalid_install_root_is_not_created(
        self, package_repo, version_repo, installed_repo, downloader, seed_catalog, tmp_path, user_id
    ):
        bad_root = tmp_path / "roots;rm -rf"
        installer = Installer(
            package_repo,
            version_repo,
            installed_repo,
            install_root=bad_root,
            downloader=downloader,
        )
        seed_catalog("acme.orbit", "1.0.0")

        with pytest.raises(PathValidationError):
            installer.install("acme.orbit", user_id)

        assert not bad_root.exists()

    def test_explicit_prerelease_is_installed_with_warning(
        self, installer, seed_catalog, caplog, user_id
    ):
        seed_catalog("acme.orbit", "1.0.0")
        seed_catalog("acme.orbit", "2.0.0-rc1", latest=False, prerelease=True)

        with caplog.at_level(logging.WARNING, logger="orbita_market.services.installer"):
            result = installer.install("acme.orbit", user_id, "2.0.0-rc1")

        assert result.installed.version == "2.0.0-rc1"
        assert "prerelease or deprecated" in caplog.text
