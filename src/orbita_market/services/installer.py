# src/orbita_market/services/installer.py
"""
Installer: catalog lookup -> download -> verify -> extract -> ledger.

On-disk layout of an installed version:

    {install_root}/{type}s/{package_id}/{version}/

That directory is shared by every user who installs the same version.
A version is staged in a private scratch directory beside it and only
renamed into place once it is complete, so a failing install never
touches a directory that another installation already uses. Rollback
(see services.cleanup.discard_on_failure) only removes a directory this
command created and that no ledger row references. The ledger row is
written last, so a ledger row always points at a complete directory.

Same (package, user) installs are serialized inside one process. Across
processes the ledger's unique constraint is the only guard: the losing
writer fails with AlreadyInstalled.
"""

import logging
import os
import shutil
import tempfile
import threading
import uuid
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from orbita_market.archive.extract import DIR_MODE, SafeExtractor
from orbita_market.domain import InstalledPackage, Package, Version
from orbita_market.errors import (
    AlreadyInstalled,
    PackageNotFound,
    VersionNotFound,
)
from orbita_market.repositories.interfaces import (
    InstalledPackageRepository,
    PackageRepository,
    VersionRepository,
)
from orbita_market.security.checksum import verify_checksum
from orbita_market.security.paths import validate_path, validate_path_in_dir
from orbita_market.services.cleanup import discard_on_failure, remove_tree_best_effort
from orbita_market.services.download import Downloader

logger = logging.getLogger(__name__)

ARCHIVE_FILE_NAME = "package.tar.gz"


@dataclass
class InstallResult:
    installed: InstalledPackage
    message: str


# --- Shared pipeline steps (also used by the Updater) ---


def resolve_version(
    package: Package, version_repo: VersionRepository, requested: str = ""
) -> Version:
    """
    Pick the catalog version to install.

    Explicit request wins, then the package's latest pointer, then the
    newest stable version when the pointer is empty.

    Raises:
        VersionNotFound: If the chosen version does not exist
    """
    target = requested or package.latest_version
    if target:
        version = version_repo.get_by_package_and_version(package.id, target)
        if version is None:
            raise VersionNotFound(package.package_id, target)
        if not version.is_stable:
            logger.warning(
                f"{package.package_id}@{version.version} is a prerelease or deprecated version"
            )
        return version

    version = version_repo.get_latest_stable(package.id)
    if version is None:
        raise VersionNotFound(package.package_id, "latest")
    return version


def stage_version(
    downloader: Downloader,
    extractor: SafeExtractor,
    version: Version,
    install_dir: Path,
    reuse_existing: bool,
) -> bool:
    """
    Download, verify and unpack one version, then move it to `install_dir`.

    The archive is downloaded to {scratch}/package.tar.gz and unpacked into
    {scratch}/tree, so no archive entry can overwrite the download. The
    scratch directory is a fresh sibling of `install_dir` and is always
    removed. An empty download URL stages an empty tree.

    An existing `install_dir` is reused untouched when `reuse_existing` is
    set (another installation holds it); otherwise it is a leftover with no
    owner and is replaced.

    Returns:
        True if this call put the directory at `install_dir`
    """
    parent = install_dir.parent
    os.makedirs(parent, mode=DIR_MODE, exist_ok=True)
    scratch = Path(tempfile.mkdtemp(prefix=f".{install_dir.name}-", dir=parent))

    try:
        tree = scratch / "tree"
        os.makedirs(tree, mode=DIR_MODE)

        archive_path = scratch / ARCHIVE_FILE_NAME
        if downloader.download(version.download_url, archive_path):
            verify_checksum(archive_path, version.checksum)
            extractor.extract(archive_path, tree)

        if install_dir.exists():
            if reuse_existing:
                logger.info(f"Reusing {install_dir}, already held by another installation")
                return False
            logger.warning(f"Replacing unreferenced directory {install_dir}")
            shutil.rmtree(install_dir)

        try:
            os.rename(tree, install_dir)
        except OSError:
            # Lost a rename race against another installer of this version
            if not install_dir.is_dir():
                raise
            logger.info(f"Reusing {install_dir}, created concurrently")
            return False
        return True
    finally:
        remove_tree_best_effort(scratch)


def install_path_in_use(
    installed_repo: InstalledPackageRepository,
    install_dir: Path,
    exclude_id: Optional[uuid.UUID] = None,
) -> bool:
    return installed_repo.count_by_install_path(str(install_dir), exclude_id) > 0


def bump_downloads(package_repo: PackageRepository, package: Package) -> None:
    """Best-effort download counter increment."""
    try:
        package_repo.increment_downloads(package.id)
    except Exception as e:
        logger.warning(f"Could not increment downloads for {package.package_id}: {e}")


class Installer:
    def __init__(
        self,
        package_repo: PackageRepository,
        version_repo: VersionRepository,
        installed_repo: InstalledPackageRepository,
        install_root: Union[str, Path],
        downloader: Downloader,
        extractor: Optional[SafeExtractor] = None,
    ):
        self.package_repo = package_repo
        self.version_repo = version_repo
        self.installed_repo = installed_repo
        self.install_root = install_root
        self.downloader = downloader
        self.extractor = extractor or SafeExtractor()

        # Entries vanish once no install holds the lock
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, package_id: str, user_id: uuid.UUID) -> threading.Lock:
        key = (package_id, user_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def install_dir_for(self, package: Package, version: str) -> Path:
        """Compute (and sandbox-check) the install directory of a version."""
        root_path = validate_path(Path(self.install_root).expanduser())
        os.makedirs(root_path, mode=DIR_MODE, exist_ok=True)
        # Resolve again now that symlinks in the root can be followed
        root = validate_path(root_path)
        candidate = root / f"{package.type.value}s" / package.package_id / version
        return validate_path_in_dir(candidate, root)

    def install(self, package_id: str, user_id: uuid.UUID, version: str = "") -> InstallResult:
        """
        Install a catalog package for a user.

        Args:
            package_id: Public package id
            user_id: Owner of the ledger row
            version: Explicit version, or "" for latest

        Raises:
            AlreadyInstalled, PackageNotFound, VersionNotFound,
            PathValidationError, DownloadFailed, ChecksumMismatch,
            FileTooLarge, UnsafeArchivePath, UnsupportedArchiveEntry
        """
        lock = self._lock_for(package_id, user_id)
        with lock:
            return self._install(package_id, user_id, version)

    def _install(self, package_id: str, user_id: uuid.UUID, version: str) -> InstallResult:
        if self.installed_repo.get_by_package_id(package_id, user_id) is not None:
            raise AlreadyInstalled(package_id)

        package = self.package_repo.get_by_package_id(package_id)
        if package is None:
            raise PackageNotFound(package_id)

        target = resolve_version(package, self.version_repo, version)
        install_dir = self.install_dir_for(package, target.version)

        logger.info(f"Installing {package_id}@{target.version} into {install_dir}")

        created = stage_version(
            self.downloader,
            self.extractor,
            target,
            install_dir,
            reuse_existing=install_path_in_use(self.installed_repo, install_dir),
        )

        def keep_dir() -> bool:
            return not created or install_path_in_use(self.installed_repo, install_dir)

        with discard_on_failure(install_dir, keep=keep_dir):
            installed = InstalledPackage(
                package_id=package.package_id,
                version=target.version,
                type=package.type,
                install_path=str(install_dir),
                checksum=target.checksum,
                user_id=user_id,
            )
            self.installed_repo.create(installed)

        bump_downloads(self.package_repo, package)

        return InstallResult(
            installed=installed,
            message=f"Successfully installed {package_id}@{target.version}",
        )
