# src/orbita_market/archive/builder.py
"""
Archive Builder: packs a package directory into a deterministic .tar.gz.

Walk rules:
- Entries are visited in sorted order so the same tree yields the same archive
- Dot-named files are skipped; dot-named directories skip their whole subtree
- Entries matching the exclude patterns (config + .orbitignore) are skipped
- The package root itself is not written; entry names are relative POSIX paths

The archive lives in a temporary file. On failure the partial file is
removed before the error propagates.
"""

import gzip
import logging
import os
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from orbita_market.archive.filter_logic import PathFilter
from orbita_market.security.checksum import compute_file_checksum

logger = logging.getLogger(__name__)


@dataclass
class BuiltArchive:
    """A freshly built package archive."""

    path: Path
    checksum: str  # bare hex digest
    size: int
    entries: List[str]


class ArchiveBuilder:
    def __init__(self, exclude_patterns: Optional[List[str]] = None):
        self.exclude_patterns = list(exclude_patterns or [])

    def build(
        self,
        package_dir: Union[str, Path],
        package_id: str,
        version: str,
    ) -> BuiltArchive:
        """
        Build the archive for one package version.

        Args:
            package_dir: Root of the package sources
            package_id: Used in the temp file name only
            version: Used in the temp file name only

        Returns:
            BuiltArchive with path, bare SHA-256 checksum and byte size
        """
        root = Path(package_dir)
        path_filter = PathFilter.for_package(root, self.exclude_patterns)

        tmp = tempfile.NamedTemporaryFile(
            prefix=f"{package_id}-{version}-", suffix=".tar.gz", delete=False
        )
        archive_path = Path(tmp.name)
        entries: List[str] = []

        try:
            # mtime=0 keeps the gzip header stable across builds
            with gzip.GzipFile(filename="", fileobj=tmp, mode="wb", mtime=0) as gz:
                with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tf:
                    self._add_tree(tf, root, root, path_filter, entries)
            tmp.close()

            checksum = compute_file_checksum(archive_path)
        except BaseException:
            tmp.close()
            try:
                archive_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove partial archive {archive_path}: {e}")
            raise

        size = archive_path.stat().st_size
        logger.info(
            f"Built archive for {package_id}@{version}: {len(entries)} entries, "
            f"{size} bytes, sha256 {checksum[:16]}..."
        )
        return BuiltArchive(path=archive_path, checksum=checksum, size=size, entries=entries)

    def _add_tree(
        self,
        tf: tarfile.TarFile,
        root: Path,
        current: Path,
        path_filter: PathFilter,
        entries: List[str],
    ):
        with os.scandir(current) as it:
            children = sorted(it, key=lambda e: e.name)

        for entry in children:
            # Skip hidden files and directories
            if entry.name.startswith("."):
                continue

            is_dir = entry.is_dir(follow_symlinks=False)
            rel = Path(entry.path).relative_to(root).as_posix()
            if path_filter.is_ignored(rel, is_dir=is_dir):
                logger.debug(f"Excluded from archive: {rel}")
                continue

            info = tf.gettarinfo(entry.path, arcname=rel)
            if info is None:
                # Sockets and other unarchivable types
                logger.warning(f"Skipping unsupported file type: {rel}")
                continue
            self._normalize(info)

            if info.isreg():
                with open(entry.path, "rb") as f:
                    tf.addfile(info, f)
            else:
                tf.addfile(info)
            entries.append(rel)

            if is_dir:
                self._add_tree(tf, root, Path(entry.path), path_filter, entries)

    @staticmethod
    def _normalize(info: tarfile.TarInfo):
        """Drop host-specific ownership so archives are reproducible."""
        info.mtime = int(info.mtime)
        info.uid = 0
        info.gid = 0
        info.uname = ""
        info.gname = ""


def build_archive(
    package_dir: Union[str, Path],
    package_id: str,
    version: str,
    exclude_patterns: Optional[List[str]] = None,
) -> BuiltArchive:
    """Convenience wrapper around ArchiveBuilder.build()."""
    return ArchiveBuilder(exclude_patterns).build(package_dir, package_id, version)
