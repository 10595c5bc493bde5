# src/orbita_market/archive/extract.py
"""
Safe Extraction Engine for downloaded package archives (gzip + tar).

Archives come from a partially trusted source, so every entry is checked
before anything touches the disk:

1. Size guard: the declared size of an entry must not exceed the per-file
   cap, and the running total of declared sizes must not exceed the
   archive cap.
2. Containment: `dest / entry.name` (cleaned) must equal dest or live
   below it. Absolute names and `..` segments fail here.
3. Type policy: directories and regular files are materialized; links and
   devices are skipped or rejected according to `link_policy`.

While copying, the reader is bounded to the per-file cap regardless of
what the header claimed. Reaching the cap is a failure.

The engine never deletes what it wrote. On error the caller owns cleanup
of the destination directory.
"""

import os
import logging
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Union

from orbita_market.errors import FileTooLarge, UnsafeArchivePath, UnsupportedArchiveEntry
from orbita_market.security.paths import is_within

logger = logging.getLogger(__name__)

# Fixed defaults; overridable per instance from MarketplaceConfig.
MAX_EXTRACTED_FILE_SIZE = 100 * 1024 * 1024  # 100 MiB
MAX_TOTAL_EXTRACTED_SIZE = 1024 * 1024 * 1024  # 1 GiB

DIR_MODE = 0o750
EXEC_MODE = 0o750
COPY_CHUNK_SIZE = 64 * 1024

LinkPolicy = Literal["skip", "reject"]


@dataclass
class ExtractionReport:
    """What an extraction wrote (and what it skipped)."""

    files: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    total_bytes: int = 0


def _entry_kind(member: tarfile.TarInfo) -> str:
    if member.issym():
        return "symlink"
    if member.islnk():
        return "hardlink"
    if member.ischr() or member.isblk():
        return "device"
    if member.isfifo():
        return "fifo"
    return "other"


class SafeExtractor:
    """
    Extracts a .tar.gz into an existing directory with bomb and traversal defenses.
    """

    def __init__(
        self,
        max_file_size: int = MAX_EXTRACTED_FILE_SIZE,
        max_total_size: int = MAX_TOTAL_EXTRACTED_SIZE,
        link_policy: LinkPolicy = "skip",
    ):
        if link_policy not in ("skip", "reject"):
            raise ValueError(f"Unknown link policy: {link_policy}")
        self.max_file_size = max_file_size
        self.max_total_size = max_total_size
        self.link_policy = link_policy

    def extract(
        self, archive_path: Union[str, Path], dest_dir: Union[str, Path]
    ) -> ExtractionReport:
        """
        Extract `archive_path` into `dest_dir`.

        Args:
            archive_path: gzip-wrapped tar file
            dest_dir: Destination directory (must already exist)

        Returns:
            ExtractionReport listing written and skipped entries

        Raises:
            FileTooLarge: Declared or actual size exceeds a cap
            UnsafeArchivePath: Entry resolves outside dest_dir
            UnsupportedArchiveEntry: Link/device entry under the 'reject' policy
            tarfile.TarError: Corrupt or non-tar input
        """
        dest = os.path.abspath(os.fspath(dest_dir))
        if not os.path.isdir(dest):
            raise FileNotFoundError(f"Extraction destination does not exist: {dest}")

        report = ExtractionReport()
        total_declared = 0

        with tarfile.open(archive_path, mode="r:gz") as tf:
            for member in tf:
                # Decompression bomb: single entry
                if member.size > self.max_file_size:
                    raise FileTooLarge(
                        f"{member.name} is {member.size} bytes (max {self.max_file_size})"
                    )

                # Decompression bomb: archive total
                total_declared += member.size
                if total_declared > self.max_total_size:
                    raise FileTooLarge(
                        f"total extracted size exceeds {self.max_total_size} bytes"
                    )

                target = os.path.normpath(os.path.join(dest, member.name))
                if not is_within(target, dest):
                    raise UnsafeArchivePath(member.name)

                if member.isdir():
                    os.makedirs(target, mode=DIR_MODE, exist_ok=True)
                    report.directories.append(member.name)
                elif member.isreg():
                    written = self._write_file(tf, member, target)
                    report.files.append(member.name)
                    report.total_bytes += written
                else:
                    self._handle_unsupported(member, report)

        logger.debug(
            f"Extracted {len(report.files)} files, {len(report.directories)} dirs "
            f"({report.total_bytes} bytes) into {dest}"
        )
        return report

    def _write_file(self, tf: tarfile.TarFile, member: tarfile.TarInfo, target: str) -> int:
        """Copy one regular entry through a reader bounded to the per-file cap."""
        os.makedirs(os.path.dirname(target), mode=DIR_MODE, exist_ok=True)

        source = tf.extractfile(member)
        if source is None:
            raise tarfile.ExtractError(f"cannot read archive entry: {member.name}")

        written = 0
        remaining = self.max_file_size
        with source, open(target, "wb") as out:
            while remaining > 0:
                chunk = source.read(min(COPY_CHUNK_SIZE, remaining))
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
                remaining -= len(chunk)

        if written >= self.max_file_size:
            raise FileTooLarge(f"{member.name} exceeded size limit during extraction")

        # Any execute bit in the header marks a binary
        if member.mode & 0o111:
            os.chmod(target, EXEC_MODE)

        return written

    def _handle_unsupported(self, member: tarfile.TarInfo, report: ExtractionReport):
        kind = _entry_kind(member)
        if self.link_policy == "reject":
            raise UnsupportedArchiveEntry(member.name, kind)
        logger.warning(f"Skipping {kind} entry in archive: {member.name}")
        report.skipped.append(member.name)


def extract_archive(
    archive_path: Union[str, Path],
    dest_dir: Union[str, Path],
    max_file_size: int = MAX_EXTRACTED_FILE_SIZE,
    max_total_size: int = MAX_TOTAL_EXTRACTED_SIZE,
    link_policy: LinkPolicy = "skip",
) -> ExtractionReport:
    """Convenience wrapper around SafeExtractor.extract()."""
    extractor = SafeExtractor(
        max_file_size=max_file_size,
        max_total_size=max_total_size,
        link_policy=link_policy,
    )
    return extractor.extract(archive_path, dest_dir)
