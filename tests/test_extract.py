import os
import stat

import pytest

from orbita_market.archive.extract import SafeExtractor, extract_archive
from orbita_market.errors import FileTooLarge, UnsafeArchivePath, UnsupportedArchiveEntry


@pytest.fixture
def dest(tmp_path):
    d = tmp_path / "dest"
    d.mkdir()
    return d


class TestExtraction:
    def test_files_and_dirs_extracted(self, tar_factory, dest):
        archive, _ = tar_factory(
            dirs=["assets"],
            files={"orbit.json": b"{}", "assets/logo.txt": b"logo", "nested/deep/x.txt": b"x"},
        )

        report = SafeExtractor().extract(archive, dest)

        assert (dest / "orbit.json").read_bytes() == b"{}"
        assert (dest / "assets" / "logo.txt").read_bytes() == b"logo"
        # Parents of files are created even without a directory entry
        assert (dest / "nested" / "deep" / "x.txt").read_bytes() == b"x"
        assert report.directories == ["assets"]
        assert sorted(report.files) == ["assets/logo.txt", "nested/deep/x.txt", "orbit.json"]
        assert report.total_bytes == 7

    def test_directory_mode(self, tar_factory, dest):
        archive, _ = tar_factory(dirs=["bin"])
        SafeExtractor().extract(archive, dest)

        mode = stat.S_IMODE(os.stat(dest / "bin").st_mode)
        # Never wider than 0750 (umask may narrow it)
        assert mode & ~0o750 == 0

    def test_executable_bit_preserved_as_0750(self, tar_factory, dest):
        """Any execute bit in the header results in mode 0750."""
        archive, _ = tar_factory(
            files={"bin/run.sh": b"#!/bin/sh\n", "data.txt": b"plain"},
            modes={"bin/run.sh": 0o755},
        )
        SafeExtractor().extract(archive, dest)

        assert stat.S_IMODE(os.stat(dest / "bin" / "run.sh").st_mode) == 0o750
        assert stat.S_IMODE(os.stat(dest / "data.txt").st_mode) & 0o111 == 0

    def test_missing_destination(self, tar_factory, tmp_path):
        archive, _ = tar_factory(files={"a.txt": b"a"})
        with pytest.raises(FileNotFoundError):
            SafeExtractor().extract(archive, tmp_path / "nope")

    def test_convenience_wrapper(self, tar_factory, dest):
        archive, _ = tar_factory(files={"a.txt": b"a"})
        report = extract_archive(archive, dest)
        assert report.files == ["a.txt"]


class TestSizeCaps:
    def test_declared_size_over_file_cap(self, tar_factory, dest):
        archive, _ = tar_factory(files={"big.bin": b"x" * 64})

        with pytest.raises(FileTooLarge):
            SafeExtractor(max_file_size=32).extract(archive, dest)

        assert not (dest / "big.bin").exists()

    def test_copy_reaching_cap_fails(self, tar_factory, dest):
        """A file exactly at the per-file cap trips the bounded copy."""
        archive, _ = tar_factory(files={"edge.bin": b"x" * 32})

        with pytest.raises(FileTooLarge):
            SafeExtractor(max_file_size=32).extract(archive, dest)

    def test_just_under_cap_allowed(self, tar_factory, dest):
        archive, _ = tar_factory(files={"ok.bin": b"x" * 31})
        SafeExtractor(max_file_size=32).extract(archive, dest)
        assert (dest / "ok.bin").stat().st_size == 31

    def test_total_cap(self, tar_factory, dest):
        """Declared sizes are summed across entries."""
        archive, _ = tar_factory(files={"a.bin": b"a" * 20, "b.bin": b"b" * 20})

        with pytest.raises(FileTooLarge, match="total"):
            SafeExtractor(max_file_size=100, max_total_size=30).extract(archive, dest)

        assert not (dest / "b.bin").exists()


class TestContainment:
    @pytest.mark.parametrize(
        "name", ["../evil.txt", "sub/../../evil.txt", "/tmp/orbita-evil.txt"]
    )
    def test_escaping_entries_rejected(self, tar_factory, dest, tmp_path, name):
        archive, _ = tar_factory(files={name: b"pwned"})

        with pytest.raises(UnsafeArchivePath) as exc_info:
            SafeExtractor().extract(archive, dest)

        assert exc_info.value.name == name
        assert "invalid file path in archive" in str(exc_info.value)
        assert not (tmp_path / "evil.txt").exists()
        assert list(dest.iterdir()) == []

    def test_dotdot_staying_inside_allowed(self, tar_factory, dest):
        archive, _ = tar_factory(files={"a/../b.txt": b"b"})
        SafeExtractor().extract(archive, dest)
        assert (dest / "b.txt").read_bytes() == b"b"

    def test_earlier_entries_left_for_caller(self, tar_factory, dest):
        """The engine does not clean up what it already wrote."""
        archive, _ = tar_factory(files={"good.txt": b"ok", "../bad.txt": b"no"})

        with pytest.raises(UnsafeArchivePath):
            SafeExtractor().extract(archive, dest)

        assert (dest / "good.txt").exists()


class TestLinkPolicy:
    def test_symlink_skipped_by_default(self, tar_factory, dest):
        archive, _ = tar_factory(
            files={"orbit.json": b"{}"}, symlinks={"passwd": "/etc/passwd"}
        )

        report = SafeExtractor().extract(archive, dest)

        assert report.skipped == ["passwd"]
        assert not os.path.lexists(dest / "passwd")
        assert (dest / "orbit.json").exists()

    def test_symlink_rejected_under_reject_policy(self, tar_factory, dest):
        archive, _ = tar_factory(symlinks={"passwd": "/etc/passwd"})

        with pytest.raises(UnsupportedArchiveEntry) as exc_info:
            SafeExtractor(link_policy="reject").extract(archive, dest)

        assert exc_info.value.kind == "symlink"
        assert not os.path.lexists(dest / "passwd")

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            SafeExtractor(link_policy="follow")
