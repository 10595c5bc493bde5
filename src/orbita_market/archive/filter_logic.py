# src/orbita_market/archive/filter_logic.py
import logging
from typing import List, Optional
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".orbitignore"


class PathFilter:
    """
    File path filtering for package archives using gitignore-style patterns.
    """

    def __init__(self, patterns: Optional[List[str]] = None):
        # Filter empty strings/None and comments
        valid_patterns = [
            p.strip() for p in (patterns or []) if p and p.strip() and not p.strip().startswith("#")
        ]

        self.spec = pathspec.PathSpec.from_lines("gitwildmatch", valid_patterns)
        logger.debug(f"PathFilter initialized with {len(valid_patterns)} rules")

    @classmethod
    def for_package(cls, package_dir, patterns: Optional[List[str]] = None) -> "PathFilter":
        """
        Build a filter from configured patterns plus the package's own
        `.orbitignore`, if present.
        """
        all_patterns = list(patterns or [])
        ignore_file = Path(package_dir) / IGNORE_FILE_NAME
        if ignore_file.is_file():
            all_patterns.extend(ignore_file.read_text(encoding="utf-8").splitlines())
            logger.info(f"Loaded ignore rules from {ignore_file}")
        return cls(all_patterns)

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        """
        Check if a POSIX path relative to the package root matches any rule.

        Directory rules ("build/") only match when the path carries a
        trailing slash, so directories are checked in that form.
        """
        candidate = rel_path.rstrip("/") + "/" if is_dir else rel_path
        return self.spec.match_file(candidate)
