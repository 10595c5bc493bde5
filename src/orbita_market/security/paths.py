# src/orbita_market/security/paths.py
"""
Path Sandbox: validation and canonicalization of filesystem paths.

Every path that reaches the filesystem from manifest lookups, install
layout computation or archive entries goes through these helpers.

Rules:
- Empty paths and shell metacharacters are rejected outright
- Paths are cleaned and made absolute against the current directory
- Existing paths have symlinks resolved; missing paths are returned
  cleaned so callers can create them
- Containment means "equal to base, or below base + separator", which
  rejects both `..` escapes and prefix look-alikes (/x/foo vs /x/foobar)
"""

import os
import logging
from pathlib import Path
from typing import Union

from orbita_market.errors import PathValidationError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

DANGEROUS_CHARS = (";", "&", "|", "$", "`", "(", ")", "{", "}", "<", ">", "!", "\n", "\r")


def validate_path(path: PathLike) -> Path:
    """
    Validate and canonicalize a filesystem path.

    Args:
        path: Absolute or relative path

    Returns:
        Absolute cleaned path, symlink-resolved when it exists

    Raises:
        PathValidationError: If the path is empty or contains a forbidden character
    """
    raw = os.fspath(path) if path is not None else ""
    if not raw:
        raise PathValidationError("path cannot be empty")

    for char in DANGEROUS_CHARS:
        if char in raw:
            raise PathValidationError(f"path contains forbidden character {char!r}")

    # abspath also normalizes (collapses `..`, duplicate separators)
    cleaned = os.path.abspath(raw)

    if os.path.exists(cleaned):
        return Path(os.path.realpath(cleaned))

    return Path(cleaned)


def is_within(path: PathLike, base: PathLike) -> bool:
    """Containment check on already-cleaned paths: equal to base or strictly below it."""
    path_str = os.fspath(path)
    base_str = os.fspath(base)
    if path_str == base_str:
        return True
    prefix = base_str if base_str.endswith(os.sep) else base_str + os.sep
    return path_str.startswith(prefix)


def validate_path_in_dir(path: PathLike, base: PathLike) -> Path:
    """
    Validate a path and require it to stay inside a base directory.

    Args:
        path: Path to validate
        base: Directory the path must be contained in

    Returns:
        Canonical path (see validate_path)

    Raises:
        PathValidationError: If either path is invalid or the path escapes base
    """
    if base is None or not os.fspath(base):
        raise PathValidationError("base directory cannot be empty")

    clean_base = validate_path(base)
    clean_path = validate_path(path)

    if not is_within(clean_path, clean_base):
        raise PathValidationError(
            f"path {clean_path} escapes base directory {clean_base}"
        )

    return clean_path


def safe_read_file(path: PathLike) -> bytes:
    """Read a file after validating its path."""
    return validate_path(path).read_bytes()


def safe_read_file_in_dir(path: PathLike, base: PathLike) -> bytes:
    """Read a file after validating it lives inside `base`."""
    return validate_path_in_dir(path, base).read_bytes()
