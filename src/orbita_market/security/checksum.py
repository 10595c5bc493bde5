# src/orbita_market/security/checksum.py
"""
Checksum Verifier: SHA-256 integrity checks for package archives.

Wire format for published digests is either `sha256:<64 hex>` or the bare
64-character hex digest. An empty expected digest means "no checksum
published" and verification is skipped (trust on first download).
"""

import hashlib
import logging
from pathlib import Path
from typing import Union

from orbita_market.errors import ChecksumMismatch

logger = logging.getLogger(__name__)

CHECKSUM_PREFIX = "sha256:"
CHUNK_SIZE = 1024 * 1024


def compute_file_checksum(file_path: Union[str, Path]) -> str:
    """
    Compute the SHA-256 digest of a file, streamed in chunks.

    Returns:
        64-character lowercase hex digest
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def strip_prefix(checksum: str) -> str:
    """Drop an optional `sha256:` prefix."""
    if checksum.startswith(CHECKSUM_PREFIX):
        return checksum[len(CHECKSUM_PREFIX):]
    return checksum


def format_checksum(hex_digest: str) -> str:
    """Render a bare digest in the prefixed wire format."""
    return CHECKSUM_PREFIX + strip_prefix(hex_digest)


def verify_checksum(file_path: Union[str, Path], expected: str) -> None:
    """
    Verify a file against a published SHA-256 digest.

    Args:
        file_path: File to hash
        expected: `sha256:<hex>`, bare `<hex>`, or empty to skip

    Raises:
        ChecksumMismatch: If the digests differ (carries both values)
    """
    if not expected:
        logger.debug(f"No checksum published for {file_path}, skipping verification")
        return

    expected_hex = strip_prefix(expected).lower()
    actual_hex = compute_file_checksum(file_path)

    if actual_hex != expected_hex:
        raise ChecksumMismatch(expected=expected_hex, actual=actual_hex)

    logger.debug(f"Checksum verified for {file_path}: {actual_hex[:16]}...")
