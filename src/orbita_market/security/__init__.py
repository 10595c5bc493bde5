# src/orbita_market/security/__init__.py
"""
Path sandboxing and archive integrity checks.
"""

from orbita_market.security.paths import (
    validate_path,
    validate_path_in_dir,
    safe_read_file,
    safe_read_file_in_dir,
)

from orbita_market.security.checksum import (
    compute_file_checksum,
    format_checksum,
    verify_checksum,
)

__all__ = [
    # Path sandbox
    "validate_path",
    "validate_path_in_dir",
    "safe_read_file",
    "safe_read_file_in_dir",
    # Checksums
    "compute_file_checksum",
    "format_checksum",
    "verify_checksum",
]
