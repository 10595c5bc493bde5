# src/orbita_market/archive/__init__.py
"""
Package archive creation and safe extraction.
"""

from orbita_market.archive.builder import ArchiveBuilder, BuiltArchive, build_archive
from orbita_market.archive.extract import (
    SafeExtractor,
    ExtractionReport,
    extract_archive,
    MAX_EXTRACTED_FILE_SIZE,
    MAX_TOTAL_EXTRACTED_SIZE,
)

__all__ = [
    "ArchiveBuilder",
    "BuiltArchive",
    "build_archive",
    "SafeExtractor",
    "ExtractionReport",
    "extract_archive",
    "MAX_EXTRACTED_FILE_SIZE",
    "MAX_TOTAL_EXTRACTED_SIZE",
]
