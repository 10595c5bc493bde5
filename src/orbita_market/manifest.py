# src/orbita_market/manifest.py
"""
Package manifest (orbit.json / engine.json) loading and validation.

The manifest is read once at publish time and never persisted as-is.
Lookup order inside the package directory is orbit.json, then
engine.json; both reads go through the path sandbox.
"""
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from orbita_market.domain import PackageType
from orbita_market.errors import InvalidManifest, ManifestNotFound, PathValidationError
from orbita_market.security.paths import safe_read_file_in_dir, validate_path

logger = logging.getLogger(__name__)

MANIFEST_FILES = ("orbit.json", "engine.json")


class PackageManifest(BaseModel):
    """Schema of orbit.json / engine.json. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    version: str = ""
    type: str = ""  # "orbit" or "engine"
    author: str = ""
    description: str = ""
    license: str = ""
    homepage: str = ""
    tags: List[str] = []
    min_api_version: str = ""
    entitlement: Optional[str] = None

    @property
    def package_type(self) -> PackageType:
        return PackageType(self.type)


def validate_manifest(manifest: PackageManifest) -> None:
    """
    Check required fields.

    Raises:
        InvalidManifest: With the first violated rule as reason
    """
    if not manifest.id:
        raise InvalidManifest("missing id")
    if not manifest.name:
        raise InvalidManifest("missing name")
    if not manifest.version:
        raise InvalidManifest("missing version")
    if not PackageType.is_valid(manifest.type):
        raise InvalidManifest("type must be 'orbit' or 'engine'")


def read_manifest(package_path: Union[str, Path]) -> PackageManifest:
    """
    Locate and parse the manifest of a package directory.

    Args:
        package_path: Package source directory

    Returns:
        Parsed (not yet validated) PackageManifest

    Raises:
        PathValidationError: If package_path fails sandbox validation
        ManifestNotFound: If neither orbit.json nor engine.json is readable
        InvalidManifest: If the manifest is not valid JSON of the right shape
    """
    clean_dir = validate_path(package_path)

    for filename in MANIFEST_FILES:
        candidate = clean_dir / filename
        try:
            data = safe_read_file_in_dir(candidate, clean_dir)
        except (OSError, PathValidationError):
            continue

        try:
            manifest = PackageManifest.model_validate_json(data)
        except ValidationError as e:
            raise InvalidManifest(_describe(e)) from e

        logger.debug(f"Loaded manifest {candidate}")
        return manifest

    raise ManifestNotFound(str(clean_dir))


def load_manifest(package_path: Union[str, Path]) -> PackageManifest:
    """read_manifest() followed by validate_manifest()."""
    manifest = read_manifest(package_path)
    validate_manifest(manifest)
    return manifest


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "manifest"
    return f"{location}: {first.get('msg', 'invalid value')}"
