# src/orbita_market/errors.py
"""
Error kinds raised by the marketplace distribution pipeline.

Every failure mode has its own class so callers can branch on the kind
instead of parsing messages. All of them derive from MarketplaceError.
"""
from typing import Optional


class MarketplaceError(Exception):
    """Base class for marketplace failures."""
    pass


class PathValidationError(MarketplaceError):
    """Raised when a filesystem path fails sandbox validation."""
    pass


class PackageNotFound(MarketplaceError):
    """Raised when a package is not found in the catalog."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"package not found: {package_id}")


class VersionNotFound(MarketplaceError):
    """Raised when a specific version of a package is not found."""

    def __init__(self, package_id: str, version: str):
        self.package_id = package_id
        self.version = version
        super().__init__(f"version not found: {package_id}@{version}")


class AlreadyInstalled(MarketplaceError):
    """Raised when installing a package the user already has installed."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"package already installed: {package_id}")


class NotInstalled(MarketplaceError):
    """Raised when a command targets a package that is not installed."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"package not installed: {package_id}")


class AlreadyEnabled(MarketplaceError):
    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"package already enabled: {package_id}")


class AlreadyDisabled(MarketplaceError):
    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"package already disabled: {package_id}")


class ChecksumMismatch(MarketplaceError):
    """Raised when a downloaded archive does not match its published digest."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"checksum mismatch: expected {expected}, got {actual}")


class DownloadFailed(MarketplaceError):
    """Raised on non-2xx responses and transport failures."""

    def __init__(self, url: str, status_code: Optional[int] = None, detail: str = ""):
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"download failed: status {status_code} for {url}"
        else:
            message = f"download failed for {url}: {detail}"
        super().__init__(message)


class FileTooLarge(MarketplaceError):
    """Raised when an archive entry or the archive total exceeds the extraction caps."""
    pass


class UnsafeArchivePath(MarketplaceError):
    """Raised when an archive entry would land outside the destination directory."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"invalid file path in archive: {name}")


class UnsupportedArchiveEntry(MarketplaceError):
    """Raised for link/device entries when the link policy is 'reject'."""

    def __init__(self, name: str, kind: str):
        self.name = name
        self.kind = kind
        super().__init__(f"unsupported archive entry ({kind}): {name}")


class ManifestNotFound(MarketplaceError):
    def __init__(self, package_path: str):
        self.package_path = package_path
        super().__init__(
            f"manifest file not found (orbit.json or engine.json) in {package_path}"
        )


class InvalidManifest(MarketplaceError):
    """Raised when a manifest is malformed. `reason` names the violation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"invalid manifest: {reason}")


class Unauthorized(MarketplaceError):
    def __init__(self, detail: str = "unauthorized to publish this package"):
        super().__init__(detail)


class AlreadyExists(MarketplaceError):
    """Raised when publishing a version that already exists."""

    def __init__(self, package_id: str, version: str):
        self.package_id = package_id
        self.version = version
        super().__init__(f"package version already exists: {package_id}@{version}")
