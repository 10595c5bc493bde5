# src/orbita_market/repositories/__init__.py
"""
Repository contracts and their SQLAlchemy implementations.
"""

from orbita_market.repositories.interfaces import (
    PackageRepository,
    VersionRepository,
    PublisherRepository,
    InstalledPackageRepository,
)

from orbita_market.repositories.sql import (
    SqlPackageRepository,
    SqlVersionRepository,
    SqlPublisherRepository,
    SqlInstalledPackageRepository,
)

__all__ = [
    # Contracts
    "PackageRepository",
    "VersionRepository",
    "PublisherRepository",
    "InstalledPackageRepository",
    # SQL implementations
    "SqlPackageRepository",
    "SqlVersionRepository",
    "SqlPublisherRepository",
    "SqlInstalledPackageRepository",
]
