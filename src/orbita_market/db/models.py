# src/orbita_market/db/models.py
"""
Database Models for the Orbita Marketplace.

Catalog tables:
- MkPublisher: identities allowed to publish
- MkPackage: one row per package id (orbit or engine)
- MkVersion: one row per published version, unique per package

Local ledger:
- MkInstalledPackage: one row per (package_id, user_id)
"""
from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    ForeignKey,
    DateTime,
    Index,
    Text,
    Boolean,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from orbita_market.db.base_session import Base, make_table_args


class MkPublisher(Base):
    __tablename__ = "mk_publisher"
    id = Column(Uuid, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=False, default="")
    verified = Column(Boolean, nullable=False, default=False)
    package_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)

    packages = relationship("MkPackage", back_populates="publisher")


class MkPackage(Base):
    __tablename__ = "mk_package"
    id = Column(Uuid, primary_key=True)
    package_id = Column(String(255), nullable=False, unique=True)
    type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    author = Column(String(255), nullable=True)
    homepage = Column(String(512), nullable=True)
    license = Column(String(100), nullable=True)
    tags = Column(Text, nullable=False, default="[]")  # JSON list
    latest_version = Column(String(50), nullable=True)
    downloads = Column(BigInteger, nullable=False, default=0)
    publisher_id = Column(Uuid, ForeignKey("mk_publisher.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    publisher = relationship("MkPublisher", back_populates="packages")
    versions = relationship(
        "MkVersion", back_populates="package", cascade="all, delete-orphan"
    )

    __table_args__ = make_table_args(
        Index("ix_mk_package_type", "type"),
        Index("ix_mk_package_publisher", "publisher_id"),
    )


class MkVersion(Base):
    __tablename__ = "mk_version"
    id = Column(Uuid, primary_key=True)
    package_ref = Column(Uuid, ForeignKey("mk_package.id"), nullable=False)
    version = Column(String(50), nullable=False)
    min_api_version = Column(String(50), nullable=True)
    changelog = Column(Text, nullable=True)
    checksum = Column(String(128), nullable=True)
    download_url = Column(String(512), nullable=True)
    size = Column(BigInteger, nullable=False, default=0)
    prerelease = Column(Boolean, nullable=False, default=False)
    deprecated = Column(Boolean, nullable=False, default=False)
    deprecation_message = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=False)

    package = relationship("MkPackage", back_populates="versions")

    __table_args__ = make_table_args(
        UniqueConstraint("package_ref", "version", name="uq_mk_package_version"),
        Index("ix_mk_version_published", "package_ref", "published_at"),
    )


class MkInstalledPackage(Base):
    __tablename__ = "mk_installed_package"
    id = Column(Uuid, primary_key=True)
    package_id = Column(String(255), nullable=False)
    version = Column(String(50), nullable=False)
    type = Column(String(50), nullable=False)
    install_path = Column(String(1000), nullable=False, default="")
    checksum = Column(String(128), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    user_id = Column(Uuid, nullable=False)
    installed_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = make_table_args(
        UniqueConstraint("package_id", "user_id", name="uq_mk_installed_package_user"),
        Index("ix_mk_installed_user", "user_id", "type"),
    )
