"""
Orbita Marketplace Configuration.

Sections:
- logging: root logger level, optional rotating file output
- database: catalog/ledger storage backend (sqlite3 or postgresql)
- marketplace: install root, extraction caps, download and publish settings

Values come from global_config.toml at the project root, or from the
file named by ORBITA_CONFIG. Constructor arguments override the file;
the file overrides environment variables (nested with "__").
"""
import os
import sys
from pathlib import Path
from typing import Callable, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    InitSettingsSource,
    SecretsSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
TOML_PATH = Path(os.environ.get("ORBITA_CONFIG", PROJECT_ROOT / "global_config.toml"))

if not TOML_PATH.is_file():
    print(f"WARNING: no config file at {TOML_PATH}, using defaults", file=sys.stderr)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "orbita_market.log"
    rotation_size_mb: int = 10
    rotation_backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    quiet_loggers: List[str] = Field(default_factory=lambda: ["httpx", "httpcore"])


# Backends are told apart by `type`.


class SQLiteConfig(BaseModel):
    type: Literal["sqlite3"] = "sqlite3"
    db_location: str = "orbita_market.sqlite3"
    in_memory: bool = False


class PostgresConfig(BaseModel):
    type: Literal["postgresql"] = "postgresql"
    host: str = "localhost"
    port: int = 5432
    db_name: str = "orbita"
    driver: str = "psycopg"

    username: Optional[str] = None
    password: Optional[str] = None


DatabaseConfig = Union[SQLiteConfig, PostgresConfig]


class MarketplaceConfig(BaseModel):
    """
    Package distribution settings.

    The extraction caps protect the install root against decompression
    bombs. `link_policy` decides what happens to symlink, hardlink and
    device entries found in a downloaded archive:
    - skip: entry is ignored and logged
    - reject: extraction fails with UnsupportedArchiveEntry
    """

    install_root: str = "~/.orbita/packages"

    # Extraction limits
    max_file_size_bytes: int = 100 * 1024 * 1024  # 100 MiB per entry
    max_total_size_bytes: int = 1024 * 1024 * 1024  # 1 GiB per archive
    link_policy: Literal["skip", "reject"] = "skip"

    download_timeout_seconds: float = 60.0

    # Publishing
    download_url_template: str = (
        "https://marketplace.orbita.dev/packages/{package_id}/{version}/download"
    )
    archive_store_dir: Optional[str] = None  # None = discard archive after publish
    exclude_patterns: List[str] = Field(
        default_factory=lambda: ["__pycache__/", "*.pyc", "*.tmp"]
    )

    def install_root_path(self) -> Path:
        return Path(self.install_root).expanduser()


class AppSettings(BaseSettings):
    """Top-level settings; every section falls back to its defaults."""

    logging: LoggingConfig = LoggingConfig()
    database: DatabaseConfig = Field(default=SQLiteConfig(), discriminator="type")
    marketplace: MarketplaceConfig = MarketplaceConfig()

    model_config = SettingsConfigDict(
        extra="forbid",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: InitSettingsSource,
        env_settings: EnvSettingsSource,
        dotenv_settings: DotEnvSettingsSource,
        file_secret_settings: SecretsSettingsSource,
    ) -> Tuple[Callable, ...]:
        # Earlier sources win
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=TOML_PATH),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


settings = AppSettings()
