"""Vault settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``NOTEVAULT_``, nested via ``__``)
2. YAML config file (``NOTEVAULT_CONFIG_PATH`` env var or :meth:`AppConfig.from_yaml`)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class StoreEngine(enum.StrEnum):
    """Supported encrypted-store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class StoreConfig(BaseSettings):
    """Encrypted key-value store settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_STORE__",
        case_sensitive=False,
    )

    engine: StoreEngine = Field(
        default=StoreEngine.SQLITE,
        description="Store backend: memory, sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./note_vault.db",
        description="Async database connection string (ignored by the memory backend)",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False
    io_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds before a single backend call is reported unavailable",
    )
    max_cas_retries: int = Field(
        default=16,
        ge=1,
        description="Compare-and-set attempts before a write is reported unavailable",
    )


class CryptoConfig(BaseSettings):
    """Session key derivation settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_CRYPTO__",
        case_sensitive=False,
    )

    pbkdf2_iterations: int = Field(default=310_000, ge=1)
    key_length: int = 32
    salt_prefix: str = "note-vault-salt-"


class IndexerConfig(BaseSettings):
    """Activity indexer (GraphQL) settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_INDEXER__",
        case_sensitive=False,
    )

    url: str = ""
    auth_token: str = ""
    page_size: int = Field(default=100, ge=1, le=1000)
    timeout: float = 30.0


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level vault configuration.

    Loads settings from environment variables (``NOTEVAULT_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    store: StoreConfig = Field(default_factory=StoreConfig)
    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
