"""
Configuration for the OVAL dictionary storage layer.

This module provides:
- Family: the OS family tags accepted by the dictionary
- LATEST_SCHEMA_VERSION: schema version written by the current drivers
- DictionaryConfig: database settings loaded from a YAML file

Usage:
    config = load_config("config.yaml")
    driver = new_db(config.db_type, config.db_path, config.debug_sql, config.to_option())
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml

LATEST_SCHEMA_VERSION = 2


class Family(str, Enum):
    """OS family tags understood by the version normalizer."""
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    RASPBIAN = "raspbian"
    REDHAT = "redhat"
    CENTOS = "centos"
    ORACLE = "oracle"
    AMAZON = "amazon"
    ALPINE = "alpine"
    FEDORA = "fedora"
    OPENSUSE = "opensuse"
    OPENSUSE_LEAP = "opensuse.leap"
    SUSE_ENTERPRISE_DESKTOP = "suse.linux.enterprise.desktop"
    SUSE_ENTERPRISE_SERVER = "suse.linux.enterprise.server"


# Alternate spellings accepted on input
FAMILY_SPELLINGS: Dict[str, Family] = {
    "opensuse-leap": Family.OPENSUSE_LEAP,
    "suse-desktop": Family.SUSE_ENTERPRISE_DESKTOP,
    "suse-server": Family.SUSE_ENTERPRISE_SERVER,
}

DEFAULT_BATCH_SIZE = 250
DEFAULT_REDIS_TIMEOUT = 10.0
DEFAULT_LOCK_TIMEOUT = 5.0


@dataclass
class DictionaryConfig:
    """
    Database settings for a dictionary instance.

    Attributes:
        db_type: Backend type tag (sqlite3 | duckdb | redis)
        db_path: File path for relational backends, URL for redis
        debug_sql: Log every SQL statement at DEBUG level
        batch_size: Records written per chunk during bulk inserts
        redis_timeout: Key-value operation timeout in seconds
        lock_timeout: Seconds sqlite3 waits on a busy database
    """
    db_type: str
    db_path: str
    debug_sql: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    redis_timeout: float = DEFAULT_REDIS_TIMEOUT
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DictionaryConfig":
        if "database" not in raw or not isinstance(raw["database"], dict):
            raise ValueError("Missing required config key: database")

        database = raw["database"]
        for key in ("type", "path"):
            if key not in database:
                raise ValueError(f"Missing required config key: database.{key}")

        batch_size = int(database.get("batch_size", DEFAULT_BATCH_SIZE))
        if batch_size < 1:
            raise ValueError(f"database.batch_size must be positive, got {batch_size}")

        return cls(
            db_type=str(database["type"]),
            db_path=str(database["path"]),
            debug_sql=bool(database.get("debug_sql", False)),
            batch_size=batch_size,
            redis_timeout=float(database.get("redis_timeout", DEFAULT_REDIS_TIMEOUT)),
            lock_timeout=float(database.get("lock_timeout", DEFAULT_LOCK_TIMEOUT)),
        )

    def to_option(self):
        """Build the driver Option carried into open_db."""
        from .db.base import Option

        return Option(
            redis_timeout=self.redis_timeout,
            batch_size=self.batch_size,
            lock_timeout=self.lock_timeout,
        )


def load_config(config_path: str = "config.yaml") -> DictionaryConfig:
    """
    Load dictionary settings from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Parsed DictionaryConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required keys are missing
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return DictionaryConfig.from_dict(raw)
