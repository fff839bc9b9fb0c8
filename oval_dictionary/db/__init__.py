"""
Storage layer for the OVAL dictionary.

This package provides the driver contract and its backends:

Components:
- DB / Option: Contract every backend implements, and its open options
- new_db: Build, open, validate and migrate a driver for a type tag
- RDBDriver: Relational backend (sqlite3, duckdb)
- RedisDriver: Key-value backend (redis)
- normalize: Canonical (family, version) lookup keys
- chunk_slice: Bounded index chunks for bulk writes
- filter_by_redhat_major: RedHat major-release package filter

Usage:
    from oval_dictionary.db import new_db

    driver = new_db("sqlite3", "oval.sqlite3")
    definitions = driver.get_by_package_name("centos", "8.5", "openssl", "")
    driver.close_db()
"""

from .base import DB, Option
from .chunking import ChunkIterator, IndexChunk, chunk_slice
from .errors import (
    DBError,
    ErrorKind,
    LegacySchemaError,
    LockedError,
    MigrationError,
    OpenError,
    QueryError,
    UnknownFamilyError,
    UnsupportedBackendError,
)
from .factory import create_driver, new_db, register_backend, supported_backends
from .filters import filter_by_redhat_major
from .versions import amazon_linux_version, major, major_dot_minor, normalize
from .rdb import RDBDriver
from .redis_driver import RedisDriver

__all__ = [
    "DB",
    "Option",
    "ChunkIterator",
    "IndexChunk",
    "chunk_slice",
    "DBError",
    "ErrorKind",
    "LegacySchemaError",
    "LockedError",
    "MigrationError",
    "OpenError",
    "QueryError",
    "UnknownFamilyError",
    "UnsupportedBackendError",
    "create_driver",
    "new_db",
    "register_backend",
    "supported_backends",
    "filter_by_redhat_major",
    "amazon_linux_version",
    "major",
    "major_dot_minor",
    "normalize",
    "RDBDriver",
    "RedisDriver",
]
