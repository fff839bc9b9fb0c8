"""
OVAL vulnerability-definition dictionary storage layer.

Normalizes OS family/release identifiers into canonical keys and stores
OVAL definitions behind one driver contract with relational (sqlite3,
duckdb) and key-value (redis) backends.
"""
from .config import LATEST_SCHEMA_VERSION, DictionaryConfig, Family, load_config
from .db import DB, DBError, Option, new_db, normalize
from .models import (
    Advisory,
    Bugzilla,
    Cve,
    Debian,
    Definition,
    FetchMeta,
    Package,
    Reference,
    Root,
)

__version__ = "0.1.0"

__all__ = [
    "LATEST_SCHEMA_VERSION",
    "DictionaryConfig",
    "Family",
    "load_config",
    "DB",
    "DBError",
    "Option",
    "new_db",
    "normalize",
    "Advisory",
    "Bugzilla",
    "Cve",
    "Debian",
    "Definition",
    "FetchMeta",
    "Package",
    "Reference",
    "Root",
]
