"""
Backend selection and driver lifecycle orchestration.

Drivers register the type tags they serve with @register_backend. new_db()
then runs the fixed start-up sequence:

    construct -> open_db -> is_legacy_schema -> migrate_db -> ready

A locked store is reported as LockedError and never retried here. A legacy
store is rejected before migrate_db runs: it must be deleted and fetched
again.
"""
import logging
from typing import Callable, Dict, List, Optional, Type

from .base import DB, Option
from .errors import DBError, LegacySchemaError, MigrationError, UnsupportedBackendError

logger = logging.getLogger(__name__)

BACKENDS: Dict[str, Type[DB]] = {}


def register_backend(*db_types: str) -> Callable[[Type[DB]], Type[DB]]:
    """
    Class decorator registering a driver for one or more type tags.

    Args:
        db_types: Type tags the driver serves (e.g. "sqlite3", "duckdb")
    """
    def decorator(driver_cls: Type[DB]) -> Type[DB]:
        for db_type in db_types:
            BACKENDS[db_type] = driver_cls
        return driver_cls

    return decorator


def supported_backends() -> List[str]:
    return sorted(BACKENDS)


def create_driver(db_type: str) -> DB:
    """
    Construct an unopened driver for a type tag.

    Raises:
        UnsupportedBackendError: If no driver serves db_type
    """
    driver_cls = BACKENDS.get(db_type)
    if driver_cls is None:
        raise UnsupportedBackendError(
            f"Invalid database dialect. dbType: {db_type} (supported: {', '.join(supported_backends())})",
            stage="new_db",
        )
    return driver_cls(db_type)


def new_db(db_type: str, db_path: str, debug_sql: bool = False, option: Optional[Option] = None) -> DB:
    """
    Build, open, validate and migrate a driver.

    Args:
        db_type: Backend type tag (sqlite3 | duckdb | redis)
        db_path: File path or redis URL
        debug_sql: Log statements at DEBUG level
        option: Driver options (defaults to Option())

    Returns:
        Driver ready for queries

    Raises:
        UnsupportedBackendError: Unknown db_type
        LockedError: Store held by another process (err.locked is True)
        OpenError: Any other open failure
        LegacySchemaError: Store uses the v1 layout; migrate_db was not run
        MigrationError: Schema could not be brought up to date
    """
    driver = create_driver(db_type)
    option = option or Option()

    try:
        driver.open_db(db_type, db_path, debug_sql, option)
    except DBError as e:
        if e.locked:
            logger.warning(f"Database is locked: {db_path}")
        raise

    try:
        if driver.is_legacy_schema():
            logger.warning(f"Legacy schema detected in {db_path}")
            raise LegacySchemaError(
                "Failed to NewDB. Since SchemaVersion is incompatible, delete Database and fetch again.",
                stage="legacy_check",
            )

        try:
            driver.migrate_db()
        except MigrationError:
            raise
        except DBError as e:
            raise MigrationError("Failed to migrate db.", stage="migrate", cause=e) from e
    except DBError:
        driver.close_db()
        raise

    return driver
