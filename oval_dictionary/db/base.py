"""
Driver contract shared by every storage backend.

Defines the interface that all backends must implement and the Option value
passed to open_db. Relational and key-value drivers answer the same queries
with the same semantics:
- (family, os_ver) is normalized before it reaches storage
- RedHat-family results keep only packages of the requested major release
- arch == "" matches every architecture
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ..config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_REDIS_TIMEOUT,
    Family,
)
from ..models import Definition, FetchMeta, Root
from ..observability.metrics import InsertMetrics
from .filters import filter_definitions_by_redhat_major
from .versions import normalize


@dataclass
class Option:
    """
    Options consumed by open_db.

    Attributes:
        redis_timeout: Key-value backend operation timeout in seconds
        batch_size: Records written per chunk by insert_root
        lock_timeout: Seconds sqlite3 waits on a busy database before
            reporting it as locked
    """
    redis_timeout: float = DEFAULT_REDIS_TIMEOUT
    batch_size: int = DEFAULT_BATCH_SIZE
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT


def never_modified() -> datetime:
    """Last-modified value reported for a release with no data."""
    return datetime.now() - timedelta(days=365 * 100)


class DB(ABC):
    """
    Abstract base class for dictionary drivers.

    Lifecycle: open_db -> is_legacy_schema -> migrate_db -> queries -> close_db.
    new_db() runs the first three steps; callers should not issue queries on
    a driver that did not come out of new_db().
    """

    def __init__(self, name: str):
        self._name = name
        self.option = Option()
        self.debug_sql = False

    def name(self) -> str:
        """Backend type tag this driver was built for."""
        return self._name

    @abstractmethod
    def open_db(self, db_type: str, db_path: str, debug_sql: bool, option: Option) -> None:
        """
        Connect to the store.

        Raises:
            LockedError: If another process holds the store
            OpenError: For any other connection failure
        """
        pass

    @abstractmethod
    def close_db(self) -> None:
        pass

    @abstractmethod
    def migrate_db(self) -> None:
        """
        Create or update the schema. Safe to run on a current schema.

        Raises:
            MigrationError: If the schema could not be brought up to date
        """
        pass

    @abstractmethod
    def is_legacy_schema(self) -> bool:
        """True when the store holds the incompatible v1 layout."""
        pass

    @abstractmethod
    def get_fetch_meta(self) -> Optional[FetchMeta]:
        pass

    @abstractmethod
    def upsert_fetch_meta(self, fetch_meta: FetchMeta) -> None:
        pass

    @abstractmethod
    def get_by_package_name(
        self,
        family: str,
        os_ver: str,
        package_name: str,
        arch: str = ""
    ) -> List[Definition]:
        pass

    @abstractmethod
    def get_by_cve_id(self, family: str, os_ver: str, cve_id: str, arch: str = "") -> List[Definition]:
        pass

    @abstractmethod
    def insert_root(self, root: Root) -> InsertMetrics:
        """
        Replace every definition stored under the root's canonical key.

        Records are written chunk by chunk (Option.batch_size per chunk).

        Returns:
            InsertMetrics describing the load
        """
        pass

    @abstractmethod
    def count_definitions(self, family: str, os_ver: str) -> int:
        pass

    @abstractmethod
    def get_last_modified(self, family: str, os_ver: str) -> datetime:
        pass

    def canonical_key(self, family: str, os_ver: str) -> Tuple[str, str]:
        return normalize(family, os_ver)

    def finalize_definitions(self, family: str, os_ver: str, definitions: List[Definition]) -> List[Definition]:
        """
        Apply family-specific post filters to query results.

        Args:
            family: Canonical family
            os_ver: Canonical version
            definitions: Definitions loaded from storage
        """
        if family == Family.REDHAT.value:
            return filter_definitions_by_redhat_major(definitions, os_ver)
        return definitions

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_db()
