"""
Relational driver for the OVAL dictionary.

This module provides:
- Dialect descriptions for sqlite3 and DuckDB
- RDBDriver: the DB contract over a DB-API connection

Schema:
- fetch_meta: single row with revision, schema version and fetch time
- roots: one row per canonical (family, os_version)
- definitions: one row per definition, full record kept as a JSON payload
- packages: lookup index (definition ref, package name, arch)
- cves: lookup index (definition ref, CVE ID)

Design decisions:
- Both dialects use qmark parameters and the same portable DDL
- JSON payloads keep the relational and key-value backends byte-compatible
- Timestamps stored as ISO-8601 strings so both dialects compare them alike
- insert_root replaces a release inside one transaction, writing chunk by chunk
"""
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

import duckdb

from ..models import Definition, FetchMeta, Root
from ..observability.metrics import InsertMetrics
from .base import DB, Option, never_modified
from .chunking import chunk_slice
from .errors import LockedError, MigrationError, OpenError, QueryError
from .factory import register_backend

logger = logging.getLogger(__name__)

DIALECT_SQLITE3 = "sqlite3"
DIALECT_DUCKDB = "duckdb"


def _connect_sqlite3(db_path: str, option: Option):
    conn = sqlite3.connect(db_path, timeout=option.lock_timeout, isolation_level=None)
    # Take and release the write lock once so a held database fails here, not on first insert
    try:
        conn.execute("BEGIN IMMEDIATE")
        conn.execute("ROLLBACK")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def _connect_duckdb(db_path: str, option: Option):
    return duckdb.connect(db_path)


@dataclass(frozen=True)
class Dialect:
    """
    Dialect specific pieces of the relational driver.

    Attributes:
        name: Backend type tag
        connect: Opens a DB-API connection for (db_path, option)
        table_exists_sql: Query returning a row count for a table name
        lock_markers: Substrings identifying lock contention in error messages
        errors: Exception classes raised by the dialect's library
    """
    name: str
    connect: Callable[[str, Option], Any]
    table_exists_sql: str
    lock_markers: Sequence[str]
    errors: tuple

    def is_locked(self, error: BaseException) -> bool:
        message = str(error).lower()
        return any(marker in message for marker in self.lock_markers)


DIALECTS = {
    DIALECT_SQLITE3: Dialect(
        name=DIALECT_SQLITE3,
        connect=_connect_sqlite3,
        table_exists_sql="SELECT count(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
        lock_markers=("database is locked",),
        errors=(sqlite3.Error,),
    ),
    DIALECT_DUCKDB: Dialect(
        name=DIALECT_DUCKDB,
        connect=_connect_duckdb,
        table_exists_sql="""
            SELECT count(*) FROM information_schema.tables
            WHERE table_schema = 'main' AND table_name = ?
        """,
        lock_markers=("could not set lock", "conflicting lock"),
        errors=(duckdb.Error,),
    ),
}

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS fetch_meta (
        id INTEGER NOT NULL,
        goval_dict_revision VARCHAR,
        schema_version INTEGER NOT NULL,
        last_fetched_at VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS roots (
        id VARCHAR PRIMARY KEY,
        family VARCHAR NOT NULL,
        os_version VARCHAR NOT NULL,
        last_modified VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS definitions (
        id VARCHAR PRIMARY KEY,
        root_id VARCHAR NOT NULL,
        seq INTEGER NOT NULL,
        definition_id VARCHAR NOT NULL,
        payload VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS packages (
        definition_ref VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        arch VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cves (
        definition_ref VARCHAR NOT NULL,
        cve_id VARCHAR NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_roots_family_os_version ON roots(family, os_version)",
    "CREATE INDEX IF NOT EXISTS idx_definitions_root_id ON definitions(root_id)",
    "CREATE INDEX IF NOT EXISTS idx_packages_name ON packages(name)",
    "CREATE INDEX IF NOT EXISTS idx_packages_definition_ref ON packages(definition_ref)",
    "CREATE INDEX IF NOT EXISTS idx_cves_cve_id ON cves(cve_id)",
    "CREATE INDEX IF NOT EXISTS idx_cves_definition_ref ON cves(definition_ref)",
]


@register_backend(DIALECT_SQLITE3, DIALECT_DUCKDB)
class RDBDriver(DB):
    """
    Relational implementation of the driver contract.

    One class serves every registered SQL dialect; the dialect is picked by
    the type tag passed to open_db.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.dialect: Optional[Dialect] = None
        self.conn = None

    def open_db(self, db_type: str, db_path: str, debug_sql: bool, option: Option) -> None:
        if db_type not in DIALECTS:
            raise OpenError(f"Unsupported SQL dialect: {db_type}", stage="open")

        self.dialect = DIALECTS[db_type]
        self.debug_sql = debug_sql
        self.option = option or Option()

        try:
            self.conn = self.dialect.connect(db_path, self.option)
        except self.dialect.errors as e:
            if self.dialect.is_locked(e):
                raise LockedError(
                    f"Failed to open DB. Database is locked by another process. dbpath: {db_path}",
                    stage="open",
                    cause=e,
                ) from e
            raise OpenError(f"Failed to open DB. dbtype: {db_type}, dbpath: {db_path}", stage="open", cause=e) from e

        logger.info(f"Opened {db_type} database at {db_path}")

    def close_db(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _execute(self, sql: str, params: Sequence[Any] = ()):
        if self.debug_sql:
            logger.debug(f"SQL: {' '.join(sql.split())} params={list(params)}")
        if params:
            return self.conn.execute(sql, params)
        return self.conn.execute(sql)

    def _executemany(self, sql: str, rows: List[Sequence[Any]]):
        if not rows:
            return
        if self.debug_sql:
            logger.debug(f"SQL: {' '.join(sql.split())} rows={len(rows)}")
        self.conn.executemany(sql, rows)

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        return self._execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        return self._execute(sql, params).fetchone()

    def _table_exists(self, table: str) -> bool:
        return self._fetchone(self.dialect.table_exists_sql, [table])[0] > 0

    def _query(self, stage: str, action: Callable[[], Any]):
        """Run action, wrapping dialect errors into QueryError."""
        if self.conn is None:
            raise QueryError("Database is not open", stage=stage)
        try:
            return action()
        except self.dialect.errors as e:
            raise QueryError(f"Failed to {stage}", stage=stage, cause=e) from e

    def migrate_db(self) -> None:
        if self.conn is None:
            raise MigrationError("Database is not open", stage="migrate")
        try:
            for statement in SCHEMA_STATEMENTS:
                self._execute(statement)
        except self.dialect.errors as e:
            raise MigrationError("Failed to migrate.", stage="migrate", cause=e) from e
        logger.info(f"Schema is up to date ({self.dialect.name})")

    def is_legacy_schema(self) -> bool:
        def check():
            if self._table_exists("fetch_meta"):
                return False
            if not self._table_exists("definitions"):
                return False
            return self._fetchone("SELECT 1 FROM definitions LIMIT 1") is not None

        return self._query("legacy_check", check)

    def get_fetch_meta(self) -> Optional[FetchMeta]:
        def fetch():
            row = self._fetchone(
                "SELECT goval_dict_revision, schema_version, last_fetched_at FROM fetch_meta WHERE id = 1"
            )
            if row is None:
                return None
            return FetchMeta.from_dict({
                "goval_dict_revision": row[0] or "",
                "schema_version": row[1],
                "last_fetched_at": row[2],
            })

        return self._query("get_fetch_meta", fetch)

    def upsert_fetch_meta(self, fetch_meta: FetchMeta) -> None:
        def upsert():
            self._execute("BEGIN TRANSACTION")
            try:
                self._execute("DELETE FROM fetch_meta WHERE id = 1")
                meta = fetch_meta.to_dict()
                self._execute(
                    """
                    INSERT INTO fetch_meta (id, goval_dict_revision, schema_version, last_fetched_at)
                    VALUES (1, ?, ?, ?)
                    """,
                    [meta["goval_dict_revision"], meta["schema_version"], meta["last_fetched_at"]],
                )
            except BaseException:
                self._execute("ROLLBACK")
                raise
            self._execute("COMMIT")

        self._query("upsert_fetch_meta", upsert)

    def _load_definitions(self, sql: str, params: Sequence[Any]) -> List[Definition]:
        rows = self._fetchall(sql, params)
        return [Definition.from_dict(json.loads(row[0])) for row in rows]

    def get_by_package_name(
        self,
        family: str,
        os_ver: str,
        package_name: str,
        arch: str = ""
    ) -> List[Definition]:
        family, os_ver = self.canonical_key(family, os_ver)

        sql = """
            SELECT d.payload, d.definition_id, d.seq FROM definitions d
            JOIN roots r ON r.id = d.root_id
            WHERE r.family = ? AND r.os_version = ?
              AND d.id IN (
                  SELECT p.definition_ref FROM packages p
                  WHERE p.name = ?{arch_clause}
              )
            ORDER BY d.definition_id, d.seq
        """
        params: List[Any] = [family, os_ver, package_name]
        if arch:
            sql = sql.format(arch_clause=" AND p.arch = ?")
            params.append(arch)
        else:
            sql = sql.format(arch_clause="")

        definitions = self._query("get_by_package_name", lambda: self._load_definitions(sql, params))
        return self.finalize_definitions(family, os_ver, definitions)

    def get_by_cve_id(self, family: str, os_ver: str, cve_id: str, arch: str = "") -> List[Definition]:
        family, os_ver = self.canonical_key(family, os_ver)

        sql = """
            SELECT d.payload, d.definition_id, d.seq FROM definitions d
            JOIN roots r ON r.id = d.root_id
            WHERE r.family = ? AND r.os_version = ?
              AND d.id IN (SELECT c.definition_ref FROM cves c WHERE c.cve_id = ?){arch_clause}
            ORDER BY d.definition_id, d.seq
        """
        params: List[Any] = [family, os_ver, cve_id]
        if arch:
            sql = sql.format(
                arch_clause=" AND d.id IN (SELECT p.definition_ref FROM packages p WHERE p.arch = ?)"
            )
            params.append(arch)
        else:
            sql = sql.format(arch_clause="")

        definitions = self._query("get_by_cve_id", lambda: self._load_definitions(sql, params))
        return self.finalize_definitions(family, os_ver, definitions)

    def _delete_roots(self, family: str, os_ver: str) -> int:
        root_ids = [
            row[0] for row in self._fetchall(
                "SELECT id FROM roots WHERE family = ? AND os_version = ?", [family, os_ver]
            )
        ]
        replaced = 0
        for root_id in root_ids:
            replaced += self._fetchone("SELECT count(*) FROM definitions WHERE root_id = ?", [root_id])[0]
            for table in ("packages", "cves"):
                self._execute(
                    f"DELETE FROM {table} WHERE definition_ref IN "
                    f"(SELECT id FROM definitions WHERE root_id = ?)",
                    [root_id],
                )
            self._execute("DELETE FROM definitions WHERE root_id = ?", [root_id])
            self._execute("DELETE FROM roots WHERE id = ?", [root_id])
        return replaced

    def insert_root(self, root: Root) -> InsertMetrics:
        family, os_ver = self.canonical_key(root.family, root.os_version)
        metrics = InsertMetrics(backend=self.name(), family=family, os_version=os_ver)

        def insert():
            self._execute("BEGIN TRANSACTION")
            try:
                metrics.replaced_definitions = self._delete_roots(family, os_ver)

                root_id = uuid.uuid4().hex
                self._execute(
                    "INSERT INTO roots (id, family, os_version, last_modified) VALUES (?, ?, ?, ?)",
                    [root_id, family, os_ver, root.timestamp.isoformat()],
                )

                definitions = root.definitions
                with chunk_slice(len(definitions), self.option.batch_size) as chunks:
                    for chunk in chunks:
                        self._insert_chunk(root_id, chunk.start, definitions[chunk.as_slice()], metrics)
                        logger.info(
                            f"  {family} {os_ver}: inserted {metrics.definitions}/{len(definitions)} definitions"
                        )
            except BaseException:
                self._execute("ROLLBACK")
                raise
            self._execute("COMMIT")

        self._query("insert_root", insert)
        metrics.complete()
        return metrics

    def _insert_chunk(self, root_id: str, offset: int, definitions: List[Definition], metrics: InsertMetrics):
        definition_rows = []
        package_rows = []
        cve_rows = []

        for i, definition in enumerate(definitions):
            seq = offset + i
            ref = f"{root_id}:{seq}"
            definition_rows.append([
                ref,
                root_id,
                seq,
                definition.definition_id,
                json.dumps(definition.to_dict()),
            ])
            for package in definition.affected_packs:
                package_rows.append([ref, package.name, package.arch])
            for cve_id in definition.cve_ids():
                cve_rows.append([ref, cve_id])

        self._executemany(
            "INSERT INTO definitions (id, root_id, seq, definition_id, payload) VALUES (?, ?, ?, ?, ?)",
            definition_rows,
        )
        self._executemany("INSERT INTO packages (definition_ref, name, arch) VALUES (?, ?, ?)", package_rows)
        self._executemany("INSERT INTO cves (definition_ref, cve_id) VALUES (?, ?)", cve_rows)

        metrics.record_chunk(len(definition_rows), len(package_rows), len(cve_rows))

    def count_definitions(self, family: str, os_ver: str) -> int:
        family, os_ver = self.canonical_key(family, os_ver)
        row = self._query("count_definitions", lambda: self._fetchone(
            """
            SELECT count(*) FROM definitions d
            JOIN roots r ON r.id = d.root_id
            WHERE r.family = ? AND r.os_version = ?
            """,
            [family, os_ver],
        ))
        return int(row[0])

    def get_last_modified(self, family: str, os_ver: str) -> datetime:
        family, os_ver = self.canonical_key(family, os_ver)
        row = self._query("get_last_modified", lambda: self._fetchone(
            "SELECT max(last_modified) FROM roots WHERE family = ? AND os_version = ?",
            [family, os_ver],
        ))
        if row is None or row[0] is None:
            return never_modified()
        return datetime.fromisoformat(row[0])
