"""
Key-value driver for the OVAL dictionary, backed by Redis.

Key layout (family and version are always canonical):
- OVAL#FETCHMETA                        hash: revision, schema version, fetch time
- OVAL#<family>#<ver>#DEF               hash: definition ID -> JSON payload
- OVAL#<family>#<ver>#PKG#<name>        set:  "<definition ID>#<arch>"
- OVAL#<family>#<ver>#CVE#<cve ID>      set:  definition IDs
- OVAL#<family>#<ver>#LASTMODIFIED      string: ISO-8601 root timestamp

Payloads are the same JSON documents the relational driver stores, so both
backends return identical Definition records.
"""
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional, Set

import redis

from ..config import LATEST_SCHEMA_VERSION
from ..models import Definition, FetchMeta, Root
from ..observability.metrics import InsertMetrics
from .base import DB, Option, never_modified
from .chunking import chunk_slice
from .errors import OpenError, QueryError
from .factory import register_backend

logger = logging.getLogger(__name__)

DIALECT_REDIS = "redis"
KEY_PREFIX = "OVAL"
KEY_SEPARATOR = "#"
FETCH_META_KEY = f"{KEY_PREFIX}{KEY_SEPARATOR}FETCHMETA"


def release_key(family: str, os_ver: str, *parts: str) -> str:
    return KEY_SEPARATOR.join([KEY_PREFIX, family, os_ver, *parts])


@register_backend(DIALECT_REDIS)
class RedisDriver(DB):
    """Redis implementation of the driver contract."""

    def __init__(self, name: str):
        super().__init__(name)
        self.conn: Optional[redis.Redis] = None

    def _make_client(self, db_path: str, option: Option) -> redis.Redis:
        return redis.Redis.from_url(
            db_path,
            decode_responses=True,
            socket_timeout=option.redis_timeout,
            socket_connect_timeout=option.redis_timeout,
        )

    def open_db(self, db_type: str, db_path: str, debug_sql: bool, option: Option) -> None:
        self.debug_sql = debug_sql
        self.option = option or Option()

        try:
            self.conn = self._make_client(db_path, self.option)
            self.conn.ping()
        except (redis.RedisError, ValueError) as e:
            self.conn = None
            raise OpenError(f"Failed to open DB. dbtype: {db_type}, dbpath: {db_path}", stage="open", cause=e) from e

        logger.info(f"Opened redis database at {db_path}")

    def close_db(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def migrate_db(self) -> None:
        # Key layout needs no schema
        pass

    def _query(self, stage: str, action):
        if self.conn is None:
            raise QueryError("Database is not open", stage=stage)
        try:
            return action()
        except redis.RedisError as e:
            raise QueryError(f"Failed to {stage}", stage=stage, cause=e) from e

    def is_legacy_schema(self) -> bool:
        def check():
            if self.conn.exists(FETCH_META_KEY):
                return False
            for _ in self.conn.scan_iter(match=f"{KEY_PREFIX}{KEY_SEPARATOR}*", count=100):
                return True
            return False

        return self._query("legacy_check", check)

    def get_fetch_meta(self) -> Optional[FetchMeta]:
        def fetch():
            raw = self.conn.hgetall(FETCH_META_KEY)
            if not raw:
                return None
            return FetchMeta.from_dict({
                "goval_dict_revision": raw.get("Revision", ""),
                "schema_version": raw.get("SchemaVersion", LATEST_SCHEMA_VERSION),
                "last_fetched_at": raw.get("LastFetchedAt") or None,
            })

        return self._query("get_fetch_meta", fetch)

    def upsert_fetch_meta(self, fetch_meta: FetchMeta) -> None:
        meta = fetch_meta.to_dict()
        mapping = {
            "Revision": meta["goval_dict_revision"],
            "SchemaVersion": meta["schema_version"],
            "LastFetchedAt": meta["last_fetched_at"] or "",
        }
        self._query("upsert_fetch_meta", lambda: self.conn.hset(FETCH_META_KEY, mapping=mapping))

    def _load_definitions(self, family: str, os_ver: str, definition_ids: List[str]) -> List[Definition]:
        if not definition_ids:
            return []
        payloads = self.conn.hmget(release_key(family, os_ver, "DEF"), definition_ids)
        return [Definition.from_dict(json.loads(p)) for p in payloads if p is not None]

    def _package_definition_ids(self, family: str, os_ver: str, package_name: str, arch: str) -> Set[str]:
        ids = set()
        for member in self.conn.smembers(release_key(family, os_ver, "PKG", package_name)):
            definition_id, _, member_arch = member.rpartition(KEY_SEPARATOR)
            if not arch or member_arch == arch:
                ids.add(definition_id)
        return ids

    def get_by_package_name(
        self,
        family: str,
        os_ver: str,
        package_name: str,
        arch: str = ""
    ) -> List[Definition]:
        family, os_ver = self.canonical_key(family, os_ver)

        def fetch():
            ids = self._package_definition_ids(family, os_ver, package_name, arch)
            return self._load_definitions(family, os_ver, sorted(ids))

        definitions = self._query("get_by_package_name", fetch)
        return self.finalize_definitions(family, os_ver, definitions)

    def get_by_cve_id(self, family: str, os_ver: str, cve_id: str, arch: str = "") -> List[Definition]:
        family, os_ver = self.canonical_key(family, os_ver)

        def fetch():
            ids = set(self.conn.smembers(release_key(family, os_ver, "CVE", cve_id)))
            definitions = self._load_definitions(family, os_ver, sorted(ids))
            if arch:
                definitions = [d for d in definitions if any(p.arch == arch for p in d.affected_packs)]
            return definitions

        definitions = self._query("get_by_cve_id", fetch)
        return self.finalize_definitions(family, os_ver, definitions)

    def _delete_release(self, family: str, os_ver: str) -> int:
        replaced = self.conn.hlen(release_key(family, os_ver, "DEF"))
        keys = list(self.conn.scan_iter(match=release_key(family, os_ver, "*"), count=1000))
        with chunk_slice(len(keys), self.option.batch_size) as chunks:
            for chunk in chunks:
                self.conn.delete(*keys[chunk.as_slice()])
        return replaced

    def insert_root(self, root: Root) -> InsertMetrics:
        family, os_ver = self.canonical_key(root.family, root.os_version)
        metrics = InsertMetrics(backend=self.name(), family=family, os_version=os_ver)

        def insert():
            metrics.replaced_definitions = self._delete_release(family, os_ver)

            definitions = root.definitions
            with chunk_slice(len(definitions), self.option.batch_size) as chunks:
                for chunk in chunks:
                    self._insert_chunk(family, os_ver, definitions[chunk.as_slice()], metrics)
                    logger.info(f"  {family} {os_ver}: inserted {metrics.definitions}/{len(definitions)} definitions")

            self.conn.set(release_key(family, os_ver, "LASTMODIFIED"), root.timestamp.isoformat())

        self._query("insert_root", insert)
        metrics.complete()
        return metrics

    def _insert_chunk(self, family: str, os_ver: str, definitions: List[Definition], metrics: InsertMetrics):
        payloads: Dict[str, str] = {}
        package_members: Dict[str, Set[str]] = {}
        cve_members: Dict[str, Set[str]] = {}
        packages = 0
        cves = 0

        for definition in definitions:
            payloads[definition.definition_id] = json.dumps(definition.to_dict())
            for package in definition.affected_packs:
                key = release_key(family, os_ver, "PKG", package.name)
                package_members.setdefault(key, set()).add(
                    f"{definition.definition_id}{KEY_SEPARATOR}{package.arch}"
                )
                packages += 1
            for cve_id in definition.cve_ids():
                cve_members.setdefault(release_key(family, os_ver, "CVE", cve_id), set()).add(
                    definition.definition_id
                )
                cves += 1

        pipe = self.conn.pipeline()
        if payloads:
            pipe.hset(release_key(family, os_ver, "DEF"), mapping=payloads)
        for key, members in package_members.items():
            pipe.sadd(key, *members)
        for key, members in cve_members.items():
            pipe.sadd(key, *members)
        pipe.execute()

        metrics.record_chunk(len(payloads), packages, cves)

    def count_definitions(self, family: str, os_ver: str) -> int:
        family, os_ver = self.canonical_key(family, os_ver)
        return int(self._query("count_definitions", lambda: self.conn.hlen(release_key(family, os_ver, "DEF"))))

    def get_last_modified(self, family: str, os_ver: str) -> datetime:
        family, os_ver = self.canonical_key(family, os_ver)
        raw = self._query("get_last_modified", lambda: self.conn.get(release_key(family, os_ver, "LASTMODIFIED")))
        if not raw:
            return never_modified()
        return datetime.fromisoformat(raw)
