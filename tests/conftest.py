"""
Shared pytest fixtures for OVAL dictionary tests.

This module provides reusable fixtures for sample roots and for drivers of
every backend, so the same assertions can run against sqlite3, duckdb and
redis.
"""
import tempfile
from datetime import datetime
from pathlib import Path

import fakeredis
import pytest

from oval_dictionary.db import Option, RedisDriver, new_db
from oval_dictionary.models import (
    Advisory,
    Cve,
    Debian,
    Definition,
    Package,
    Reference,
    Root,
)


def temp_path(suffix: str) -> str:
    """Path of a file that does not exist yet; the backend creates it."""
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=True) as f:
        return f.name


@pytest.fixture
def sqlite_path():
    path = temp_path(".sqlite3")
    yield path
    Path(path).unlink(missing_ok=True)


@pytest.fixture
def duckdb_path():
    path = temp_path(".duckdb")
    yield path
    Path(path).unlink(missing_ok=True)
    Path(path + ".wal").unlink(missing_ok=True)


@pytest.fixture
def redis_server(monkeypatch):
    """
    In-process redis server shared by every RedisDriver opened in the test.

    Yields:
        fakeredis.FakeServer backing all clients
    """
    server = fakeredis.FakeServer()

    def make_client(self, db_path, option):
        return fakeredis.FakeRedis(server=server, decode_responses=True)

    monkeypatch.setattr(RedisDriver, "_make_client", make_client)
    return server


@pytest.fixture(params=["sqlite3", "duckdb", "redis"])
def driver(request, sqlite_path, duckdb_path, redis_server):
    """
    Ready driver for each backend, opened through new_db.

    Yields:
        DB instance after open, legacy check and migration

    Cleanup:
        Closes the driver after the test
    """
    paths = {
        "sqlite3": sqlite_path,
        "duckdb": duckdb_path,
        "redis": "redis://localhost:6379/0",
    }
    db = new_db(request.param, paths[request.param], False, Option(batch_size=2))
    yield db
    db.close_db()


@pytest.fixture
def redhat_root():
    """
    CentOS 8 root whose feed interleaves el7 and el8 packages.

    Returns:
        Root with three definitions
    """
    return Root(
        family="centos",
        os_version="8.5.2111",
        timestamp=datetime(2024, 3, 1, 12, 0, 0),
        definitions=[
            Definition(
                definition_id="oval:com.redhat.rhsa:def:20210001",
                title="RHSA-2021:0001: openssl security update (Important)",
                description="OpenSSL is a toolkit that implements SSL and TLS.",
                advisory=Advisory(
                    severity="Important",
                    cves=[Cve(cve_id="CVE-2021-0001", cvss3="7.5/CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:N/I:N/A:H")],
                    issued=datetime(2021, 1, 5),
                    updated=datetime(2021, 1, 5),
                ),
                affected_packs=[
                    Package(name="openssl", version="1:1.1.1g-15.el8_3"),
                    Package(name="openssl", version="1:1.0.2k-21.el7_9"),
                ],
                references=[Reference(source="RHSA", ref_id="RHSA-2021:0001")],
            ),
            Definition(
                definition_id="oval:com.redhat.rhsa:def:20210002",
                title="RHSA-2021:0002: nodejs:14 security update (Moderate)",
                advisory=Advisory(severity="Moderate", cves=[Cve(cve_id="CVE-2021-0002")]),
                affected_packs=[
                    Package(name="nodejs", version="1:14.15.4-2.module+el8.3.0+9635+ffdf8381", modularity_label="nodejs:14"),
                ],
                references=[Reference(source="CVE", ref_id="CVE-2021-0003")],
            ),
            Definition(
                definition_id="oval:com.redhat.rhsa:def:20210003",
                title="RHSA-2021:0003: openssl security update for el7 only",
                advisory=Advisory(severity="Low", cves=[Cve(cve_id="CVE-2021-0001")]),
                affected_packs=[Package(name="openssl", version="1:1.0.2k-22.el7_9")],
            ),
        ],
    )


@pytest.fixture
def debian_root():
    """
    Raspbian 10 root with per-arch packages.

    Returns:
        Root with two bash definitions (amd64, i386) and one curl definition
    """
    return Root(
        family="raspbian",
        os_version="10.9",
        timestamp=datetime(2024, 2, 1, 8, 30, 0),
        definitions=[
            Definition(
                definition_id="oval:org.debian:def:100",
                title="CVE-2022-3715 bash",
                advisory=Advisory(cves=[Cve(cve_id="CVE-2022-3715")]),
                debian=Debian(move_sa="", date=datetime(2022, 10, 1)),
                affected_packs=[Package(name="bash", version="5.0-4", arch="amd64")],
            ),
            Definition(
                definition_id="oval:org.debian:def:101",
                title="CVE-2022-3715 bash i386",
                advisory=Advisory(cves=[Cve(cve_id="CVE-2022-3715")]),
                affected_packs=[Package(name="bash", version="5.0-4", arch="i386")],
            ),
            Definition(
                definition_id="oval:org.debian:def:102",
                title="CVE-2023-0001 curl",
                affected_packs=[Package(name="curl", version="7.64.0-4+deb10u5", arch="amd64")],
                references=[Reference(source="CVE", ref_id="CVE-2023-0001", ref_url="https://security-tracker.debian.org/tracker/CVE-2023-0001")],
            ),
        ],
    )
