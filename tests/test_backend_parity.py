"""
Cross-backend tests.

Every test here runs once per backend (sqlite3, duckdb, redis) through the
parametrized ``driver`` fixture: relational and key-value stores must answer
the same queries with the same results.
"""
from datetime import datetime, timedelta

from oval_dictionary.models import FetchMeta


def ids(definitions):
    return [d.definition_id for d in definitions]


class TestPackageLookup:

    def test_raw_release_is_normalized(self, driver, redhat_root):
        driver.insert_root(redhat_root)

        by_centos = driver.get_by_package_name("centos", "8.5.2111", "openssl", "")
        by_redhat = driver.get_by_package_name("redhat", "8", "openssl", "")

        assert ids(by_centos) == ids(by_redhat) == [
            "oval:com.redhat.rhsa:def:20210001",
            "oval:com.redhat.rhsa:def:20210003",
        ]

    def test_redhat_packages_filtered_to_major(self, driver, redhat_root):
        driver.insert_root(redhat_root)

        definitions = driver.get_by_package_name("centos", "8", "openssl")

        assert [p.version for p in definitions[0].affected_packs] == ["1:1.1.1g-15.el8_3"]
        assert definitions[1].affected_packs == []

    def test_module_builds_survive_filter(self, driver, redhat_root):
        driver.insert_root(redhat_root)

        definitions = driver.get_by_package_name("redhat", "8", "nodejs")

        assert len(definitions) == 1
        assert definitions[0].affected_packs[0].modularity_label == "nodejs:14"

    def test_other_families_are_not_filtered(self, driver, debian_root):
        driver.insert_root(debian_root)

        definitions = driver.get_by_package_name("debian", "10", "curl")

        assert [p.version for p in definitions[0].affected_packs] == ["7.64.0-4+deb10u5"]

    def test_arch_filter(self, driver, debian_root):
        driver.insert_root(debian_root)

        assert ids(driver.get_by_package_name("raspbian", "10", "bash", "")) == [
            "oval:org.debian:def:100",
            "oval:org.debian:def:101",
        ]
        assert ids(driver.get_by_package_name("raspbian", "10", "bash", "i386")) == ["oval:org.debian:def:101"]
        assert driver.get_by_package_name("debian", "10", "bash", "arm64") == []

    def test_unknown_package(self, driver, debian_root):
        driver.insert_root(debian_root)
        assert driver.get_by_package_name("debian", "10", "nonexistent") == []

    def test_payload_round_trip(self, driver, redhat_root):
        driver.insert_root(redhat_root)

        definition = driver.get_by_package_name("redhat", "8", "nodejs")[0]
        original = redhat_root.definitions[1]

        assert definition.title == original.title
        assert definition.advisory.severity == "Moderate"
        assert definition.references[0].ref_id == "CVE-2021-0003"


class TestCveLookup:

    def test_advisory_cves(self, driver, redhat_root):
        driver.insert_root(redhat_root)

        definitions = driver.get_by_cve_id("centos", "8.5", "CVE-2021-0001", "")

        assert ids(definitions) == [
            "oval:com.redhat.rhsa:def:20210001",
            "oval:com.redhat.rhsa:def:20210003",
        ]
        assert definitions[0].advisory.issued == datetime(2021, 1, 5)

    def test_reference_cves(self, driver, redhat_root, debian_root):
        driver.insert_root(redhat_root)
        driver.insert_root(debian_root)

        assert ids(driver.get_by_cve_id("redhat", "8", "CVE-2021-0003")) == ["oval:com.redhat.rhsa:def:20210002"]
        assert ids(driver.get_by_cve_id("debian", "10", "CVE-2023-0001")) == ["oval:org.debian:def:102"]

    def test_arch_filter(self, driver, debian_root):
        driver.insert_root(debian_root)

        assert ids(driver.get_by_cve_id("debian", "10", "CVE-2022-3715", "amd64")) == ["oval:org.debian:def:100"]

    def test_releases_are_isolated(self, driver, redhat_root):
        driver.insert_root(redhat_root)
        assert driver.get_by_cve_id("redhat", "7", "CVE-2021-0001") == []


class TestCountsAndTimestamps:

    def test_count_definitions(self, driver, redhat_root, debian_root):
        driver.insert_root(redhat_root)
        driver.insert_root(debian_root)

        assert driver.count_definitions("centos", "8.5") == 3
        assert driver.count_definitions("raspbian", "10.13") == 3
        assert driver.count_definitions("ubuntu", "22.04") == 0

    def test_last_modified(self, driver, debian_root):
        driver.insert_root(debian_root)
        assert driver.get_last_modified("debian", "10") == datetime(2024, 2, 1, 8, 30, 0)

    def test_last_modified_without_data(self, driver):
        last_modified = driver.get_last_modified("alpine", "3.16")
        assert last_modified < datetime.now() - timedelta(days=365 * 99)

    def test_insert_metrics_match(self, driver, debian_root):
        metrics = driver.insert_root(debian_root)

        assert metrics.backend == driver.name()
        assert (metrics.definitions, metrics.chunks) == (3, 2)
        assert metrics.family == "debian"
        assert metrics.os_version == "10"


class TestFetchMeta:

    def test_round_trip(self, driver):
        assert driver.get_fetch_meta() is None

        driver.upsert_fetch_meta(FetchMeta(goval_dict_revision="v0.9.0 abc123", last_fetched_at=datetime(2024, 6, 1, 9)))

        meta = driver.get_fetch_meta()
        assert meta.goval_dict_revision == "v0.9.0 abc123"
        assert meta.schema_version == 2
        assert meta.last_fetched_at == datetime(2024, 6, 1, 9)
