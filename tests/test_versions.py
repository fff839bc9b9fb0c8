"""
Tests for OS family/release normalization.

Validates the canonical keys every backend stores and looks up data under.
"""
import pytest

from oval_dictionary.config import Family
from oval_dictionary.db import (
    ErrorKind,
    UnknownFamilyError,
    amazon_linux_version,
    major,
    major_dot_minor,
    normalize,
)


class TestHelpers:
    """Test the version string helpers."""

    def test_major(self):
        assert major("18.04") == "18"
        assert major("7") == "7"
        assert major("8.5.2111") == "8"

    def test_major_dot_minor(self):
        assert major_dot_minor("11.4.0") == "11.4"
        assert major_dot_minor("3.16.2") == "3.16"

    def test_major_dot_minor_short_versions_unchanged(self):
        """Fewer than three components pass through as-is."""
        assert major_dot_minor("11.4") == "11.4"
        assert major_dot_minor("15") == "15"

    def test_amazon_linux_version(self):
        assert amazon_linux_version("2022 (Amazon Linux)") == "2022"
        assert amazon_linux_version("2 (2017.12)") == "2"
        assert amazon_linux_version("something else") == "1"
        assert amazon_linux_version("2018.03") == "1"

    def test_amazon_linux_version_blank(self):
        assert amazon_linux_version("") == "1"
        assert amazon_linux_version("   ") == "1"


class TestNormalize:
    """Test family dispatch and aliasing."""

    @pytest.mark.parametrize("family,os_ver,expected", [
        ("debian", "10.9", ("debian", "10")),
        ("ubuntu", "18.04", ("ubuntu", "18")),
        ("raspbian", "10.9", ("debian", "10")),
        ("redhat", "8.5", ("redhat", "8")),
        ("centos", "7.9.2009", ("redhat", "7")),
        ("oracle", "9.1", ("oracle", "9")),
        ("fedora", "37", ("fedora", "37")),
        ("amazon", "2 (Karoo)", ("amazon", "2")),
        ("amazon", "2022.0.20220315", ("amazon", "1")),
        ("alpine", "3.16.2", ("alpine", "3.16")),
        ("alpine", "3.16", ("alpine", "3.16")),
        ("opensuse", "tumbleweed", ("opensuse", "tumbleweed")),
        ("opensuse", "13.2.1", ("opensuse", "13.2")),
        ("opensuse.leap", "15.3.1", ("opensuse.leap", "15.3")),
        ("suse.linux.enterprise.desktop", "15.4.0", ("suse.linux.enterprise.desktop", "15.4")),
        ("suse.linux.enterprise.server", "12.5", ("suse.linux.enterprise.server", "12.5")),
    ])
    def test_canonical_keys(self, family, os_ver, expected):
        assert normalize(family, os_ver) == expected

    def test_hyphenated_spellings(self):
        assert normalize("opensuse-leap", "15.3.1") == ("opensuse.leap", "15.3")
        assert normalize("suse-desktop", "15.4.0") == ("suse.linux.enterprise.desktop", "15.4")
        assert normalize("suse-server", "12.5.3") == ("suse.linux.enterprise.server", "12.5")

    def test_accepts_enum(self):
        assert normalize(Family.CENTOS, "8.5") == ("redhat", "8")

    def test_deterministic_for_every_family(self):
        for family in Family:
            first = normalize(family.value, "15.3.1")
            for _ in range(3):
                assert normalize(family.value, "15.3.1") == first

    def test_unknown_family(self):
        with pytest.raises(UnknownFamilyError) as exc_info:
            normalize("windows", "10")

        err = exc_info.value
        assert err.kind is ErrorKind.UNKNOWN_FAMILY
        assert err.stage == "normalize"
        assert not err.locked
        assert "windows" in str(err)
