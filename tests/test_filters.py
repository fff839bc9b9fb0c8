"""
Tests for RedHat major-release package filtering.
"""
from oval_dictionary.db import filter_by_redhat_major
from oval_dictionary.db.filters import filter_definitions_by_redhat_major
from oval_dictionary.models import Definition, Package


def test_keeps_el_and_module_builds_of_major():
    packages = [
        Package(name="a", version="1.0-1.el7"),
        Package(name="a", version="1.0-1.el8"),
        Package(name="a", version="1.0-1.module+el8_1"),
    ]

    filtered = filter_by_redhat_major(packages, "8")

    assert [p.version for p in filtered] == ["1.0-1.el8", "1.0-1.module+el8_1"]


def test_drops_packages_without_el_tag():
    packages = [Package(name="a", version="1.0-1"), Package(name="b", version="2.0-1.fc37")]
    assert filter_by_redhat_major(packages, "8") == []


def test_empty_input():
    assert filter_by_redhat_major([], "9") == []


def test_filters_every_definition():
    definitions = [
        Definition(
            definition_id="oval:1",
            affected_packs=[Package(name="a", version="1.el9"), Package(name="a", version="1.el8")],
        ),
        Definition(definition_id="oval:2", affected_packs=[Package(name="b", version="2.el8")]),
    ]

    result = filter_definitions_by_redhat_major(definitions, "9")

    assert [len(d.affected_packs) for d in result] == [1, 0]
    assert result[0].affected_packs[0].version == "1.el9"
