"""
Post-query package filtering for RedHat-family releases.

RedHat OVAL feeds interleave package sets for several major releases under
one distribution tag. Lookups for release N keep only packages built for
``.elN`` or ``.module+elN``.
"""
from typing import List

from ..models import Definition, Package


def filter_by_redhat_major(packages: List[Package], major_version: str) -> List[Package]:
    """
    Keep packages whose version targets the given RedHat major release.

    Args:
        packages: Affected packages of a definition
        major_version: Canonical major release (e.g. "8")

    Returns:
        Matching packages, in input order
    """
    el_tag = f".el{major_version}"
    module_tag = f".module+el{major_version}"
    return [p for p in packages if el_tag in p.version or module_tag in p.version]


def filter_definitions_by_redhat_major(
    definitions: List[Definition],
    major_version: str
) -> List[Definition]:
    """Apply filter_by_redhat_major to every definition's affected packages in place."""
    for definition in definitions:
        definition.affected_packs = filter_by_redhat_major(definition.affected_packs, major_version)
    return definitions
