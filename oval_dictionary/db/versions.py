"""
Canonical lookup keys for OS family and release strings.

Upstream feeds and scanners spell releases differently ("18.04", "7.9",
"2 (2017.12)", "15.3.1"). Every driver stores and looks up data under the
key returned by normalize(), so identical inputs always hit identical keys
regardless of backend.
"""
from typing import Tuple, Union

from ..config import FAMILY_SPELLINGS, Family
from .errors import UnknownFamilyError

MAJOR_ONLY = {Family.DEBIAN, Family.UBUNTU, Family.REDHAT, Family.ORACLE, Family.FEDORA}
MAJOR_DOT_MINOR = {
    Family.ALPINE,
    Family.OPENSUSE_LEAP,
    Family.SUSE_ENTERPRISE_DESKTOP,
    Family.SUSE_ENTERPRISE_SERVER,
}
ALIASES = {
    Family.RASPBIAN: Family.DEBIAN,
    Family.CENTOS: Family.REDHAT,
}


def major(os_ver: str) -> str:
    """First dot-delimited component: "18.04" -> "18"."""
    return os_ver.split(".")[0]


def major_dot_minor(os_ver: str) -> str:
    """
    First two dot-delimited components: "11.4.0" -> "11.4".

    Versions with fewer than three components are returned unchanged, so a
    bare "15" stays "15".
    """
    parts = os_ver.split(".")
    if len(parts) < 3:
        return os_ver
    return ".".join(parts[:2])


def amazon_linux_version(os_ver: str) -> str:
    """Amazon Linux generation: "2022", "2", or "1" for anything else."""
    tokens = os_ver.split()
    if tokens and tokens[0] == "2022":
        return "2022"
    if tokens and tokens[0] == "2":
        return "2"
    return "1"


def _resolve_family(family: Union[str, Family]) -> Family:
    if isinstance(family, Family):
        return family
    if family in FAMILY_SPELLINGS:
        return FAMILY_SPELLINGS[family]
    try:
        return Family(family)
    except ValueError as e:
        raise UnknownFamilyError(
            f"Failed to detect family. unknown os family({family})", stage="normalize", cause=e
        ) from e


def normalize(family: Union[str, Family], os_ver: str) -> Tuple[str, str]:
    """
    Map a (family, release) pair to its canonical storage key.

    Args:
        family: OS family tag (e.g. "centos", Family.UBUNTU)
        os_ver: Release string as reported by the feed or scanner

    Returns:
        Tuple of (canonical_family, canonical_version)

    Raises:
        UnknownFamilyError: If family is not supported
    """
    resolved = _resolve_family(family)
    resolved = ALIASES.get(resolved, resolved)

    if resolved in MAJOR_ONLY:
        version = major(os_ver)
    elif resolved is Family.AMAZON:
        version = amazon_linux_version(os_ver)
    elif resolved is Family.OPENSUSE:
        version = os_ver if os_ver == "tumbleweed" else major_dot_minor(os_ver)
    elif resolved in MAJOR_DOT_MINOR:
        version = major_dot_minor(os_ver)
    else:
        raise UnknownFamilyError(
            f"Failed to detect family. unknown os family({family})", stage="normalize"
        )

    return resolved.value, version
