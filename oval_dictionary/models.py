"""
Domain records stored in the OVAL dictionary.

Fetchers hand already-deserialized records to the drivers:
- Root: one family/release worth of definitions
- Definition: a single OVAL definition with its advisory and packages
- FetchMeta: metadata about the last successful ingestion

Every record round-trips through to_dict()/from_dict() so both backends can
persist the same JSON payload. Datetimes are serialized as ISO-8601 strings.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import LATEST_SCHEMA_VERSION


def _dump_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Package:
    """Affected package entry of a definition."""
    name: str
    version: str = ""
    arch: str = ""
    not_fixed_yet: bool = False
    modularity_label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "arch": self.arch,
            "not_fixed_yet": self.not_fixed_yet,
            "modularity_label": self.modularity_label,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Package":
        return cls(
            name=raw["name"],
            version=raw.get("version", ""),
            arch=raw.get("arch", ""),
            not_fixed_yet=bool(raw.get("not_fixed_yet", False)),
            modularity_label=raw.get("modularity_label", ""),
        )


@dataclass
class Reference:
    source: str
    ref_id: str
    ref_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "ref_id": self.ref_id, "ref_url": self.ref_url}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Reference":
        return cls(source=raw["source"], ref_id=raw["ref_id"], ref_url=raw.get("ref_url", ""))


@dataclass
class Cve:
    cve_id: str
    cvss2: str = ""
    cvss3: str = ""
    cwe: str = ""
    impact: str = ""
    href: str = ""
    public: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cve_id": self.cve_id,
            "cvss2": self.cvss2,
            "cvss3": self.cvss3,
            "cwe": self.cwe,
            "impact": self.impact,
            "href": self.href,
            "public": self.public,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Cve":
        return cls(
            cve_id=raw["cve_id"],
            cvss2=raw.get("cvss2", ""),
            cvss3=raw.get("cvss3", ""),
            cwe=raw.get("cwe", ""),
            impact=raw.get("impact", ""),
            href=raw.get("href", ""),
            public=raw.get("public", ""),
        )


@dataclass
class Bugzilla:
    bugzilla_id: str
    url: str = ""
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"bugzilla_id": self.bugzilla_id, "url": self.url, "title": self.title}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Bugzilla":
        return cls(
            bugzilla_id=raw["bugzilla_id"],
            url=raw.get("url", ""),
            title=raw.get("title", ""),
        )


@dataclass
class Advisory:
    """Vendor advisory attached to a definition."""
    severity: str = ""
    cves: List[Cve] = field(default_factory=list)
    bugzillas: List[Bugzilla] = field(default_factory=list)
    affected_cpe_list: List[str] = field(default_factory=list)
    affected_repository: str = ""
    issued: Optional[datetime] = None
    updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "cves": [c.to_dict() for c in self.cves],
            "bugzillas": [b.to_dict() for b in self.bugzillas],
            "affected_cpe_list": list(self.affected_cpe_list),
            "affected_repository": self.affected_repository,
            "issued": _dump_time(self.issued),
            "updated": _dump_time(self.updated),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Advisory":
        return cls(
            severity=raw.get("severity", ""),
            cves=[Cve.from_dict(c) for c in raw.get("cves", [])],
            bugzillas=[Bugzilla.from_dict(b) for b in raw.get("bugzillas", [])],
            affected_cpe_list=list(raw.get("affected_cpe_list", [])),
            affected_repository=raw.get("affected_repository", ""),
            issued=_load_time(raw.get("issued")),
            updated=_load_time(raw.get("updated")),
        )


@dataclass
class Debian:
    """Debian specific fields (DSA move and date)."""
    move_sa: str = ""
    date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"move_sa": self.move_sa, "date": _dump_time(self.date)}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Debian":
        return cls(move_sa=raw.get("move_sa", ""), date=_load_time(raw.get("date")))


@dataclass
class Definition:
    """
    Single OVAL definition.

    affected_packs drives package lookups; advisory.cves and references whose
    source is "CVE" drive CVE lookups.
    """
    definition_id: str
    title: str = ""
    description: str = ""
    advisory: Advisory = field(default_factory=Advisory)
    debian: Optional[Debian] = None
    affected_packs: List[Package] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)

    def cve_ids(self) -> List[str]:
        """Distinct CVE IDs mentioned by the advisory or the references, in order."""
        seen = []
        for cve in self.advisory.cves:
            if cve.cve_id and cve.cve_id not in seen:
                seen.append(cve.cve_id)
        for ref in self.references:
            if ref.source.upper() == "CVE" and ref.ref_id and ref.ref_id not in seen:
                seen.append(ref.ref_id)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "definition_id": self.definition_id,
            "title": self.title,
            "description": self.description,
            "advisory": self.advisory.to_dict(),
            "debian": self.debian.to_dict() if self.debian else None,
            "affected_packs": [p.to_dict() for p in self.affected_packs],
            "references": [r.to_dict() for r in self.references],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Definition":
        debian = raw.get("debian")
        return cls(
            definition_id=raw["definition_id"],
            title=raw.get("title", ""),
            description=raw.get("description", ""),
            advisory=Advisory.from_dict(raw.get("advisory") or {}),
            debian=Debian.from_dict(debian) if debian else None,
            affected_packs=[Package.from_dict(p) for p in raw.get("affected_packs", [])],
            references=[Reference.from_dict(r) for r in raw.get("references", [])],
        )


@dataclass
class Root:
    """All definitions fetched for one family/release."""
    family: str
    os_version: str
    timestamp: datetime
    definitions: List[Definition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family,
            "os_version": self.os_version,
            "timestamp": _dump_time(self.timestamp),
            "definitions": [d.to_dict() for d in self.definitions],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Root":
        return cls(
            family=raw["family"],
            os_version=str(raw["os_version"]),
            timestamp=_load_time(raw.get("timestamp")) or datetime.now(),
            definitions=[Definition.from_dict(d) for d in raw.get("definitions", [])],
        )


@dataclass
class FetchMeta:
    """
    Metadata about the last successful ingestion.

    Singleton per dictionary. A store without FetchMeta has never been
    populated by the current drivers.
    """
    goval_dict_revision: str = ""
    schema_version: int = LATEST_SCHEMA_VERSION
    last_fetched_at: Optional[datetime] = None

    def outdated(self) -> bool:
        """True when the store was written with a different schema version."""
        return self.schema_version != LATEST_SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goval_dict_revision": self.goval_dict_revision,
            "schema_version": self.schema_version,
            "last_fetched_at": _dump_time(self.last_fetched_at),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FetchMeta":
        return cls(
            goval_dict_revision=raw.get("goval_dict_revision", ""),
            schema_version=int(raw.get("schema_version", LATEST_SCHEMA_VERSION)),
            last_fetched_at=_load_time(raw.get("last_fetched_at")),
        )
