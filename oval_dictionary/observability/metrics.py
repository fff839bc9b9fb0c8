"""
Metrics collection for bulk loads.

This module provides InsertMetrics, a dataclass that tracks what a single
insert_root call wrote:
- The canonical family/release the root was stored under
- Counts of definitions, package index rows and CVE index rows
- Number of chunks the write was split into
- Start and completion time

Design decisions:
- One metrics object per insert_root call
- Counters updated per chunk so partial progress is visible in logs
- Serializable to_dict() for reports and CLI output
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class InsertMetrics:
    """
    Metrics for a single insert_root call.

    Drivers create one per call, update it per chunk and return it once the
    write has been committed.
    """
    backend: str
    family: str
    os_version: str
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    definitions: int = 0
    packages: int = 0
    cves: int = 0
    chunks: int = 0
    replaced_definitions: int = 0

    def record_chunk(self, definitions: int, packages: int, cves: int):
        """
        Record one written chunk.

        Args:
            definitions: Definitions written in the chunk
            packages: Package index rows written in the chunk
            cves: CVE index rows written in the chunk
        """
        self.chunks += 1
        self.definitions += definitions
        self.packages += packages
        self.cves += cves

    def complete(self):
        self.completed_at = datetime.now()

    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary representation suitable for reports
        """
        return {
            "backend": self.backend,
            "family": self.family,
            "os_version": self.os_version,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds(),
            "definitions": self.definitions,
            "packages": self.packages,
            "cves": self.cves,
            "chunks": self.chunks,
            "replaced_definitions": self.replaced_definitions,
        }
