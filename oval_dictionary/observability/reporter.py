"""
Human-readable summaries of dictionary contents.

This module provides DictionaryReporter, which turns fetch metadata, load
metrics and query results into GitHub-flavored tables for the CLI and for
load reports.

Report sections:
- Fetch metadata (revision, schema version, last fetch time)
- Release summary (definition count, last modified)
- Insert metrics for a bulk load
- Definitions returned by a package or CVE lookup

Design decisions:
- Uses tabulate library for table formatting (GitHub-flavored)
- Pure string rendering; callers decide where the text goes
"""
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from ..models import Definition, FetchMeta
from .metrics import InsertMetrics


class DictionaryReporter:
    """Renders dictionary state as Markdown-friendly text."""

    def render_fetch_meta(self, fetch_meta: Optional[FetchMeta]) -> str:
        if fetch_meta is None:
            return "No fetch metadata: the dictionary has not been populated yet."

        last_fetched = fetch_meta.last_fetched_at.isoformat() if fetch_meta.last_fetched_at else "-"
        rows = [
            ["Revision", fetch_meta.goval_dict_revision or "-"],
            ["Schema Version", fetch_meta.schema_version],
            ["Last Fetched At", last_fetched],
            ["Outdated", "yes" if fetch_meta.outdated() else "no"],
        ]
        return tabulate(rows, headers=["Field", "Value"], tablefmt="github")

    def render_release_summary(self, family: str, os_version: str, count: int, last_modified: datetime) -> str:
        rows = [[family, os_version, count, last_modified.isoformat()]]
        return tabulate(rows, headers=["Family", "Release", "Definitions", "Last Modified"], tablefmt="github")

    def render_insert_metrics(self, metrics: InsertMetrics) -> str:
        """
        Render a bulk load summary.

        Args:
            metrics: InsertMetrics returned by insert_root

        Returns:
            Markdown section as string
        """
        lines = []
        lines.append(f"## Load: {metrics.family} {metrics.os_version} ({metrics.backend})")
        rows = [
            ["Definitions", metrics.definitions],
            ["Package Index Rows", metrics.packages],
            ["CVE Index Rows", metrics.cves],
            ["Chunks", metrics.chunks],
            ["Replaced Definitions", metrics.replaced_definitions],
            ["Duration (s)", f"{metrics.duration_seconds():.1f}"],
        ]
        lines.append(tabulate(rows, headers=["Metric", "Value"], tablefmt="github"))
        lines.append("")
        return "\n".join(lines)

    def render_definitions(self, definitions: List[Definition]) -> str:
        if not definitions:
            return "No definitions found."

        rows = []
        for definition in definitions:
            packages = ", ".join(
                f"{p.name} {p.version}".strip() + (f" ({p.arch})" if p.arch else "")
                for p in definition.affected_packs
            )
            rows.append([
                definition.definition_id,
                definition.advisory.severity or "-",
                ", ".join(definition.cve_ids()) or "-",
                packages or "-",
            ])
        return tabulate(rows, headers=["Definition", "Severity", "CVEs", "Packages"], tablefmt="github")

    def save_report(self, report: str, output_dir: Path) -> Path:
        """
        Save report to file with timestamp.

        Args:
            report: Markdown report content
            output_dir: Directory to save report in

        Returns:
            Path to saved report file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        filepath = output_dir / f"load-report-{timestamp}.md"
        filepath.write_text(report)
        return filepath
