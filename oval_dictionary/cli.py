#!/usr/bin/env python3
"""
Command line entry point for an OVAL dictionary.

Opens the configured backend through new_db() (open, legacy check,
migrate) and runs one command against it:

- load FILE:          replace a release with the root document in FILE (JSON)
- fetch-meta:         show fetch metadata
- count FAMILY REL:   definition count and last-modified time
- select-package FAMILY REL PACKAGE [--arch ARCH]
- select-cve FAMILY REL CVE_ID [--arch ARCH]

Usage:
    oval-dictionary --config config.yaml select-package centos 8.5 openssl
    oval-dictionary --db-type redis --db-path redis://localhost:6379/0 fetch-meta
"""
import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .config import LATEST_SCHEMA_VERSION, DictionaryConfig, load_config
from .db import DB, DBError, LegacySchemaError, new_db, supported_backends
from .models import FetchMeta, Root
from .observability import DictionaryReporter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oval-dictionary",
        description="Query and load an OVAL vulnerability-definition dictionary"
    )
    parser.add_argument("--config", help="Path to YAML configuration file")
    parser.add_argument("--db-type", choices=supported_backends(), help="Backend type (overrides config)")
    parser.add_argument("--db-path", help="Database file path or redis URL (overrides config)")
    parser.add_argument("--debug-sql", action="store_true", help="Log SQL statements")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")

    commands = parser.add_subparsers(dest="command", required=True)

    load = commands.add_parser("load", help="Insert a root document from a JSON file")
    load.add_argument("file", help="JSON file holding one root document")
    load.add_argument("--revision", default="", help="Revision recorded in fetch metadata")
    load.add_argument("--report-dir", help="Directory to save a Markdown load report in")

    commands.add_parser("fetch-meta", help="Show fetch metadata")

    count = commands.add_parser("count", help="Count definitions for a release")
    count.add_argument("family")
    count.add_argument("release")

    select_package = commands.add_parser("select-package", help="Look up definitions by package name")
    select_package.add_argument("family")
    select_package.add_argument("release")
    select_package.add_argument("package")
    select_package.add_argument("--arch", default="")

    select_cve = commands.add_parser("select-cve", help="Look up definitions by CVE ID")
    select_cve.add_argument("family")
    select_cve.add_argument("release")
    select_cve.add_argument("cve_id")
    select_cve.add_argument("--arch", default="")

    return parser


def resolve_config(args: argparse.Namespace) -> DictionaryConfig:
    """Merge the optional config file with command line overrides."""
    if args.config:
        config = load_config(args.config)
    elif args.db_type and args.db_path:
        config = DictionaryConfig(db_type=args.db_type, db_path=args.db_path)
    else:
        raise ValueError("Either --config or both --db-type and --db-path are required")

    if args.db_type:
        config.db_type = args.db_type
    if args.db_path:
        config.db_path = args.db_path
    if args.debug_sql:
        config.debug_sql = True
    return config


def load_root(driver: DB, path: str, revision: str):
    """
    Replace one release with the root document stored at path.

    FetchMeta is written before the definitions so an interrupted load
    leaves a store the current drivers still open, and again afterwards to
    record the fetch time.
    """
    meta = driver.get_fetch_meta()
    if meta is not None and meta.outdated():
        raise LegacySchemaError(
            f"Failed to insert definitions. SchemaVersion is old. "
            f"SchemaVersion: {meta.schema_version}, expected: {LATEST_SCHEMA_VERSION}",
            stage="load",
        )

    with open(path) as f:
        root = Root.from_dict(json.load(f))

    driver.upsert_fetch_meta(FetchMeta(
        goval_dict_revision=revision,
        schema_version=LATEST_SCHEMA_VERSION,
        last_fetched_at=meta.last_fetched_at if meta is not None else None,
    ))
    metrics = driver.insert_root(root)
    driver.upsert_fetch_meta(FetchMeta(
        goval_dict_revision=revision,
        schema_version=LATEST_SCHEMA_VERSION,
        last_fetched_at=datetime.now(),
    ))
    return metrics


def run_command(driver: DB, args: argparse.Namespace, reporter: DictionaryReporter) -> str:
    if args.command == "load":
        metrics = load_root(driver, args.file, args.revision)
        report = reporter.render_insert_metrics(metrics)
        if args.report_dir:
            report_path = reporter.save_report(report, Path(args.report_dir))
            logger.info(f"Report: {report_path}")
        return report

    if args.command == "fetch-meta":
        return reporter.render_fetch_meta(driver.get_fetch_meta())

    if args.command == "count":
        count = driver.count_definitions(args.family, args.release)
        last_modified = driver.get_last_modified(args.family, args.release)
        return reporter.render_release_summary(args.family, args.release, count, last_modified)

    if args.command == "select-package":
        return reporter.render_definitions(
            driver.get_by_package_name(args.family, args.release, args.package, args.arch)
        )

    if args.command == "select-cve":
        return reporter.render_definitions(
            driver.get_by_cve_id(args.family, args.release, args.cve_id, args.arch)
        )

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug or args.debug_sql else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = resolve_config(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        driver = new_db(config.db_type, config.db_path, config.debug_sql, config.to_option())
    except DBError as e:
        if e.locked:
            logger.error(f"{e}. Another process holds the database; retry once it finishes.")
        else:
            logger.error(f"Failed to open dictionary: {e}")
        return 1

    reporter = DictionaryReporter()
    try:
        print(run_command(driver, args, reporter))
    except (DBError, OSError, ValueError, KeyError) as e:
        logger.error(f"Command {args.command} failed: {e}")
        return 1
    finally:
        driver.close_db()

    return 0


if __name__ == "__main__":
    sys.exit(main())
