"""Command-line entry point: probe both environments, diff, write reports."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .auth import SupaTarget, connect
from .collectors import filter_tables, iter_table_probes, probe_storage
from .config import (
    DEFAULT_CONFIG,
    Options,
    build_target,
    ensure_distinct_labels,
    load_config,
    load_env,
    read_bucket_catalog,
    read_options,
    read_table_filter,
    read_tables,
    resolve_out_dir,
)
from .diffing import build_report
from .models import EnvironmentSnapshot, StorageSnapshot
from .reporting import (
    ConsoleObserver,
    ReportWriteError,
    generate_summary_md,
    write_comparison_report,
    write_probe_dump,
    write_sync_script,
)
from .syncgen import generate_sync_script
from .utils import iso_timestamp, timestamp_slug, utc_now


def collect_environment(
    target: SupaTarget,
    tables: Sequence[str],
    options: Options,
    observer: ConsoleObserver,
    client: Any = None,
) -> EnvironmentSnapshot:
    """Probe every candidate table, then storage, for one environment."""
    observer.environment_started(target.describe())
    if client is None:
        client = connect(target)

    results = []
    for result in iter_table_probes(client, tables):
        observer.table_probed(result)
        results.append(result)

    storage = StorageSnapshot()
    if options.storage:
        storage = probe_storage(client)
        observer.storage_probed(storage)

    return EnvironmentSnapshot(
        label=target.label,
        url=target.url,
        captured_at=iso_timestamp(),
        tables=tuple(results),
        storage=storage,
    )


def _load_cfg(config: Optional[str]) -> Dict[str, Any]:
    if config:
        return load_config(Path(config).resolve())
    default = Path(DEFAULT_CONFIG).resolve()
    return load_config(default) if default.exists() else {}


def run(args: argparse.Namespace, observer: ConsoleObserver) -> int:
    load_env()
    cfg = _load_cfg(args.config)

    options = read_options(cfg, no_storage=args.no_storage, no_sync_script=args.no_sync_script)
    table_filter = read_table_filter(cfg, args.include, args.exclude)
    tables = filter_tables(read_tables(cfg), table_filter.include, table_filter.exclude)
    catalog = read_bucket_catalog(cfg)
    out_dir = resolve_out_dir(cfg, args.out)

    left = build_target(cfg, "left")
    right = build_target(cfg, "right")
    ensure_distinct_labels(left, right)

    started = utc_now()
    stamp = timestamp_slug(started)
    observer.info(f"Starting schema comparison: {left.label} vs {right.label}")
    observer.info(f"Timestamp: {stamp}")
    observer.info(f"Tables: {', '.join(tables) if tables else '(none)'}")

    written: List[Tuple[str, Path]] = []
    snapshots = []
    for target in (left, right):
        snapshot = collect_environment(target, tables, options, observer)
        path = write_probe_dump(out_dir, snapshot, stamp)
        observer.file_written(f"{target.label} schema", path)
        written.append((f"{target.label} probe dump", path))
        snapshots.append(snapshot)

    report = build_report(snapshots[0], snapshots[1], generated_at=iso_timestamp(started))
    path = write_comparison_report(out_dir, report, stamp)
    observer.file_written("comparison report", path)
    written.append(("comparison report", path))

    if options.sync_script and report.differences.needs_sync_script:
        script = generate_sync_script(
            report.differences,
            catalog=catalog,
            generated_at=report.generated_at,
            left_label=left.label,
            right_label=right.label,
        )
        path = write_sync_script(out_dir, script, stamp)
        observer.file_written("sync script", path)
        written.append(("sync script", path))

    path = generate_summary_md(out_dir, report, written, stamp)
    observer.file_written("summary", path)

    observer.summary(report)
    observer.finished()
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Compare two Supabase environments (tables, columns, storage buckets) and write a reviewable sync script."
    )
    ap.add_argument("--config", default=None, help=f"Path to YAML config (default: {DEFAULT_CONFIG} if present)")
    ap.add_argument("--out", default=None, help="Override out_dir from config")
    ap.add_argument("--no-storage", action="store_true", help="Skip storage bucket/policy probes")
    ap.add_argument("--no-sync-script", action="store_true", help="Do not write the SQL sync script")
    ap.add_argument(
        "--include",
        action="append",
        default=[],
        help="Include table pattern (repeatable). SQL LIKE (%% _) or regex via re:...",
    )
    ap.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Exclude table pattern (repeatable). SQL LIKE (%% _) or regex via re:...",
    )
    return ap


def main(argv: Optional[Sequence[str]] = None, observer: Optional[ConsoleObserver] = None) -> int:
    """Run the CLI; return the process exit code."""
    args = build_parser().parse_args(argv)
    observer = observer or ConsoleObserver()
    try:
        return run(args, observer)
    except ReportWriteError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"ERROR: schema comparison failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
