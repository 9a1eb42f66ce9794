"""
reporting
=========

Console narration and output files.

- :class:`ConsoleObserver` prints progress as probe results arrive. Probers
  never print; they return data and the orchestrator forwards it here.
- ``write_*`` functions produce the timestamped JSON dumps, the comparison
  report and the SQL sync script.
- :func:`generate_summary_md` writes a Markdown summary linking every file
  produced by the run.

Any failure to write an output file is raised as :class:`ReportWriteError`;
the run cannot succeed without its artifacts.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, TextIO, Tuple

from .models import ComparisonReport, EnvironmentSnapshot, ProbeResult, StorageSnapshot
from .utils import md_anchor, rel_link, safe_name, write_json, write_text


class ReportWriteError(RuntimeError):
    """An output file could not be written."""

    def __init__(self, path: Path, cause: BaseException) -> None:
        super().__init__(f"could not write {path}: {cause}")
        self.path = path
        self.cause = cause


def _write(path: Path, writer: Callable[[Path, Any], None], payload: Any) -> Path:
    try:
        writer(path, payload)
    except OSError as exc:
        raise ReportWriteError(path, exc) from exc
    return path


def probe_dump_path(out_dir: Path, label: str, stamp: str) -> Path:
    return out_dir / f"{safe_name(label)}-schema-{stamp}.json"


def comparison_report_path(out_dir: Path, stamp: str) -> Path:
    return out_dir / f"schema-comparison-{stamp}.json"


def sync_script_path(out_dir: Path, stamp: str) -> Path:
    return out_dir / f"sync-dev-to-prod-{stamp}.sql"


def write_probe_dump(out_dir: Path, snapshot: EnvironmentSnapshot, stamp: str) -> Path:
    """Write ``<env>-schema-<stamp>.json`` for one environment."""
    return _write(probe_dump_path(out_dir, snapshot.label, stamp), write_json, snapshot.to_dict())


def write_comparison_report(out_dir: Path, report: ComparisonReport, stamp: str) -> Path:
    """Write ``schema-comparison-<stamp>.json``."""
    return _write(comparison_report_path(out_dir, stamp), write_json, report.to_dict())


def write_sync_script(out_dir: Path, script: str, stamp: str) -> Path:
    """Write ``sync-dev-to-prod-<stamp>.sql``."""
    return _write(sync_script_path(out_dir, stamp), write_text, script)


def format_summary(report: ComparisonReport) -> List[str]:
    """Return the human-readable summary lines for *report*."""
    d = report.differences
    left, right = report.left.label, report.right.label
    lines = [
        "SCHEMA COMPARISON SUMMARY:",
        f"   {left} tables: {len(report.left.existing_tables())}",
        f"   {right} tables: {len(report.right.existing_tables())}",
        f"   Missing in {right}: {len(d.missing_in_right)}",
        f"   Extra in {right}: {len(d.extra_in_right)}",
        f"   Tables with differences: {len(d.table_differences)}",
        f"   {left} storage buckets: {d.left_bucket_count}",
        f"   {right} storage buckets: {d.right_bucket_count}",
    ]
    if d.missing_in_right:
        lines.append(f"Missing tables in {right}: {', '.join(d.missing_in_right)}")
    if d.extra_in_right:
        lines.append(f"Extra tables in {right}: {', '.join(d.extra_in_right)}")
    if d.table_differences:
        lines.append("Tables with structural differences:")
        for table in sorted(d.table_differences):
            delta = d.table_differences[table]
            lines.append(f"   {table}:")
            if delta.missing_columns_in_right:
                lines.append(f"     Missing columns: {', '.join(delta.missing_columns_in_right)}")
            if delta.extra_columns_in_right:
                lines.append(f"     Extra columns: {', '.join(delta.extra_columns_in_right)}")
    if d.unsampled_tables:
        lines.append(f"Columns not compared (no sample row): {', '.join(d.unsampled_tables)}")
    if d.missing_buckets_in_right:
        lines.append(f"Missing buckets in {right}: {', '.join(b.name for b in d.missing_buckets_in_right)}")
    if d.extra_buckets_in_right:
        lines.append(f"Extra buckets in {right}: {', '.join(b.name for b in d.extra_buckets_in_right)}")
    if d.missing_policies_in_right:
        lines.append(f"Missing storage policies in {right}: {', '.join(p.qualified_name for p in d.missing_policies_in_right)}")
    if d.extra_policies_in_right:
        lines.append(f"Extra storage policies in {right}: {', '.join(p.qualified_name for p in d.extra_policies_in_right)}")
    if not d.policies_compared:
        lines.append("Storage policies were not compared.")
    if not d.has_differences:
        lines.append(f"No structural differences between {left} and {right}.")
    return lines


class ConsoleObserver:
    """Print run narration to *stream* (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    def info(self, text: str = "") -> None:
        print(text, file=self.stream or sys.stdout)

    def environment_started(self, description: str) -> None:
        self.info()
        self.info(f"Extracting schema for {description}...")

    def table_probed(self, result: ProbeResult) -> None:
        if not result.exists:
            code = f" ({result.error_code})" if result.error_code else ""
            self.info(f"    ❌ Table {result.table}: {result.error}{code}")
            return
        self.info(f"    ✅ Table {result.table}: {result.row_count or 0} rows")
        if result.columns is not None:
            self.info(f"       {len(result.columns)} columns")
        elif result.sample_error:
            self.info(f"    ⚠️  {result.table}: sample failed: {result.sample_error}")
        else:
            self.info(f"    ℹ️  {result.table}: table is empty, columns unknown")

    def storage_probed(self, storage: StorageSnapshot) -> None:
        self.info(f"    ✅ Found {len(storage.buckets)} storage buckets")
        for bucket in storage.buckets:
            empty = " [empty]" if bucket.file_count == 0 else ""
            self.info(f"      - {bucket.name} (public: {str(bucket.public).lower()}){empty}")
            if bucket.files_error:
                self.info(f"    ⚠️  Bucket {bucket.name} files: {bucket.files_error}")
        if storage.policies:
            self.info(f"    📋 Found {len(storage.policies)} storage-related policies")
        for err in storage.errors:
            self.info(f"    ⚠️  Storage {err}")

    def file_written(self, kind: str, path: Path) -> None:
        self.info(f"Saved {kind}: {path}")

    def summary(self, report: ComparisonReport) -> None:
        self.info()
        for line in format_summary(report):
            self.info(line)

    def finished(self) -> None:
        self.info()
        self.info("Done.")


def generate_summary_md(out_dir: Path, report: ComparisonReport, files: List[Tuple[str, Path]], stamp: str) -> Path:
    """Generate a Markdown summary linking to the files written by this run.

    Parameters
    ----------
    out_dir:
        Output directory where ``SUMMARY-<stamp>.md`` is written.
    report:
        The comparison whose summary lines are rendered.
    files:
        ``(title, path)`` pairs; each path should live under ``out_dir``.
    stamp:
        Run timestamp slug.

    Returns
    -------
    pathlib.Path
        The path to the generated summary.

    Notes
    -----
    Links are written as *relative* paths so the whole output directory can be
    moved or archived while preserving navigation.
    """
    summary_path = out_dir / f"SUMMARY-{stamp}.md"
    d = report.differences

    lines: List[str] = []
    lines.append("# Supabase Schema Diff Summary\n\n")
    lines.append(f"_Generated: {report.generated_at}_\n\n")
    lines.append(f"- Left: `{report.left.label}` ({report.left.url})\n")
    lines.append(f"- Right: `{report.right.label}` ({report.right.url})\n\n")

    sections: List[Tuple[str, List[str]]] = [
        ("Files", [f"[{p.name}]({rel_link(summary_path, p)}) ({title})" for title, p in files]),
        ("Missing tables", list(d.missing_in_right)),
        ("Extra tables", list(d.extra_in_right)),
        (
            "Column differences",
            [
                f"`{t}`: missing {list(delta.missing_columns_in_right)}, extra {list(delta.extra_columns_in_right)}"
                for t, delta in sorted(d.table_differences.items())
            ],
        ),
        ("Storage buckets", [f"missing `{b.name}`" for b in d.missing_buckets_in_right]
         + [f"extra `{b.name}`" for b in d.extra_buckets_in_right]),
        ("Storage policies", [f"missing `{p.qualified_name}`" for p in d.missing_policies_in_right]
         + [f"extra `{p.qualified_name}`" for p in d.extra_policies_in_right]
         + ([] if d.policies_compared else ["not compared (policies could not be listed in both environments)"])),
    ]

    lines.append("## Contents\n")
    for title, _ in sections:
        lines.append(f"- [{title}](#{md_anchor(title)})\n")
    lines.append("\n")

    for title, items in sections:
        lines.append(f"## {title}\n\n")
        if not items:
            lines.append("- ✅ No differences\n\n")
            continue
        for item in items:
            lines.append(f"- {item}\n")
        lines.append("\n")

    return _write(summary_path, write_text, "".join(lines))
