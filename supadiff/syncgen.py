"""
syncgen
=======

Render a :class:`~supadiff.models.DifferenceSet` as a human-reviewable SQL
script that would bring the right environment in line with the left one.

The script is advice, never an executor's input as-is:

- every change is written as a SQL comment to be uncommented after review;
- the only live statements are ``BEGIN;`` and ``COMMIT;``;
- removals (extra tables, columns, buckets, policies) only ever produce warnings;
- control characters in names are escaped, so every line stays a comment.

Column types are unknown to the generator (the probes only see names), so
``ADD COLUMN`` lines carry a ``TYPE_UNKNOWN`` placeholder and a
``Manual review needed`` marker. Missing tables get a placeholder note
rather than invented DDL.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional, Sequence

from .catalog import DEFAULT_BUCKET_CATALOG, DEFAULT_POLICY_CATALOG, BucketTemplate, PolicyTemplate
from .models import DifferenceSet, PolicyInfo
from .utils import iso_timestamp

MANUAL_REVIEW = "Manual review needed"

_PLAIN_IDENT = re.compile(r"^[a-z_][a-z0-9_]*$")

# Characters a SQL client or str.splitlines() may treat as a line break,
# plus the remaining C0/C1 controls.
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u2028\u2029]")
_NAMED_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def escape_controls(text: str) -> str:
    """Render control characters visibly so *text* stays on one line.

    >>> escape_controls("a\\nDROP TABLE t;")
    'a\\\\nDROP TABLE t;'
    """

    def _escape(match: "re.Match[str]") -> str:
        ch = match.group(0)
        if ch in _NAMED_ESCAPES:
            return _NAMED_ESCAPES[ch]
        code = ord(ch)
        return f"\\x{code:02x}" if code <= 0xFF else f"\\u{code:04x}"

    return _CONTROL_CHARS.sub(_escape, text)


def quote_ident(name: str) -> str:
    """Double-quote an identifier unless it is a plain lowercase name."""
    if _PLAIN_IDENT.match(name):
        return name
    return quote_name(name)


def quote_name(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def commented(lines: Sequence[str]) -> List[str]:
    """Prefix each SQL line with ``-- `` so it cannot run by accident."""
    return [f"-- {escape_controls(line)}" if line else "--" for line in lines]


def bucket_insert(
    bucket_id: str,
    name: str,
    public: bool,
    file_size_limit: Optional[int],
    mime_types: Sequence[str],
) -> List[str]:
    """Return an idempotent ``storage.buckets`` insert, one SQL line per item."""
    limit = str(file_size_limit) if file_size_limit is not None else "NULL"
    mimes = quote_literal(json.dumps(list(mime_types))) + "::jsonb" if mime_types else "NULL"
    return [
        "INSERT INTO storage.buckets (id, name, public, file_size_limit, allowed_mime_types)",
        f"VALUES ({quote_literal(bucket_id)}, {quote_literal(name)}, {'true' if public else 'false'}, {limit}, {mimes})",
        "ON CONFLICT (id) DO NOTHING;",
    ]


def policy_statement(policy: PolicyTemplate) -> List[str]:
    condition = f"bucket_id = {quote_literal(policy.bucket)}"
    if policy.expression:
        condition = f"{condition} AND {policy.expression}"
    clause = "WITH CHECK" if policy.command.upper() == "INSERT" else "USING"
    return [
        f"CREATE POLICY {quote_name(policy.name)} ON storage.objects",
        f"FOR {policy.command.upper()} {clause} ({condition});",
    ]


def existing_policy_statement(policy: PolicyInfo) -> List[str]:
    """Recreate a policy read from ``pg_policies`` on the other environment."""
    target = quote_ident(policy.table)
    if policy.schema:
        target = f"{quote_ident(policy.schema)}.{target}"
    lines = [f"CREATE POLICY {quote_name(policy.name)} ON {target}"]
    if policy.permissive:
        lines.append(f"AS {policy.permissive.upper()}")
    lines.append(f"FOR {(policy.command or 'ALL').upper()}")
    if policy.roles:
        lines.append("TO " + ", ".join(quote_ident(r) for r in policy.roles))
    if policy.using:
        lines.append(f"USING ({policy.using})")
    if policy.with_check:
        lines.append(f"WITH CHECK ({policy.with_check})")
    lines[-1] += ";"
    return lines


def _missing_tables(diff: DifferenceSet, right_label: str) -> List[str]:
    if not diff.missing_in_right:
        return []
    out = [f"-- WARNING: The following tables are missing in {right_label}:"]
    out.extend(f"--   {t}" for t in diff.missing_in_right)
    out.append("-- Create these tables manually or run a full migration (DDL is not extracted).")
    out.append("")
    return out


def _extra_tables(diff: DifferenceSet, left_label: str, right_label: str) -> List[str]:
    if not diff.extra_in_right:
        return []
    out = [f"-- WARNING: The following tables exist in {right_label} but not in {left_label}:"]
    out.extend(f"--   {t}" for t in diff.extra_in_right)
    out.append("-- Confirm whether they are intentional. Nothing is removed automatically.")
    out.append("")
    return out


def _column_changes(diff: DifferenceSet, right_label: str) -> List[str]:
    out: List[str] = []
    for table in sorted(diff.table_differences):
        delta = diff.table_differences[table]
        if delta.missing_columns_in_right:
            out.append(f"-- Add missing columns to {table}")
            for col in delta.missing_columns_in_right:
                out.append(
                    f"-- ALTER TABLE {quote_ident(table)} ADD COLUMN {quote_ident(col)} TYPE_UNKNOWN; -- {MANUAL_REVIEW}"
                )
            out.append("")
        if delta.extra_columns_in_right:
            out.append(
                f"-- WARNING: {table} has extra columns in {right_label}: {', '.join(delta.extra_columns_in_right)}"
            )
            out.append("-- Consider if these should be removed or are intentional.")
            out.append("")
    return out


def _unsampled(diff: DifferenceSet) -> List[str]:
    if not diff.unsampled_tables:
        return []
    return [
        "-- NOTE: Columns were not compared for these tables (no sample row on at least one side):",
        *(f"--   {t}" for t in diff.unsampled_tables),
        "",
    ]


def _bucket_changes(diff: DifferenceSet, right_label: str) -> List[str]:
    out: List[str] = []
    for bucket in diff.missing_buckets_in_right:
        out.append(f"-- Create missing bucket in {right_label}: {bucket.name} ({MANUAL_REVIEW})")
        out.extend(
            commented(
                bucket_insert(
                    bucket.id or bucket.name,
                    bucket.name,
                    bucket.public,
                    bucket.file_size_limit,
                    bucket.allowed_mime_types,
                )
            )
        )
        out.append("")
    for bucket in diff.extra_buckets_in_right:
        out.append(f"-- WARNING: bucket {bucket.name} exists only in {right_label}. Nothing is removed automatically.")
        out.append("")
    return out


def _policy_changes(diff: DifferenceSet, right_label: str) -> List[str]:
    out: List[str] = []
    for policy in diff.missing_policies_in_right:
        out.append(
            f"-- Create missing policy in {right_label}: {quote_name(policy.name)} on {policy.table} ({MANUAL_REVIEW})"
        )
        out.extend(commented(existing_policy_statement(policy)))
        out.append("")
    for policy in diff.extra_policies_in_right:
        out.append(
            f"-- WARNING: policy {quote_name(policy.name)} on {policy.table} exists only in {right_label}."
            " Nothing is removed automatically."
        )
        out.append("")
    if not diff.policies_compared and not diff.no_buckets_anywhere:
        out.append("-- NOTE: Storage policies were not compared (they could not be listed in both environments).")
        out.append("")
    return out


def _fallback_catalog(catalog: Sequence[BucketTemplate], policies: Sequence[PolicyTemplate]) -> List[str]:
    out = [
        "-- No storage buckets found in either environment.",
        "-- SUGGESTIONS (not findings): commonly-needed buckets for this application.",
        "",
    ]
    for tpl in catalog:
        out.append(f"-- Suggested bucket: {tpl.name}" + (f" ({tpl.description})" if tpl.description else ""))
        out.extend(commented(bucket_insert(tpl.name, tpl.name, tpl.public, tpl.file_size_limit, tpl.allowed_mime_types)))
        out.append("")
    if policies:
        out.append("-- SUGGESTIONS (not findings): basic RLS policies for the suggested buckets.")
        out.append("")
        for policy in policies:
            out.append(f"-- Suggested policy: {policy.description or policy.name}")
            out.extend(commented(policy_statement(policy)))
            out.append("")
    return out


def generate_sync_script(
    diff: DifferenceSet,
    catalog: Sequence[BucketTemplate] = DEFAULT_BUCKET_CATALOG,
    policies: Sequence[PolicyTemplate] = DEFAULT_POLICY_CATALOG,
    generated_at: Optional[str] = None,
    left_label: str = "production",
    right_label: str = "dev",
) -> str:
    """Return the SQL sync script text for *diff*.

    Parameters
    ----------
    diff:
        Differences of the right environment relative to the left one.
    catalog, policies:
        Fallback suggestions used only when no bucket exists on either side.
    generated_at:
        Timestamp for the header (defaults to now).
    left_label, right_label:
        Environment names used in comments.

    Returns
    -------
    str
        Script text ending with a newline. Generation reads *diff* only and
        never touches either environment.
    """
    lines: List[str] = [
        "-- Database Synchronization Script",
        f"-- Generated: {generated_at or iso_timestamp()}",
        f"-- Purpose: bring {right_label} in line with {left_label}",
        "-- Every change below is commented out. Review each one, then uncomment it to apply.",
        "",
        "BEGIN;",
        "",
    ]

    lines.extend(_missing_tables(diff, right_label))
    lines.extend(_extra_tables(diff, left_label, right_label))
    lines.extend(_column_changes(diff, right_label))
    lines.extend(_unsampled(diff))
    lines.extend(_bucket_changes(diff, right_label))
    lines.extend(_policy_changes(diff, right_label))
    if diff.no_buckets_anywhere:
        lines.extend(_fallback_catalog(catalog, policies))

    if not diff.needs_sync_script:
        lines.append(f"-- No differences found between {left_label} and {right_label}.")
        lines.append("")

    lines.extend(
        [
            "-- Review and execute this script carefully",
            "-- Some changes may require manual intervention",
            "",
            "COMMIT;",
        ]
    )
    # names and labels come from remote metadata; none may open a new line
    return "\n".join(escape_controls(line) for line in lines) + "\n"


def live_statements(script: str) -> List[str]:
    """Return the non-blank, non-comment lines of *script*."""
    out: List[str] = []
    for line in script.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("--"):
            out.append(stripped)
    return out
