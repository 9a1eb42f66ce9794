"""
collectors
==========

Read-only probes against one Supabase environment.

Two probers live here:

- the **table prober** (:func:`probe_table`, :func:`iter_table_probes`) runs a
  head-only ``count=exact`` select per candidate table and, when the table has
  rows, a one-row sample select to learn its column names;
- the **storage prober** (:func:`probe_storage`) lists buckets, checks
  whether each bucket holds files and, best-effort, lists storage-related
  access policies.

Failure policy
--------------
Every probe returns data. A permission denial, a missing table or a network
fault is recorded on the result object and the next probe proceeds; nothing
raised by the platform client escapes these functions.

Narration is not done here. The orchestration layer (:mod:`supadiff.cli`)
hands each result to :class:`supadiff.reporting.ConsoleObserver`.

Public helpers
--------------
- :func:`filter_tables` (include/exclude patterns)
- ``probe_*`` functions
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .models import BucketInfo, PolicyInfo, ProbeResult, StorageSnapshot

DEFAULT_TABLES: Tuple[str, ...] = (
    "users",
    "user_profiles",
    "destinations",
    "trips",
    "trip_photos",
    "user_activities",
    "follows",
)

# PostgREST "or" filter used when the get_policies RPC is unavailable.
POLICY_FALLBACK_FILTER = (
    "schemaname.eq.storage,tablename.ilike.%storage%,tablename.ilike.%bucket%,"
    "policyname.ilike.%storage%,policyname.ilike.%bucket%"
)

# Root entries listed per bucket when sampling its files.
FILE_SAMPLE_LIMIT = 1


# ---- table filter helpers ----
def sql_like_to_fnmatch(pattern: str) -> str:
    """Convert SQL LIKE patterns (% and _) to fnmatch syntax (* and ?)."""
    return pattern.replace("%", "*").replace("_", "?")


def matches_pattern(name: str, pattern: str) -> bool:
    """Return True if name matches pattern (LIKE by default, regex via ``re:``)."""
    if pattern.startswith("re:"):
        return re.search(pattern[3:], name) is not None
    return fnmatch.fnmatchcase(name, sql_like_to_fnmatch(pattern))


def filter_tables(tables: Sequence[str], include: Sequence[str], exclude: Sequence[str]) -> List[str]:
    """Filter candidate tables using include/exclude patterns.

    Include patterns keep a table if it matches *any* include pattern.
    Exclude patterns drop a table if it matches *any* exclude pattern.
    Candidate order is preserved and duplicates are dropped.
    """
    result: List[str] = []
    for t in tables:
        if t in result:
            continue
        if include and not any(matches_pattern(t, p) for p in include):
            continue
        if exclude and any(matches_pattern(t, p) for p in exclude):
            continue
        result.append(t)
    return result


# ---- error helpers ----
def error_message(exc: BaseException) -> str:
    """Return the most useful message carried by a client exception.

    PostgREST errors carry ``message``; storage errors carry ``message`` or a
    dict payload as their first argument.
    """
    message = getattr(exc, "message", None)
    if message:
        return str(message)
    text = str(exc).strip()
    return text or type(exc).__name__


def error_code(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code is None or code == "":
        return None
    return str(code)


# ---- table prober ----
def probe_table(client: Any, table: str) -> ProbeResult:
    """Probe one table: existence, exact row count and, if rows exist, columns.

    Parameters
    ----------
    client:
        Pre-authenticated Supabase client (or anything exposing ``table()``).
    table:
        Non-empty table name.

    Returns
    -------
    ProbeResult
        ``exists=False`` with an error detail when the count query fails.
        When the table exists but is empty, ``columns`` stays ``None``: an
        empty table cannot be sampled.

    Raises
    ------
    ValueError
        If *table* is empty.
    """
    if not table:
        raise ValueError("table name must be a non-empty string")

    try:
        counted = client.table(table).select("*", count="exact", head=True).execute()
    except Exception as exc:
        return ProbeResult(table=table, exists=False, error=error_message(exc), error_code=error_code(exc))

    row_count = getattr(counted, "count", None)
    if row_count == 0:
        return ProbeResult(table=table, exists=True, row_count=0)

    try:
        sampled = client.table(table).select("*").limit(1).execute()
    except Exception as exc:
        return ProbeResult(table=table, exists=True, row_count=row_count, sample_error=error_message(exc))

    rows = getattr(sampled, "data", None) or []
    columns = tuple(str(c) for c in rows[0].keys()) if rows else None
    return ProbeResult(table=table, exists=True, row_count=row_count if row_count is not None else len(rows), columns=columns)


def iter_table_probes(client: Any, tables: Iterable[str]) -> Iterator[ProbeResult]:
    """Yield one :class:`ProbeResult` per table, in order, one query at a time."""
    for table in tables:
        yield probe_table(client, table)


def probe_tables(client: Any, tables: Iterable[str]) -> Tuple[ProbeResult, ...]:
    return tuple(iter_table_probes(client, tables))


# ---- storage prober ----
def is_storage_policy(policy: Dict[str, Any]) -> bool:
    """Return True if a pg_policies record concerns storage objects or buckets."""
    if policy.get("schemaname") == "storage":
        return True
    table = str(policy.get("tablename") or "").lower()
    name = str(policy.get("policyname") or "").lower()
    return any(word in table or word in name for word in ("storage", "bucket"))


def list_storage_policies(client: Any) -> Tuple[Optional[List[Dict[str, Any]]], List[str]]:
    """Best-effort listing of storage-related access policies.

    Tries the ``get_policies`` RPC first, then the ``pg_policies`` table.

    Returns
    -------
    tuple[list[dict] | None, list[str]]
        ``(policies, errors)``; policies is None when neither source is
        reachable, and errors holds one annotation per failed source.
    """
    errors: List[str] = []
    try:
        resp = client.rpc("get_policies", {}).execute()
        rows = getattr(resp, "data", None) or []
        return [dict(p) for p in rows if is_storage_policy(p)], errors
    except Exception as exc:
        errors.append(f"policies (rpc get_policies): {error_message(exc)}")

    try:
        resp = client.table("pg_policies").select("*").or_(POLICY_FALLBACK_FILTER).execute()
        rows = getattr(resp, "data", None) or []
        return [dict(p) for p in rows], errors
    except Exception as exc:
        errors.append(f"policies (pg_policies): {error_message(exc)}")

    return None, errors


def sample_bucket_files(client: Any, bucket: BucketInfo) -> BucketInfo:
    """Return *bucket* with ``file_count`` (or ``files_error``) filled in.

    Lists at most :data:`FILE_SAMPLE_LIMIT` entries at the bucket root.
    """
    try:
        files = client.storage.from_(bucket.name).list("", {"limit": FILE_SAMPLE_LIMIT}) or []
    except Exception as exc:
        return replace(bucket, files_error=error_message(exc))
    return replace(bucket, file_count=len(files))


def probe_storage(client: Any, include_policies: bool = True) -> StorageSnapshot:
    """List storage buckets, sample their files and list their access policies.

    A failing endpoint degrades to an empty sequence plus an entry in
    :attr:`StorageSnapshot.errors` (or :attr:`BucketInfo.files_error` for a
    per-bucket listing); the probe itself never raises.
    """
    errors: List[str] = []
    buckets: List[BucketInfo] = []

    try:
        raw = client.storage.list_buckets() or []
        buckets = [sample_bucket_files(client, BucketInfo.from_api(b)) for b in raw]
    except Exception as exc:
        errors.append(f"buckets: {error_message(exc)}")

    records: Optional[List[Dict[str, Any]]] = None
    if include_policies:
        records, policy_errors = list_storage_policies(client)
        errors.extend(policy_errors)
    policies = [PolicyInfo.from_record(r) for r in records or []]

    return StorageSnapshot(
        buckets=tuple(sorted(buckets, key=lambda b: b.name)),
        policies=tuple(sorted(policies, key=lambda p: p.key)),
        errors=tuple(errors),
        policies_listed=records is not None,
    )
