"""
models
======

Immutable result types shared by the probers, the differ and the generator.

Every object here is created fresh on each run and only ever leaves the
process as JSON (see the ``to_dict`` methods). Nothing is shared between the
two environment snapshots of a comparison.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one table in one environment.

    Attributes:
        table: Table name that was probed.
        exists: True when the count query succeeded.
        row_count: Exact row count; only set when ``exists``.
        columns: Column names observed on a sample row, in row order. ``None``
            when no sample row could be retrieved (empty table or failure).
        error: Failure detail when the count query failed.
        error_code: Platform error code for the failure, when one was given.
        sample_error: Failure detail when the table exists but the sample
            fetch failed.
    """

    table: str
    exists: bool
    row_count: Optional[int] = None
    columns: Optional[Tuple[str, ...]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    sample_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"exists": self.exists}
        if self.exists:
            out["row_count"] = self.row_count
        if self.columns is not None:
            out["columns"] = list(self.columns)
        if self.error is not None:
            out["error"] = self.error
        if self.error_code is not None:
            out["error_code"] = self.error_code
        if self.sample_error is not None:
            out["sample_error"] = self.sample_error
        return out


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


@dataclass(frozen=True)
class BucketInfo:
    """Storage bucket metadata as reported by the storage API.

    ``file_count`` is the number of root entries seen by a capped listing
    (see :data:`supadiff.collectors.FILE_SAMPLE_LIMIT`), so it tells an empty
    bucket from a used one. ``files_error`` holds the listing failure, if any.
    """

    name: str
    id: Optional[str] = None
    public: bool = False
    file_size_limit: Optional[int] = None
    allowed_mime_types: Tuple[str, ...] = ()
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    file_count: Optional[int] = None
    files_error: Optional[str] = None

    @classmethod
    def from_api(cls, bucket: Any) -> "BucketInfo":
        """Build from a storage client bucket object or a plain mapping."""
        name = _field(bucket, "name") or _field(bucket, "id") or ""
        limit = _field(bucket, "file_size_limit")
        created = _field(bucket, "created_at")
        updated = _field(bucket, "updated_at")
        return cls(
            name=str(name),
            id=_field(bucket, "id") or str(name),
            public=bool(_field(bucket, "public", False)),
            file_size_limit=int(limit) if limit is not None else None,
            allowed_mime_types=tuple(_field(bucket, "allowed_mime_types") or ()),
            created_at=str(created) if created is not None else None,
            updated_at=str(updated) if updated is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "id": self.id,
            "public": self.public,
            "file_size_limit": self.file_size_limit,
            "allowed_mime_types": list(self.allowed_mime_types),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.file_count is not None:
            out["file_count"] = self.file_count
        if self.files_error is not None:
            out["files_error"] = self.files_error
        return out


def _roles(value: Any) -> Tuple[str, ...]:
    # pg_policies.roles arrives as a list, or as a "{a,b}" array literal
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(r.strip() for r in value.strip("{}").split(",") if r.strip())
    return tuple(str(r) for r in value)


@dataclass(frozen=True)
class PolicyInfo:
    """One row-level security policy from ``pg_policies``.

    Policies are matched across environments by :attr:`key`
    (table name + policy name).
    """

    name: str
    table: str
    schema: Optional[str] = None
    command: Optional[str] = None
    permissive: Optional[str] = None
    roles: Tuple[str, ...] = ()
    using: Optional[str] = None
    with_check: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PolicyInfo":
        return cls(
            name=str(record.get("policyname") or ""),
            table=str(record.get("tablename") or ""),
            schema=record.get("schemaname"),
            command=record.get("cmd"),
            permissive=record.get("permissive"),
            roles=_roles(record.get("roles")),
            using=record.get("qual"),
            with_check=record.get("with_check"),
        )

    @property
    def key(self) -> Tuple[str, str]:
        return (self.table, self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaname": self.schema,
            "tablename": self.table,
            "policyname": self.name,
            "permissive": self.permissive,
            "roles": list(self.roles),
            "cmd": self.command,
            "qual": self.using,
            "with_check": self.with_check,
        }


@dataclass(frozen=True)
class StorageSnapshot:
    """Buckets, storage policies and error annotations for one environment.

    ``policies_listed`` is False when no policy source could be read (or
    policies were not requested); an empty ``policies`` tuple then means
    "unknown" rather than "none".
    """

    buckets: Tuple[BucketInfo, ...] = ()
    policies: Tuple[PolicyInfo, ...] = ()
    errors: Tuple[str, ...] = ()
    policies_listed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buckets": [b.to_dict() for b in self.buckets],
            "policies": [p.to_dict() for p in self.policies],
            "policies_listed": self.policies_listed,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Everything probed in one environment during one run."""

    label: str
    url: str
    captured_at: str
    tables: Tuple[ProbeResult, ...] = ()
    storage: StorageSnapshot = field(default_factory=StorageSnapshot)

    def existing_tables(self) -> List[str]:
        return [r.table for r in self.tables if r.exists]

    def result_for(self, table: str) -> Optional[ProbeResult]:
        for result in self.tables:
            if result.table == table:
                return result
        return None

    def bucket_names(self) -> List[str]:
        return [b.name for b in self.storage.buckets]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database": self.label,
            "url": self.url,
            "timestamp": self.captured_at,
            "tables": {r.table: r.to_dict() for r in self.tables},
            "storage": self.storage.to_dict(),
        }


@dataclass(frozen=True)
class TableDifference:
    """Column drift for a table present in both environments."""

    table: str
    missing_columns_in_right: Tuple[str, ...] = ()
    extra_columns_in_right: Tuple[str, ...] = ()
    left_row_count: Optional[int] = None
    right_row_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing_columns_in_right": list(self.missing_columns_in_right),
            "extra_columns_in_right": list(self.extra_columns_in_right),
            "left_row_count": self.left_row_count,
            "right_row_count": self.right_row_count,
        }


@dataclass(frozen=True)
class DifferenceSet:
    """Structural delta between a left (reference) and a right environment.

    All sequences are sorted so identical inputs always serialize identically.
    """

    missing_in_right: Tuple[str, ...] = ()
    extra_in_right: Tuple[str, ...] = ()
    table_differences: Mapping[str, TableDifference] = field(default_factory=dict)
    unsampled_tables: Tuple[str, ...] = ()
    missing_buckets_in_right: Tuple[BucketInfo, ...] = ()
    extra_buckets_in_right: Tuple[BucketInfo, ...] = ()
    left_bucket_count: int = 0
    right_bucket_count: int = 0
    missing_policies_in_right: Tuple[PolicyInfo, ...] = ()
    extra_policies_in_right: Tuple[PolicyInfo, ...] = ()
    policies_compared: bool = False

    @property
    def has_differences(self) -> bool:
        return bool(
            self.missing_in_right
            or self.extra_in_right
            or self.table_differences
            or self.missing_buckets_in_right
            or self.extra_buckets_in_right
            or self.missing_policies_in_right
            or self.extra_policies_in_right
        )

    @property
    def no_buckets_anywhere(self) -> bool:
        return self.left_bucket_count == 0 and self.right_bucket_count == 0

    @property
    def needs_sync_script(self) -> bool:
        return self.has_differences or self.no_buckets_anywhere

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing_tables_in_right": list(self.missing_in_right),
            "extra_tables_in_right": list(self.extra_in_right),
            "table_differences": {
                name: self.table_differences[name].to_dict() for name in sorted(self.table_differences)
            },
            "unsampled_tables": list(self.unsampled_tables),
            "storage_differences": {
                "missing_buckets_in_right": [b.name for b in self.missing_buckets_in_right],
                "extra_buckets_in_right": [b.name for b in self.extra_buckets_in_right],
                "left_bucket_count": self.left_bucket_count,
                "right_bucket_count": self.right_bucket_count,
                "policies_compared": self.policies_compared,
                "missing_policies_in_right": [p.qualified_name for p in self.missing_policies_in_right],
                "extra_policies_in_right": [p.qualified_name for p in self.extra_policies_in_right],
            },
        }


@dataclass(frozen=True)
class ComparisonReport:
    """Both snapshots plus the differences derived from them."""

    generated_at: str
    left: EnvironmentSnapshot
    right: EnvironmentSnapshot
    differences: DifferenceSet

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.generated_at,
            "left": self.left.label,
            "right": self.right.label,
            "environments": {
                "left": self.left.to_dict(),
                "right": self.right.to_dict(),
            },
            "differences": self.differences.to_dict(),
        }
