"""Shared fixtures: an in-memory stand-in for the Supabase client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from supadiff.models import BucketInfo, EnvironmentSnapshot, PolicyInfo, ProbeResult, StorageSnapshot


class FakeAPIError(Exception):
    """Mimics postgrest's APIError: carries ``message`` and ``code``."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class FakeQuery:
    def __init__(self, client: "FakeClient", name: str, kind: str = "table") -> None:
        self.client = client
        self.name = name
        self.kind = kind
        self.head = False
        self.count: Optional[str] = None
        self.limit_n: Optional[int] = None

    def select(self, *columns: str, count: Optional[str] = None, head: Optional[bool] = None) -> "FakeQuery":
        self.count = count
        self.head = bool(head)
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    def or_(self, _filters: str) -> "FakeQuery":
        return self

    def execute(self) -> SimpleNamespace:
        self.client.calls.append((self.kind, self.name, "head" if self.head else "rows"))
        if self.kind == "rpc":
            if isinstance(self.client.rpc_result, Exception):
                raise self.client.rpc_result
            return SimpleNamespace(data=self.client.rpc_result, count=None)

        if self.name in self.client.errors:
            raise self.client.errors[self.name]
        if not self.head and self.name in self.client.sample_errors:
            raise self.client.sample_errors[self.name]
        if self.name not in self.client.tables:
            raise FakeAPIError(f'relation "public.{self.name}" does not exist', "42P01")

        rows = self.client.tables[self.name]
        if self.head:
            return SimpleNamespace(data=[], count=len(rows))
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return SimpleNamespace(data=rows, count=None)


class FakeBucketFiles:
    def __init__(self, client: "FakeClient", bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def list(self, path: Optional[str] = None, options: Optional[Dict[str, Any]] = None) -> List[Any]:
        self.client.calls.append(("storage", self.bucket, "list"))
        files = self.client.bucket_files.get(self.bucket, [])
        if isinstance(files, Exception):
            raise files
        limit = (options or {}).get("limit")
        return list(files)[:limit] if limit is not None else list(files)


class FakeStorage:
    def __init__(self, client: "FakeClient") -> None:
        self.client = client

    def from_(self, bucket: str) -> FakeBucketFiles:
        return FakeBucketFiles(self.client, bucket)

    def list_buckets(self) -> List[Any]:
        self.client.calls.append(("storage", "list_buckets", "rows"))
        if isinstance(self.client.buckets, Exception):
            raise self.client.buckets
        return list(self.client.buckets)


class FakeClient:
    """Enough of the Supabase client surface for the probers."""

    def __init__(
        self,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        sample_errors: Optional[Dict[str, Exception]] = None,
        buckets: Any = (),
        rpc_result: Any = (),
        pg_policies: Any = (),
        bucket_files: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.tables = dict(tables or {})
        self.errors = dict(errors or {})
        self.sample_errors = sample_errors or {}
        self.buckets = buckets
        self.bucket_files = dict(bucket_files or {})
        self.rpc_result = list(rpc_result) if not isinstance(rpc_result, Exception) else rpc_result
        self.calls: List[Any] = []
        self.storage = FakeStorage(self)
        if isinstance(pg_policies, Exception):
            self.errors["pg_policies"] = pg_policies
        else:
            self.tables["pg_policies"] = list(pg_policies)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, _params: Dict[str, Any]) -> FakeQuery:
        return FakeQuery(self, name, kind="rpc")


@pytest.fixture
def fake_client_cls() -> type:
    return FakeClient


@pytest.fixture
def api_error_cls() -> type:
    return FakeAPIError


def make_snapshot(
    label: str, tables: Dict[str, Any], buckets: tuple = (), policies: Optional[tuple] = None
) -> EnvironmentSnapshot:
    """Build a snapshot from ``{table: columns | None | False}``.

    A list/tuple means the table exists with those sampled columns, ``None``
    means it exists but was not sampled, ``False`` means the probe failed.
    *policies* holds ``(table, policyname)`` pairs; ``None`` means the
    policies could not be listed.
    """
    results = []
    for name, cols in tables.items():
        if cols is False:
            results.append(ProbeResult(table=name, exists=False, error="permission denied", error_code="42501"))
        elif cols is None:
            results.append(ProbeResult(table=name, exists=True, row_count=0))
        else:
            results.append(ProbeResult(table=name, exists=True, row_count=1, columns=tuple(cols)))
    return EnvironmentSnapshot(
        label=label,
        url=f"https://{label}.supabase.co",
        captured_at="2025-09-24T09:20:58.159Z",
        tables=tuple(results),
        storage=StorageSnapshot(
            buckets=tuple(BucketInfo(name=b, id=b) for b in buckets),
            policies=tuple(PolicyInfo(name=name, table=table, schema="storage") for table, name in policies or ()),
            policies_listed=policies is not None,
        ),
    )


@pytest.fixture
def snapshot_factory():
    return make_snapshot
