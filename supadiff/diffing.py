"""
diffing
=======

Structural comparison of two environment snapshots.

:func:`diff_environments` is a pure function: it reads two
:class:`~supadiff.models.EnvironmentSnapshot` objects and returns a
:class:`~supadiff.models.DifferenceSet`. Calling it twice with the same
inputs yields equal results, and swapping the inputs swaps the
missing/extra lists.

Only names are compared. Column data types are invisible to the sampling
probe, so a column whose type changed under the same name is not reported.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    BucketInfo,
    ComparisonReport,
    DifferenceSet,
    EnvironmentSnapshot,
    PolicyInfo,
    TableDifference,
)
from .utils import iso_timestamp


def ordered_difference(source: Sequence[str], other: Sequence[str]) -> Tuple[str, ...]:
    """Return items of *source* absent from *other*, keeping *source* order."""
    seen = set(other)
    out: List[str] = []
    for item in source:
        if item not in seen and item not in out:
            out.append(item)
    return tuple(out)


def diff_columns(
    table: str,
    left_columns: Sequence[str],
    right_columns: Sequence[str],
    left_row_count: Optional[int] = None,
    right_row_count: Optional[int] = None,
) -> Optional[TableDifference]:
    """Compare two column-name sets; return ``None`` when they match."""
    missing = ordered_difference(left_columns, right_columns)
    extra = ordered_difference(right_columns, left_columns)
    if not missing and not extra:
        return None
    return TableDifference(
        table=table,
        missing_columns_in_right=missing,
        extra_columns_in_right=extra,
        left_row_count=left_row_count,
        right_row_count=right_row_count,
    )


def diff_buckets(
    left: Sequence[BucketInfo], right: Sequence[BucketInfo]
) -> Tuple[Tuple[BucketInfo, ...], Tuple[BucketInfo, ...]]:
    """Return ``(missing_in_right, extra_in_right)`` by bucket name, sorted."""
    left_names = {b.name for b in left}
    right_names = {b.name for b in right}
    missing = tuple(sorted((b for b in left if b.name not in right_names), key=lambda b: b.name))
    extra = tuple(sorted((b for b in right if b.name not in left_names), key=lambda b: b.name))
    return missing, extra


def diff_policies(
    left: Sequence[PolicyInfo], right: Sequence[PolicyInfo]
) -> Tuple[Tuple[PolicyInfo, ...], Tuple[PolicyInfo, ...]]:
    """Return ``(missing_in_right, extra_in_right)`` by (table, policy name), sorted."""
    left_keys = {p.key for p in left}
    right_keys = {p.key for p in right}
    missing = tuple(sorted((p for p in left if p.key not in right_keys), key=lambda p: p.key))
    extra = tuple(sorted((p for p in right if p.key not in left_keys), key=lambda p: p.key))
    return missing, extra


def diff_environments(left: EnvironmentSnapshot, right: EnvironmentSnapshot) -> DifferenceSet:
    """Compute the :class:`DifferenceSet` of *right* relative to *left*.

    Parameters
    ----------
    left:
        Reference environment (usually production).
    right:
        Environment being checked (usually dev).

    Returns
    -------
    DifferenceSet
        Table presence uses the ``exists`` flag only, so a table whose probe
        failed on one side counts as missing there. Tables present on both
        sides are column-compared only when both sides yielded a sample row;
        the rest are listed in ``unsampled_tables``. Storage policies are
        compared only when both sides could list them.
    """
    left_tables = set(left.existing_tables())
    right_tables = set(right.existing_tables())

    table_differences: Dict[str, TableDifference] = {}
    unsampled: List[str] = []
    for table in sorted(left_tables & right_tables):
        lres = left.result_for(table)
        rres = right.result_for(table)
        if lres is None or rres is None or lres.columns is None or rres.columns is None:
            unsampled.append(table)
            continue
        delta = diff_columns(table, lres.columns, rres.columns, lres.row_count, rres.row_count)
        if delta is not None:
            table_differences[table] = delta

    missing_buckets, extra_buckets = diff_buckets(left.storage.buckets, right.storage.buckets)

    policies_compared = left.storage.policies_listed and right.storage.policies_listed
    missing_policies: Tuple[PolicyInfo, ...] = ()
    extra_policies: Tuple[PolicyInfo, ...] = ()
    if policies_compared:
        missing_policies, extra_policies = diff_policies(left.storage.policies, right.storage.policies)

    return DifferenceSet(
        missing_in_right=tuple(sorted(left_tables - right_tables)),
        extra_in_right=tuple(sorted(right_tables - left_tables)),
        table_differences=table_differences,
        unsampled_tables=tuple(unsampled),
        missing_buckets_in_right=missing_buckets,
        extra_buckets_in_right=extra_buckets,
        left_bucket_count=len(left.storage.buckets),
        right_bucket_count=len(right.storage.buckets),
        missing_policies_in_right=missing_policies,
        extra_policies_in_right=extra_policies,
        policies_compared=policies_compared,
    )


def build_report(
    left: EnvironmentSnapshot, right: EnvironmentSnapshot, generated_at: Optional[str] = None
) -> ComparisonReport:
    """Bundle both snapshots with their :class:`DifferenceSet`."""
    return ComparisonReport(
        generated_at=generated_at or iso_timestamp(),
        left=left,
        right=right,
        differences=diff_environments(left, right),
    )
