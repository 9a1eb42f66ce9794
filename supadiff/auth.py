"""
auth
====

Supabase connection helpers.

This module is responsible for turning a :class:`SupaTarget` (project URL +
API key, injected from the environment) into a Supabase client.

The rest of the codebase treats the client as an opaque handle:

- input: client + table name (or nothing, for storage)
- output: immutable probe results

This keeps collection logic testable with fake clients and keeps credentials
out of every other module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from supabase import ClientOptions, create_client


@dataclass(frozen=True)
class SupaTarget:
    """Supabase environment to probe.

    Parameters
    ----------
    label:
        Human label for logs and output file names (e.g., "production", "dev").
    url:
        Project URL, e.g. ``https://<ref>.supabase.co``.
    key:
        API key (anon or service role). Never written to reports.
    side:
        ``"left"`` or ``"right"``; the left environment is the reference.
    """

    label: str
    url: str
    key: str = field(repr=False)
    side: str = "left"

    def describe(self) -> str:
        """Return a human-readable description for logs/reports."""
        return f"{self.label} ({self.side}, {self.url})"


def connect(target: SupaTarget) -> Any:
    """Create a Supabase client for *target*.

    Sessions are neither persisted nor refreshed: every run is a short,
    read-only batch.

    Raises
    ------
    supabase.SupabaseException
        If the URL or key is malformed. Callers let this propagate, since a
        run without a connection has nothing to compare.
    """
    options = ClientOptions(auto_refresh_token=False, persist_session=False)
    return create_client(target.url, target.key, options=options)
