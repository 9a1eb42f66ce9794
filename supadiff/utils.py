"""
utils
=====

Small, shared utilities used across the codebase.

This module only contains low-level helpers that are safe to import from
anywhere (no Supabase calls, no heavy imports).

Functions
---------
- :func:`safe_name`: filesystem-safe filename component.
- :func:`timestamp_slug`: timestamp used in every output file name.
- :func:`write_text` / :func:`write_json`: UTF-8 writers with normalized newlines.
- :func:`rel_link` / :func:`md_anchor`: Markdown link helpers.
"""

from __future__ import annotations

import datetime as dt
import json
import os
import re
from pathlib import Path
from typing import Any, Optional


def safe_name(value: str) -> str:
    """Return a filesystem-safe version of *value*.

    Parameters
    ----------
    value:
        The input string to sanitize (e.g., an environment label).

    Returns
    -------
    str
        A sanitized string containing only ``[A-Za-z0-9._-]`` plus underscores,
        with surrounding underscores removed. Returns ``"unnamed"`` if the
        result would otherwise be empty.

    Examples
    --------
    >>> safe_name("staging eu/2")
    'staging_eu_2'
    >>> safe_name("")
    'unnamed'
    """
    out = re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip("_")
    return out or "unnamed"


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def iso_timestamp(moment: Optional[dt.datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = (moment or utc_now()).astimezone(dt.timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def timestamp_slug(moment: Optional[dt.datetime] = None) -> str:
    """Return the ISO-8601 timestamp with colons and periods replaced by hyphens.

    >>> timestamp_slug(dt.datetime(2025, 9, 24, 9, 20, 58, 159000, tzinfo=dt.timezone.utc))
    '2025-09-24T09-20-58-159Z'
    """
    return re.sub(r"[:.]", "-", iso_timestamp(moment))


def write_text(path: Path, content: str) -> None:
    """Write UTF-8 text to *path* with normalized newlines.

    Parent directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    path.write_text(content, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    """Write *payload* as indented JSON (keys keep insertion order)."""
    write_text(path, json.dumps(payload, indent=2, ensure_ascii=False, default=str) + "\n")


def rel_link(from_file: Path, to_file: Path) -> str:
    """Create a portable relative link for Markdown.

    Parameters
    ----------
    from_file:
        The file that will contain the link (e.g., the summary).
    to_file:
        The target file (e.g., a JSON report).
    """
    return os.path.relpath(to_file, start=from_file.parent).replace("\\", "/")


def md_anchor(title: str) -> str:
    """Create an approximate GitHub-style markdown anchor from a section title."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
