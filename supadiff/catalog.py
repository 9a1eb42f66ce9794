"""
catalog
=======

Fallback storage configuration suggested when neither environment has any
storage bucket.

The catalogs are plain tuples of frozen dataclasses so callers (and tests)
can pass alternatives to :func:`supadiff.syncgen.generate_sync_script`, and
:mod:`supadiff.config` can build one from YAML.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Tuple

MB = 1024 * 1024


@dataclass(frozen=True)
class BucketTemplate:
    """A commonly-needed bucket definition."""

    name: str
    public: bool
    file_size_limit: int
    allowed_mime_types: Tuple[str, ...]
    description: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BucketTemplate":
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("bucket_catalog entry is missing 'name'")
        return cls(
            name=name,
            public=bool(data.get("public", False)),
            file_size_limit=int(data.get("file_size_limit", 5 * MB)),
            allowed_mime_types=tuple(str(m) for m in data.get("allowed_mime_types") or ()),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class PolicyTemplate:
    """A suggested RLS policy on ``storage.objects``."""

    name: str
    bucket: str
    command: str  # "SELECT" | "INSERT"
    expression: str
    description: str = ""


DEFAULT_BUCKET_CATALOG: Tuple[BucketTemplate, ...] = (
    BucketTemplate(
        name="avatars",
        public=True,
        file_size_limit=5 * MB,
        allowed_mime_types=("image/jpeg", "image/png", "image/webp"),
        description="User profile avatars and photos",
    ),
    BucketTemplate(
        name="trip-photos",
        public=False,
        file_size_limit=10 * MB,
        allowed_mime_types=("image/jpeg", "image/png", "image/webp", "image/gif"),
        description="Private trip and destination photos",
    ),
    BucketTemplate(
        name="destination-images",
        public=True,
        file_size_limit=10 * MB,
        allowed_mime_types=("image/jpeg", "image/png", "image/webp"),
        description="Public destination and location images",
    ),
    BucketTemplate(
        name="documents",
        public=False,
        file_size_limit=50 * MB,
        allowed_mime_types=("application/pdf", "image/jpeg", "image/png", "text/plain"),
        description="User documents and attachments",
    ),
)

OWN_FOLDER = "auth.uid()::text = (storage.foldername(name))[1]"

DEFAULT_POLICY_CATALOG: Tuple[PolicyTemplate, ...] = (
    PolicyTemplate(
        name="Users can upload avatars",
        bucket="avatars",
        command="INSERT",
        expression=OWN_FOLDER,
        description="Authenticated users can upload their own avatar",
    ),
    PolicyTemplate(
        name="Avatars are publicly viewable",
        bucket="avatars",
        command="SELECT",
        expression="",
        description="Everyone can view avatars",
    ),
    PolicyTemplate(
        name="Users can upload trip photos",
        bucket="trip-photos",
        command="INSERT",
        expression=OWN_FOLDER,
        description="Users can upload to their own trips",
    ),
    PolicyTemplate(
        name="Users can view their trip photos",
        bucket="trip-photos",
        command="SELECT",
        expression=OWN_FOLDER,
        description="Users can view their own trip photos",
    ),
    PolicyTemplate(
        name="Destination images are publicly viewable",
        bucket="destination-images",
        command="SELECT",
        expression="",
        description="Everyone can view destination images",
    ),
    PolicyTemplate(
        name="Authenticated users can upload destination images",
        bucket="destination-images",
        command="INSERT",
        expression="auth.role() = 'authenticated'",
        description="Authenticated users only",
    ),
)


def catalog_from_config(entries: Iterable[Mapping[str, Any]]) -> Tuple[BucketTemplate, ...]:
    """Build a bucket catalog from config entries (``bucket_catalog:`` in YAML)."""
    return tuple(BucketTemplate.from_mapping(e) for e in entries)
