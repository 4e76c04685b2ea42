"""Identifiers, reserved field names and timestamps for documents.

Document ids are UUID4 strings. Every timestamp written by the store is
an ISO-8601 UTC string with millisecond precision and a ``Z`` suffix,
so values sort lexicographically in time order.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import NewType


DocumentId = NewType("DocumentId", str)
"""Unique identifier for a document within one collection. Immutable once assigned."""

RevisionId = NewType("RevisionId", str)
"""Unique identifier of one entry in a document's revision history."""

# Reserved document fields
ID_FIELD = "_id"
CREATED_FIELD = "_created"
UPDATED_FIELD = "_updated"
DELETED_FIELD = "_deleted"
REVISIONS_FIELD = "_revisions"

# Keys of a revision entry
REVISION_ID_KEY = "_revisionId"
REVISION_TIMESTAMP_KEY = "_timestamp"
REVISION_ACTION_KEY = "_action"

RESERVED_FIELDS = frozenset(
    {ID_FIELD, CREATED_FIELD, UPDATED_FIELD, DELETED_FIELD, REVISIONS_FIELD}
)


def generate_id() -> DocumentId:
    """Return a fresh random document id."""
    return DocumentId(str(uuid.uuid4()))


def generate_revision_id() -> RevisionId:
    """Return a fresh random revision id."""
    return RevisionId(str(uuid.uuid4()))


def now_iso() -> str:
    """Current UTC time, e.g. ``2025-01-31T12:00:00.123Z``."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
