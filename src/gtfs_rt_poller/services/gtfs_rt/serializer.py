"""Render output documents as pretty-printed JSON."""

from __future__ import annotations

import json
from typing import Any

from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

INDENT = 2


class DocumentSerializationError(PollerError):
    """Raised when an output document cannot be rendered to text."""

    code = "serialization_failed"


def serialize_document(document: dict[str, Any]) -> str:
    """Serialize a document, keeping key order."""
    try:
        return json.dumps(document, indent=INDENT, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        msg = f"Failed to serialize output document: {exc}"
        raise DocumentSerializationError(msg) from exc
