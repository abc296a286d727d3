"""Identity keys used to recognise the same real-world entity across sources."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

# Natural keys shared across sources, checked in order after ``id``.
NATURAL_KEYS: tuple[tuple[str, str], ...] = (
    ("fighterId", "fighter"),
    ("eventId", "event"),
    ("fightId", "fight"),
)


def hash_record(record: Any) -> str:
    """Deterministic short digest of the record's sorted-key JSON encoding."""

    encoded = json.dumps(record, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()[:16]


def generate_data_id(source_id: str, record: Any) -> str:
    """Derive the identity key for a raw record.

    An explicit ``id`` is scoped to its source; ``fighterId``/``eventId``/
    ``fightId`` are global so that different sources collide on purpose.
    """

    if isinstance(record, Mapping):
        if record.get("id"):
            return f"{source_id}:{record['id']}"
        for key, prefix in NATURAL_KEYS:
            if record.get(key):
                return f"{prefix}:{record[key]}"
    return f"{source_id}:{hash_record(record)}"


__all__ = ["NATURAL_KEYS", "generate_data_id", "hash_record"]
