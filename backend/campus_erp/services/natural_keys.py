"""
Natural Keys - decides whether an incoming record updates or inserts.

Each collection that de-duplicates declares the user-meaningful fields
that identify a record:
1. students, teachers: normalized email
2. courses: course code
3. examinations: (studentId, exam, subject, date)

Collections without a natural key (attendance, fees, assignments, books)
match on their generated id only.

The store keeps a NaturalKeyIndex per collection (natural key -> list
position) so upserts avoid a linear scan. The index is rebuilt whenever
positions shift (remove, overlay, load).
"""

from typing import Dict, Iterable, Optional, Tuple

NATURAL_KEYS: Dict[str, Tuple[str, ...]] = {
    "students": ("email",),
    "teachers": ("email",),
    "courses": ("code",),
    "examinations": ("studentId", "exam", "subject", "date"),
}


def normalize_email(email) -> Optional[str]:
    """
    Normalize an email address for identity matching.

    Trims whitespace and lower-cases. Returns None for empty input so a
    record without an email never collides with another one.
    """
    if not email:
        return None
    email = str(email).strip().lower()
    return email or None


def _normalize_part(field: str, value):
    if field == "email":
        return normalize_email(value)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def natural_key(collection: str, record: dict) -> Optional[tuple]:
    """
    Extract the natural key of a record.

    Returns None when the collection has no natural key or when any key
    field is missing or blank. Such records are always inserted.
    """
    fields = NATURAL_KEYS.get(collection)
    if not fields or not isinstance(record, dict):
        return None
    parts = tuple(_normalize_part(f, record.get(f)) for f in fields)
    if any(p is None for p in parts):
        return None
    return parts


class NaturalKeyIndex:
    """Map from natural key to position in a collection list."""

    def __init__(self, collection: str):
        self.collection = collection
        self._positions: Dict[tuple, int] = {}

    def rebuild(self, records: Iterable[dict]):
        """Re-index from scratch. The first record wins for a repeated key."""
        self._positions = {}
        for position, record in enumerate(records):
            key = natural_key(self.collection, record)
            if key is not None and key not in self._positions:
                self._positions[key] = position

    def find(self, record: dict) -> Optional[int]:
        key = natural_key(self.collection, record)
        if key is None:
            return None
        return self._positions.get(key)

    def add(self, record: dict, position: int):
        key = natural_key(self.collection, record)
        if key is not None and key not in self._positions:
            self._positions[key] = position

    def __len__(self):
        return len(self._positions)
