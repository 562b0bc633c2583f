"""
Local Storage - string key/value storage backed by the storage_entries table.

Mirrors the browser storage API the records front end was written against:
get_item / set_item / remove_item. Values are opaque strings;
JSON encoding and corrupt-payload recovery happen one layer up in the
persistence backend.

Errors from the database (SQLAlchemyError) propagate to the caller.
"""

from typing import Optional
from sqlalchemy.orm import sessionmaker

from campus_erp.models.storage_entry import StorageEntry


class LocalStorage:
    """Key/value string storage over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string for key, or None if absent."""
        with self._session_factory() as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry else None

    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        with self._session_factory() as session:
            entry = session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()

    def remove_item(self, key: str) -> None:
        """Delete key. Removing a missing key is a no-op."""
        with self._session_factory() as session:
            entry = session.get(StorageEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
