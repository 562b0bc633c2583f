"""
StorageEntry model - one row per persisted key.

This table is the local key-value store: each collection, the hostel
bundle, the session profile and the admin settings are stored as a JSON
text blob under their storage key (erp_students, erp_hostel_data, ...).
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, String
from campus_erp.database import Base


class StorageEntry(Base):
    """
    SQLAlchemy model for the storage_entries table.

    The value is kept as raw text, not a JSON column, so a corrupt payload
    can be stored and read back as-is and the caller decides how to recover.
    """
    __tablename__ = "storage_entries"

    key = Column(String(128), primary_key=True,
                 doc="Storage key, e.g. erp_students")
    value = Column(Text, nullable=False, default="",
                   doc="Serialized JSON payload")
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc),
                        doc="Last time this key was written")

    def __repr__(self):
        return f"<StorageEntry(key='{self.key}', bytes={len(self.value or '')})>"
