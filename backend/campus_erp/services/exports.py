"""
Export service - CSV and JSON snapshots of the store.

- allocations_csv: hostel allocations with hostel/room names resolved
- collection_csv: any collection, columns in order of first appearance
- backup: every persisted key in one JSON document
- restore: load a backup document back into the store
"""

import csv
import io
from typing import List

from campus_erp.services import hostel
from campus_erp.services.record_store import (
    RecordStore, COLLECTION_KEYS, HOSTEL_KEY, SETTINGS_KEY, is_record_list, utc_now_iso,
)
from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("store")

ALLOCATION_HEADER = ["AllocationID", "StudentID", "StudentName", "Gender", "Hostel", "Room", "Bed"]


def _write_csv(header: List[str], rows: List[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def allocations_csv(store: RecordStore) -> str:
    bundle = store.hostel_snapshot()
    rows = []
    for a in bundle["allocations"]:
        h = hostel.find_hostel(bundle, a.get("hostelId"))
        room = hostel.find_room(bundle, a.get("roomId"))
        rows.append([
            a.get("id"),
            a.get("studentId") or "",
            a.get("studentName") or "",
            a.get("gender") or "",
            h.get("name") if h else a.get("hostelId"),
            room.get("roomNo") if room else a.get("roomId"),
            a.get("bedNo"),
        ])
    return _write_csv(ALLOCATION_HEADER, rows)


def collection_csv(store: RecordStore, name: str) -> str:
    records = store.get(name)
    header: List[str] = []
    for record in records:
        for field in record:
            if field not in header:
                header.append(field)
    rows = [["" if r.get(f) is None else r.get(f) for f in header] for r in records]
    return _write_csv(header, rows)


def backup(store: RecordStore) -> dict:
    """Everything needed to restore the installation, keyed by storage key."""
    data = {key: store.get(name) for name, key in COLLECTION_KEYS.items()}
    data[HOSTEL_KEY] = store.hostel_snapshot()
    data[SETTINGS_KEY] = store.get_settings()
    return {"exportedAt": utc_now_iso(), "data": data}


def restore(store: RecordStore, document: dict) -> dict:
    """
    Load a backup produced by backup() back into the store.

    Accepts the {exportedAt, data} document or a bare data mapping. Every
    collection is replaced; one absent from the document becomes empty.
    A collection whose value is not an array of objects is skipped and
    keeps its current records.
    """
    data = document.get("data") if isinstance(document.get("data"), dict) else document

    restored, skipped = [], []
    for name, key in COLLECTION_KEYS.items():
        records = data.get(key, [])
        if not is_record_list(records):
            skipped.append(key)
            continue
        store.replace(name, records)
        restored.append(key)

    if isinstance(data.get(HOSTEL_KEY), dict):
        store.replace_hostel(data[HOSTEL_KEY])
        restored.append(HOSTEL_KEY)
    if isinstance(data.get(SETTINGS_KEY), dict):
        store.save_settings(data[SETTINGS_KEY])
        restored.append(SETTINGS_KEY)

    log_with_context(logger, "INFO", "Backup restored",
                     extra_data={"restored": restored, "skipped": skipped})
    return {"restored": restored, "skipped": skipped}
