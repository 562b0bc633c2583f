import csv
import io

from campus_erp.services import exports
from campus_erp.services.record_store import COLLECTION_KEYS, HOSTEL_KEY, SETTINGS_KEY


def test_allocations_csv_resolves_names(seed_hostel):
    store = seed_hostel(
        hostels=[{"id": "H1", "name": 'A "North" Block', "gender": "Male"}],
        rooms=[{"id": "R1", "hostelId": "H1", "roomNo": "101", "capacity": 2}],
    )
    store.allocate_bed("ST001", "Alice, B.", "H1", "R1", gender="Female")

    text = exports.allocations_csv(store)
    lines = text.splitlines()

    assert lines[0] == '"AllocationID","StudentID","StudentName","Gender","Hostel","Room","Bed"'
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[1][1:] == ["ST001", "Alice, B.", "Female", 'A "North" Block', "101", "1"]


def test_allocations_csv_empty_has_header_only(store):
    assert exports.allocations_csv(store).splitlines() == [
        '"AllocationID","StudentID","StudentName","Gender","Hostel","Room","Bed"',
    ]


def test_collection_csv_unions_columns(store):
    store.upsert("books", {"title": "Dune", "author": "Herbert"})
    store.upsert("books", {"title": "Emma", "isbn": "978"})

    rows = list(csv.reader(io.StringIO(exports.collection_csv(store, "books"))))

    assert rows[0] == ["title", "author", "id", "isbn"]
    assert rows[2] == ["Emma", "", rows[2][2], "978"]


def test_backup_covers_every_key(store):
    store.upsert("students", {"name": "Asha", "email": "asha@example.com"})
    store.add_hostel("A Block")

    snapshot = exports.backup(store)

    assert set(snapshot["data"]) == set(COLLECTION_KEYS.values()) | {HOSTEL_KEY, SETTINGS_KEY}
    assert snapshot["data"]["erp_students"][0]["name"] == "Asha"
    assert snapshot["data"][HOSTEL_KEY]["hostels"][0]["name"] == "A Block"
    assert snapshot["exportedAt"].endswith("Z")


def test_backup_reset_restore_round_trip(store):
    store.upsert("students", {"name": "Asha", "email": "asha@example.com"})
    store.upsert("courses", {"code": "CS101", "name": "Intro"})
    h = store.add_hostel("A Block")
    store.add_room(h["id"], "101", 2)
    store.save_settings({"schoolName": "Riverside"})
    snapshot = exports.backup(store)

    store.reset()
    store.replace_hostel({})
    summary = exports.restore(store, snapshot)

    assert summary["skipped"] == []
    assert exports.backup(store)["data"] == snapshot["data"]


def test_restore_skips_malformed_collections(store):
    store.upsert("books", {"title": "Dune"})

    summary = exports.restore(store, {"erp_books": ["Dune"], "erp_students": [{"name": "Asha"}]})

    assert summary["skipped"] == ["erp_books"]
    assert [b["title"] for b in store.get("books")] == ["Dune"]
    assert store.get("students") == [{"name": "Asha"}]
    assert store.get("fees") == []
