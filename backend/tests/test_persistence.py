import asyncio
import json

from campus_erp.services.natural_keys import NaturalKeyIndex, natural_key, normalize_email


def test_get_data_contract(backend, local_storage):
    local_storage.set_item("erp_fees", json.dumps([{"id": "F1"}]))

    assert asyncio.run(backend.get_data("erp_fees")) == [{"id": "F1"}]
    assert asyncio.run(backend.get_data("erp_missing")) == []


def test_get_data_corrupt_is_empty(backend, local_storage):
    local_storage.set_item("erp_fees", "[{")
    assert asyncio.run(backend.get_data("erp_fees")) == []


def test_save_data_contract(backend, local_storage):
    assert asyncio.run(backend.save_data("erp_books", [{"title": "Emma"}])) == {"ok": True}
    assert json.loads(local_storage.get_item("erp_books")) == [{"title": "Emma"}]


def test_save_data_unserializable_reports_error(backend):
    result = asyncio.run(backend.save_data("erp_books", {"tags": {"a", "b"}}))
    assert result["ok"] is False
    assert "error" in result


def test_read_local_custom_default(backend):
    assert backend.read_local("erp_user_data", default=None) is None


def test_unicode_round_trip(backend):
    backend.write_local("erp_students", [{"name": "Zoë Ñúñez"}])
    assert backend.read_local("erp_students") == [{"name": "Zoë Ñúñez"}]


def test_local_storage_overwrite_and_remove(local_storage):
    local_storage.set_item("a", "2")
    local_storage.set_item("a", "3")
    assert local_storage.get_item("a") == "3"

    local_storage.remove_item("a")
    local_storage.remove_item("a")
    assert local_storage.get_item("a") is None


def test_normalize_email():
    assert normalize_email("  Asha@Example.COM ") == "asha@example.com"
    assert normalize_email("") is None
    assert normalize_email(None) is None


def test_natural_key_requires_every_field():
    assert natural_key("examinations", {"studentId": "ST1", "exam": "Mid", "subject": "Math"}) is None
    assert natural_key("examinations", {
        "studentId": "ST1", "exam": "Mid", "subject": "Math", "date": "2025-03-01",
    }) == ("ST1", "Mid", "Math", "2025-03-01")
    assert natural_key("fees", {"id": "F1"}) is None


def test_index_first_record_wins():
    index = NaturalKeyIndex("students")
    index.rebuild([
        {"email": "a@example.com"},
        {"email": "A@example.com"},
        {"email": "b@example.com"},
    ])
    assert len(index) == 2
    assert index.find({"email": "a@EXAMPLE.com"}) == 0
    assert index.find({"email": "c@example.com"}) is None
