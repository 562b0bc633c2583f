import json

import pytest

from campus_erp.services.file_mirror import FileMirror, MirrorError, sanitize_key


def test_sanitize_key():
    assert sanitize_key("erp_students") == "erp_students"
    assert sanitize_key("../../etc/passwd") == "etcpasswd"
    assert sanitize_key("a b.c-d") == "abc-d"
    assert sanitize_key(None) == ""


def test_write_creates_directory_and_pretty_json(tmp_path):
    mirror = FileMirror(str(tmp_path / "data"))

    result = mirror.write("erp_books", [{"title": "Cien años"}])

    assert result == {"ok": True, "file": "data/erp_books.json"}
    text = (tmp_path / "data" / "erp_books.json").read_text(encoding="utf-8")
    assert "Cien años" in text
    assert text.startswith("[\n    {")


def test_write_truncates_previous_content(tmp_path):
    mirror = FileMirror(str(tmp_path))
    mirror.write("erp_books", [{"title": "A much longer title than the next one"}])
    mirror.write("erp_books", [])

    assert json.loads((tmp_path / "erp_books.json").read_text()) == []


def test_read_missing_file_is_empty_list(tmp_path):
    assert FileMirror(str(tmp_path)).read("erp_fees") == []


def test_read_round_trip(tmp_path):
    mirror = FileMirror(str(tmp_path))
    mirror.write("erp_hostel_data", {"hostels": [], "rooms": [], "allocations": []})
    assert mirror.read("erp_hostel_data") == {"hostels": [], "rooms": [], "allocations": []}


def test_read_corrupt_file_returns_diagnostic(tmp_path):
    (tmp_path / "erp_fees.json").write_text("{oops", encoding="utf-8")
    assert FileMirror(str(tmp_path)).read("erp_fees") == {"error": "Corrupt JSON file", "raw": "{oops"}


def test_read_non_utf8_file_returns_diagnostic(tmp_path):
    (tmp_path / "erp_students.json").write_bytes(b'[{"name": "\xff\xfe"}')

    result = FileMirror(str(tmp_path)).read("erp_students")

    assert result["error"] == "Corrupt JSON file"
    assert result["raw"].startswith('[{"name": "')
    assert "\ufffd" in result["raw"]


def test_invalid_keys_are_rejected(tmp_path):
    mirror = FileMirror(str(tmp_path))

    with pytest.raises(MirrorError) as read_error:
        mirror.read("../..")
    with pytest.raises(MirrorError) as write_error:
        mirror.write("", [])

    assert (read_error.value.status_code, read_error.value.message) == (400, "Missing or invalid key")
    assert (write_error.value.status_code, write_error.value.message) == (400, "Invalid key")
