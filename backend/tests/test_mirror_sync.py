import asyncio

import httpx

from campus_erp.services.mirror_client import MirrorClient
from campus_erp.services.persistence import PersistenceBackend
from campus_erp.services.record_store import RecordStore


def test_overlay_replaces_collection_and_local_copy(mirrored_store, fake_mirror, local_storage):
    remote = [{"id": "S9", "name": "Remote", "email": "remote@example.com"}]
    fake_mirror.files["erp_students"] = remote

    applied = asyncio.run(mirrored_store.load_remote_overlay(["students"]))

    assert applied == {"students": True}
    assert mirrored_store.get("students") == remote
    fresh = RecordStore(PersistenceBackend(local_storage))
    assert fresh.load("students") == remote


def test_overlay_does_not_echo_back_to_mirror(mirrored_store, fake_mirror):
    fake_mirror.files["erp_students"] = [{"id": "S9", "email": "remote@example.com"}]
    asyncio.run(mirrored_store.load_remote_overlay(["students"]))
    assert fake_mirror.saves == []


def test_overlay_ignores_empty_and_non_array(mirrored_store, fake_mirror):
    mirrored_store.upsert("students", {"name": "Local", "email": "local@example.com"})
    mirrored_store.upsert("attendance", {"studentId": "S1", "status": "present"})
    fake_mirror.files["erp_students"] = []
    fake_mirror.files["erp_attendance"] = {"not": "a list"}

    applied = asyncio.run(mirrored_store.load_remote_overlay(["students", "attendance"]))

    assert applied == {"students": False, "attendance": False}
    assert [s["name"] for s in mirrored_store.get("students")] == ["Local"]
    assert len(mirrored_store.get("attendance")) == 1


def test_overlay_ignores_array_of_non_objects(mirrored_store, fake_mirror):
    mirrored_store.upsert("students", {"name": "Local", "email": "local@example.com"})
    fake_mirror.files["erp_students"] = [1, "x", None]

    applied = asyncio.run(mirrored_store.load_remote_overlay(["students"]))

    assert applied == {"students": False}
    assert [s["name"] for s in mirrored_store.get("students")] == ["Local"]


def test_overlay_with_mirror_down_keeps_local(mirrored_store, fake_mirror):
    mirrored_store.upsert("students", {"name": "Local", "email": "local@example.com"})
    fake_mirror.down = True

    applied = asyncio.run(mirrored_store.load_remote_overlay())

    assert not any(applied.values())
    assert len(mirrored_store.get("students")) == 1


def test_overlay_without_mirror_is_skipped(store):
    assert asyncio.run(store.load_remote_overlay(["students"])) == {"students": False}


def test_stale_overlay_does_not_clobber_local_edit(local_storage, id_factory):
    async def scenario():
        gate = asyncio.Event()

        async def handler(request):
            if request.url.path == "/save_data":
                return httpx.Response(200, json={"ok": True, "file": "data/x.json"})
            await gate.wait()
            return httpx.Response(200, json=[{"id": "S9", "name": "Remote", "email": "remote@example.com"}])

        mirror = MirrorClient("http://mirror.test", transport=httpx.MockTransport(handler))
        store = RecordStore(PersistenceBackend(local_storage, mirror), id_factory=id_factory)
        store.load_all()

        overlay = asyncio.create_task(store.load_remote_overlay(["students"]))
        await asyncio.sleep(0)
        store.upsert("students", {"name": "Local", "email": "local@example.com"})
        gate.set()

        applied = await overlay
        await store.drain()
        return store, applied

    store, applied = asyncio.run(scenario())

    assert applied == {"students": False}
    assert [s["name"] for s in store.get("students")] == ["Local"]


def test_persist_mirrors_without_event_loop(mirrored_store, fake_mirror):
    mirrored_store.upsert("students", {"name": "Asha", "email": "asha@example.com"})
    assert fake_mirror.files["erp_students"] == mirrored_store.get("students")


def test_mirror_failure_is_swallowed(mirrored_store, fake_mirror, backend):
    fake_mirror.down = True
    record, created = mirrored_store.upsert("students", {"name": "Asha", "email": "asha@example.com"})

    assert created
    assert backend.read_local("erp_students") == [record]
    assert "erp_students" not in fake_mirror.files


def test_queued_mirror_writes_collapse_to_latest(mirrored_store, fake_mirror):
    async def scenario():
        mirrored_store.upsert("books", {"title": "Dune"})
        mirrored_store.upsert("books", {"title": "Emma"})
        await mirrored_store.drain()

    asyncio.run(scenario())

    assert fake_mirror.saves == ["erp_books"]
    assert [b["title"] for b in fake_mirror.files["erp_books"]] == ["Dune", "Emma"]


def test_hostel_bundle_is_mirrored(mirrored_store, fake_mirror):
    h = mirrored_store.add_hostel("A Block", "Male", "North")
    assert fake_mirror.files["erp_hostel_data"]["hostels"] == [h]


def test_mirror_client_treats_error_object_as_failure():
    def handler(request):
        return httpx.Response(200, json={"error": "Corrupt JSON file", "raw": "{oops"})

    client = MirrorClient("http://mirror.test", transport=httpx.MockTransport(handler))
    assert asyncio.run(client.get_data("erp_students")) is None


def test_mirror_client_save_reports_http_errors():
    def handler(request):
        return httpx.Response(500, json={"error": "Unable to lock file"})

    client = MirrorClient("http://mirror.test", transport=httpx.MockTransport(handler))
    result = asyncio.run(client.save_data("erp_students", []))
    assert result["ok"] is False
