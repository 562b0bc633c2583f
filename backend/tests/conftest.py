import itertools
import json

import httpx
import pytest

from campus_erp.database import make_engine, make_session_factory, create_tables
from campus_erp.services.local_storage import LocalStorage
from campus_erp.services.mirror_client import MirrorClient
from campus_erp.services.notifications import LogNotifier
from campus_erp.services.persistence import PersistenceBackend
from campus_erp.services.record_store import RecordStore, HOSTEL_KEY
from campus_erp.services.records import RecordsService


class FakeMirror:
    """In-memory stand-in for the /get_data + /save_data endpoints."""

    def __init__(self):
        self.files = {}
        self.saves = []
        self.down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("mirror unreachable", request=request)
        if request.url.path == "/get_data":
            return httpx.Response(200, json=self.files.get(request.url.params.get("key"), []))
        if request.url.path == "/save_data":
            body = json.loads(request.content)
            self.files[body["key"]] = body["data"]
            self.saves.append(body["key"])
            return httpx.Response(200, json={"ok": True, "file": "data/{}.json".format(body["key"])})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> MirrorClient:
        return MirrorClient("http://mirror.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def local_storage(engine):
    return LocalStorage(make_session_factory(engine))


@pytest.fixture
def backend(local_storage):
    return PersistenceBackend(local_storage)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda prefix: "{}{}".format(prefix, next(counter))


@pytest.fixture
def store(backend, id_factory):
    store = RecordStore(backend, id_factory=id_factory)
    store.load_all()
    return store


@pytest.fixture
def fake_mirror():
    return FakeMirror()


@pytest.fixture
def mirrored_store(local_storage, fake_mirror, id_factory):
    store = RecordStore(PersistenceBackend(local_storage, fake_mirror.client()), id_factory=id_factory)
    store.load_all()
    return store


@pytest.fixture
def notifier():
    return LogNotifier()


@pytest.fixture
def records(store, notifier):
    return RecordsService(store, notifier)


@pytest.fixture
def seed_hostel(store, backend):
    """Write a hostel bundle to storage and load it into the store."""
    def seed(hostels, rooms, allocations=None):
        backend.write_local(HOSTEL_KEY, {
            "hostels": hostels,
            "rooms": rooms,
            "allocations": allocations or [],
        })
        store.load_hostel_data()
        return store
    return seed
