"""
Record Store - the authoritative in-memory snapshot of every collection.

Lifecycle of a collection:
1. load(): read the JSON array from local storage (corrupt/absent -> [])
2. load_remote_overlay(): optionally replace it with the mirror's copy
3. upsert()/remove()/update(): mutate in memory, synchronously, in order
4. persist(): write the whole array back to local storage, then queue a
   best-effort mirror write

Overlay guard: every local mutation bumps the collection's version. The
overlay captures the version before it fetches and only applies the
response if the version is unchanged when it arrives, so a slow mirror
response never overwrites a newer local edit.

Mirror writes are fire-and-forget. When several writes for one key are
queued before the first one starts, only the newest is sent.

The hostel bundle, session profile and admin settings live under their
own keys next to the collections.
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from campus_erp.services import hostel
from campus_erp.services.hostel import RoomSuggestion
from campus_erp.services.natural_keys import NaturalKeyIndex, natural_key
from campus_erp.services.persistence import PersistenceBackend
from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("store")
hostel_logger = get_logger("hostel")

# ──────────────────────────────────────────────────────────────
# Storage keys
# ──────────────────────────────────────────────────────────────
COLLECTION_KEYS: Dict[str, str] = {
    "students": "erp_students",
    "teachers": "erp_teachers",
    "courses": "erp_courses",
    "attendance": "erp_attendance",
    "fees": "erp_fees",
    "examinations": "erp_examinations",
    "assignments": "erp_assignments",
    "books": "erp_books",
}
HOSTEL_KEY = "erp_hostel_data"
PROFILE_KEY = "erp_user_data"
SETTINGS_KEY = "erp_admin_settings"

# Collections the mirror is consulted for at startup
OVERLAY_COLLECTIONS = ("students", "examinations", "attendance", "assignments")

# Field that identifies a record for delete/update; courses have no id
RECORD_ID_FIELDS = {"courses": "code"}

ID_PREFIXES = {
    "students": "S",
    "teachers": "T",
    "attendance": "ATT",
    "fees": "F",
    "examinations": "E",
    "assignments": "ASG",
    "books": "B",
    "hostels": "H",
    "rooms": "R",
    "allocations": "A",
}

DEFAULT_SETTINGS = {
    "schoolName": "Astra School",
    "academicYear": "2024-2025",
    "semester": "Spring",
    "timezone": "UTC+0",
    "language": "English",
    "currency": "USD",
}


class UnknownCollectionError(KeyError):
    """Raised when an operation names a collection the store does not own."""


def utc_now_iso() -> str:
    """Current UTC time as 2024-01-15T10:00:00.000Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def default_id_factory(prefix: str) -> str:
    return prefix + uuid.uuid4().hex


def record_id_field(collection: str) -> str:
    return RECORD_ID_FIELDS.get(collection, "id")


def is_record_list(data) -> bool:
    """True for a JSON array whose every element is an object."""
    return isinstance(data, list) and all(isinstance(r, dict) for r in data)


class RecordStore:
    """Named collections of JSON records with local + mirrored persistence."""

    def __init__(self, backend: PersistenceBackend,
                 id_factory: Callable[[str], str] = default_id_factory):
        self.backend = backend
        self._id_factory = id_factory
        self._collections: Dict[str, List[dict]] = {name: [] for name in COLLECTION_KEYS}
        self._indexes: Dict[str, NaturalKeyIndex] = {name: NaturalKeyIndex(name) for name in COLLECTION_KEYS}
        self._versions: Dict[str, int] = {name: 0 for name in COLLECTION_KEYS}
        self._loaded = set()
        self._hostel = hostel.empty_bundle()
        self._mirror_seq: Dict[str, int] = {}
        self._pending = set()

    # ── Introspection ────────────────────────────────────────

    def _check(self, name: str):
        if name not in COLLECTION_KEYS:
            raise UnknownCollectionError(name)

    @staticmethod
    def collection_names() -> List[str]:
        return list(COLLECTION_KEYS)

    def is_loaded(self, name: str) -> bool:
        self._check(name)
        return name in self._loaded

    def version(self, name: str) -> int:
        self._check(name)
        return self._versions[name]

    def get(self, name: str) -> List[dict]:
        """Snapshot (deep copy) of a collection."""
        self._check(name)
        return copy.deepcopy(self._collections[name])

    def find(self, name: str, predicate: Callable[[dict], bool]) -> Optional[dict]:
        self._check(name)
        match = next((r for r in self._collections[name] if predicate(r)), None)
        return copy.deepcopy(match) if match is not None else None

    def find_by_id(self, name: str, record_id) -> Optional[dict]:
        field = record_id_field(name)
        return self.find(name, lambda r: _same_id(r.get(field), record_id))

    def _touch(self, name: str):
        self._versions[name] += 1

    # ── Loading ──────────────────────────────────────────────

    def load(self, name: str) -> List[dict]:
        """
        Load a collection from local storage.

        Absent, corrupt or non-array payloads load as an empty collection;
        the persistence backend logs the parse failure.
        """
        self._check(name)
        key = COLLECTION_KEYS[name]
        data = self.backend.read_local(key)
        if not is_record_list(data):
            log_with_context(logger, "WARNING", "Stored value for {} is not an array of objects".format(key),
                             context={"collection": name},
                             extra_data={"type": type(data).__name__})
            data = []

        self._collections[name] = data
        self._indexes[name].rebuild(data)
        self._loaded.add(name)
        log_with_context(logger, "DEBUG", "Loaded {} records into {}".format(len(data), name),
                         context={"collection": name})
        return copy.deepcopy(data)

    def load_all(self):
        for name in COLLECTION_KEYS:
            self.load(name)
        self.load_hostel_data()

    async def load_remote_overlay(self, names: Iterable[str] = OVERLAY_COLLECTIONS) -> Dict[str, bool]:
        """
        Replace collections with the mirror's copy where it has one.

        A collection is replaced only when the mirror returns a non-empty
        array and no local mutation happened to it while the fetch was in
        flight. Returns {collection: applied}.
        """
        names = list(names)
        for name in names:
            self._check(name)

        if not self.backend.has_mirror:
            log_with_context(logger, "DEBUG", "No mirror configured, skipping overlay")
            return {name: False for name in names}

        async def overlay_one(name, started_version):
            data = await self.backend.fetch_remote(COLLECTION_KEYS[name])
            return self._apply_overlay(name, data, started_version)

        # Versions are captured here, before any fetch is scheduled
        results = await asyncio.gather(*(overlay_one(n, self._versions[n]) for n in names))
        applied = dict(zip(names, results))

        log_with_context(logger, "INFO",
                         "Remote overlay finished: {} of {} collections applied".format(
                             sum(applied.values()), len(names)),
                         extra_data={"applied": applied})
        return applied

    def _apply_overlay(self, name: str, data, started_version: int) -> bool:
        if not data:
            return False
        if not is_record_list(data):
            log_with_context(logger, "WARNING", "Ignoring malformed overlay for {}".format(name),
                             context={"collection": name},
                             extra_data={"type": type(data).__name__})
            return False

        if self._versions[name] != started_version:
            log_with_context(logger, "WARNING",
                             "Discarding stale overlay for {}: local edits happened during fetch".format(name),
                             context={"collection": name},
                             extra_data={"started_version": started_version,
                                         "current_version": self._versions[name]})
            return False

        self._collections[name] = data
        self._indexes[name].rebuild(data)
        self._loaded.add(name)
        self._touch(name)
        # Local copy only; echoing the overlay back to the mirror is pointless
        self.backend.write_local(COLLECTION_KEYS[name], data)
        log_with_context(logger, "INFO", "Applied remote overlay to {}".format(name),
                         context={"collection": name},
                         extra_data={"records": len(data)})
        return True

    # ── Mutation ─────────────────────────────────────────────

    def upsert(self, name: str, record: dict,
               match: Optional[Callable[[dict], bool]] = None) -> Tuple[dict, bool]:
        """
        Update the matching record in place, or append a new one.

        Args:
            name: Collection name
            record: Fields to write
            match: Optional predicate; defaults to the collection's natural
                key, falling back to the record id

        Returns:
            (stored record copy, created)
        """
        self._check(name)
        records = self._collections[name]
        index = self._indexes[name]
        incoming = dict(record)
        id_field = record_id_field(name)

        if match is not None:
            position = next((i for i, r in enumerate(records) if match(r)), None)
        else:
            position = index.find(incoming)
            if position is None and incoming.get(id_field) not in (None, ""):
                position = next((i for i, r in enumerate(records)
                                 if _same_id(r.get(id_field), incoming[id_field])), None)

        if position is not None:
            existing = records[position]
            before = natural_key(name, existing)
            # The stored identifier survives a merge
            if id_field == "id":
                incoming.pop("id", None)
            existing.update(incoming)
            if natural_key(name, existing) != before:
                index.rebuild(records)
            stored, created = existing, False
        else:
            if id_field == "id" and incoming.get("id") in (None, ""):
                incoming["id"] = self._id_factory(ID_PREFIXES.get(name, ""))
            records.append(incoming)
            index.add(incoming, len(records) - 1)
            stored, created = incoming, True

        self._touch(name)
        log_with_context(logger, "INFO",
                         "{} {} record".format("Inserted" if created else "Updated", name),
                         context={"collection": name, "record_id": stored.get(id_field)})
        self.persist(name)
        return copy.deepcopy(stored), created

    def update(self, name: str, record_id, changes: dict) -> Optional[dict]:
        """Patch the record with the given id. Returns None if it does not exist."""
        self._check(name)
        field = record_id_field(name)
        records = self._collections[name]
        target = next((r for r in records if _same_id(r.get(field), record_id)), None)
        if target is None:
            return None

        before = natural_key(name, target)
        patch = {k: v for k, v in changes.items() if k != field}
        target.update(patch)
        if natural_key(name, target) != before:
            self._indexes[name].rebuild(records)
        self._touch(name)
        self.persist(name)
        return copy.deepcopy(target)

    def remove(self, name: str, predicate: Callable[[dict], bool]) -> int:
        """Drop every record matching predicate. Returns how many were removed."""
        self._check(name)
        records = self._collections[name]
        kept = [r for r in records if not predicate(r)]
        removed = len(records) - len(kept)

        self._collections[name] = kept
        self._indexes[name].rebuild(kept)
        self._touch(name)
        if removed:
            log_with_context(logger, "INFO", "Removed {} {} record(s)".format(removed, name),
                             context={"collection": name})
        self.persist(name)
        return removed

    def remove_by_id(self, name: str, record_id) -> int:
        field = record_id_field(name)
        return self.remove(name, lambda r: _same_id(r.get(field), record_id))

    def replace(self, name: str, records: List[dict]):
        """Swap a whole collection (backup restore) and persist it."""
        self._check(name)
        if not is_record_list(records):
            raise ValueError("{} must be an array of objects".format(name))
        self._collections[name] = copy.deepcopy(records)
        self._indexes[name].rebuild(self._collections[name])
        self._loaded.add(name)
        self._touch(name)
        self.persist(name)

    # ── Persistence ──────────────────────────────────────────

    def persist(self, name: str) -> dict:
        """Write the whole collection locally and queue a mirror write."""
        self._check(name)
        return self._persist_key(COLLECTION_KEYS[name], self._collections[name])

    def _persist_key(self, key: str, data) -> dict:
        snapshot = copy.deepcopy(data)
        result = self.backend.write_local(key, snapshot)
        self._schedule_mirror_write(key, snapshot)
        return result

    def _schedule_mirror_write(self, key: str, data):
        if not self.backend.has_mirror:
            return
        seq = self._mirror_seq.get(key, 0) + 1
        self._mirror_seq[key] = seq
        coro = self._mirror_write(key, data, seq)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous caller (CLI, worker thread): send inline
            asyncio.run(coro)
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _mirror_write(self, key: str, data, seq: int):
        if self._mirror_seq.get(key) != seq:
            log_with_context(logger, "DEBUG", "Skipping superseded mirror write for {}".format(key),
                             context={"key": key}, extra_data={"seq": seq})
            return
        await self.backend.save_remote(key, data)

    async def drain(self):
        """Wait for every queued mirror write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ── Hostel ───────────────────────────────────────────────

    def load_hostel_data(self) -> dict:
        data = self.backend.read_local(HOSTEL_KEY, default=None)
        self._hostel = hostel.coerce_bundle(data)
        return self.hostel_snapshot()

    def persist_hostel(self) -> dict:
        return self._persist_key(HOSTEL_KEY, self._hostel)

    def replace_hostel(self, data) -> dict:
        """Swap the whole hostel bundle (backup restore) and persist it."""
        self._hostel = hostel.coerce_bundle(copy.deepcopy(data))
        self.persist_hostel()
        return self.hostel_snapshot()

    def hostel_snapshot(self) -> dict:
        return copy.deepcopy(self._hostel)

    def add_hostel(self, name: str, gender: str = "Male", address: str = "Main Campus") -> dict:
        record = {"id": self._id_factory(ID_PREFIXES["hostels"]), "name": name,
                  "gender": gender, "address": address}
        self._hostel["hostels"].append(record)
        self.persist_hostel()
        log_with_context(hostel_logger, "INFO", "Added hostel {}".format(name),
                         context={"hostel_id": record["id"]})
        return dict(record)

    def add_room(self, hostel_id: str, room_no: str, capacity: int = 2) -> dict:
        record = {"id": self._id_factory(ID_PREFIXES["rooms"]), "hostelId": hostel_id,
                  "roomNo": room_no, "capacity": max(int(capacity), 0)}
        self._hostel["rooms"].append(record)
        self.persist_hostel()
        log_with_context(hostel_logger, "INFO", "Added room {}".format(room_no),
                         context={"hostel_id": hostel_id, "room_id": record["id"]},
                         extra_data={"capacity": record["capacity"]})
        return dict(record)

    def allocate_bed(self, student_id, student_name: str, hostel_id, room_id,
                     gender: Optional[str] = None) -> bool:
        """
        Put a student in the lowest free bed of a room.

        Returns False, leaving state untouched, when the room is unknown or
        already at capacity.
        """
        bundle = self._hostel
        if not hostel.can_allocate(bundle, room_id):
            log_with_context(hostel_logger, "INFO", "Allocation refused: room unknown or full",
                             context={"room_id": room_id, "student_id": student_id})
            return False

        room = hostel.find_room(bundle, room_id)
        allocation = {
            "id": self._id_factory(ID_PREFIXES["allocations"]),
            "studentId": student_id,
            "studentName": student_name,
            "hostelId": hostel_id or room.get("hostelId"),
            "roomId": room_id,
            "bedNo": hostel.lowest_free_bed(bundle, room_id),
        }
        if gender:
            allocation["gender"] = gender
        bundle["allocations"].append(allocation)
        self.persist_hostel()

        log_with_context(hostel_logger, "INFO", "Allocated bed {} to {}".format(allocation["bedNo"], student_name),
                         context={"room_id": room_id, "student_id": student_id,
                                  "allocation_id": allocation["id"]})
        return True

    def release_allocation(self, allocation_id) -> bool:
        """Remove an allocation. Unknown ids are a silent no-op."""
        allocations = self._hostel["allocations"]
        kept = [a for a in allocations if not _same_id(a.get("id"), allocation_id)]
        if len(kept) == len(allocations):
            return False
        self._hostel["allocations"] = kept
        self.persist_hostel()
        log_with_context(hostel_logger, "INFO", "Released allocation",
                         context={"allocation_id": allocation_id})
        return True

    def suggest_room(self, gender: Optional[str] = None) -> Optional[RoomSuggestion]:
        return hostel.suggest_room(self._hostel, gender)

    def room_occupancy(self, room_id) -> int:
        return hostel.room_occupancy(self._hostel, room_id)

    def hostel_summary(self) -> dict:
        return hostel.occupancy_summary(self._hostel)

    # ── Session profile & settings ───────────────────────────

    def get_profile(self) -> Optional[dict]:
        profile = self.backend.read_local(PROFILE_KEY, default=None)
        return profile if isinstance(profile, dict) else None

    def save_profile(self, profile: dict) -> dict:
        data = dict(profile)
        if data.get("email"):
            data["email"] = str(data["email"]).strip().lower()
        if data.get("fullName"):
            data["fullName"] = str(data["fullName"]).strip()
        data.setdefault("loginTime", utc_now_iso())
        self.backend.write_local(PROFILE_KEY, data)
        return data

    def clear_profile(self):
        self.backend.remove_local(PROFILE_KEY)

    def get_settings(self) -> dict:
        saved = self.backend.read_local(SETTINGS_KEY, default=None)
        settings = dict(DEFAULT_SETTINGS)
        if isinstance(saved, dict):
            settings.update(saved)
        return settings

    def save_settings(self, changes: dict) -> dict:
        settings = self.get_settings()
        settings.update(changes)
        self.backend.write_local(SETTINGS_KEY, settings)
        return settings

    def reset(self):
        """Clear every collection, the profile and the settings (local only)."""
        for name, key in COLLECTION_KEYS.items():
            self._collections[name] = []
            self._indexes[name].rebuild([])
            self._touch(name)
            self.backend.remove_local(key)
        self.backend.remove_local(PROFILE_KEY)
        self.backend.remove_local(SETTINGS_KEY)
        log_with_context(logger, "INFO", "Local data reset")


def _same_id(left, right) -> bool:
    """Ids may be numeric in older data and strings in URLs."""
    if left is None or right is None:
        return False
    return str(left) == str(right)
