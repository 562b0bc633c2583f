"""
Hostel Service - room occupancy, bed allocation and room suggestion.

Operates on the hostel bundle persisted under erp_hostel_data:
    {"hostels": [{id, name, gender, address}],
     "rooms": [{id, hostelId, roomNo, capacity}],
     "allocations": [{id, studentId, studentName, hostelId, roomId, bedNo, gender?}]}

Rules:
1. A room's occupancy is the number of allocations pointing at it.
2. A bed can be allocated only if the room exists and occupancy < capacity.
3. The bed number is the lowest integer >= 1 not held in that room.
4. Suggestions rank rooms with vacancy by occupied / capacity, lowest
   first; equal ratios keep their original list order.

These functions never persist; RecordStore calls them and saves the bundle.
"""

from typing import List, Optional, TypedDict


class RoomSuggestion(TypedDict):
    roomId: str
    roomNo: str
    hostelId: str
    hostelName: str
    capacity: int
    occupied: int


def empty_bundle() -> dict:
    return {"hostels": [], "rooms": [], "allocations": []}


def coerce_bundle(data) -> dict:
    """Return a well-formed bundle from whatever was stored (missing lists -> [])."""
    bundle = empty_bundle()
    if isinstance(data, dict):
        for part in bundle:
            value = data.get(part)
            if isinstance(value, list):
                bundle[part] = value
    return bundle


def room_capacity(room: dict) -> int:
    """Capacity as a non-negative int; anything unparsable counts as 0."""
    try:
        capacity = int(room.get("capacity") or 0)
    except (TypeError, ValueError):
        return 0
    return max(capacity, 0)


def find_room(bundle: dict, room_id) -> Optional[dict]:
    return next((r for r in bundle["rooms"] if r.get("id") == room_id), None)


def find_hostel(bundle: dict, hostel_id) -> Optional[dict]:
    return next((h for h in bundle["hostels"] if h.get("id") == hostel_id), None)


def room_occupancy(bundle: dict, room_id) -> int:
    return sum(1 for a in bundle["allocations"] if a.get("roomId") == room_id)


def can_allocate(bundle: dict, room_id) -> bool:
    room = find_room(bundle, room_id)
    if room is None:
        return False
    return room_occupancy(bundle, room_id) < room_capacity(room)


def lowest_free_bed(bundle: dict, room_id) -> int:
    taken = {a.get("bedNo") for a in bundle["allocations"] if a.get("roomId") == room_id}
    bed_no = 1
    while bed_no in taken:
        bed_no += 1
    return bed_no


def suggest_room(bundle: dict, gender: Optional[str] = None) -> Optional[RoomSuggestion]:
    """
    Pick the least-occupied room with a free bed.

    Args:
        bundle: Hostel bundle
        gender: Restrict to hostels with this gender; None or "" means any hostel

    Returns:
        RoomSuggestion for the best room, or None if no eligible room has vacancy
    """
    hostels = {
        h.get("id"): h for h in bundle["hostels"]
        if not gender or h.get("gender") == gender
    }

    available: List[RoomSuggestion] = []
    for room in bundle["rooms"]:
        hostel = hostels.get(room.get("hostelId"))
        if hostel is None:
            continue
        capacity = room_capacity(room)
        occupied = room_occupancy(bundle, room.get("id"))
        if occupied >= capacity:
            continue
        available.append(RoomSuggestion(
            roomId=room.get("id"),
            roomNo=room.get("roomNo"),
            hostelId=room.get("hostelId"),
            hostelName=hostel.get("name") or room.get("hostelId"),
            capacity=capacity,
            occupied=occupied,
        ))

    if not available:
        return None
    # sorted() is stable, so equal ratios keep list order
    available = sorted(available, key=lambda s: s["occupied"] / s["capacity"])
    return available[0]


def occupancy_summary(bundle: dict) -> dict:
    """
    Aggregate occupancy figures for dashboards.

    Allocations without a recorded gender count as Male, matching how
    allocations created before gender was captured were reported.
    """
    total_beds = sum(room_capacity(r) for r in bundle["rooms"])
    occupied = len(bundle["allocations"])
    male = sum(1 for a in bundle["allocations"] if (a.get("gender") or "Male") == "Male")

    hostels = []
    for hostel in bundle["hostels"]:
        capacity = sum(room_capacity(r) for r in bundle["rooms"] if r.get("hostelId") == hostel.get("id"))
        hostel_occupied = sum(1 for a in bundle["allocations"] if a.get("hostelId") == hostel.get("id"))
        hostels.append({
            "hostelId": hostel.get("id"),
            "name": hostel.get("name"),
            "gender": hostel.get("gender"),
            "capacity": capacity,
            "occupied": hostel_occupied,
            "occupancyPct": round(hostel_occupied / capacity * 100) if capacity else 0,
        })

    return {
        "totalBeds": total_beds,
        "occupied": occupied,
        "occupancyPct": round(occupied / total_beds * 100) if total_beds else 0,
        "male": male,
        "female": occupied - male,
        "hostels": hostels,
    }
