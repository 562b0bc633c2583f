"""
Hostel API routes - hostels, rooms, bed allocation and suggestions.

Allocation follows the capacity rule: a room that is unknown or full
answers 409 and nothing is written. Releasing an unknown allocation is
a no-op that still answers 200 (released: false).
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from campus_erp.dependencies import get_store, get_notifier
from campus_erp.services import exports
from campus_erp.services.notifications import LogNotifier, NotificationLevel
from campus_erp.services.record_store import RecordStore

router = APIRouter()


# ── Pydantic schemas ─────────────────────────────────────────

class HostelForm(BaseModel):
    name: str
    gender: str = "Male"
    address: str = "Main Campus"


class RoomForm(BaseModel):
    hostelId: str
    roomNo: str = "101"
    capacity: int = Field(2, ge=0)


class AllocationRequest(BaseModel):
    """
    Allocation request. hostelId/roomId may be omitted to take the
    suggested room for the student's gender.
    """
    studentName: str
    studentId: str = ""
    gender: Optional[str] = None
    hostelId: Optional[str] = None
    roomId: Optional[str] = None


@router.get("/api/hostel")
async def get_hostel_data(store: RecordStore = Depends(get_store)):
    return store.hostel_snapshot()


@router.post("/api/hostel/hostels")
async def add_hostel(form: HostelForm, store: RecordStore = Depends(get_store)):
    return {"hostel": store.add_hostel(form.name, form.gender, form.address)}


@router.post("/api/hostel/rooms")
async def add_room(form: RoomForm, store: RecordStore = Depends(get_store)):
    return {"room": store.add_room(form.hostelId, form.roomNo, form.capacity)}


@router.get("/api/hostel/suggest")
async def suggest_room(gender: Optional[str] = Query(None, description="Hostel gender restriction"),
                 store: RecordStore = Depends(get_store)):
    return {"suggestion": store.suggest_room(gender)}


@router.post("/api/hostel/allocations")
async def allocate_bed(req: AllocationRequest,
                       store: RecordStore = Depends(get_store),
                       notifier: LogNotifier = Depends(get_notifier)):
    hostel_id, room_id = req.hostelId, req.roomId
    suggestion = None
    if not room_id:
        suggestion = store.suggest_room(req.gender)
        if suggestion is None:
            message = notifier.notify("No room with a free bed is available", NotificationLevel.ERROR)
            raise HTTPException(status_code=409, detail=message["message"])
        hostel_id, room_id = suggestion["hostelId"], suggestion["roomId"]

    if not store.allocate_bed(req.studentId, req.studentName, hostel_id, room_id, gender=req.gender):
        message = notifier.notify("Room is full or invalid", NotificationLevel.ERROR)
        raise HTTPException(status_code=409, detail=message["message"])

    allocation = store.hostel_snapshot()["allocations"][-1]
    notifier.notify("Allocated successfully", NotificationLevel.SUCCESS)
    return {"allocation": allocation, "suggestion": suggestion}


@router.delete("/api/hostel/allocations/{allocation_id}")
async def release_allocation(allocation_id: str,
                             store: RecordStore = Depends(get_store),
                             notifier: LogNotifier = Depends(get_notifier)):
    released = store.release_allocation(allocation_id)
    if released:
        notifier.notify("Allocation released", NotificationLevel.SUCCESS)
    return {"released": released}


@router.get("/api/hostel/summary")
async def hostel_summary(store: RecordStore = Depends(get_store)):
    return store.hostel_summary()


@router.get("/api/hostel/allocations.csv", response_class=PlainTextResponse)
async def export_allocations(store: RecordStore = Depends(get_store)):
    return PlainTextResponse(
        exports.allocations_csv(store),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="hostel_allocations.csv"'},
    )
