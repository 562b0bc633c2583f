"""
Records API routes - collections, form submissions, import and export.

Provides endpoints for:
- Listing, deleting and exporting any collection
- Saving students, teachers, courses (upsert by natural key)
- Adding fees, attendance, assignments, books; recording fee payments
- Saving examination marks (upsert by student/exam/subject/date)
- Bulk CSV user import, a full JSON backup and its restore
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from campus_erp.dependencies import get_store, get_notifier, get_records
from campus_erp.services import exports
from campus_erp.services.notifications import LogNotifier, NotificationLevel
from campus_erp.services.record_store import RecordStore, UnknownCollectionError
from campus_erp.services.records import RecordsService
from campus_erp.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class FormModel(BaseModel):
    """Form payloads keep unknown fields; records are open-ended JSON."""
    model_config = ConfigDict(extra="allow")


class StudentForm(FormModel):
    name: str
    email: str
    studentId: Optional[str] = None
    course: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[str] = None
    year: Optional[str] = None


class TeacherForm(FormModel):
    name: str
    email: str
    department: Optional[str] = None
    subject: Optional[str] = None
    experience: Optional[int] = None


class CourseForm(FormModel):
    code: str
    name: str
    department: Optional[str] = None
    duration: Optional[str] = None
    credits: Optional[int] = None


class FeeForm(BaseModel):
    studentId: str
    amount: float = Field(..., ge=0)
    dueDate: str
    type: str = "tuition"


class AttendanceForm(BaseModel):
    studentId: str
    status: Literal["present", "absent", "late"]
    date: Optional[str] = None
    time: Optional[str] = None


class MarkForm(BaseModel):
    studentId: str
    exam: str
    subject: str
    marks: int = 0
    date: Optional[str] = None


class AssignmentForm(BaseModel):
    title: str
    course: str = ""
    dueDate: str = ""


class BookForm(BaseModel):
    title: str
    author: str = ""
    isbn: str = ""


def _clean(form: BaseModel) -> dict:
    return form.model_dump(exclude_none=True)


def _last_message(notifier: LogNotifier) -> Optional[dict]:
    recent = notifier.recent()
    return recent[0] if recent else None


def _require_collection(name: str):
    if name not in RecordStore.collection_names():
        raise HTTPException(status_code=404, detail="Unknown collection: {}".format(name))


# ── Collections ──────────────────────────────────────────────

@router.get("/api/collections")
async def list_collections(store: RecordStore = Depends(get_store)):
    return {
        "collections": [
            {"name": name, "count": len(store.get(name)), "loaded": store.is_loaded(name)}
            for name in store.collection_names()
        ]
    }


@router.get("/api/collections/{name}")
async def get_collection(name: str, store: RecordStore = Depends(get_store)):
    _require_collection(name)
    records = store.get(name)
    return {"collection": name, "count": len(records), "records": records}


@router.get("/api/collections/{name}/export.csv", response_class=PlainTextResponse)
async def export_collection(name: str, store: RecordStore = Depends(get_store)):
    _require_collection(name)
    return PlainTextResponse(
        exports.collection_csv(store, name),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="{}.csv"'.format(name)},
    )


@router.delete("/api/collections/{name}/{record_id}")
async def delete_record(name: str, record_id: str,
                        records: RecordsService = Depends(get_records)):
    try:
        removed = records.delete_record(name, record_id)
    except UnknownCollectionError:
        raise HTTPException(status_code=404, detail="Unknown collection: {}".format(name))
    return {"removed": removed}


# ── Forms ────────────────────────────────────────────────────

@router.post("/api/students")
async def save_student(form: StudentForm,
                       records: RecordsService = Depends(get_records),
                       notifier: LogNotifier = Depends(get_notifier)):
    record, created = records.save_student(_clean(form))
    return {"record": record, "created": created, "notification": _last_message(notifier)}


@router.post("/api/teachers")
async def save_teacher(form: TeacherForm,
                       records: RecordsService = Depends(get_records),
                       notifier: LogNotifier = Depends(get_notifier)):
    record, created = records.save_teacher(_clean(form))
    return {"record": record, "created": created, "notification": _last_message(notifier)}


@router.post("/api/courses")
async def save_course(form: CourseForm,
                      records: RecordsService = Depends(get_records),
                      notifier: LogNotifier = Depends(get_notifier)):
    record, created = records.save_course(_clean(form))
    return {"record": record, "created": created, "notification": _last_message(notifier)}


@router.post("/api/fees")
async def add_fee(form: FeeForm,
                  records: RecordsService = Depends(get_records),
                  notifier: LogNotifier = Depends(get_notifier)):
    record = records.add_fee(form.studentId, form.amount, form.dueDate, form.type)
    return {"record": record, "notification": _last_message(notifier)}


@router.post("/api/fees/{fee_id}/pay")
async def pay_fee(fee_id: str,
                  records: RecordsService = Depends(get_records),
                  notifier: LogNotifier = Depends(get_notifier)):
    record = records.record_fee_payment(fee_id)
    return {"record": record, "updated": record is not None,
            "notification": _last_message(notifier) if record else None}


@router.post("/api/attendance")
async def mark_attendance(form: AttendanceForm,
                          records: RecordsService = Depends(get_records),
                          notifier: LogNotifier = Depends(get_notifier)):
    record = records.mark_attendance(form.studentId, form.status, form.date, form.time)
    return {"record": record,
            "attendance": records.attendance_percentage(form.studentId),
            "notification": _last_message(notifier)}


@router.post("/api/examinations/marks")
async def save_mark(form: MarkForm,
                    records: RecordsService = Depends(get_records),
                    notifier: LogNotifier = Depends(get_notifier)):
    record = records.save_mark(form.studentId, form.exam, form.subject, form.marks, form.date)
    if record is None:
        raise HTTPException(status_code=400, detail=_last_message(notifier)["message"])
    return {"record": record, "notification": _last_message(notifier)}


@router.post("/api/assignments")
async def add_assignment(form: AssignmentForm,
                         records: RecordsService = Depends(get_records),
                         notifier: LogNotifier = Depends(get_notifier)):
    record = records.add_assignment(form.title, form.course, form.dueDate)
    if record is None:
        raise HTTPException(status_code=400, detail="Assignment title required")
    return {"record": record, "notification": _last_message(notifier)}


@router.post("/api/books")
async def add_book(form: BookForm,
                   records: RecordsService = Depends(get_records),
                   notifier: LogNotifier = Depends(get_notifier)):
    record = records.add_book(form.title, form.author, form.isbn)
    if record is None:
        raise HTTPException(status_code=400, detail="Book title required")
    return {"record": record, "notification": _last_message(notifier)}


# ── Import / export ──────────────────────────────────────────

@router.post("/api/import/users")
async def import_users(request: Request,
                       records: RecordsService = Depends(get_records)):
    """
    Bulk import students and teachers.

    Body is CSV (text/csv) with at least name, email and type columns.
    """
    csv_text = (await request.body()).decode("utf-8", errors="replace")
    summary = records.bulk_import_users(csv_text)
    log_with_context(logger, "INFO", "User import request processed", extra_data=summary)
    return summary


@router.get("/api/backup")
async def get_backup(store: RecordStore = Depends(get_store)):
    return exports.backup(store)


@router.post("/api/backup/restore")
async def restore_backup(document: dict,
                         store: RecordStore = Depends(get_store),
                         notifier: LogNotifier = Depends(get_notifier)):
    """
    Replace the stored data with a backup from GET /api/backup.

    Collections missing from the document are emptied; the session
    profile is left alone.
    """
    summary = exports.restore(store, document)
    notifier.notify("Backup restored", NotificationLevel.SUCCESS)
    return {**summary, "notification": _last_message(notifier)}
