"""
Records Service - form and import handlers on top of the Record Store.

Each handler turns a submitted form into a store mutation:
- students / teachers: upsert by email, stamped active on creation
- courses: upsert by course code
- examination marks: upsert by (studentId, exam, subject, date)
- fees, attendance, assignments, books: always inserted
- bulk user import from CSV (name, email, type, ...)

Denormalized names (studentName on fees and attendance) are looked up at
write time and never refreshed afterwards. Outcomes are reported through
the injected Notifier.
"""

import csv
import io
from datetime import date as Date
from typing import Optional, Tuple

from campus_erp.services.natural_keys import natural_key
from campus_erp.services.notifications import Notifier, NotificationLevel
from campus_erp.services.record_store import RecordStore, utc_now_iso
from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("records")

ATTENDED_STATUSES = ("present", "late")


def _to_int(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class RecordsService:
    """Form handlers bound to one store and one notifier."""

    def __init__(self, store: RecordStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier

    # ── Lookups ──────────────────────────────────────────────

    def find_student(self, student_id) -> Optional[dict]:
        """Match on the roll number (studentId) first, then the internal id."""
        if student_id in (None, ""):
            return None
        wanted = str(student_id)
        return (self.store.find("students", lambda s: str(s.get("studentId")) == wanted)
                or self.store.find("students", lambda s: str(s.get("id")) == wanted))

    def _student_name(self, student_id) -> str:
        student = self.find_student(student_id)
        return student.get("name", "Unknown") if student else "Unknown"

    def _upsert_with_defaults(self, collection: str, form: dict, defaults: dict) -> Tuple[dict, bool]:
        """Upsert by natural key; defaults apply only when a new record is created."""
        key = natural_key(collection, form)
        exists = key is not None and self.store.find(
            collection, lambda r: natural_key(collection, r) == key) is not None
        payload = form if exists else {**defaults, **form}
        return self.store.upsert(collection, payload)

    def _save_keyed(self, collection: str, form: dict, defaults: dict, label: str) -> Tuple[dict, bool]:
        record, created = self._upsert_with_defaults(collection, form, defaults)
        self.notifier.notify("{} {} successfully!".format(label, "added" if created else "updated"),
                             NotificationLevel.SUCCESS)
        return record, created

    # ── People & courses ─────────────────────────────────────

    def save_student(self, form: dict) -> Tuple[dict, bool]:
        return self._save_keyed("students", form,
                                {"status": "active", "enrollmentDate": utc_now_iso()},
                                "Student")

    def save_teacher(self, form: dict) -> Tuple[dict, bool]:
        form = dict(form)
        if "experience" in form:
            form["experience"] = _to_int(form["experience"])
        return self._save_keyed("teachers", form,
                                {"status": "active", "joinDate": utc_now_iso()},
                                "Teacher")

    def save_course(self, form: dict) -> Tuple[dict, bool]:
        form = dict(form)
        if "credits" in form:
            form["credits"] = _to_int(form["credits"])
        return self._save_keyed("courses", form, {}, "Course")

    # ── Fees ─────────────────────────────────────────────────

    def add_fee(self, student_id, amount: float, due_date: str, fee_type: str = "tuition") -> dict:
        record, _ = self.store.upsert("fees", {
            "studentId": student_id,
            "studentName": self._student_name(student_id),
            "amount": float(amount),
            "dueDate": due_date,
            "type": fee_type,
            "status": "pending",
            "createdDate": utc_now_iso(),
        })
        self.notifier.notify("Fee record added successfully!", NotificationLevel.SUCCESS)
        return record

    def record_fee_payment(self, fee_id) -> Optional[dict]:
        """Mark a fee paid. Unknown ids return None without a message."""
        record = self.store.update("fees", fee_id, {"status": "paid", "paidDate": utc_now_iso()})
        if record is not None:
            self.notifier.notify("Payment recorded for {}".format(record.get("studentName", fee_id)),
                                 NotificationLevel.SUCCESS)
        return record

    # ── Attendance ───────────────────────────────────────────

    def mark_attendance(self, student_id, status: str, on: Optional[str] = None,
                        at: Optional[str] = None) -> dict:
        record, _ = self.store.upsert("attendance", {
            "studentId": student_id,
            "studentName": self._student_name(student_id),
            "status": status,
            "date": on or Date.today().isoformat(),
            "time": at or "",
        })
        self.refresh_attendance_percentage(student_id)
        self.notifier.notify("Attendance marked {} for {}".format(status, record["studentName"]),
                             NotificationLevel.SUCCESS)
        return record

    def attendance_percentage(self, student_id) -> Optional[float]:
        """Share of present/late records for the student, or None with no records."""
        wanted = str(student_id)
        rows = [a for a in self.store.get("attendance") if str(a.get("studentId")) == wanted]
        if not rows:
            return None
        attended = sum(1 for a in rows if a.get("status") in ATTENDED_STATUSES)
        return round(attended / len(rows) * 100, 1)

    def refresh_attendance_percentage(self, student_id) -> Optional[float]:
        """Write the current percentage into the student's denormalized field."""
        percentage = self.attendance_percentage(student_id)
        student = self.find_student(student_id)
        if percentage is None or student is None:
            return percentage
        self.store.update("students", student["id"], {"attendance": percentage})
        return percentage

    # ── Examinations ─────────────────────────────────────────

    def save_mark(self, student_id, exam: str, subject: str, marks,
                  on: Optional[str] = None) -> Optional[dict]:
        """
        Add or replace a mark.

        A mark with the same student, exam, subject and date replaces the
        earlier one. Missing student/exam/subject is rejected with a warning.
        """
        if not student_id or not exam or not subject:
            self.notifier.notify("Student, exam and subject required", NotificationLevel.WARNING)
            return None

        record, _ = self.store.upsert("examinations", {
            "studentId": student_id,
            "exam": exam,
            "subject": subject,
            "date": on or Date.today().isoformat(),
            "marks": _to_int(marks),
        })
        self.notifier.notify("Mark saved for {}".format(student_id), NotificationLevel.SUCCESS)
        return record

    # ── Assignments & books ──────────────────────────────────

    def add_assignment(self, title: str, course: str = "", due_date: str = "") -> Optional[dict]:
        if not title:
            return None
        record, _ = self.store.upsert("assignments", {"title": title, "course": course, "dueDate": due_date})
        self.notifier.notify("Assignment added", NotificationLevel.SUCCESS)
        return record

    def add_book(self, title: str, author: str = "", isbn: str = "") -> Optional[dict]:
        if not title:
            return None
        record, _ = self.store.upsert("books", {"title": title, "author": author, "isbn": isbn})
        self.notifier.notify("Book added", NotificationLevel.SUCCESS)
        return record

    # ── Deletion ─────────────────────────────────────────────

    def delete_record(self, collection: str, record_id) -> int:
        removed = self.store.remove_by_id(collection, record_id)
        if removed:
            self.notifier.notify("Record deleted", NotificationLevel.INFO)
        return removed

    # ── Bulk import ──────────────────────────────────────────

    def bulk_import_users(self, csv_text: str) -> dict:
        """
        Import students and teachers from CSV.

        Required columns: name, email, type (student|teacher). Optional:
        course, year (students); department, subject, experience (teachers).
        Header names are case-insensitive. Rows missing a required value,
        or with an unknown type, count as errors.
        """
        reader = csv.DictReader(io.StringIO(csv_text or ""))
        if reader.fieldnames:
            reader.fieldnames = [h.strip().lower() for h in reader.fieldnames]

        imported = 0
        errors = 0
        for row in reader:
            row = {k: (v or "").strip() for k, v in row.items() if k}
            if not any(row.values()):
                continue
            kind = row.get("type", "").lower()
            if not row.get("name") or not row.get("email") or kind not in ("student", "teacher"):
                errors += 1
                continue

            if kind == "student":
                self._upsert_with_defaults("students", {
                    "name": row["name"],
                    "email": row["email"],
                    "course": row.get("course") or "General",
                    "year": row.get("year") or "1",
                }, {"status": "active", "enrollmentDate": utc_now_iso()})
            else:
                self._upsert_with_defaults("teachers", {
                    "name": row["name"],
                    "email": row["email"],
                    "department": row.get("department") or "General",
                    "subject": row.get("subject") or "General",
                    "experience": _to_int(row.get("experience")),
                }, {"status": "active", "joinDate": utc_now_iso()})
            imported += 1

        log_with_context(logger, "INFO",
                         "Bulk import complete: {} imported, {} errors".format(imported, errors))
        level = NotificationLevel.SUCCESS if not errors else NotificationLevel.WARNING
        self.notifier.notify("Imported {} users ({} errors)".format(imported, errors), level)
        return {"imported": imported, "errors": errors}
