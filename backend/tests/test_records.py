from campus_erp.services.notifications import LogNotifier, NotificationLevel


def test_save_student_stamps_new_records(records, store, notifier):
    record, created = records.save_student({"name": "Asha", "email": "asha@example.com", "course": "BSc"})

    assert created
    assert record["status"] == "active"
    assert record["enrollmentDate"].endswith("Z")
    assert notifier.recent()[0]["message"] == "Student added successfully!"


def test_save_student_update_keeps_enrollment_date(records, notifier):
    first, _ = records.save_student({"name": "Asha", "email": "asha@example.com"})
    second, created = records.save_student({"name": "Asha Rao", "email": "ASHA@example.com", "year": "2"})

    assert not created
    assert second["enrollmentDate"] == first["enrollmentDate"]
    assert second["name"] == "Asha Rao"
    assert notifier.recent()[0]["message"] == "Student updated successfully!"


def test_save_teacher_coerces_experience(records):
    record, _ = records.save_teacher({"name": "Meera", "email": "meera@example.com", "experience": "7"})
    assert record["experience"] == 7
    assert record["status"] == "active"


def test_save_course_upserts_by_code(records, store):
    records.save_course({"code": "CS101", "name": "Intro", "credits": "4"})
    records.save_course({"code": "CS101", "name": "Intro to Programming"})

    courses = store.get("courses")
    assert len(courses) == 1
    assert courses[0]["credits"] == 4
    assert courses[0]["name"] == "Intro to Programming"


def test_add_fee_looks_up_student_name(records):
    records.save_student({"name": "Asha", "email": "asha@example.com", "studentId": "ST001"})

    fee = records.add_fee("ST001", 25000, "2025-07-05")
    unknown = records.add_fee("ST999", 100, "2025-07-05")

    assert fee["studentName"] == "Asha"
    assert fee["status"] == "pending"
    assert unknown["studentName"] == "Unknown"


def test_record_fee_payment(records, notifier):
    fee = records.add_fee("ST001", 500, "2025-07-05")
    paid = records.record_fee_payment(fee["id"])

    assert paid["status"] == "paid"
    assert "paidDate" in paid


def test_record_fee_payment_unknown_is_silent(records, notifier):
    notifier.clear()
    assert records.record_fee_payment("F404") is None
    assert notifier.recent() == []


def test_mark_attendance_updates_percentage(records, store):
    records.save_student({"name": "Asha", "email": "asha@example.com", "studentId": "ST001"})

    records.mark_attendance("ST001", "present", "2025-03-01")
    records.mark_attendance("ST001", "late", "2025-03-02")
    records.mark_attendance("ST001", "absent", "2025-03-03")
    record = records.mark_attendance("ST001", "absent", "2025-03-04")

    assert record["studentName"] == "Asha"
    assert records.attendance_percentage("ST001") == 50.0
    assert store.get("students")[0]["attendance"] == 50.0


def test_attendance_percentage_without_records(records):
    assert records.attendance_percentage("ST404") is None


def test_save_mark_replaces_same_key(records, store):
    records.save_mark("ST001", "Midterm", "Physics", 30, "2025-03-01")
    records.save_mark("ST001", "Midterm", "Physics", "42", "2025-03-01")

    exams = store.get("examinations")
    assert len(exams) == 1
    assert exams[0]["marks"] == 42


def test_save_mark_requires_fields(records, store, notifier):
    assert records.save_mark("ST001", "Midterm", "", 30) is None
    assert store.get("examinations") == []
    assert notifier.recent()[0]["level"] == "warning"


def test_save_mark_defaults_date_to_today(records):
    record = records.save_mark("ST001", "Quiz", "Math", 9)
    assert len(record["date"]) == 10


def test_add_assignment_and_book(records, store):
    assert records.add_assignment("") is None
    assignment = records.add_assignment("Essay", "ENG101", "2025-04-01")
    book = records.add_book("Dune", "Frank Herbert")

    assert assignment["id"].startswith("ASG")
    assert store.get("books") == [book]


def test_delete_record(records, store, notifier):
    record, _ = records.save_student({"name": "Asha", "email": "asha@example.com"})
    notifier.clear()

    assert records.delete_record("students", record["id"]) == 1
    assert records.delete_record("students", record["id"]) == 0
    assert store.get("students") == []
    assert len(notifier.recent()) == 1


def test_bulk_import_users(records, store):
    csv_text = (
        "Name,Email,Type,Course,Department,Experience\n"
        "Asha,asha@example.com,student,BSc,,\n"
        "Meera,meera@example.com,Teacher,,Physics,5\n"
        ",missing@example.com,student,,,\n"
        "Zed,zed@example.com,parent,,,\n"
        "\n"
    )

    summary = records.bulk_import_users(csv_text)

    assert summary == {"imported": 2, "errors": 2}
    assert store.get("students")[0]["course"] == "BSc"
    teacher = store.get("teachers")[0]
    assert teacher["department"] == "Physics"
    assert teacher["experience"] == 5


def test_bulk_import_upserts_existing_email(records, store):
    records.save_student({"name": "Asha", "email": "asha@example.com"})
    records.bulk_import_users("name,email,type\nAsha R,asha@example.com,student\n")

    students = store.get("students")
    assert len(students) == 1
    assert students[0]["name"] == "Asha R"


def test_log_notifier_keeps_latest_first():
    notifier = LogNotifier(limit=2)
    notifier.notify("one")
    notifier.notify("two", NotificationLevel.SUCCESS)
    notifier.notify("three", "error")

    assert [n["message"] for n in notifier.recent()] == ["three", "two"]
    assert notifier.recent()[0]["level"] == "error"
