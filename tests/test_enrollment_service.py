import pytest
from werkzeug.security import check_password_hash

from models import Enrollment, Mark, User
from services import course_service, enrollment_service, import_service, marks_service
from services.csv_import import StudentRecord
from services.errors import NotFoundError, ValidationError


def record(reg_no, email, codes):
    return StudentRecord(
        full_name="Imported Student", registration_number=reg_no, email=email,
        password="pw123", course="BIT", session="DAY", year_of_study="1",
        semester="1", telephone="0700", group_role="Group Member Only",
        enroll_course_codes=codes,
    )


def test_enroll_is_idempotent(db, students):
    first = enrollment_service.enroll("user-2", "course-dcs")
    second = enrollment_service.enroll("user-2", "course-dcs")
    assert first.id == second.id
    assert Enrollment.query.filter_by(student_id="user-2").count() == 2


def test_enroll_unknown_course(db, students):
    with pytest.raises(NotFoundError):
        enrollment_service.enroll("user-2", "course-missing")


def test_unenroll_removes_mark(db, students):
    marks_service.update_marks("enrol-1-cos", 5, 5, 5)
    assert enrollment_service.unenroll("user-1", "course-cos") is True
    assert enrollment_service.get_enrollment("user-1", "course-cos") is None
    assert Mark.query.count() == 0
    assert enrollment_service.unenroll("user-1", "course-cos") is False


def test_update_student_enrollments_diffs(db, students):
    enrollments = enrollment_service.update_student_enrollments("user-1", ["course-dcs"])
    assert [e.course_id for e in enrollments] == ["course-dcs"]
    # the kept enrollment keeps its id
    assert enrollments[0].id == "enrol-1-dcs"


def test_update_student_enrollments_unknown_course(db, students):
    with pytest.raises(ValidationError):
        enrollment_service.update_student_enrollments("user-1", ["course-cos", "nope"])
    assert Enrollment.query.filter_by(student_id="user-1").count() == 2


def test_bulk_unenroll(db, students):
    removed = enrollment_service.bulk_unenroll(["user-1", "user-2"], "course-cos")
    assert removed == 2
    assert Enrollment.query.filter_by(course_id="course-cos").count() == 0


def test_bulk_register_and_enroll(db, courses):
    count, errors = enrollment_service.bulk_register_and_enroll([
        record("2024-02-00001", "a@x.com", ["COS2102", "DCS1203"]),
        record("2024-02-00002", "b@x.com", ["DCS1203"]),
    ])
    assert (count, errors) == (2, [])

    user = User.query.filter_by(registration_number="2024-02-00001").one()
    assert user.force_password_change is True
    assert check_password_hash(user.password_hash, "pw123")
    assert sorted(e.course_id for e in user.enrollments) == ["course-cos", "course-dcs"]


def test_bulk_register_reports_store_failure(db, students):
    # the email clashes with an existing user; the unique constraint rejects the batch
    count, errors = enrollment_service.bulk_register_and_enroll([
        record("2024-02-00001", "student1@example.com", ["COS2102"]),
    ])
    assert count == 0
    assert len(errors) == 1
    assert errors[0].startswith("User insertion failed: Failed to save to users:")


def test_bulk_register_empty(db):
    assert enrollment_service.bulk_register_and_enroll([]) == (0, [])


def test_student_upload_commit_writes_only_valid_rows(db, students):
    raw = "\n".join([
        "fullName,registrationNumber,email,password,enrollCourseCodes",
        'New One,2024-03-00001,new1@x.com,pw,"COS2102,DCS1203"',
        "Clash,2024-01-00001,clash@x.com,pw,COS2102",
        "Bad Code,2024-03-00002,new2@x.com,pw,XXX",
    ]).encode("utf-8")

    summary = import_service.validate_student_upload(raw)
    assert summary["valid_count"] == 1
    assert len(summary["errors"]) == 2
    assert User.query.filter_by(registration_number="2024-03-00001").first() is None

    result = import_service.commit_student_upload(raw)
    assert result["saved_count"] == 1
    new_user = User.query.filter_by(registration_number="2024-03-00001").one()
    assert len(new_user.enrollments) == 2


def test_delete_course_cascades(db, students):
    marks_service.update_marks("enrol-1-cos", 5, 5, 5)
    course_service.delete_course("course-cos")
    assert Enrollment.query.filter_by(course_id="course-cos").count() == 0
    assert Mark.query.count() == 0


def test_add_course_rejects_duplicate_code(db, courses):
    with pytest.raises(ValidationError) as exc:
        course_service.add_course({
            "course_code": "COS2102", "course_name": "Copy", "semester": "1", "academic_year": "2024/2025",
        })
    assert exc.value.message == "Course Code 'COS2102' already exists."


def test_delete_intake_detaches_students(db, students, intake):
    course_service.delete_intake(intake.id)
    assert db.session.get(User, "user-1").intake_id is None


def test_bulk_update_student_intake(db, students, intake):
    updated = course_service.bulk_update_student_intake(["user-2"], intake.id)
    assert updated == 1
    assert db.session.get(User, "user-2").intake_id == intake.id
