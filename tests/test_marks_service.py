import pytest

from models import Mark
from services import import_service, marks_service
from services.csv_import import MarkRecord
from services.errors import NotFoundError, ValidationError


def test_update_marks_upserts_one_row_per_enrollment(db, students):
    marks_service.update_marks("enrol-1-cos", 10, 10, 40)
    marks_service.update_marks("enrol-1-cos", 18, 15, 55)

    marks = Mark.query.filter_by(enrollment_id="enrol-1-cos").all()
    assert len(marks) == 1
    assert marks[0].id == "mark-enrol-1-cos"
    assert (marks[0].cats, marks[0].coursework, marks[0].final_exam) == (18, 15, 55)


def test_update_marks_rejects_out_of_range(db, students):
    with pytest.raises(ValidationError) as exc:
        marks_service.update_marks("enrol-1-cos", 10, 21, 40)
    assert exc.value.message == "Course Work must be between 0 and 20."
    assert Mark.query.count() == 0


def test_update_marks_unknown_enrollment(db, students):
    with pytest.raises(NotFoundError):
        marks_service.update_marks("enrol-missing", 1, 1, 1)


def test_enrolled_students_map_filters_by_session(db, students):
    everyone = marks_service.enrolled_students_map("course-cos")
    day_only = marks_service.enrolled_students_map("course-cos", session="DAY")
    assert set(everyone) == {"2024-01-00001", "2024-01-00002"}
    assert set(day_only) == {"2024-01-00001"}
    assert day_only["2024-01-00001"].enrollment_id == "enrol-1-cos"


def test_marks_sheet_shows_unmarked_students_as_zero(db, students):
    marks_service.update_marks("enrol-1-cos", 18, 18, 52)
    rows = {r["registration_number"]: r for r in marks_service.marks_sheet("course-cos")}

    assert rows["2024-01-00001"]["total"] == 88
    assert rows["2024-01-00001"]["grade"] == "A+"
    assert rows["2024-01-00001"]["intake"] == "January Intake"
    assert rows["2024-01-00002"]["has_marks"] is False
    assert rows["2024-01-00002"]["total"] == 0


def test_course_performance_component_analysis(db, students):
    marks_service.update_marks("enrol-1-cos", 18, 10, 30)
    rows = {r["student_id"]: r for r in marks_service.course_performance("course-cos", "cats")}
    assert rows["user-1"]["total"] == 18
    assert rows["user-1"]["grade"] == "A+"
    assert rows["user-2"]["grade"] == "N/A"

    overall = {r["student_id"]: r for r in marks_service.course_performance("course-cos")}
    assert overall["user-1"]["total"] == 58
    assert overall["user-1"]["grade"] == "D"


def test_course_performance_unknown_analysis(db, students):
    with pytest.raises(ValidationError):
        marks_service.course_performance("course-cos", "attendance")


def test_grade_distribution_counts_marked_enrollments_only(db, students):
    marks_service.update_marks("enrol-1-cos", 20, 20, 50)
    result = marks_service.grade_distribution("course-cos")

    assert result["total_students_with_marks"] == 1
    assert result["distribution"][0] == {"grade": "A+", "count": 1}
    assert [d["grade"] for d in result["distribution"]] == ["A+", "A", "B+", "B", "C+", "C", "D", "E", "F"]


def test_student_transcript_filters(db, students):
    marks_service.update_marks("enrol-1-dcs", 10, 10, 30)
    rows = marks_service.student_transcript(students[0])
    assert [r["course_code"] for r in rows] == ["COS2102", "DCS1203"]
    assert rows[0]["grade"] == "F"
    assert rows[1]["total"] == 50

    second_sem = marks_service.student_transcript(students[0], semester="2")
    assert [r["course_code"] for r in second_sem] == ["DCS1203"]


def test_bulk_update_marks(db, students):
    saved = marks_service.bulk_update_marks([
        MarkRecord("enrol-1-cos", 1, 2, 3),
        MarkRecord("enrol-2-cos", 4, 5, 6),
    ])
    assert saved == 2
    assert Mark.query.count() == 2


def test_marks_upload_validate_does_not_write(db, students):
    raw = b"registrationNumber,cats,coursework,finalExam\n2024-01-00001,10,10,10\n2024-01-00009,1,1,1\n"
    summary = import_service.validate_marks_upload("course-cos", raw)
    assert summary["valid_count"] == 1
    assert len(summary["errors"]) == 1
    assert Mark.query.count() == 0

    committed = import_service.commit_marks_upload("course-cos", raw)
    assert committed["saved_count"] == 1
    assert db.session.get(Mark, "mark-enrol-1-cos").final_exam == 10


def test_marks_upload_scoped_to_session(db, students):
    raw = b"registrationNumber,cats,coursework,finalExam\n2024-01-00002,10,10,10\n"
    summary = import_service.validate_marks_upload("course-cos", raw, session="DAY")
    assert summary["valid_count"] == 0
    assert "not enrolled in this course" in summary["errors"][0]


def test_marks_upload_counts_repeated_student_once(db, students):
    raw = b"registrationNumber,cats,coursework,finalExam\n2024-01-00001,10,10,10\n2024-01-00001,12,12,12\n"
    committed = import_service.commit_marks_upload("course-cos", raw)

    assert committed == {"saved_count": 1, "errors": ["Row 3: Duplicate entry for '2024-01-00001'."]}
    mark = db.session.get(Mark, "mark-enrol-1-cos")
    assert (mark.cats, mark.coursework, mark.final_exam) == (10, 10, 10)
