import logging

from extensions import db
from models import Course, Enrollment, Mark, User, Role
from services import grading
from services.csv_import import build_enrollment_roster
from services.errors import NotFoundError, ValidationError
from services.persistence import upsert

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("overall", "cats", "coursework", "final_exam")


def mark_id_for(enrollment_id):
    return f"mark-{enrollment_id}"


def get_course_or_404(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")
    return course


def enrolled_students(course_id, session=None, intake_id=None, search=None):
    """(student, enrollment) pairs for a course, ordered by name."""
    query = (
        db.session.query(User, Enrollment)
        .join(Enrollment, Enrollment.student_id == User.id)
        .filter(Enrollment.course_id == course_id, User.role == Role.STUDENT)
    )
    if session:
        query = query.filter(User.session == session)
    if intake_id:
        query = query.filter(User.intake_id == intake_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                db.func.lower(User.full_name).like(pattern),
                db.func.lower(User.registration_number).like(pattern),
            )
        )
    return query.order_by(User.full_name.asc()).all()


def enrolled_students_map(course_id, session=None):
    """Roster map used by the marks importer, keyed by lowercased registration number."""
    return build_enrollment_roster(
        (student.registration_number, enrollment.id, student.full_name)
        for student, enrollment in enrolled_students(course_id, session=session)
    )


def update_marks(enrollment_id, cats, coursework, final_exam, policy=None):
    if not db.session.get(Enrollment, enrollment_id):
        raise NotFoundError("Enrollment not found")

    error = grading.validate_marks(cats, coursework, final_exam, policy)
    if error:
        raise ValidationError(error)

    [mark] = upsert(Mark, [{
        "id": mark_id_for(enrollment_id),
        "enrollment_id": enrollment_id,
        "cats": cats,
        "coursework": coursework,
        "final_exam": final_exam,
    }])
    logger.info("Saved marks for enrollment %s", enrollment_id)
    return mark


def bulk_update_marks(records):
    """Upsert importer MarkRecords in one batch."""
    rows = [
        {
            "id": mark_id_for(r.enrollment_id),
            "enrollment_id": r.enrollment_id,
            "cats": r.cats,
            "coursework": r.coursework,
            "final_exam": r.final_exam,
        }
        for r in records
    ]
    if not rows:
        return 0
    upsert(Mark, rows)
    logger.info("Bulk saved %d mark records", len(rows))
    return len(rows)


def marks_sheet(course_id, session=None, intake_id=None, search=None, policy=None):
    """Marks entry rows: one per enrolled student, unmarked students shown as zeros."""
    rows = []
    for student, enrollment in enrolled_students(course_id, session, intake_id, search):
        mark = enrollment.mark
        values = {
            "cats": mark.cats if mark else 0,
            "coursework": mark.coursework if mark else 0,
            "final_exam": mark.final_exam if mark else 0,
        }
        total = grading.total(values)
        rows.append({
            "enrollment_id": enrollment.id,
            "student_id": student.id,
            "full_name": student.full_name,
            "registration_number": student.registration_number,
            "intake": student.intake.name if student.intake else "",
            **values,
            "total": total,
            "grade": grading.grade(total, policy),
            "has_marks": mark is not None,
        })
    return rows


def course_performance(course_id, analysis="overall", intake_id=None, policy=None):
    """
    Per-student performance for a course. For the overall analysis the
    displayed score is the total; for a component analysis it is the raw
    component score graded against that component's maximum.
    """
    if analysis not in ANALYSIS_TYPES:
        raise ValidationError(f"Unknown analysis type '{analysis}'")
    policy = policy or grading.default_policy()

    data = []
    for student, enrollment in enrolled_students(course_id, intake_id=intake_id):
        mark = enrollment.mark
        if mark is None:
            score, label = 0, grading.NOT_AVAILABLE
        elif analysis == "overall":
            score = grading.total(mark)
            label = grading.grade(score, policy)
        else:
            score = getattr(mark, analysis)
            label = grading.component_grade(score, policy.max_marks[analysis], policy)

        data.append({
            "student_id": student.id,
            "full_name": student.full_name,
            "registration_number": student.registration_number,
            "intake_id": student.intake_id,
            "cats": mark.cats if mark else None,
            "coursework": mark.coursework if mark else None,
            "final_exam": mark.final_exam if mark else None,
            "total": score,
            "grade": label,
        })
    return data


def grade_distribution(course_id, policy=None):
    """Count of students per grade label, in band order, over marked enrollments."""
    policy = policy or grading.default_policy()
    distribution = {label: 0 for label in policy.labels}
    graded = 0

    marks = (
        db.session.query(Mark)
        .join(Enrollment, Enrollment.id == Mark.enrollment_id)
        .filter(Enrollment.course_id == course_id)
        .all()
    )
    for mark in marks:
        label = grading.grade(grading.total(mark), policy)
        if label in distribution:
            distribution[label] += 1
            graded += 1

    return {
        "distribution": [{"grade": k, "count": v} for k, v in distribution.items()],
        "total_students_with_marks": graded,
    }


def student_transcript(student, year=None, semester=None, policy=None):
    rows = []
    for enrollment in student.enrollments:
        course = enrollment.course
        if year and course.academic_year != year:
            continue
        if semester and course.semester != semester:
            continue
        mark = enrollment.mark
        total = grading.total(mark)
        rows.append({
            "course_id": course.id,
            "course_code": course.course_code,
            "course_name": course.course_name,
            "academic_year": course.academic_year,
            "semester": course.semester,
            "cats": mark.cats if mark else None,
            "coursework": mark.coursework if mark else None,
            "final_exam": mark.final_exam if mark else None,
            "total": total,
            "grade": grading.grade(total, policy),
        })
    return sorted(rows, key=lambda r: (r["academic_year"], r["semester"], r["course_code"]))
