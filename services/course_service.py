import logging

from extensions import db
from models import Course, Enrollment, Intake, Mark, MCQTest, Notification, TestSubmission, User
from services.errors import NotFoundError, ValidationError
from services.persistence import commit_or_raise, new_id

logger = logging.getLogger(__name__)

COURSE_FIELDS = ("course_code", "course_name", "credit_hours", "semester", "academic_year")
INTAKE_FIELDS = ("name", "description", "academic_year", "status")
INTAKE_STATUSES = ("active", "archived")


def _clean(data, fields):
    cleaned = {}
    for field in fields:
        if field not in data:
            continue
        value = data[field]
        cleaned[field] = value.strip() if isinstance(value, str) else value
    return cleaned


# =========================================================
# COURSES
# =========================================================

def _check_course(data, course_id=None):
    for field in ("course_code", "course_name", "semester", "academic_year"):
        if not data.get(field):
            raise ValidationError("Course Code, Name, Semester and Academic Year are required")

    if data.get("credit_hours") not in (None, ""):
        try:
            data["credit_hours"] = int(data["credit_hours"])
        except (TypeError, ValueError):
            raise ValidationError("Credit hours must be a number")
    else:
        data["credit_hours"] = None

    clash = Course.query.filter_by(course_code=data["course_code"]).first()
    if clash and clash.id != course_id:
        raise ValidationError(f"Course Code '{data['course_code']}' already exists.")


def list_courses():
    return Course.query.order_by(Course.course_code.asc()).all()


def add_course(data):
    data = _clean(data, COURSE_FIELDS)
    _check_course(data)
    course = Course(id=new_id("course"), **data)
    db.session.add(course)
    commit_or_raise("courses")
    logger.info("Created course %s", course.course_code)
    return course


def update_course(course_id, data):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")

    merged = course.to_dict()
    merged.update(_clean(data, COURSE_FIELDS))
    _check_course(merged, course_id=course.id)
    for field in COURSE_FIELDS:
        setattr(course, field, merged[field])
    commit_or_raise("courses")
    return course


def delete_course(course_id):
    """Delete a course with its enrollments, marks, tests and notifications."""
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFoundError("Course not found")

    enrollment_ids = [e.id for e in course.enrollments]
    test_ids = [t.id for t in course.mcq_tests]

    if enrollment_ids:
        Mark.query.filter(Mark.enrollment_id.in_(enrollment_ids)).delete(synchronize_session=False)
        Enrollment.query.filter(Enrollment.id.in_(enrollment_ids)).delete(synchronize_session=False)
    if test_ids:
        TestSubmission.query.filter(TestSubmission.test_id.in_(test_ids)).delete(synchronize_session=False)
        MCQTest.query.filter(MCQTest.id.in_(test_ids)).delete(synchronize_session=False)
    Notification.query.filter_by(course_id=course_id).delete(synchronize_session=False)
    User.query.filter_by(managed_course_id=course_id).update(
        {"managed_course_id": None}, synchronize_session=False
    )

    db.session.expire(course)
    db.session.delete(course)
    commit_or_raise("courses")
    logger.info("Deleted course %s", course_id)


# =========================================================
# INTAKES
# =========================================================

def _check_intake(data):
    if not data.get("name") or not data.get("academic_year"):
        raise ValidationError("Intake name and academic year are required")
    if data.get("status", "active") not in INTAKE_STATUSES:
        raise ValidationError(f"Invalid intake status '{data.get('status')}'")


def list_intakes(active_only=False):
    query = Intake.query
    if active_only:
        query = query.filter_by(status="active")
    return query.order_by(Intake.academic_year.desc(), Intake.name.asc()).all()


def add_intake(data):
    data = _clean(data, INTAKE_FIELDS)
    _check_intake(data)
    intake = Intake(id=new_id("intake"), **data)
    db.session.add(intake)
    commit_or_raise("intakes")
    return intake


def update_intake(intake_id, data):
    intake = db.session.get(Intake, intake_id)
    if not intake:
        raise NotFoundError("Intake not found")

    merged = intake.to_dict()
    merged.update(_clean(data, INTAKE_FIELDS))
    _check_intake(merged)
    for field in INTAKE_FIELDS:
        setattr(intake, field, merged[field])
    commit_or_raise("intakes")
    return intake


def delete_intake(intake_id):
    """Delete an intake; its students stay, detached from any intake."""
    intake = db.session.get(Intake, intake_id)
    if not intake:
        raise NotFoundError("Intake not found")

    User.query.filter_by(intake_id=intake_id).update({"intake_id": None}, synchronize_session=False)
    db.session.expire(intake)
    db.session.delete(intake)
    commit_or_raise("intakes")


def bulk_update_student_intake(student_ids, intake_id):
    """Assign the students to intake_id, or clear their intake when it is None."""
    if intake_id and not db.session.get(Intake, intake_id):
        raise NotFoundError("Intake not found")

    updated = User.query.filter(User.id.in_(list(student_ids))).update(
        {"intake_id": intake_id}, synchronize_session=False
    )
    commit_or_raise("users")
    return updated
