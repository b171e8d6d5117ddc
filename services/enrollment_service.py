import logging

from werkzeug.security import generate_password_hash

from extensions import db
from models import Course, Enrollment, Mark, User, Role
from services.errors import NotFoundError, PersistenceError, ValidationError
from services.persistence import commit_or_raise, new_id

logger = logging.getLogger(__name__)


def get_enrollment(student_id, course_id):
    return Enrollment.query.filter_by(student_id=student_id, course_id=course_id).first()


def enroll(student_id, course_id):
    existing = get_enrollment(student_id, course_id)
    if existing:
        return existing

    if not db.session.get(Course, course_id):
        raise NotFoundError("Course not found")

    enrollment = Enrollment(id=new_id("enrol"), student_id=student_id, course_id=course_id)
    db.session.add(enrollment)
    commit_or_raise("enrollments")
    return enrollment


def _delete_enrollments(enrollment_ids):
    """Delete enrollments together with their marks."""
    enrollment_ids = list(enrollment_ids)
    if not enrollment_ids:
        return 0
    Mark.query.filter(Mark.enrollment_id.in_(enrollment_ids)).delete(synchronize_session=False)
    deleted = Enrollment.query.filter(Enrollment.id.in_(enrollment_ids)).delete(synchronize_session=False)
    commit_or_raise("enrollments")
    return deleted


def unenroll(student_id, course_id):
    enrollment = get_enrollment(student_id, course_id)
    if not enrollment:
        return False
    _delete_enrollments([enrollment.id])
    return True


def update_student_enrollments(student_id, course_ids):
    """Make the student's enrollments match course_ids exactly."""
    wanted = set(course_ids)
    current = Enrollment.query.filter_by(student_id=student_id).all()
    current_course_ids = {e.course_id for e in current}

    to_remove = [e.id for e in current if e.course_id not in wanted]
    to_add = [cid for cid in course_ids if cid not in current_course_ids]

    unknown = [cid for cid in to_add if not db.session.get(Course, cid)]
    if unknown:
        raise ValidationError(f"Unknown course(s): {', '.join(unknown)}")

    _delete_enrollments(to_remove)
    for course_id in to_add:
        db.session.add(Enrollment(id=new_id("enrol"), student_id=student_id, course_id=course_id))
    commit_or_raise("enrollments")

    return Enrollment.query.filter_by(student_id=student_id).all()


def bulk_unenroll(student_ids, course_id):
    enrollment_ids = [
        e.id for e in Enrollment.query.filter(
            Enrollment.course_id == course_id,
            Enrollment.student_id.in_(list(student_ids)),
        ).all()
    ]
    return _delete_enrollments(enrollment_ids)


def bulk_register_and_enroll(records):
    """
    Persist validated StudentRecords and their enrollments.

    Users are written first; enrollments are only written once every user
    row is stored. Returns (success_count, errors).
    """
    if not records:
        return 0, []

    courses_by_code = {c.course_code: c for c in Course.query.all()}
    new_users = []
    new_enrollments = []

    for record in records:
        user = User(
            id=new_id("user"),
            registration_number=record.registration_number,
            full_name=record.full_name,
            email=record.email,
            password_hash=generate_password_hash(record.password),
            role=Role.STUDENT,
            course=record.course,
            session=record.session,
            year_of_study=record.year_of_study,
            semester=record.semester,
            telephone=record.telephone,
            group_role=record.group_role,
            force_password_change=True,
        )
        new_users.append(user)
        for code in record.enroll_course_codes:
            course = courses_by_code.get(code)
            if course:
                new_enrollments.append(
                    Enrollment(id=new_id("enrol"), student_id=user.id, course_id=course.id)
                )

    errors = []
    db.session.add_all(new_users)
    try:
        commit_or_raise("users")
    except PersistenceError as exc:
        errors.append(f"User insertion failed: {exc.message}")
        return 0, errors

    if new_enrollments:
        db.session.add_all(new_enrollments)
        try:
            commit_or_raise("enrollments")
        except PersistenceError as exc:
            errors.append(f"Enrollment failed: {exc.message}")

    logger.info("Registered %d students with %d enrollments", len(new_users), len(new_enrollments))
    return len(new_users), errors
