import logging

from flask import current_app
from werkzeug.security import generate_password_hash

from extensions import db
from models import Enrollment, GroupProfile, Mark, TestSubmission, User, Role
from services.errors import NotFoundError, ValidationError
from services.persistence import commit_or_raise

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "full_name", "email", "course", "session", "year_of_study",
    "semester", "telephone", "group_role", "intake_id",
)


def get_student_or_404(student_id):
    student = db.session.get(User, student_id)
    if not student or student.role != Role.STUDENT:
        raise NotFoundError("Student not found")
    return student


def list_students(search=None, intake_id=None, course_id=None, session=None):
    query = User.query.filter(User.role == Role.STUDENT)
    if course_id:
        query = query.join(Enrollment, Enrollment.student_id == User.id).filter(
            Enrollment.course_id == course_id
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
                db.func.lower(User.email).like(pattern),
            )
        )
    return query.order_by(User.full_name.asc()).all()


def update_student(student_id, data):
    student = get_student_or_404(student_id)
    config = current_app.config

    updates = {}
    for field in EDITABLE_FIELDS:
        if field in data:
            value = data[field]
            updates[field] = value.strip() if isinstance(value, str) else value

    if "full_name" in updates and not updates["full_name"]:
        raise ValidationError("Full name is required")
    if updates.get("course") and updates["course"] not in config["COURSE_OPTIONS"]:
        raise ValidationError(f"Invalid course '{updates['course']}'.")
    if updates.get("session") and updates["session"] not in config["SESSION_OPTIONS"]:
        raise ValidationError(f"Invalid session '{updates['session']}'.")
    if updates.get("group_role") and updates["group_role"] not in config["GROUP_ROLE_OPTIONS"]:
        raise ValidationError(f"Invalid groupRole '{updates['group_role']}'.")

    if "email" in updates:
        if not updates["email"]:
            raise ValidationError("Email is required")
        clash = User.query.filter(db.func.lower(User.email) == updates["email"].lower()).first()
        if clash and clash.id != student.id:
            raise ValidationError(f"Email '{updates['email']}' already exists.")

    if "intake_id" in updates:
        updates["intake_id"] = updates["intake_id"] or None

    for field, value in updates.items():
        setattr(student, field, value)

    if data.get("password"):
        student.password_hash = generate_password_hash(data["password"])
        student.force_password_change = True

    commit_or_raise("users")
    return student


def delete_student(student_id):
    """Delete a student with their enrollments, marks, submissions and group."""
    student = get_student_or_404(student_id)

    enrollment_ids = [e.id for e in student.enrollments]
    if enrollment_ids:
        Mark.query.filter(Mark.enrollment_id.in_(enrollment_ids)).delete(synchronize_session=False)
        Enrollment.query.filter(Enrollment.id.in_(enrollment_ids)).delete(synchronize_session=False)
    TestSubmission.query.filter_by(student_id=student.id).delete(synchronize_session=False)
    GroupProfile.query.filter_by(leader_id=student.id).delete(synchronize_session=False)

    db.session.expire(student)
    db.session.delete(student)
    commit_or_raise("users")
    logger.info("Deleted student %s", student_id)
