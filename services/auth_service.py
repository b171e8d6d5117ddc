import logging
import re
import secrets
from datetime import datetime, timedelta

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from models import Course, Enrollment, Intake, User, Role
from services.errors import NotFoundError, ValidationError
from services.persistence import commit_or_raise, new_id
from services.settings_service import get_settings

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ID = "admin-001"
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

REGISTRATION_NUMBER_PATTERN = re.compile(r"^20\d{2}-\d{2}-\d{5}$")

REGISTRATION_REQUIRED_FIELDS = (
    "full_name", "registration_number", "course", "session", "year_of_study",
    "semester", "telephone", "email", "password", "confirm_password", "group_role",
)


def find_by_registration_number(registration_number):
    return User.query.filter(
        db.func.lower(User.registration_number) == registration_number.strip().lower()
    ).first()


def authenticate_user(registration_number: str, password: str, role: str = None):
    if not registration_number or not password:
        return None

    user = find_by_registration_number(registration_number)

    if not user:
        return None

    if not check_password_hash(user.password_hash, password):
        return None

    # admins may sign in through any portal
    if role and user.role != role and user.role != Role.ADMIN:
        return None

    return user


def register_student(data):
    """Self-registration of a student, enrolling them in the chosen courses."""
    settings = get_settings()
    if not settings.allow_student_registration:
        raise ValidationError("Student registration is currently closed.")

    reg_no = (data.get("registration_number") or "").strip()
    if not REGISTRATION_NUMBER_PATTERN.match(reg_no):
        raise ValidationError("Format must be 20xx-xx-xxxxx")

    for field in REGISTRATION_REQUIRED_FIELDS:
        if not str(data.get(field) or "").strip():
            raise ValidationError("All fields except Intake (optional but recommended) are required.")

    course_ids = data.get("course_ids") or []
    if not course_ids:
        raise ValidationError("You must select at least one course to enroll in.")

    if data["password"] != data["confirm_password"]:
        raise ValidationError("Passwords do not match.")

    config = current_app.config
    if data["course"] not in config["COURSE_OPTIONS"]:
        raise ValidationError(f"Invalid course '{data['course']}'.")
    if data["session"] not in config["SESSION_OPTIONS"]:
        raise ValidationError(f"Invalid session '{data['session']}'.")
    if data["group_role"] not in config["GROUP_ROLE_OPTIONS"]:
        raise ValidationError(f"Invalid groupRole '{data['group_role']}'.")

    if find_by_registration_number(reg_no):
        raise ValidationError(f"Registration number '{reg_no}' already exists.")
    email = data["email"].strip()
    if User.query.filter(db.func.lower(User.email) == email.lower()).first():
        raise ValidationError(f"Email '{email}' already exists.")

    intake_id = data.get("intake_id") or None
    if intake_id and not db.session.get(Intake, intake_id):
        raise ValidationError("Selected intake does not exist.")

    courses = Course.query.filter(Course.id.in_(course_ids)).all()
    if len(courses) != len(set(course_ids)):
        raise ValidationError("One or more selected courses do not exist.")

    user = User(
        id=new_id("user"),
        registration_number=reg_no,
        full_name=data["full_name"].strip(),
        email=email,
        password_hash=generate_password_hash(data["password"]),
        role=Role.STUDENT,
        course=data["course"],
        session=data["session"],
        year_of_study=str(data["year_of_study"]),
        semester=str(data["semester"]),
        telephone=str(data["telephone"]),
        group_role=data["group_role"],
        intake_id=intake_id,
        force_password_change=True,
    )
    db.session.add(user)
    for course in courses:
        db.session.add(Enrollment(id=new_id("enrol"), student_id=user.id, course_id=course.id))
    commit_or_raise("users")

    logger.info("Registered student %s", reg_no)
    return user


def request_password_reset(identifier):
    """Issue a reset token for the user with this registration number or email."""
    lowered = (identifier or "").strip().lower()
    if not lowered:
        return None

    user = User.query.filter(
        db.or_(
            db.func.lower(User.registration_number) == lowered,
            db.func.lower(User.email) == lowered,
        )
    ).first()
    if not user:
        return None

    ttl = current_app.config["PASSWORD_RESET_TTL_SECONDS"]
    user.password_reset_token = secrets.token_urlsafe(32)
    user.password_reset_expires = datetime.utcnow() + timedelta(seconds=ttl)
    commit_or_raise("users")
    return user.password_reset_token


def reset_password(token, new_password):
    if not token or not new_password:
        return False

    user = User.query.filter_by(password_reset_token=token).first()
    if not user or not user.password_reset_expires:
        return False
    if datetime.utcnow() > user.password_reset_expires:
        return False

    user.password_hash = generate_password_hash(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    commit_or_raise("users")
    return True


def change_password(user_id, new_password):
    if not new_password:
        raise ValidationError("New password is required.")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.password_hash = generate_password_hash(new_password)
    user.force_password_change = False
    commit_or_raise("users")
    return user


def create_default_admin():
    """Recreate the built-in admin account with its default password."""
    existing = User.query.filter(
        db.or_(User.registration_number == DEFAULT_ADMIN_USERNAME, User.id == DEFAULT_ADMIN_ID)
    ).all()
    for user in existing:
        db.session.delete(user)
    db.session.flush()

    admin = User(
        id=DEFAULT_ADMIN_ID,
        registration_number=DEFAULT_ADMIN_USERNAME,
        full_name="System Administrator",
        email="admin@system.com",
        password_hash=generate_password_hash(DEFAULT_ADMIN_PASSWORD),
        role=Role.ADMIN,
        force_password_change=False,
    )
    db.session.add(admin)
    commit_or_raise("users")
    logger.info("Default admin account created")
    return admin
