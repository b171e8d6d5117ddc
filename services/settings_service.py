import logging
from datetime import datetime

from extensions import db
from models import Course, SystemSettings, User, Role
from services.errors import NotFoundError, ValidationError
from services.persistence import commit_or_raise

logger = logging.getLogger(__name__)

SETTINGS_ID = 1
THEMES = ("light", "dark", "system")


def get_settings():
    settings = db.session.get(SystemSettings, SETTINGS_ID)
    if not settings:
        settings = SystemSettings(
            id=SETTINGS_ID,
            allow_student_registration=True,
            theme="system",
            global_notification_enabled=False,
            global_notification_message="",
            global_notification_id="",
            is_maintenance=False,
        )
        db.session.add(settings)
        commit_or_raise("system_settings")
    return settings


def update_settings(data):
    if "theme" in data and data["theme"] not in THEMES:
        raise ValidationError(f"Invalid theme '{data['theme']}'")

    settings = get_settings()

    if "allow_student_registration" in data:
        settings.allow_student_registration = bool(data["allow_student_registration"])

    if "theme" in data:
        settings.theme = data["theme"]

    if "is_maintenance" in data:
        settings.is_maintenance = bool(data["is_maintenance"])

    banner = data.get("global_notification")
    if banner is not None:
        enabled = bool(banner.get("enabled"))
        settings.global_notification_enabled = enabled
        settings.global_notification_message = (banner.get("message") or "").strip()
        # a fresh id lets clients show a re-enabled banner again
        if enabled:
            settings.global_notification_id = f"notif-{int(datetime.utcnow().timestamp() * 1000)}"

    commit_or_raise("system_settings")
    return settings


def list_users():
    return User.query.order_by(User.role.asc(), User.full_name.asc()).all()


def update_user_role(user_id, new_role, managed_course_id=None, managed_session=None):
    if new_role not in Role.ALL:
        raise ValidationError(f"Invalid role '{new_role}'")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    if user.role == Role.ADMIN and new_role != Role.ADMIN:
        admin_count = User.query.filter_by(role=Role.ADMIN).count()
        if admin_count <= 1:
            raise ValidationError("The last administrator cannot be demoted.")

    if new_role == Role.COORDINATOR:
        if not managed_course_id:
            raise ValidationError("A coordinator must be assigned a course to manage.")
        if not db.session.get(Course, managed_course_id):
            raise NotFoundError("Course not found")
    else:
        managed_course_id = None
        managed_session = None

    user.role = new_role
    user.managed_course_id = managed_course_id
    user.managed_session = managed_session or None
    commit_or_raise("users")
    logger.info("User %s is now %s", user.registration_number, new_role)
    return user
