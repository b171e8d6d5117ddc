from flask import Blueprint, request, jsonify, current_app, session
from flask_login import login_user, logout_user, login_required, current_user

from models import Role
from services import auth_service
from services.course_service import list_courses, list_intakes
from services.settings_service import get_settings

# Define the blueprint
auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _payload():
    # JSON clients and plain form posts are both accepted
    return request.get_json(silent=True) or request.form.to_dict()


# =========================================================
# LOGIN / LOGOUT
# =========================================================
@auth_bp.route("/login", methods=["POST"])
def login():
    data = _payload()
    username = (data.get("registration_number") or data.get("username") or "").strip()
    password = data.get("password") or ""
    role = data.get("role") or None

    # 1. Basic Validation
    if not username or not password:
        return jsonify({"error": "Registration number and password are required"}), 400

    # 2. Authenticate User
    user = auth_service.authenticate_user(username, password, role)
    if not user:
        current_app.logger.info("Failed login for %s", username)
        return jsonify({"error": "Invalid credentials"}), 401

    # 3. Maintenance mode lets only admins in
    if get_settings().is_maintenance and user.role != Role.ADMIN:
        return jsonify({"error": "System is under maintenance. Please try again later."}), 503

    remember = str(data.get("remember", "")).lower() in ("1", "true", "on", "yes")
    login_user(user, remember=remember)

    return jsonify({
        "status": "success",
        "user": user.to_dict(),
        "force_password_change": bool(user.force_password_change),
    })


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    session.clear()
    return jsonify({"status": "success"})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())


# =========================================================
# REGISTRATION
# =========================================================
@auth_bp.route("/register/options")
def registration_options():
    config = current_app.config
    settings = get_settings()
    return jsonify({
        "allow_student_registration": bool(settings.allow_student_registration),
        "courses": config["COURSE_OPTIONS"],
        "sessions": config["SESSION_OPTIONS"],
        "group_roles": config["GROUP_ROLE_OPTIONS"],
        "course_units": [c.to_dict() for c in list_courses()],
        "intakes": [i.to_dict() for i in list_intakes(active_only=True)],
    })


@auth_bp.route("/register", methods=["POST"])
def register():
    data = _payload()
    if "course_ids" not in data and request.form:
        data["course_ids"] = request.form.getlist("course_ids")

    user = auth_service.register_student(data)
    current_app.logger.info("Student %s registered", user.registration_number)
    return jsonify({"status": "success", "user": user.to_dict()}), 201


# =========================================================
# PASSWORDS
# =========================================================
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    identifier = _payload().get("identifier")
    token = auth_service.request_password_reset(identifier)

    response = {
        "status": "success",
        "message": "If an account exists, a password reset link has been issued.",
    }
    # no mail transport: the token is handed back directly in testing
    if token and current_app.config.get("TESTING"):
        response["token"] = token
    return jsonify(response)


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = _payload()
    if not auth_service.reset_password(data.get("token"), data.get("new_password")):
        return jsonify({"error": "Invalid or expired reset token"}), 400
    return jsonify({"status": "success"})


@auth_bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    data = _payload()
    new_password = data.get("new_password") or ""
    if new_password != (data.get("confirm_password") or ""):
        return jsonify({"error": "Passwords do not match."}), 400

    auth_service.change_password(current_user.id, new_password)
    return jsonify({"status": "success"})
