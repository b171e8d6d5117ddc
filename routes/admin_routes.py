from io import BytesIO

from flask import Blueprint, request, jsonify, send_file, current_app

from models import Role
from services import (
    course_service, csv_import, enrollment_service, group_service, import_service, marks_service,
    mcq_service, notification_service, report_service, settings_service, student_service,
)
from utils.decorators import role_required
from utils.uploads import uploaded_file_bytes

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _json():
    return request.get_json(silent=True) or {}


# =========================================================
# DASHBOARD
# =========================================================

@admin_bp.route("/dashboard-stats")
@role_required(Role.ADMIN)
def dashboard_stats():
    return jsonify({
        "students": len(student_service.list_students()),
        "courses": len(course_service.list_courses()),
        "intakes": len(course_service.list_intakes()),
        "tests": len(mcq_service.list_tests()),
        "assignments": len(group_service.list_assignments()),
    })


# =========================================================
# COURSES
# =========================================================

@admin_bp.route("/courses")
@role_required(Role.ADMIN)
def get_courses():
    return jsonify([c.to_dict() for c in course_service.list_courses()])


@admin_bp.route("/courses", methods=["POST"])
@role_required(Role.ADMIN)
def create_course():
    course = course_service.add_course(_json())
    return jsonify(course.to_dict()), 201


@admin_bp.route("/courses/<course_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def edit_course(course_id):
    return jsonify(course_service.update_course(course_id, _json()).to_dict())


@admin_bp.route("/courses/<course_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def remove_course(course_id):
    course_service.delete_course(course_id)
    current_app.logger.info("Course %s deleted", course_id)
    return jsonify({"status": "success"})


# =========================================================
# INTAKES
# =========================================================

@admin_bp.route("/intakes")
@role_required(Role.ADMIN)
def get_intakes():
    active_only = request.args.get("active") == "1"
    return jsonify([i.to_dict() for i in course_service.list_intakes(active_only)])


@admin_bp.route("/intakes", methods=["POST"])
@role_required(Role.ADMIN)
def create_intake():
    return jsonify(course_service.add_intake(_json()).to_dict()), 201


@admin_bp.route("/intakes/<intake_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def edit_intake(intake_id):
    return jsonify(course_service.update_intake(intake_id, _json()).to_dict())


@admin_bp.route("/intakes/<intake_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def remove_intake(intake_id):
    course_service.delete_intake(intake_id)
    return jsonify({"status": "success"})


# =========================================================
# STUDENTS
# =========================================================

@admin_bp.route("/students")
@role_required(Role.ADMIN)
def get_students():
    students = student_service.list_students(
        search=request.args.get("search"),
        intake_id=request.args.get("intake_id"),
        course_id=request.args.get("course_id"),
    )
    return jsonify([
        {**s.to_dict(), "course_ids": [e.course_id for e in s.enrollments]}
        for s in students
    ])


@admin_bp.route("/students/<student_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def edit_student(student_id):
    return jsonify(student_service.update_student(student_id, _json()).to_dict())


@admin_bp.route("/students/<student_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def remove_student(student_id):
    student_service.delete_student(student_id)
    return jsonify({"status": "success"})


@admin_bp.route("/students/<student_id>/enrollments", methods=["PUT"])
@role_required(Role.ADMIN)
def set_student_enrollments(student_id):
    student_service.get_student_or_404(student_id)
    enrollments = enrollment_service.update_student_enrollments(
        student_id, _json().get("course_ids") or []
    )
    return jsonify([e.to_dict() for e in enrollments])


@admin_bp.route("/students/bulk-unenroll", methods=["POST"])
@role_required(Role.ADMIN)
def bulk_unenroll():
    data = _json()
    removed = enrollment_service.bulk_unenroll(data.get("student_ids") or [], data.get("course_id"))
    return jsonify({"status": "success", "removed": removed})


@admin_bp.route("/students/bulk-intake", methods=["POST"])
@role_required(Role.ADMIN)
def bulk_intake():
    data = _json()
    updated = course_service.bulk_update_student_intake(
        data.get("student_ids") or [], data.get("intake_id") or None
    )
    return jsonify({"status": "success", "updated": updated})


# =========================================================
# BULK STUDENT IMPORT
# =========================================================

@admin_bp.route("/students/import/template")
@role_required(Role.ADMIN)
def student_import_template():
    return send_file(
        report_service.csv_buffer(csv_import.student_template()),
        mimetype="text/csv",
        as_attachment=True,
        download_name="student_enrollment_template.csv",
    )


@admin_bp.route("/students/import/validate", methods=["POST"])
@role_required(Role.ADMIN)
def validate_student_import():
    return jsonify(import_service.validate_student_upload(uploaded_file_bytes()))


@admin_bp.route("/students/import/commit", methods=["POST"])
@role_required(Role.ADMIN)
def commit_student_import():
    result = import_service.commit_student_upload(uploaded_file_bytes())
    current_app.logger.info("Student import saved %d rows", result["saved_count"])
    return jsonify(result)


# =========================================================
# MARKS
# =========================================================

@admin_bp.route("/courses/<course_id>/marks")
@role_required(Role.ADMIN)
def get_marks_sheet(course_id):
    marks_service.get_course_or_404(course_id)
    return jsonify(marks_service.marks_sheet(
        course_id,
        intake_id=request.args.get("intake_id"),
        search=request.args.get("search"),
    ))


@admin_bp.route("/marks/<enrollment_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def save_marks(enrollment_id):
    data = _json()
    try:
        cats = int(data.get("cats", 0))
        coursework = int(data.get("coursework", 0))
        final_exam = int(data.get("final_exam", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "Marks must be whole numbers"}), 400

    mark = marks_service.update_marks(enrollment_id, cats, coursework, final_exam)
    return jsonify(mark.to_dict())


@admin_bp.route("/courses/<course_id>/marks/export")
@role_required(Role.ADMIN)
def export_marks(course_id):
    course = marks_service.get_course_or_404(course_id)
    rows = marks_service.marks_sheet(course_id, intake_id=request.args.get("intake_id"))
    buffer, mimetype, ext = report_service.export_marks_sheet(rows, request.args.get("format", "csv"))
    return send_file(
        buffer,
        mimetype=mimetype,
        as_attachment=True,
        download_name=f"marks_{report_service.safe_filename(course.course_code)}.{ext}",
    )


@admin_bp.route("/courses/<course_id>/marks/import/template")
@role_required(Role.ADMIN)
def marks_import_template(course_id):
    course = marks_service.get_course_or_404(course_id)
    return send_file(
        report_service.csv_buffer(import_service.marks_template_csv(course_id)),
        mimetype="text/csv",
        as_attachment=True,
        download_name=f"marks_template_{report_service.safe_filename(course.course_code)}.csv",
    )


@admin_bp.route("/courses/<course_id>/marks/import/validate", methods=["POST"])
@role_required(Role.ADMIN)
def validate_marks_import(course_id):
    return jsonify(import_service.validate_marks_upload(course_id, uploaded_file_bytes()))


@admin_bp.route("/courses/<course_id>/marks/import/commit", methods=["POST"])
@role_required(Role.ADMIN)
def commit_marks_import(course_id):
    return jsonify(import_service.commit_marks_upload(course_id, uploaded_file_bytes()))


# =========================================================
# PERFORMANCE
# =========================================================

@admin_bp.route("/courses/<course_id>/performance")
@role_required(Role.ADMIN)
def performance(course_id):
    marks_service.get_course_or_404(course_id)
    return jsonify(marks_service.course_performance(
        course_id,
        analysis=request.args.get("analysis", "overall"),
        intake_id=request.args.get("intake_id"),
    ))


@admin_bp.route("/courses/<course_id>/grade-distribution")
@role_required(Role.ADMIN)
def grade_distribution(course_id):
    marks_service.get_course_or_404(course_id)
    return jsonify(marks_service.grade_distribution(course_id))


# =========================================================
# MCQ TESTS
# =========================================================

@admin_bp.route("/tests")
@role_required(Role.ADMIN)
def get_tests():
    course_id = request.args.get("course_id")
    tests = mcq_service.list_tests([course_id] if course_id else None)
    return jsonify([t.to_dict() for t in tests])


@admin_bp.route("/tests", methods=["POST"])
@role_required(Role.ADMIN)
def create_test():
    return jsonify(mcq_service.add_test(_json()).to_dict()), 201


@admin_bp.route("/tests/<test_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def remove_test(test_id):
    mcq_service.delete_test(test_id)
    return jsonify({"status": "success"})


@admin_bp.route("/tests/performance")
@role_required(Role.ADMIN)
def test_performance():
    course_id = request.args.get("course_id")
    return jsonify(mcq_service.test_performance(
        [course_id] if course_id else None,
        intake_id=request.args.get("intake_id"),
        search=request.args.get("search"),
    ))


@admin_bp.route("/submissions/<submission_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def edit_submission(submission_id):
    return jsonify(mcq_service.update_submission(submission_id, _json()).to_dict())


@admin_bp.route("/submissions/<submission_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def remove_submission(submission_id):
    mcq_service.delete_submission(submission_id)
    return jsonify({"status": "success"})


# =========================================================
# NOTIFICATIONS
# =========================================================

@admin_bp.route("/notifications")
@role_required(Role.ADMIN)
def get_notifications():
    return jsonify([n.to_dict() for n in notification_service.list_notifications()])


@admin_bp.route("/notifications", methods=["POST"])
@role_required(Role.ADMIN)
def send_notification():
    data = _json()
    notification = notification_service.send_notification(
        data.get("course_id"), data.get("title"), data.get("message")
    )
    return jsonify(notification.to_dict()), 201


@admin_bp.route("/notifications/mark-all-read", methods=["POST"])
@role_required(Role.ADMIN)
def mark_all_notifications_read():
    return jsonify({"status": "success", "updated": notification_service.mark_all_read()})


@admin_bp.route("/notifications", methods=["DELETE"])
@role_required(Role.ADMIN)
def clear_notifications():
    return jsonify({"status": "success", "deleted": notification_service.clear_all()})


# =========================================================
# ASSIGNMENTS
# =========================================================

@admin_bp.route("/assignments")
@role_required(Role.ADMIN)
def get_assignments():
    return jsonify(group_service.list_assignments())


@admin_bp.route("/assignments/<leader_id>/download")
@role_required(Role.ADMIN)
def download_assignment(leader_id):
    name, content_type, payload = group_service.assignment_file(leader_id)
    return send_file(
        BytesIO(payload),
        mimetype=content_type,
        as_attachment=True,
        download_name=name,
    )


# =========================================================
# SETTINGS AND ROLES
# =========================================================

@admin_bp.route("/settings")
@role_required(Role.ADMIN)
def get_settings():
    return jsonify(settings_service.get_settings().to_dict())


@admin_bp.route("/settings", methods=["PUT"])
@role_required(Role.ADMIN)
def update_settings():
    settings = settings_service.update_settings(_json())
    current_app.logger.info("System settings updated")
    return jsonify(settings.to_dict())


@admin_bp.route("/users")
@role_required(Role.ADMIN)
def get_users():
    return jsonify([u.to_dict() for u in settings_service.list_users()])


@admin_bp.route("/users/<user_id>/role", methods=["PUT"])
@role_required(Role.ADMIN)
def change_user_role(user_id):
    data = _json()
    user = settings_service.update_user_role(
        user_id,
        data.get("role"),
        managed_course_id=data.get("managed_course_id"),
        managed_session=data.get("managed_session"),
    )
    return jsonify(user.to_dict())
