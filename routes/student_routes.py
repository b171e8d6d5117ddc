from flask import Blueprint, request, jsonify, send_file
from flask_login import current_user

from models import Enrollment, Role
from services import (
    enrollment_service, group_service, marks_service, mcq_service,
    notification_service, report_service,
)
from services.course_service import list_courses
from services.errors import NotFoundError
from services.settings_service import get_settings
from utils.decorators import role_required
from utils.uploads import uploaded_file_bytes

student_bp = Blueprint("student", __name__, url_prefix="/student")


# =========================================================
# OVERVIEW
# =========================================================

@student_bp.route("/overview")
@role_required(Role.STUDENT)
def overview():
    transcript = marks_service.student_transcript(current_user)
    settings = get_settings()
    notifications = notification_service.notifications_for_student(current_user.id)
    return jsonify({
        "user": current_user.to_dict(),
        "intake": current_user.intake.to_dict() if current_user.intake else None,
        "courses": transcript,
        "unread_notifications": sum(1 for n in notifications if not n.is_read),
        "global_notification": settings.to_dict()["global_notification"],
    })


# =========================================================
# ENROLLMENT
# =========================================================

@student_bp.route("/courses")
@role_required(Role.STUDENT)
def get_courses():
    enrolled = {e.course_id for e in current_user.enrollments}
    return jsonify([
        {**c.to_dict(), "enrolled": c.id in enrolled}
        for c in list_courses()
    ])


@student_bp.route("/courses/<course_id>/enroll", methods=["POST"])
@role_required(Role.STUDENT)
def enroll(course_id):
    enrollment = enrollment_service.enroll(current_user.id, course_id)
    return jsonify(enrollment.to_dict()), 201


@student_bp.route("/courses/<course_id>/enroll", methods=["DELETE"])
@role_required(Role.STUDENT)
def unenroll(course_id):
    if not enrollment_service.unenroll(current_user.id, course_id):
        raise NotFoundError("You are not enrolled in this course.")
    return jsonify({"status": "success"})


# =========================================================
# MARKS
# =========================================================

@student_bp.route("/marks")
@role_required(Role.STUDENT)
def marks():
    return jsonify(marks_service.student_transcript(
        current_user,
        year=request.args.get("year"),
        semester=request.args.get("semester"),
    ))


@student_bp.route("/transcript.pdf")
@role_required(Role.STUDENT)
def transcript_pdf():
    rows = marks_service.student_transcript(
        current_user,
        year=request.args.get("year"),
        semester=request.args.get("semester"),
    )
    buffer = report_service.transcript_pdf(current_user, rows)
    filename = f"transcript_{report_service.safe_filename(current_user.registration_number)}.pdf"
    return send_file(buffer, as_attachment=True, download_name=filename, mimetype="application/pdf")


@student_bp.route("/courses/<course_id>/grade-distribution")
@role_required(Role.STUDENT)
def grade_distribution(course_id):
    if not Enrollment.query.filter_by(student_id=current_user.id, course_id=course_id).first():
        raise NotFoundError("You are not enrolled in this course.")
    return jsonify(marks_service.grade_distribution(course_id))


# =========================================================
# MCQ TESTS
# =========================================================

@student_bp.route("/tests")
@role_required(Role.STUDENT)
def get_tests():
    submitted = {s.test_id: s for s in current_user.submissions}
    tests = []
    for t in mcq_service.tests_for_student(current_user.id):
        tests.append({
            **t.to_dict(include_answers=False),
            "submission": submitted[t.id].to_dict() if t.id in submitted else None,
        })
    return jsonify(tests)


@student_bp.route("/tests/<test_id>/submit", methods=["POST"])
@role_required(Role.STUDENT)
def submit_test(test_id):
    answers = (request.get_json(silent=True) or {}).get("answers") or []
    submission = mcq_service.submit_test(test_id, current_user.id, answers)
    return jsonify(submission.to_dict()), 201


@student_bp.route("/tests/history")
@role_required(Role.STUDENT)
def test_history():
    return jsonify(mcq_service.submission_history(current_user.id))


# =========================================================
# NOTIFICATIONS
# =========================================================

@student_bp.route("/notifications")
@role_required(Role.STUDENT)
def get_notifications():
    return jsonify([
        n.to_dict() for n in notification_service.notifications_for_student(current_user.id)
    ])


@student_bp.route("/notifications/mark-read", methods=["POST"])
@role_required(Role.STUDENT)
def mark_notifications_read():
    updated = notification_service.mark_student_notifications_read(current_user.id)
    return jsonify({"status": "success", "updated": updated})


# =========================================================
# GROUP
# =========================================================

@student_bp.route("/group")
@role_required(Role.STUDENT)
def get_group():
    profile = group_service.group_for_student(current_user)
    return jsonify({
        "is_leader": current_user.group_role == group_service.GROUP_LEADER,
        "group": profile.to_dict() if profile else None,
    })


@student_bp.route("/group", methods=["PUT"])
@role_required(Role.STUDENT)
def save_group():
    profile = group_service.save_profile(current_user, request.get_json(silent=True) or {})
    return jsonify(profile.to_dict())


@student_bp.route("/group/available-students")
@role_required(Role.STUDENT)
def available_students():
    return jsonify([
        {"id": s.id, "full_name": s.full_name, "registration_number": s.registration_number}
        for s in group_service.available_students(current_user)
    ])


@student_bp.route("/group/assignment", methods=["POST"])
@role_required(Role.STUDENT)
def upload_assignment():
    upload = request.files.get("file")
    payload = uploaded_file_bytes()
    profile = group_service.upload_assignment(
        current_user, upload.filename, upload.mimetype, payload
    )
    return jsonify(profile.to_dict())
