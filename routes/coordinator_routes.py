from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import current_user

from extensions import db
from models import Enrollment, Role, TestSubmission
from services import (
    group_service, import_service, marks_service, mcq_service,
    notification_service, report_service, student_service,
)
from services.errors import NotFoundError, PermissionDenied
from utils.decorators import role_required
from utils.uploads import uploaded_file_bytes

coordinator_bp = Blueprint("coordinator", __name__, url_prefix="/coordinator")


# =========================================================
# HELPERS
# =========================================================

def managed_course():
    if not current_user.managed_course_id:
        raise PermissionDenied("No course has been assigned to you.")
    return marks_service.get_course_or_404(current_user.managed_course_id)


def managed_session():
    return current_user.managed_session or None


def _check_enrollment(enrollment_id, course):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment or enrollment.course_id != course.id:
        raise NotFoundError("Enrollment not found")
    session = managed_session()
    if session and enrollment.student.session != session:
        raise PermissionDenied("This student is outside your managed session.")
    return enrollment


def _check_test(test_id, course):
    test = mcq_service.get_test_or_404(test_id)
    if test.course_id != course.id:
        raise NotFoundError("Test not found")
    return test


def _check_submission(submission_id, course):
    submission = db.session.get(TestSubmission, submission_id)
    if not submission or submission.test.course_id != course.id:
        raise NotFoundError("Submission not found")
    return submission


# =========================================================
# DASHBOARD
# =========================================================

@coordinator_bp.route("/overview")
@role_required(Role.COORDINATOR)
def overview():
    course = managed_course()
    students = student_service.list_students(course_id=course.id, session=managed_session())
    return jsonify({
        "course": course.to_dict(),
        "managed_session": managed_session(),
        "student_count": len(students),
        "tests": len(mcq_service.list_tests([course.id])),
        "grade_distribution": marks_service.grade_distribution(course.id),
    })


@coordinator_bp.route("/students")
@role_required(Role.COORDINATOR)
def get_students():
    course = managed_course()
    students = student_service.list_students(
        search=request.args.get("search"),
        intake_id=request.args.get("intake_id"),
        course_id=course.id,
        session=managed_session(),
    )
    return jsonify([s.to_dict() for s in students])


# =========================================================
# MARKS
# =========================================================

@coordinator_bp.route("/marks")
@role_required(Role.COORDINATOR)
def get_marks_sheet():
    course = managed_course()
    return jsonify(marks_service.marks_sheet(
        course.id,
        session=managed_session(),
        intake_id=request.args.get("intake_id"),
        search=request.args.get("search"),
    ))


@coordinator_bp.route("/marks/<enrollment_id>", methods=["PUT"])
@role_required(Role.COORDINATOR)
def save_marks(enrollment_id):
    _check_enrollment(enrollment_id, managed_course())
    data = request.get_json(silent=True) or {}
    try:
        cats = int(data.get("cats", 0))
        coursework = int(data.get("coursework", 0))
        final_exam = int(data.get("final_exam", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "Marks must be whole numbers"}), 400

    mark = marks_service.update_marks(enrollment_id, cats, coursework, final_exam)
    current_app.logger.info("Coordinator %s saved marks for %s", current_user.id, enrollment_id)
    return jsonify(mark.to_dict())


@coordinator_bp.route("/marks/export")
@role_required(Role.COORDINATOR)
def export_marks():
    course = managed_course()
    rows = marks_service.marks_sheet(course.id, session=managed_session())
    buffer, mimetype, ext = report_service.export_marks_sheet(rows, request.args.get("format", "csv"))
    return send_file(
        buffer,
        mimetype=mimetype,
        as_attachment=True,
        download_name=f"marks_{report_service.safe_filename(course.course_code)}.{ext}",
    )


@coordinator_bp.route("/marks/import/template")
@role_required(Role.COORDINATOR)
def marks_import_template():
    course = managed_course()
    return send_file(
        report_service.csv_buffer(import_service.marks_template_csv(course.id, managed_session())),
        mimetype="text/csv",
        as_attachment=True,
        download_name=f"marks_template_{report_service.safe_filename(course.course_code)}.csv",
    )


@coordinator_bp.route("/marks/import/validate", methods=["POST"])
@role_required(Role.COORDINATOR)
def validate_marks_import():
    course = managed_course()
    return jsonify(import_service.validate_marks_upload(course.id, uploaded_file_bytes(), managed_session()))


@coordinator_bp.route("/marks/import/commit", methods=["POST"])
@role_required(Role.COORDINATOR)
def commit_marks_import():
    course = managed_course()
    return jsonify(import_service.commit_marks_upload(course.id, uploaded_file_bytes(), managed_session()))


@coordinator_bp.route("/performance")
@role_required(Role.COORDINATOR)
def performance():
    course = managed_course()
    return jsonify(marks_service.course_performance(
        course.id,
        analysis=request.args.get("analysis", "overall"),
        intake_id=request.args.get("intake_id"),
    ))


# =========================================================
# MCQ TESTS
# =========================================================

@coordinator_bp.route("/tests")
@role_required(Role.COORDINATOR)
def get_tests():
    course = managed_course()
    return jsonify([t.to_dict() for t in mcq_service.list_tests([course.id])])


@coordinator_bp.route("/tests", methods=["POST"])
@role_required(Role.COORDINATOR)
def create_test():
    course = managed_course()
    data = dict(request.get_json(silent=True) or {}, course_id=course.id)
    return jsonify(mcq_service.add_test(data).to_dict()), 201


@coordinator_bp.route("/tests/<test_id>", methods=["DELETE"])
@role_required(Role.COORDINATOR)
def remove_test(test_id):
    _check_test(test_id, managed_course())
    mcq_service.delete_test(test_id)
    return jsonify({"status": "success"})


@coordinator_bp.route("/tests/performance")
@role_required(Role.COORDINATOR)
def test_performance():
    course = managed_course()
    return jsonify(mcq_service.test_performance(
        [course.id],
        intake_id=request.args.get("intake_id"),
        search=request.args.get("search"),
    ))


@coordinator_bp.route("/submissions/<submission_id>", methods=["PUT"])
@role_required(Role.COORDINATOR)
def edit_submission(submission_id):
    _check_submission(submission_id, managed_course())
    data = request.get_json(silent=True) or {}
    return jsonify(mcq_service.update_submission(submission_id, data).to_dict())


@coordinator_bp.route("/submissions/<submission_id>", methods=["DELETE"])
@role_required(Role.COORDINATOR)
def remove_submission(submission_id):
    _check_submission(submission_id, managed_course())
    mcq_service.delete_submission(submission_id)
    return jsonify({"status": "success"})


# =========================================================
# NOTIFICATIONS AND GROUPS
# =========================================================

@coordinator_bp.route("/notifications")
@role_required(Role.COORDINATOR)
def get_notifications():
    course = managed_course()
    return jsonify([n.to_dict() for n in notification_service.list_notifications([course.id])])


@coordinator_bp.route("/notifications", methods=["POST"])
@role_required(Role.COORDINATOR)
def send_notification():
    course = managed_course()
    data = request.get_json(silent=True) or {}
    notification = notification_service.send_notification(course.id, data.get("title"), data.get("message"))
    return jsonify(notification.to_dict()), 201


@coordinator_bp.route("/notifications", methods=["DELETE"])
@role_required(Role.COORDINATOR)
def clear_notifications():
    course = managed_course()
    return jsonify({"status": "success", "deleted": notification_service.clear_all([course.id])})


@coordinator_bp.route("/groups")
@role_required(Role.COORDINATOR)
def get_groups():
    course = managed_course()
    return jsonify([g.to_dict() for g in group_service.list_groups(course.id)])
