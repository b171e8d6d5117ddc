"""
Two-step bulk imports. ``validate_*`` parses an upload against the current
database state without writing anything; ``commit_*`` parses it again and
persists only the valid subset.
"""
import logging

from models import Course, User
from services import csv_import
from services.enrollment_service import bulk_register_and_enroll
from services.marks_service import bulk_update_marks, enrolled_students_map, get_course_or_404

logger = logging.getLogger(__name__)


def _summary(result):
    return {"valid_count": len(result.valid_records), "errors": result.errors}


def _marks_result(course_id, raw, session=None):
    get_course_or_404(course_id)
    roster = enrolled_students_map(course_id, session=session)
    return csv_import.import_marks(csv_import.decode_upload(raw), roster)


def validate_marks_upload(course_id, raw, session=None):
    return _summary(_marks_result(course_id, raw, session))


def commit_marks_upload(course_id, raw, session=None):
    result = _marks_result(course_id, raw, session)
    saved = bulk_update_marks(result.valid_records)
    logger.info("Marks import for %s: saved %d, rejected %d rows", course_id, saved, len(result.errors))
    return {"saved_count": saved, "errors": result.errors}


def marks_template_csv(course_id, session=None):
    get_course_or_404(course_id)
    return csv_import.marks_template(enrolled_students_map(course_id, session=session))


def _students_result(raw):
    roster = csv_import.build_student_roster(User.query.all())
    courses_by_code = {c.course_code: c for c in Course.query.all()}
    return csv_import.import_students(csv_import.decode_upload(raw), roster, courses_by_code)


def validate_student_upload(raw):
    return _summary(_students_result(raw))


def commit_student_upload(raw):
    result = _students_result(raw)
    saved, store_errors = bulk_register_and_enroll(result.valid_records)
    return {"saved_count": saved, "errors": result.errors + store_errors}
