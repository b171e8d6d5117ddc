"""
Bulk CSV import for marks and for student registration with enrollment.

Both importers only validate. They return an ImportResult holding the typed
records that passed and the line-numbered messages for the rows that did
not; nothing here touches the database. The header is row 1, so the first
data row is reported as row 2.
"""
import logging
import re
from collections import namedtuple
from functools import reduce

from flask import current_app, has_app_context

from config.config import Config
from services.grading import validate_marks

logger = logging.getLogger(__name__)

EMPTY_FILE_ERROR = "CSV file is empty or has no data rows."
UNREADABLE_FILE_ERROR = "Error reading file."

MARKS_REQUIRED_COLUMNS = ["registrationNumber", "cats", "coursework", "finalExam"]
MARKS_TEMPLATE_COLUMNS = ["registrationNumber", "fullName", "cats", "coursework", "finalExam"]

STUDENT_REQUIRED_COLUMNS = ["fullName", "registrationNumber", "email", "password", "enrollCourseCodes"]
STUDENT_TEMPLATE_COLUMNS = [
    "fullName", "registrationNumber", "email", "password", "course", "session",
    "yearOfStudy", "semester", "telephone", "groupRole", "enrollCourseCodes",
]

DEFAULT_GROUP_ROLE = "Group Member Only"

ImportResult = namedtuple("ImportResult", ["valid_records", "errors"])
RowFailure = namedtuple("RowFailure", ["row_number", "messages"])

EnrollmentRecord = namedtuple("EnrollmentRecord", ["enrollment_id", "full_name"])
MarkRecord = namedtuple("MarkRecord", ["enrollment_id", "cats", "coursework", "final_exam"])
StudentRecord = namedtuple("StudentRecord", [
    "full_name", "registration_number", "email", "password",
    "course", "session", "year_of_study", "semester", "telephone",
    "group_role", "enroll_course_codes",
])

# lowercased registration numbers and emails already in the system
StudentRoster = namedtuple("StudentRoster", ["registration_numbers", "emails"])
StudentOptions = namedtuple("StudentOptions", ["courses", "sessions", "group_roles"])

_StudentFold = namedtuple("_StudentFold", ["seen_registration_numbers", "seen_emails", "valid", "errors"])


# =========================================================
# TOKENIZING
# =========================================================

def split_lines(text):
    return [line for line in re.split(r"\r\n|\n", text) if line.strip() != ""]


def split_plain(line):
    return [value.strip() for value in line.split(",")]


def split_quoted(line):
    """
    Split one CSV line on commas that are outside double quotes.

    Surrounding quotes are dropped, a doubled quote inside a quoted field
    stands for one literal quote, and every field is stripped.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    fields.append("".join(current).strip())
    return fields


def decode_upload(raw):
    """Decode uploaded bytes, returning None when the payload is not text."""
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8-sig")
    except (UnicodeDecodeError, AttributeError):
        return None


def _row_map(headers, values):
    return {header: (values[i] if i < len(values) else "") for i, header in enumerate(headers)}


def _read_table(text, splitter, required_columns):
    """
    Return (headers, rows, fatal_errors). rows is a list of
    (row_number, {column: value}).
    """
    lines = split_lines(text)
    if len(lines) < 2:
        return None, [], [EMPTY_FILE_ERROR]

    headers = splitter(lines[0])
    missing = [col for col in required_columns if col not in headers]
    if missing:
        return headers, [], [f"Missing required columns: {', '.join(missing)}"]

    rows = [
        (index + 1, _row_map(headers, splitter(line)))
        for index, line in enumerate(lines[1:], start=1)
    ]
    return headers, rows, []


INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def _parse_int(value):
    # ASCII digits with an optional sign; no underscores or other scripts
    text = str(value).strip()
    if not INTEGER_PATTERN.fullmatch(text):
        return None
    return int(text)


def _row_failure(row_number, reasons):
    """One line-numbered message per rejected row, reasons joined by ';'."""
    return RowFailure(row_number, [f"Row {row_number}: {'; '.join(reasons)}."])


# =========================================================
# MARKS
# =========================================================

def build_enrollment_roster(pairs):
    """
    pairs: iterable of (registration_number, enrollment_id, full_name) for
    the students currently enrolled in one course.
    """
    return {
        reg_no.lower(): EnrollmentRecord(enrollment_id, full_name)
        for reg_no, enrollment_id, full_name in pairs
    }


def parse_mark_row(row, row_number, roster, policy=None, seen_enrollment_ids=frozenset()):
    """Turn one marks row into a MarkRecord or a RowFailure."""
    reg_no = row.get("registrationNumber", "")
    if not reg_no:
        return RowFailure(row_number, [f"Row {row_number}: Missing registrationNumber."])

    enrolled = roster.get(reg_no.lower())
    if enrolled is None:
        return RowFailure(row_number, [
            f"Row {row_number}: Student with registration number '{reg_no}' is not enrolled in this course."
        ])

    if enrolled.enrollment_id in seen_enrollment_ids:
        return RowFailure(row_number, [f"Row {row_number}: Duplicate entry for '{reg_no}'."])

    cats = _parse_int(row.get("cats", ""))
    coursework = _parse_int(row.get("coursework", ""))
    final_exam = _parse_int(row.get("finalExam", ""))
    if cats is None or coursework is None or final_exam is None:
        return RowFailure(row_number, [f"Row {row_number}: Marks for '{reg_no}' must be numbers."])

    error = validate_marks(cats, coursework, final_exam, policy)
    if error:
        return RowFailure(row_number, [f"Row {row_number} ('{reg_no}'): {error}"])

    return MarkRecord(enrolled.enrollment_id, cats, coursework, final_exam)


def import_marks(text, roster, policy=None):
    """Validate a marks CSV for one course against its enrollment roster."""
    if text is None:
        return ImportResult([], [UNREADABLE_FILE_ERROR])

    _, rows, fatal = _read_table(text, split_plain, MARKS_REQUIRED_COLUMNS)
    if fatal:
        return ImportResult([], fatal)

    valid, errors = [], []
    seen_enrollment_ids = set()
    for row_number, row in rows:
        outcome = parse_mark_row(row, row_number, roster, policy, seen_enrollment_ids)
        if isinstance(outcome, RowFailure):
            errors.extend(outcome.messages)
        else:
            seen_enrollment_ids.add(outcome.enrollment_id)
            valid.append(outcome)

    logger.info("Marks import: %d valid rows, %d errors", len(valid), len(errors))
    return ImportResult(valid, errors)


# =========================================================
# STUDENTS
# =========================================================

def build_student_roster(users):
    users = list(users)
    return StudentRoster(
        frozenset(u.registration_number.lower() for u in users),
        frozenset(u.email.lower() for u in users),
    )


def default_student_options():
    config = current_app.config if has_app_context() else vars(Config)
    return StudentOptions(
        tuple(config["COURSE_OPTIONS"]),
        tuple(config["SESSION_OPTIONS"]),
        tuple(config["GROUP_ROLE_OPTIONS"]),
    )


def split_course_codes(cell):
    return [code.strip() for code in cell.split(",") if code.strip()] if cell else []


def parse_student_row(row, row_number, seen_registration_numbers, seen_emails,
                      courses_by_code, options):
    """Turn one student row into a StudentRecord or a RowFailure."""
    missing = [
        f"Missing required field '{field}'"
        for field in STUDENT_REQUIRED_COLUMNS
        if not row.get(field)
    ]
    if missing:
        return _row_failure(row_number, missing)

    reasons = []
    reg_no = row["registrationNumber"]
    email = row["email"]

    if reg_no.lower() in seen_registration_numbers:
        reasons.append(f"Registration number '{reg_no}' already exists")
    if email.lower() in seen_emails:
        reasons.append(f"Email '{email}' already exists")

    course = row.get("course", "")
    session = row.get("session", "")
    group_role = row.get("groupRole", "")
    if course and course not in options.courses:
        reasons.append(f"Invalid course '{course}'")
    if session and session not in options.sessions:
        reasons.append(f"Invalid session '{session}'")
    if group_role and group_role not in options.group_roles:
        reasons.append(f"Invalid groupRole '{group_role}'")

    codes = split_course_codes(row["enrollCourseCodes"])
    for code in codes:
        if code not in courses_by_code:
            reasons.append(f"Course code '{code}' in 'enrollCourseCodes' not found")

    if reasons:
        return _row_failure(row_number, reasons)

    return StudentRecord(
        full_name=row["fullName"],
        registration_number=reg_no,
        email=email,
        password=row["password"],
        course=course or None,
        session=session or None,
        year_of_study=row.get("yearOfStudy") or None,
        semester=row.get("semester") or None,
        telephone=row.get("telephone") or None,
        group_role=group_role or DEFAULT_GROUP_ROLE,
        enroll_course_codes=codes,
    )


def import_students(text, roster, courses_by_code, options=None):
    """
    Validate a student registration CSV.

    Registration numbers and emails must be new to both the roster and the
    rows accepted earlier in the same file.
    """
    if text is None:
        return ImportResult([], [UNREADABLE_FILE_ERROR])

    _, rows, fatal = _read_table(text, split_quoted, STUDENT_REQUIRED_COLUMNS)
    if fatal:
        return ImportResult([], fatal)

    options = options or default_student_options()

    def step(state, numbered_row):
        row_number, row = numbered_row
        outcome = parse_student_row(
            row, row_number,
            state.seen_registration_numbers, state.seen_emails,
            courses_by_code, options,
        )
        if isinstance(outcome, RowFailure):
            return state._replace(errors=state.errors + tuple(outcome.messages))
        return state._replace(
            seen_registration_numbers=state.seen_registration_numbers | {outcome.registration_number.lower()},
            seen_emails=state.seen_emails | {outcome.email.lower()},
            valid=state.valid + (outcome,),
        )

    initial = _StudentFold(
        frozenset(roster.registration_numbers),
        frozenset(roster.emails),
        (),
        (),
    )
    final = reduce(step, rows, initial)

    logger.info("Student import: %d valid rows, %d errors", len(final.valid), len(final.errors))
    return ImportResult(list(final.valid), list(final.errors))


# =========================================================
# TEMPLATES
# =========================================================

def _quote(value):
    return '"' + str(value).replace('"', '""') + '"'


def marks_template(roster):
    """
    Template rows for every enrolled student with empty mark cells.

    The marks import splits on every comma, so names are written unquoted
    with their commas dropped to keep the mark columns in place.
    """
    lines = [",".join(MARKS_TEMPLATE_COLUMNS)]
    for reg_no, record in roster.items():
        name = " ".join(record.full_name.replace(",", " ").split())
        lines.append(f"{reg_no},{name},,,")
    return "\n".join(lines)


def student_template():
    example = [
        "John Doe", "2024-01-98765", "john.doe@example.com", "password123",
        "BIT", "DAY", "1", "1", "1234567890",
        _quote("Group Member Only"), _quote("COS2102,DCS1203"),
    ]
    return "\n".join([",".join(STUDENT_TEMPLATE_COLUMNS), ",".join(example)])
