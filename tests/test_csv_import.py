from types import SimpleNamespace

from services import csv_import
from services.csv_import import (
    EMPTY_FILE_ERROR, UNREADABLE_FILE_ERROR, MarkRecord, StudentRoster,
    build_enrollment_roster, import_marks, import_students, split_quoted,
)

ROSTER = build_enrollment_roster([
    ("2024-01-00001", "enrol-1", "Alice Achieng"),
    ("2024-01-00002", "enrol-2", "Brian Otieno"),
])

COURSES = {"COS2102": object(), "DCS1203": object()}

STUDENT_HEADER = (
    "fullName,registrationNumber,email,password,course,session,yearOfStudy,"
    "semester,telephone,groupRole,enrollCourseCodes"
)


def student_row(name, reg_no, email, codes='"COS2102"', course="BIT", session="DAY", group_role=""):
    return f"{name},{reg_no},{email},pw123,{course},{session},1,1,0700,{group_role},{codes}"


def empty_roster():
    return StudentRoster(frozenset(), frozenset())


# =========================================================
# TOKENIZER
# =========================================================

def test_split_quoted_keeps_commas_inside_quotes():
    assert split_quoted('John,"COS2102,DCS1203",x') == ["John", "COS2102,DCS1203", "x"]


def test_split_quoted_unescapes_doubled_quotes_and_strips():
    assert split_quoted(' "say ""hi""" , b ') == ['say "hi"', "b"]


def test_split_quoted_trailing_empty_field():
    assert split_quoted("a,b,") == ["a", "b", ""]


# =========================================================
# MARKS
# =========================================================

def test_marks_import_accepts_valid_rows_case_insensitively():
    text = "registrationNumber,cats,coursework,finalExam\n2024-01-00001,18,15,50\n"
    result = import_marks(text, ROSTER)
    assert result.errors == []
    assert result.valid_records == [MarkRecord("enrol-1", 18, 15, 50)]


def test_marks_import_missing_column_is_single_error():
    text = "registrationNumber,cats,coursework\n2024-01-00001,1,2\n2024-01-00002,3,4\n"
    result = import_marks(text, ROSTER)
    assert result.valid_records == []
    assert result.errors == ["Missing required columns: finalExam"]


def test_marks_import_header_only_is_empty():
    result = import_marks("registrationNumber,cats,coursework,finalExam\n", ROSTER)
    assert result.errors == [EMPTY_FILE_ERROR]


def test_marks_import_unreadable_upload():
    result = import_marks(csv_import.decode_upload(b"\xff\xfe\x00bad"), ROSTER)
    assert result.errors == [UNREADABLE_FILE_ERROR]


def test_marks_import_skips_bad_rows_and_keeps_the_rest():
    text = "\n".join([
        "registrationNumber,fullName,cats,coursework,finalExam",
        "2024-01-00001,Alice,18,15,50",
        "2024-01-09999,Ghost,10,10,10",
        "2024-01-00002,Brian,25,10,10",
        ",Nobody,1,1,1",
        "2024-01-00002,Brian,ten,10,10",
    ])
    result = import_marks(text, ROSTER)

    assert result.valid_records == [MarkRecord("enrol-1", 18, 15, 50)]
    assert result.errors == [
        "Row 3: Student with registration number '2024-01-09999' is not enrolled in this course.",
        "Row 4 ('2024-01-00002'): CATs must be between 0 and 20.",
        "Row 5: Missing registrationNumber.",
        "Row 6: Marks for '2024-01-00002' must be numbers.",
    ]


def test_marks_import_rejects_decimal_marks():
    text = "registrationNumber,cats,coursework,finalExam\n2024-01-00001,12.0,10,10\n"
    result = import_marks(text, ROSTER)
    assert result.valid_records == []
    assert result.errors == ["Row 2: Marks for '2024-01-00001' must be numbers."]


def test_marks_import_rejects_repeated_student():
    text = "\n".join([
        "registrationNumber,cats,coursework,finalExam",
        "2024-01-00001,10,10,10",
        "2024-01-00001,12,12,12",
        "2024-01-00002,5,5,5",
    ])
    result = import_marks(text, ROSTER)

    assert result.valid_records == [MarkRecord("enrol-1", 10, 10, 10), MarkRecord("enrol-2", 5, 5, 5)]
    assert result.errors == ["Row 3: Duplicate entry for '2024-01-00001'."]


def test_marks_import_repeat_check_ignores_rejected_rows():
    text = "\n".join([
        "registrationNumber,cats,coursework,finalExam",
        "2024-01-00001,99,10,10",
        "2024-01-00001,12,12,12",
    ])
    result = import_marks(text, ROSTER)

    assert result.valid_records == [MarkRecord("enrol-1", 12, 12, 12)]
    assert result.errors == ["Row 2 ('2024-01-00001'): CATs must be between 0 and 20."]


def test_marks_import_accepts_only_plain_digits():
    text = "\n".join([
        "registrationNumber,cats,coursework,finalExam",
        "2024-01-00001,1_5,1,1",
        "2024-01-00002,١٢,1,1",
    ])
    result = import_marks(text, ROSTER)

    assert result.valid_records == []
    assert result.errors == [
        "Row 2: Marks for '2024-01-00001' must be numbers.",
        "Row 3: Marks for '2024-01-00002' must be numbers.",
    ]


def test_marks_import_accepts_signed_zero():
    text = "registrationNumber,cats,coursework,finalExam\n2024-01-00001,+0,0,-0\n"
    assert import_marks(text, ROSTER).valid_records == [MarkRecord("enrol-1", 0, 0, 0)]


def test_filled_marks_template_with_comma_in_name_imports():
    roster = build_enrollment_roster([("2024-01-00001", "enrol-1", "Doe, John")])
    template = csv_import.marks_template(roster)
    assert template.split("\n")[1] == "2024-01-00001,Doe John,,,"

    filled = template.replace("Doe John,,,", "Doe John,15,20,45")
    result = import_marks(filled, roster)
    assert result.errors == []
    assert result.valid_records == [MarkRecord("enrol-1", 15, 20, 45)]


def test_marks_template_lists_roster():
    template = csv_import.marks_template(ROSTER)
    lines = template.split("\n")
    assert lines[0] == "registrationNumber,fullName,cats,coursework,finalExam"
    assert lines[1] == "2024-01-00001,Alice Achieng,,,"
    assert len(lines) == 3


# =========================================================
# STUDENTS
# =========================================================

def test_student_import_valid_row_defaults_group_role():
    text = "\n".join([STUDENT_HEADER, student_row("Jane", "2024-01-12345", "jane@x.com", '"COS2102,DCS1203"')])
    result = import_students(text, empty_roster(), COURSES)

    assert result.errors == []
    [record] = result.valid_records
    assert record.registration_number == "2024-01-12345"
    assert record.group_role == "Group Member Only"
    assert record.enroll_course_codes == ["COS2102", "DCS1203"]


def test_student_import_rejects_row_with_one_unknown_course_code():
    text = "\n".join([STUDENT_HEADER, student_row("Jane", "2024-01-12345", "jane@x.com", '"COS2102,XYZ999"')])
    result = import_students(text, empty_roster(), COURSES)

    assert result.valid_records == []
    assert result.errors == ["Row 2: Course code 'XYZ999' in 'enrollCourseCodes' not found."]


def test_student_import_catches_duplicates_within_the_file():
    text = "\n".join([
        STUDENT_HEADER,
        student_row("Jane", "2024-01-12345", "jane@x.com"),
        student_row("Jane Again", "2024-01-12345", "JANE@x.com"),
        student_row("Other", "2024-01-54321", "other@x.com"),
    ])
    result = import_students(text, empty_roster(), COURSES)

    assert [r.registration_number for r in result.valid_records] == ["2024-01-12345", "2024-01-54321"]
    assert result.errors == [
        "Row 3: Registration number '2024-01-12345' already exists; Email 'JANE@x.com' already exists.",
    ]


def test_student_import_reports_every_missing_field():
    text = "\n".join([STUDENT_HEADER, ",2024-01-12345,,pw,BIT,DAY,1,1,0700,,COS2102"])
    result = import_students(text, empty_roster(), COURSES)
    assert result.errors == [
        "Row 2: Missing required field 'fullName'; Missing required field 'email'.",
    ]


def test_student_import_checks_enumerations():
    text = "\n".join([
        STUDENT_HEADER,
        student_row("Jane", "2024-01-12345", "jane@x.com", course="XXX", session="NIGHT", group_role="Boss"),
    ])
    result = import_students(text, empty_roster(), COURSES)
    assert result.errors == [
        "Row 2: Invalid course 'XXX'; Invalid session 'NIGHT'; Invalid groupRole 'Boss'.",
    ]


def test_student_import_against_updated_roster_rejects_everything():
    text = "\n".join([
        STUDENT_HEADER,
        student_row("Jane", "2024-01-12345", "jane@x.com"),
        student_row("Other", "2024-01-54321", "other@x.com"),
    ])
    first = import_students(text, empty_roster(), COURSES)
    assert len(first.valid_records) == 2

    users = [
        SimpleNamespace(registration_number=r.registration_number, email=r.email)
        for r in first.valid_records
    ]
    second = import_students(text, csv_import.build_student_roster(users), COURSES)
    assert second.valid_records == []
    assert second.errors == [
        "Row 2: Registration number '2024-01-12345' already exists; Email 'jane@x.com' already exists.",
        "Row 3: Registration number '2024-01-54321' already exists; Email 'other@x.com' already exists.",
    ]


def test_student_import_missing_header_column():
    text = "fullName,registrationNumber,email\nJane,2024-01-12345,jane@x.com"
    result = import_students(text, empty_roster(), COURSES)
    assert result.errors == ["Missing required columns: password, enrollCourseCodes"]


def test_student_template_parses_cleanly():
    result = import_students(csv_import.student_template(), empty_roster(), {"COS2102": 1, "DCS1203": 2})
    assert result.errors == []
    assert result.valid_records[0].enroll_course_codes == ["COS2102", "DCS1203"]
