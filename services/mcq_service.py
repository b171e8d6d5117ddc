import logging
from datetime import datetime

from extensions import db
from models import Course, Enrollment, MCQTest, TestSubmission, User, Role
from services.errors import NotFoundError, ValidationError
from services.notification_service import send_notification
from services.persistence import commit_or_raise, new_id

logger = logging.getLogger(__name__)

UNANSWERED = -1


def _parse_due_date(value):
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid due date '{value}'")


def _clean_questions(raw_questions):
    if not raw_questions:
        raise ValidationError("A test needs at least one question")

    questions = []
    for index, q in enumerate(raw_questions, start=1):
        text = (q.get("text") or "").strip()
        options = [str(o).strip() for o in (q.get("options") or [])]
        correct = q.get("correct_option_index")

        if not text:
            raise ValidationError(f"Question {index} has no text")
        if len(options) < 2 or not all(options):
            raise ValidationError(f"Question {index} needs at least two non-empty options")
        if not isinstance(correct, int) or not 0 <= correct < len(options):
            raise ValidationError(f"Question {index} has no valid correct option")

        questions.append({
            "id": q.get("id") or new_id("q"),
            "text": text,
            "options": options,
            "correct_option_index": correct,
        })
    return questions


def add_test(data):
    """Create a test and notify the course about it."""
    course = db.session.get(Course, data.get("course_id"))
    if not course:
        raise NotFoundError("Course not found")

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")

    try:
        duration = int(data.get("duration_minutes"))
    except (TypeError, ValueError):
        raise ValidationError("Duration must be a number of minutes")
    if duration <= 0:
        raise ValidationError("Duration must be positive")

    test = MCQTest(
        id=new_id("test"),
        course_id=course.id,
        title=title,
        description=(data.get("description") or "").strip(),
        duration_minutes=duration,
        due_date=_parse_due_date(data.get("due_date")),
        questions=_clean_questions(data.get("questions")),
    )
    db.session.add(test)
    commit_or_raise("mcq_tests")

    send_notification(
        course.id,
        "New MCQ Test Available",
        f'A new test "{test.title}" has been posted for {course.course_code}. '
        f"Due: {test.due_date.strftime('%d/%m/%Y')}.",
    )
    logger.info("Created MCQ test %s for %s", test.id, course.course_code)
    return test


def get_test_or_404(test_id):
    test = db.session.get(MCQTest, test_id)
    if not test:
        raise NotFoundError("Test not found")
    return test


def list_tests(course_ids=None):
    query = MCQTest.query
    if course_ids is not None:
        query = query.filter(MCQTest.course_id.in_(list(course_ids)))
    return query.order_by(MCQTest.due_date.asc()).all()


def tests_for_student(student_id):
    course_ids = [e.course_id for e in Enrollment.query.filter_by(student_id=student_id).all()]
    return list_tests(course_ids)


def delete_test(test_id):
    test = get_test_or_404(test_id)
    TestSubmission.query.filter_by(test_id=test.id).delete(synchronize_session=False)
    db.session.expire(test)
    db.session.delete(test)
    commit_or_raise("mcq_tests")


def score_answers(questions, answers):
    """Number of answers matching the correct option; missing answers score nothing."""
    score = 0
    for index, question in enumerate(questions):
        if index < len(answers) and answers[index] == question["correct_option_index"]:
            score += 1
    return score


def _normalise_answers(questions, answers):
    answers = list(answers or [])
    if len(answers) > len(questions):
        raise ValidationError("More answers than questions")
    answers += [UNANSWERED] * (len(questions) - len(answers))
    for a in answers:
        if not isinstance(a, int):
            raise ValidationError("Answers must be option indexes")
    return answers


def submit_test(test_id, student_id, answers):
    test = get_test_or_404(test_id)

    enrolled = Enrollment.query.filter_by(student_id=student_id, course_id=test.course_id).first()
    if not enrolled:
        raise ValidationError("You are not enrolled in this course.")

    if TestSubmission.query.filter_by(test_id=test.id, student_id=student_id).first():
        raise ValidationError("You have already submitted this test.")

    answers = _normalise_answers(test.questions, answers)
    submission = TestSubmission(
        id=new_id("sub"),
        test_id=test.id,
        student_id=student_id,
        answers=answers,
        score=score_answers(test.questions, answers),
        total_questions=len(test.questions),
    )
    db.session.add(submission)
    commit_or_raise("mcq_submissions")
    return submission


def update_submission(submission_id, data):
    submission = db.session.get(TestSubmission, submission_id)
    if not submission:
        raise NotFoundError("Submission not found")

    if "answers" in data:
        questions = submission.test.questions
        answers = _normalise_answers(questions, data["answers"])
        submission.answers = answers
        submission.score = score_answers(questions, answers)
    elif "score" in data:
        try:
            score = int(data["score"])
        except (TypeError, ValueError):
            raise ValidationError("Score must be a number")
        if not 0 <= score <= submission.total_questions:
            raise ValidationError(f"Score must be between 0 and {submission.total_questions}")
        submission.score = score

    commit_or_raise("mcq_submissions")
    return submission


def delete_submission(submission_id):
    submission = db.session.get(TestSubmission, submission_id)
    if not submission:
        raise NotFoundError("Submission not found")
    db.session.delete(submission)
    commit_or_raise("mcq_submissions")


def submission_history(student_id):
    submissions = (
        TestSubmission.query.filter_by(student_id=student_id)
        .order_by(TestSubmission.submitted_at.desc())
        .all()
    )
    return [
        {
            **s.to_dict(),
            "test_title": s.test.title,
            "course_code": s.test.course.course_code,
        }
        for s in submissions
    ]


def test_performance(course_ids=None, intake_id=None, search=None):
    """Score matrix: one row per student, one cell per test."""
    tests = list_tests(course_ids)
    test_ids = [t.id for t in tests]

    students = User.query.filter_by(role=Role.STUDENT)
    if course_ids is not None:
        students = students.join(Enrollment, Enrollment.student_id == User.id).filter(
            Enrollment.course_id.in_(list(course_ids))
        ).distinct()
    if intake_id:
        students = students.filter(User.intake_id == intake_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        students = students.filter(
            db.or_(
                db.func.lower(User.full_name).like(pattern),
                db.func.lower(User.registration_number).like(pattern),
            )
        )
    students = students.order_by(User.full_name.asc()).all()

    by_student = {}
    if test_ids:
        for s in TestSubmission.query.filter(TestSubmission.test_id.in_(test_ids)).all():
            by_student.setdefault(s.student_id, {})[s.test_id] = s

    rows = []
    for student in students:
        subs = by_student.get(student.id, {})
        rows.append({
            "student_id": student.id,
            "full_name": student.full_name,
            "registration_number": student.registration_number,
            "intake": student.intake.name if student.intake else "",
            "scores": {
                t.id: (f"{subs[t.id].score}/{subs[t.id].total_questions}" if t.id in subs else None)
                for t in tests
            },
        })
    return {
        "tests": [{"id": t.id, "title": t.title, "course_id": t.course_id} for t in tests],
        "students": rows,
    }
