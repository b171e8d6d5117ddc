import pytest

from models import Notification, TestSubmission
from services import mcq_service, notification_service
from services.errors import ValidationError

QUESTIONS = [
    {"text": "2 + 2?", "options": ["3", "4"], "correct_option_index": 1},
    {"text": "Capital of Kenya?", "options": ["Nairobi", "Mombasa", "Kisumu"], "correct_option_index": 0},
    {"text": "Largest planet?", "options": ["Mars", "Jupiter"], "correct_option_index": 1},
]


@pytest.fixture()
def mcq_test(db, students):
    return mcq_service.add_test({
        "course_id": "course-cos",
        "title": "Quiz 1",
        "description": "Warm up",
        "duration_minutes": 15,
        "due_date": "2025-03-01T12:00:00",
        "questions": QUESTIONS,
    })


def test_add_test_posts_course_notification(mcq_test):
    [notification] = Notification.query.all()
    assert notification.course_id == "course-cos"
    assert notification.title == "New MCQ Test Available"
    assert notification.message == 'A new test "Quiz 1" has been posted for COS2102. Due: 01/03/2025.'
    assert all("id" in q for q in mcq_test.questions)


def test_add_test_validates_questions(db, students):
    with pytest.raises(ValidationError):
        mcq_service.add_test({
            "course_id": "course-cos", "title": "Bad", "duration_minutes": 5,
            "due_date": "2025-03-01", "questions": [{"text": "?", "options": ["a", "b"], "correct_option_index": 2}],
        })


def test_score_answers_counts_matches():
    assert mcq_service.score_answers(QUESTIONS, [1, 0, 1]) == 3
    assert mcq_service.score_answers(QUESTIONS, [1, -1, 0]) == 1
    assert mcq_service.score_answers(QUESTIONS, []) == 0


def test_submit_test_pads_unanswered(mcq_test):
    submission = mcq_service.submit_test(mcq_test.id, "user-1", [1])
    assert submission.answers == [1, -1, -1]
    assert submission.score == 1
    assert submission.total_questions == 3


def test_submit_test_once_only(mcq_test):
    mcq_service.submit_test(mcq_test.id, "user-1", [1, 0, 1])
    with pytest.raises(ValidationError) as exc:
        mcq_service.submit_test(mcq_test.id, "user-1", [1, 0, 1])
    assert exc.value.message == "You have already submitted this test."


def test_submit_test_requires_enrollment(db, students):
    test = mcq_service.add_test({
        "course_id": "course-dcs", "title": "Networks quiz", "duration_minutes": 10,
        "due_date": "2025-03-01", "questions": QUESTIONS,
    })
    with pytest.raises(ValidationError):
        mcq_service.submit_test(test.id, "user-2", [1, 0, 1])


def test_update_submission_rescores(mcq_test):
    submission = mcq_service.submit_test(mcq_test.id, "user-1", [0, 0, 0])
    assert submission.score == 1
    updated = mcq_service.update_submission(submission.id, {"answers": [1, 0, 1]})
    assert updated.score == 3

    with pytest.raises(ValidationError):
        mcq_service.update_submission(submission.id, {"score": 7})


def test_delete_test_removes_submissions(mcq_test):
    mcq_service.submit_test(mcq_test.id, "user-1", [1, 0, 1])
    mcq_service.delete_test(mcq_test.id)
    assert TestSubmission.query.count() == 0
    assert mcq_service.list_tests() == []


def test_test_performance_matrix(mcq_test):
    mcq_service.submit_test(mcq_test.id, "user-2", [1, 0, 0])
    matrix = mcq_service.test_performance(["course-cos"])

    assert [t["id"] for t in matrix["tests"]] == [mcq_test.id]
    scores = {row["student_id"]: row["scores"][mcq_test.id] for row in matrix["students"]}
    assert scores == {"user-1": None, "user-2": "2/3"}


def test_tests_for_student_only_enrolled_courses(mcq_test):
    assert [t.id for t in mcq_service.tests_for_student("user-2")] == [mcq_test.id]
    assert mcq_service.tests_for_student("user-nobody") == []


def test_student_notifications_scope_and_mark_read(db, students):
    notification_service.send_notification("course-dcs", "Lab", "Lab moved")
    notification_service.send_notification("course-cos", "Exam", "Exam on Friday")

    assert [n.title for n in notification_service.notifications_for_student("user-2")] == ["Exam"]
    assert len(notification_service.notifications_for_student("user-1")) == 2

    assert notification_service.mark_student_notifications_read("user-2") == 1
    unread = [n for n in notification_service.list_notifications() if not n.is_read]
    assert [n.title for n in unread] == ["Lab"]

    assert notification_service.clear_all() == 2


def test_send_notification_requires_text(db, students):
    with pytest.raises(ValidationError):
        notification_service.send_notification("course-cos", "", "body")
