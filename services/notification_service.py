from extensions import db
from models import Course, Enrollment, Notification
from services.errors import NotFoundError, ValidationError
from services.persistence import commit_or_raise, new_id


def send_notification(course_id, title, message):
    title = (title or "").strip()
    message = (message or "").strip()
    if not title or not message:
        raise ValidationError("Title and message are required")
    if not db.session.get(Course, course_id):
        raise NotFoundError("Course not found")

    notification = Notification(
        id=new_id("notif"),
        course_id=course_id,
        title=title,
        message=message,
        is_read=False,
    )
    db.session.add(notification)
    commit_or_raise("notifications")
    return notification


def list_notifications(course_ids=None):
    query = Notification.query
    if course_ids is not None:
        query = query.filter(Notification.course_id.in_(list(course_ids)))
    return query.order_by(Notification.timestamp.desc()).all()


def _enrolled_course_ids(student_id):
    return [
        e.course_id for e in Enrollment.query.filter_by(student_id=student_id).all()
    ]


def notifications_for_student(student_id):
    return list_notifications(_enrolled_course_ids(student_id))


def mark_student_notifications_read(student_id):
    course_ids = _enrolled_course_ids(student_id)
    if not course_ids:
        return 0
    updated = Notification.query.filter(Notification.course_id.in_(course_ids)).update(
        {"is_read": True}, synchronize_session=False
    )
    commit_or_raise("notifications")
    return updated


def mark_all_read():
    updated = Notification.query.filter_by(is_read=False).update(
        {"is_read": True}, synchronize_session=False
    )
    commit_or_raise("notifications")
    return updated


def clear_all(course_ids=None):
    query = Notification.query
    if course_ids is not None:
        query = query.filter(Notification.course_id.in_(list(course_ids)))
    deleted = query.delete(synchronize_session=False)
    commit_or_raise("notifications")
    return deleted
