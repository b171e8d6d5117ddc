import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config.config import TestConfig
from extensions import db as _db
from models import Course, Enrollment, Intake, User, Role
from services.auth_service import create_default_admin
from services.settings_service import get_settings

STUDENT_PASSWORD = "secret123"


@pytest.fixture()
def app():
    """
    Application on an in-memory SQLite database. The app context stays
    pushed for the whole test so services can be called directly.
    """
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        get_settings()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def db(app):
    return _db


@pytest.fixture()
def admin(app):
    return create_default_admin()


@pytest.fixture()
def intake(db):
    intake = Intake(id="intake-1", name="January Intake", academic_year="2024/2025", status="active")
    db.session.add(intake)
    db.session.commit()
    return intake


@pytest.fixture()
def courses(db):
    cos = Course(id="course-cos", course_code="COS2102", course_name="Data Structures",
                 credit_hours=3, semester="1", academic_year="2024/2025")
    dcs = Course(id="course-dcs", course_code="DCS1203", course_name="Networks",
                 credit_hours=3, semester="2", academic_year="2024/2025")
    db.session.add_all([cos, dcs])
    db.session.commit()
    return {"COS2102": cos, "DCS1203": dcs}


def make_student(db, index, session="DAY", group_role="Group Member Only", intake_id=None):
    student = User(
        id=f"user-{index}",
        registration_number=f"2024-01-0000{index}",
        full_name=f"Student {index}",
        email=f"student{index}@example.com",
        password_hash=generate_password_hash(STUDENT_PASSWORD),
        role=Role.STUDENT,
        course="BIT",
        session=session,
        year_of_study="1",
        semester="1",
        telephone="0700000000",
        group_role=group_role,
        intake_id=intake_id,
    )
    db.session.add(student)
    return student


@pytest.fixture()
def students(db, courses, intake):
    """Two students in COS2102 (one DAY, one EVENING); the first also takes DCS1203."""
    first = make_student(db, 1, intake_id=intake.id)
    second = make_student(db, 2, session="EVENING")
    db.session.add_all([
        Enrollment(id="enrol-1-cos", student_id=first.id, course_id="course-cos"),
        Enrollment(id="enrol-1-dcs", student_id=first.id, course_id="course-dcs"),
        Enrollment(id="enrol-2-cos", student_id=second.id, course_id="course-cos"),
    ])
    db.session.commit()
    return [first, second]


@pytest.fixture()
def coordinator(db, courses):
    user = User(
        id="user-coord",
        registration_number="coord01",
        full_name="Course Coordinator",
        email="coord@example.com",
        password_hash=generate_password_hash("coordpass"),
        role=Role.COORDINATOR,
        managed_course_id="course-cos",
        managed_session="DAY",
    )
    db.session.add(user)
    db.session.commit()
    return user


def login(client, registration_number, password, role=None):
    payload = {"registration_number": registration_number, "password": password}
    if role:
        payload["role"] = role
    return client.post("/auth/login", json=payload)


@pytest.fixture()
def admin_client(client, admin):
    assert login(client, "admin", "admin123").status_code == 200
    return client


@pytest.fixture()
def student_client(client, students):
    assert login(client, students[0].registration_number, STUDENT_PASSWORD).status_code == 200
    return client


@pytest.fixture()
def coordinator_client(client, coordinator, students):
    assert login(client, "coord01", "coordpass").status_code == 200
    return client
