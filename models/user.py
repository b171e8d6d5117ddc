from extensions import db
from flask_login import UserMixin


class Role:
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    STUDENT = "student"

    ALL = (ADMIN, COORDINATOR, STUDENT)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(64), primary_key=True)
    registration_number = db.Column(db.String(50), unique=True, nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.STUDENT)

    course = db.Column(db.String(20))
    session = db.Column(db.String(20))
    year_of_study = db.Column(db.String(10))
    semester = db.Column(db.String(10))
    telephone = db.Column(db.String(30))
    group_role = db.Column(db.String(30))

    password_reset_token = db.Column(db.String(64), index=True)
    password_reset_expires = db.Column(db.DateTime)
    force_password_change = db.Column(db.Boolean, default=False)

    # coordinator scope
    managed_course_id = db.Column(
        db.String(64),
        db.ForeignKey("courses.id"),
        nullable=True
    )
    managed_session = db.Column(db.String(20), nullable=True)

    intake_id = db.Column(
        db.String(64),
        db.ForeignKey("intakes.id"),
        nullable=True
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    enrollments = db.relationship("Enrollment", backref="student", lazy=True, cascade="all, delete")
    submissions = db.relationship("TestSubmission", backref="student", lazy=True, cascade="all, delete")
    group_profile = db.relationship(
        "GroupProfile", backref="leader", uselist=False, lazy=True, cascade="all, delete"
    )
    managed_course = db.relationship("Course", foreign_keys=[managed_course_id])

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @property
    def is_coordinator(self):
        return self.role == Role.COORDINATOR

    @property
    def is_student(self):
        return self.role == Role.STUDENT

    def to_dict(self):
        return {
            "id": self.id,
            "registration_number": self.registration_number,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "course": self.course,
            "session": self.session,
            "year_of_study": self.year_of_study,
            "semester": self.semester,
            "telephone": self.telephone,
            "group_role": self.group_role,
            "force_password_change": bool(self.force_password_change),
            "managed_course_id": self.managed_course_id,
            "managed_session": self.managed_session,
            "intake_id": self.intake_id,
        }

    def __repr__(self):
        return f"<User {self.registration_number}>"
