from extensions import db


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.String(64), primary_key=True)
    course_code = db.Column(db.String(20), unique=True, nullable=False)
    course_name = db.Column(db.String(150), nullable=False)
    credit_hours = db.Column(db.Integer, nullable=True)
    semester = db.Column(db.String(10), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)

    enrollments = db.relationship("Enrollment", backref="course", lazy=True, cascade="all, delete")
    mcq_tests = db.relationship("MCQTest", backref="course", lazy=True, cascade="all, delete")
    notifications = db.relationship("Notification", backref="course", lazy=True, cascade="all, delete")

    def to_dict(self):
        return {
            "id": self.id,
            "course_code": self.course_code,
            "course_name": self.course_name,
            "credit_hours": self.credit_hours,
            "semester": self.semester,
            "academic_year": self.academic_year,
        }

    def __repr__(self):
        return f"<Course {self.course_code}>"
