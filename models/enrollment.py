from extensions import db


class Enrollment(db.Model):
    __tablename__ = "enrollments"

    id = db.Column(db.String(64), primary_key=True)

    student_id = db.Column(
        db.String(64),
        db.ForeignKey("users.id"),
        nullable=False
    )

    course_id = db.Column(
        db.String(64),
        db.ForeignKey("courses.id"),
        nullable=False
    )

    mark = db.relationship("Mark", backref="enrollment", uselist=False, lazy=True, cascade="all, delete")

    __table_args__ = (
        db.UniqueConstraint("student_id", "course_id", name="unique_student_course"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
        }

    def __repr__(self):
        return f"<Enrollment student={self.student_id} course={self.course_id}>"
