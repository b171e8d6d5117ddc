from extensions import db


class Mark(db.Model):
    __tablename__ = "marks"

    # always "mark-<enrollment id>"
    id = db.Column(db.String(80), primary_key=True)

    enrollment_id = db.Column(
        db.String(64),
        db.ForeignKey("enrollments.id"),
        unique=True,
        nullable=False
    )

    cats = db.Column(db.Integer, nullable=False, default=0)
    coursework = db.Column(db.Integer, nullable=False, default=0)
    final_exam = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime,
        server_default=db.func.now(),
        onupdate=db.func.now()
    )

    def to_dict(self):
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "cats": self.cats,
            "coursework": self.coursework,
            "final_exam": self.final_exam,
        }

    def __repr__(self):
        return f"<Mark {self.id}>"
