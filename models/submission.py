from extensions import db


class TestSubmission(db.Model):
    __test__ = False
    __tablename__ = "mcq_submissions"

    id = db.Column(db.String(64), primary_key=True)

    test_id = db.Column(
        db.String(64),
        db.ForeignKey("mcq_tests.id"),
        nullable=False
    )

    student_id = db.Column(
        db.String(64),
        db.ForeignKey("users.id"),
        nullable=False
    )

    answers = db.Column(db.JSON, nullable=False, default=list)
    score = db.Column(db.Integer, nullable=False, default=0)
    total_questions = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, server_default=db.func.now())

    __table_args__ = (
        db.UniqueConstraint("test_id", "student_id", name="unique_test_student"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "test_id": self.test_id,
            "student_id": self.student_id,
            "answers": self.answers,
            "score": self.score,
            "total_questions": self.total_questions,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }

    def __repr__(self):
        return f"<TestSubmission test={self.test_id} student={self.student_id}>"
