from extensions import db


class Intake(db.Model):
    __tablename__ = "intakes"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255), default="")
    academic_year = db.Column(db.String(9), nullable=False)
    status = db.Column(db.String(10), nullable=False, default="active")  # active | archived

    students = db.relationship("User", backref="intake", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "academic_year": self.academic_year,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Intake {self.name}>"
