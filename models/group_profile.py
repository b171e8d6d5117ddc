from extensions import db


class GroupProfile(db.Model):
    __tablename__ = "group_profiles"

    leader_id = db.Column(
        db.String(64),
        db.ForeignKey("users.id"),
        primary_key=True
    )

    group_name = db.Column(db.String(150), nullable=False)
    project_brief = db.Column(db.Text, default="")
    # [{"id", "full_name", "registration_number"}]
    members = db.Column(db.JSON, nullable=False, default=list)

    assignment_name = db.Column(db.String(255))
    assignment_type = db.Column(db.String(100))
    # base64 payload, only loaded on download
    assignment_data = db.deferred(db.Column(db.Text))

    def to_dict(self):
        return {
            "leader_id": self.leader_id,
            "group_name": self.group_name,
            "project_brief": self.project_brief,
            "members": self.members or [],
            "assignment": {
                "name": self.assignment_name,
                "type": self.assignment_type,
            } if self.assignment_name else None,
        }

    def __repr__(self):
        return f"<GroupProfile {self.group_name}>"
