# models/system_settings.py

from extensions import db


class SystemSettings(db.Model):
    __tablename__ = "system_settings"

    # single row, id 1
    id = db.Column(db.Integer, primary_key=True)
    allow_student_registration = db.Column(db.Boolean, default=True)
    theme = db.Column(db.String(10), default="system")  # light | dark | system

    global_notification_enabled = db.Column(db.Boolean, default=False)
    global_notification_message = db.Column(db.String(500), default="")
    global_notification_id = db.Column(db.String(64), default="")

    is_maintenance = db.Column(db.Boolean, default=False)

    def to_dict(self):
        return {
            "allow_student_registration": bool(self.allow_student_registration),
            "theme": self.theme,
            "global_notification": {
                "enabled": bool(self.global_notification_enabled),
                "message": self.global_notification_message or "",
                "id": self.global_notification_id or "",
            },
            "is_maintenance": bool(self.is_maintenance),
        }
