"""initial marks portal schema

Revision ID: 3f9a1c2d7e01
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9a1c2d7e01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "intakes",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("academic_year", sa.String(length=9), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False),
    )

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("course_code", sa.String(length=20), nullable=False, unique=True),
        sa.Column("course_name", sa.String(length=150), nullable=False),
        sa.Column("credit_hours", sa.Integer(), nullable=True),
        sa.Column("semester", sa.String(length=10), nullable=False),
        sa.Column("academic_year", sa.String(length=9), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("registration_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=150), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("course", sa.String(length=20), nullable=True),
        sa.Column("session", sa.String(length=20), nullable=True),
        sa.Column("year_of_study", sa.String(length=10), nullable=True),
        sa.Column("semester", sa.String(length=10), nullable=True),
        sa.Column("telephone", sa.String(length=30), nullable=True),
        sa.Column("group_role", sa.String(length=30), nullable=True),
        sa.Column("password_reset_token", sa.String(length=64), nullable=True),
        sa.Column("password_reset_expires", sa.DateTime(), nullable=True),
        sa.Column("force_password_change", sa.Boolean(), nullable=True),
        sa.Column("managed_course_id", sa.String(length=64), nullable=True),
        sa.Column("managed_session", sa.String(length=20), nullable=True),
        sa.Column("intake_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["managed_course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["intake_id"], ["intakes.id"]),
    )
    op.create_index("ix_users_password_reset_token", "users", ["password_reset_token"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.UniqueConstraint("student_id", "course_id", name="unique_student_course"),
    )

    op.create_table(
        "marks",
        sa.Column("id", sa.String(length=80), primary_key=True),
        sa.Column("enrollment_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("cats", sa.Integer(), nullable=False),
        sa.Column("coursework", sa.Integer(), nullable=False),
        sa.Column("final_exam", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"]),
    )

    op.create_table(
        "mcq_tests",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
    )

    op.create_table(
        "mcq_submissions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("test_id", sa.String(length=64), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["test_id"], ["mcq_tests.id"]),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"]),
        sa.UniqueConstraint("test_id", "student_id", name="unique_test_student"),
    )

    op.create_table(
        "group_profiles",
        sa.Column("leader_id", sa.String(length=64), primary_key=True),
        sa.Column("group_name", sa.String(length=150), nullable=False),
        sa.Column("project_brief", sa.Text(), nullable=True),
        sa.Column("members", sa.JSON(), nullable=False),
        sa.Column("assignment_name", sa.String(length=255), nullable=True),
        sa.Column("assignment_type", sa.String(length=100), nullable=True),
        sa.Column("assignment_data", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["leader_id"], ["users.id"]),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
    )

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("allow_student_registration", sa.Boolean(), nullable=True, server_default=sa.text("1")),
        sa.Column("theme", sa.String(length=10), nullable=True),
        sa.Column("global_notification_enabled", sa.Boolean(), nullable=True),
        sa.Column("global_notification_message", sa.String(length=500), nullable=True),
        sa.Column("global_notification_id", sa.String(length=64), nullable=True),
        sa.Column("is_maintenance", sa.Boolean(), nullable=True),
    )


def downgrade():
    op.drop_table("system_settings")
    op.drop_table("notifications")
    op.drop_table("group_profiles")
    op.drop_table("mcq_submissions")
    op.drop_table("mcq_tests")
    op.drop_table("marks")
    op.drop_table("enrollments")
    op.drop_index("ix_users_password_reset_token", table_name="users")
    op.drop_table("users")
    op.drop_table("courses")
    op.drop_table("intakes")
