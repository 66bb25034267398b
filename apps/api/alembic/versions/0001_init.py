"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("role", sa.String(), nullable=False, server_default="member"),
    sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "projects",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("manager_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False, server_default=""),
    sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
    sa.Column("status", sa.String(), nullable=False, server_default="TODO"),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)

  op.create_table(
    "notification_preferences",
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), primary_key=True),
    sa.Column("deadline_reminders", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )

  op.create_table(
    "in_app_notifications",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("event_type", sa.String(), nullable=True),
    sa.Column("entity_type", sa.String(), nullable=True),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_in_app_notifications_user_id", "in_app_notifications", ["user_id"], unique=False)

  op.create_table(
    "audit_events",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("task_id", sa.String(36), nullable=True),
    sa.Column("actor_id", sa.String(36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_audit_events_task_id", "audit_events", ["task_id"], unique=False)

  op.create_table(
    "deadline_reminders",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("recipient_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("fire_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("channel", sa.String(), nullable=False, server_default="email"),
    sa.Column("kind", sa.String(), nullable=False, server_default="manual"),
    sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("escalated_from_id", sa.String(36), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_deadline_reminders_task_id", "deadline_reminders", ["task_id"], unique=False)
  op.create_index("ix_deadline_reminders_recipient_id", "deadline_reminders", ["recipient_id"], unique=False)
  op.create_index("ix_deadline_reminders_fire_at", "deadline_reminders", ["fire_at"], unique=False)
  op.create_index("ix_deadline_reminders_sent", "deadline_reminders", ["sent"], unique=False)


def downgrade() -> None:
  op.drop_table("deadline_reminders")
  op.drop_table("audit_events")
  op.drop_table("in_app_notifications")
  op.drop_table("notification_preferences")
  op.drop_table("tasks")
  op.drop_table("projects")
  op.drop_table("users")
