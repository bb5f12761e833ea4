"""init construction schema

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610010001"
down_revision = None
branch_labels = None
depends_on = None

ID = sa.String(length=36)
ENUM = sa.String(length=32)


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", ID, nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("ts", sa.DateTime(), nullable=False),
        sa.Column("actor_id", ID, nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", ID, nullable=False),
        sa.Column("actor_id", ID, nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "employees",
        sa.Column("id", ID, nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", ENUM, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("profile_image", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employees_email", "employees", ["email"], unique=True)
    op.create_index("ix_employees_phone", "employees", ["phone"], unique=True)
    op.create_index("ix_employees_role", "employees", ["role"])
    op.create_index("ix_employees_status", "employees", ["status"])
    op.create_index("ix_employees_created_at", "employees", ["created_at"])

    op.create_table(
        "sites",
        sa.Column("id", ID, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("budget", sa.Float(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("completion_status", ENUM, nullable=False),
        sa.Column("completion_percentage", sa.Float(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sites_name", "sites", ["name"])
    op.create_index("ix_sites_status", "sites", ["status"])
    op.create_index("ix_sites_completion_status", "sites", ["completion_status"])
    op.create_index("ix_sites_created_at", "sites", ["created_at"])
    op.create_index("ix_sites_deleted_at", "sites", ["deleted_at"])

    op.create_table(
        "phases",
        sa.Column("id", ID, nullable=False),
        sa.Column("site_id", ID, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("order_num", sa.Integer(), nullable=False),
        sa.Column("serial_number", sa.Integer(), nullable=False),
        sa.Column("floor_number", sa.Integer(), nullable=False),
        sa.Column("floor_name", sa.String(length=100), nullable=False),
        sa.Column("budget", sa.Float(), nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_phases_site_id", "phases", ["site_id"])
    op.create_index("ix_phases_status", "phases", ["status"])
    op.create_index("ix_phases_created_at", "phases", ["created_at"])
    op.create_index("ix_phases_site_serial", "phases", ["site_id", "serial_number"])

    op.create_table(
        "tasks",
        sa.Column("id", ID, nullable=False),
        sa.Column("site_id", ID, nullable=False),
        sa.Column("phase_id", ID, nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", ID, nullable=True),
        sa.Column("rejection_count", sa.Integer(), nullable=False),
        sa.Column("created_by", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.ForeignKeyConstraint(["phase_id"], ["phases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_site_id", "tasks", ["site_id"])
    op.create_index("ix_tasks_phase_id", "tasks", ["phase_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_created_at", "tasks", ["created_at"])
    op.create_index("ix_tasks_deleted_at", "tasks", ["deleted_at"])
    op.create_index("ix_tasks_phase_order", "tasks", ["phase_id", "order_index"])

    op.create_table(
        "task_assignments",
        sa.Column("task_id", ID, nullable=False),
        sa.Column("employee_id", ID, nullable=False),
        sa.Column("assigned_by", ID, nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("task_id", "employee_id"),
    )
    op.create_index("ix_task_assignments_assigned_at", "task_assignments", ["assigned_at"])

    op.create_table(
        "task_messages",
        sa.Column("id", ID, nullable=False),
        sa.Column("task_id", ID, nullable=True),
        sa.Column("site_id", ID, nullable=True),
        sa.Column("sender_id", ID, nullable=True),
        sa.Column("sender_role", sa.String(length=50), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_url", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_messages_task_id", "task_messages", ["task_id"])
    op.create_index("ix_task_messages_site_id", "task_messages", ["site_id"])
    op.create_index("ix_task_messages_sender_id", "task_messages", ["sender_id"])
    op.create_index("ix_task_messages_type", "task_messages", ["type"])
    op.create_index("ix_task_messages_created_at", "task_messages", ["created_at"])

    op.create_table(
        "worker_daily_activity",
        sa.Column("id", ID, nullable=False),
        sa.Column("worker_id", ID, nullable=False),
        sa.Column("activity_date", sa.Date(), nullable=False),
        sa.Column("metric_type", ENUM, nullable=False),
        sa.Column("is_checked", sa.Boolean(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_by", ID, nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["worker_id"], ["employees.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("worker_id", "activity_date", "metric_type", name="uq_worker_date_metric"),
    )
    op.create_index("ix_worker_daily_activity_metric_type", "worker_daily_activity", ["metric_type"])
    op.create_index(
        "ix_worker_daily_activity_worker_date",
        "worker_daily_activity",
        ["worker_id", "activity_date"],
    )

    op.create_table(
        "milestones",
        sa.Column("id", ID, nullable=False),
        sa.Column("site_id", ID, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("floor", sa.String(length=100), nullable=True),
        sa.Column("stage", sa.String(length=200), nullable=True),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("planned_end_date", sa.Date(), nullable=True),
        sa.Column("actual_completion_date", sa.Date(), nullable=True),
        sa.Column("delay_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_milestones_site_id", "milestones", ["site_id"])
    op.create_index("ix_milestones_status", "milestones", ["status"])
    op.create_index("ix_milestones_created_at", "milestones", ["created_at"])

    op.create_table(
        "material_requests",
        sa.Column("id", ID, nullable=False),
        sa.Column("site_id", ID, nullable=False),
        sa.Column("phase_id", ID, nullable=True),
        sa.Column("material_name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=30), nullable=True),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("requested_by", ID, nullable=True),
        sa.Column("decided_by", ID, nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.ForeignKeyConstraint(["phase_id"], ["phases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_material_requests_site_id", "material_requests", ["site_id"])
    op.create_index("ix_material_requests_status", "material_requests", ["status"])
    op.create_index("ix_material_requests_created_at", "material_requests", ["created_at"])

    op.create_table(
        "transactions",
        sa.Column("id", ID, nullable=False),
        sa.Column("site_id", ID, nullable=False),
        sa.Column("phase_id", ID, nullable=True),
        sa.Column("kind", ENUM, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("created_by", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"]),
        sa.ForeignKeyConstraint(["phase_id"], ["phases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_site_id", "transactions", ["site_id"])
    op.create_index("ix_transactions_kind", "transactions", ["kind"])
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])


def downgrade() -> None:
    op.drop_table("transactions")
    op.drop_table("material_requests")
    op.drop_table("milestones")
    op.drop_table("worker_daily_activity")
    op.drop_table("task_messages")
    op.drop_table("task_assignments")
    op.drop_table("tasks")
    op.drop_table("phases")
    op.drop_table("sites")
    op.drop_table("employees")
    op.drop_table("audit_logs")
    op.drop_table("events")
