"""initial counselling schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="student"),
        sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("is_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("department", sa.String(length=120), nullable=True),
        sa.Column("year", sa.String(length=20), nullable=True),
        sa.Column("specialization", sa.String(length=160), nullable=True),
        sa.Column("anonymous_username", sa.String(length=20), nullable=True),
        sa.Column("qr_secret", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("anonymous_username"),
        sa.UniqueConstraint("qr_secret"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_department", "users", ["department"])
    op.create_index("ix_users_year", "users", ["year"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("counsellor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("counsellor_id", "day_of_week", "start_time", name="uq_time_slots_counsellor_day_start"),
    )
    op.create_index("ix_time_slots_id", "time_slots", ["id"])
    op.create_index("ix_time_slots_counsellor_id", "time_slots", ["counsellor_id"])
    op.create_index("ix_time_slots_counsellor_available", "time_slots", ["counsellor_id", "is_available"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("counsellor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id"), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_appointments_id", "appointments", ["id"])
    op.create_index("ix_appointments_student_id", "appointments", ["student_id"])
    op.create_index("ix_appointments_counsellor_id", "appointments", ["counsellor_id"])
    op.create_index("ix_appointments_time_slot_id", "appointments", ["time_slot_id"])
    op.create_index("ix_appointments_appointment_date", "appointments", ["appointment_date"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_student_status_date", "appointments", ["student_id", "status", "appointment_date"])
    op.create_index("ix_appointments_slot_date_status", "appointments", ["time_slot_id", "appointment_date", "status"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("counsellor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("appointment_id", sa.Integer(), sa.ForeignKey("appointments.id"), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("qr_scan_in_time", sa.DateTime(), nullable=True),
        sa.Column("qr_scan_out_time", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("severity", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sessions_id", "sessions", ["id"])
    op.create_index("ix_sessions_student_id", "sessions", ["student_id"])
    op.create_index("ix_sessions_counsellor_id", "sessions", ["counsellor_id"])
    op.create_index("ix_sessions_appointment_id", "sessions", ["appointment_id"])
    op.create_index("ix_sessions_severity", "sessions", ["severity"])
    op.create_index("ix_sessions_created_at", "sessions", ["created_at"])
    op.create_index(
        "uq_sessions_open_per_counsellor",
        "sessions",
        ["counsellor_id"],
        unique=True,
        sqlite_where=sa.text("end_time IS NULL"),
        postgresql_where=sa.text("end_time IS NULL"),
    )

    op.create_table(
        "journals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("mood", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_journals_id", "journals", ["id"])
    op.create_index("ix_journals_student_id", "journals", ["student_id"])
    op.create_index("ix_journals_created_at", "journals", ["created_at"])

    op.create_table(
        "moods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("mood_level", sa.Integer(), nullable=False),
        sa.Column("mood_emoji", sa.String(length=16), nullable=False, server_default=""),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("student_id", "date", name="uq_moods_student_date"),
    )
    op.create_index("ix_moods_id", "moods", ["id"])
    op.create_index("ix_moods_student_id", "moods", ["student_id"])
    op.create_index("ix_moods_date", "moods", ["date"])

    op.create_table(
        "rate_limit_states",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope_type", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("scope_key", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("action_name", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("window_start", sa.DateTime(), nullable=False),
        sa.Column("request_count", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("scope_type", "scope_key", "action_name", name="uq_rate_limit_scope_action"),
    )
    op.create_index("ix_rate_limit_states_id", "rate_limit_states", ["id"])
    op.create_index("ix_rate_limit_states_scope_type", "rate_limit_states", ["scope_type"])
    op.create_index("ix_rate_limit_states_scope_key", "rate_limit_states", ["scope_key"])
    op.create_index("ix_rate_limit_states_action_name", "rate_limit_states", ["action_name"])
    op.create_index("ix_rate_limit_states_window_start", "rate_limit_states", ["window_start"])

    op.create_table(
        "revoked_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_revoked_tokens_id", "revoked_tokens", ["id"])
    op.create_index("ix_revoked_tokens_jti", "revoked_tokens", ["jti"], unique=True)
    op.create_index("ix_revoked_tokens_user_id", "revoked_tokens", ["user_id"])
    op.create_index("ix_revoked_tokens_expires_at", "revoked_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_table("revoked_tokens")
    op.drop_table("rate_limit_states")
    op.drop_table("moods")
    op.drop_table("journals")
    op.drop_index("uq_sessions_open_per_counsellor", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("appointments")
    op.drop_table("time_slots")
    op.drop_table("users")
