"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for EventHub:
users, categories, events, participation_requests.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_STATES = ("PENDING", "PUBLISHED", "CANCELED")
REQUEST_STATUSES = ("PENDING", "CONFIRMED", "REJECTED", "CANCELED")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(250), nullable=False),
        sa.Column("email", sa.String(254), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- categories ---
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("annotation", sa.String(2000), nullable=False),
        sa.Column("description", sa.String(7000), nullable=False),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("initiator_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("location_lat", sa.Float, nullable=False),
        sa.Column("location_lon", sa.Float, nullable=False),
        sa.Column("paid", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("participant_limit", sa.Integer, nullable=False, server_default="0"),
        sa.Column("request_moderation", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("state", sa.Enum(*EVENT_STATES, name="eventstate"), nullable=False, server_default="PENDING"),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_requests", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.CheckConstraint("participant_limit >= 0", name="ck_events_participant_limit"),
    )

    # --- participation_requests ---
    op.create_table(
        "participation_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False),
        sa.Column("requester_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Enum(*REQUEST_STATUSES, name="requeststatus"), nullable=False,
                  server_default="PENDING"),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_participation_requests_event_id", "participation_requests", ["event_id"])
    op.create_index("ix_participation_requests_requester_id", "participation_requests", ["requester_id"])
    op.create_index(
        "uq_request_active",
        "participation_requests",
        ["event_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELED'"),
        sqlite_where=sa.text("status <> 'CANCELED'"),
    )


def downgrade() -> None:
    op.drop_index("uq_request_active", table_name="participation_requests")
    op.drop_index("ix_participation_requests_requester_id", table_name="participation_requests")
    op.drop_index("ix_participation_requests_event_id", table_name="participation_requests")
    op.drop_table("participation_requests")
    op.drop_table("events")
    op.drop_table("categories")
    op.drop_table("users")
    sa.Enum(name="requeststatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="eventstate").drop(op.get_bind(), checkfirst=True)
