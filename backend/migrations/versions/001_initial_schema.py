"""Initial schema: operators, API apps, sets, lookups and the warning ledger.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ── users ────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── apps ─────────────────────────────────────────────────────────────────
    op.create_table(
        "apps",
        _uuid_pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("secret", sa.String(128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("active_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("permission", sa.String(10), nullable=False, server_default="WRITE"),
        *_timestamps(),
        sa.CheckConstraint("permission IN ('READ', 'WRITE', 'NONE')", name="ck_apps_permission"),
    )
    op.create_index("ix_apps_secret", "apps", ["secret"], unique=True)

    # ── sets ─────────────────────────────────────────────────────────────────
    op.create_table(
        "sets",
        _uuid_pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("allow_duplicates", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("strict_checking", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "set_values",
        _uuid_pk(),
        sa.Column("set_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_set_values_set_id_value", "set_values", ["set_id", "value"])

    # ── lookups ──────────────────────────────────────────────────────────────
    op.create_table(
        "lookups",
        _uuid_pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("left_system", sa.String(100), nullable=True),
        sa.Column("right_system", sa.String(100), nullable=True),
        sa.Column("allow_left_dups", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_right_dups", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_left_right_dups", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("strict_checking", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "lookup_values",
        _uuid_pk(),
        sa.Column("lookup_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lookups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("left", sa.String(255), nullable=False),
        sa.Column("right", sa.String(255), nullable=False),
        sa.Column("left_metadata", postgresql.JSONB(), nullable=True),
        sa.Column("right_metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_lookup_values_lookup_id_left", "lookup_values", ["lookup_id", "left"])
    op.create_index("ix_lookup_values_lookup_id_right", "lookup_values", ["lookup_id", "right"])

    # ── warnings ─────────────────────────────────────────────────────────────
    # No FK to lookups: rows are replaced wholesale by the detection job.
    op.create_table(
        "warnings",
        _uuid_pk(),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("type_name", sa.String(100), nullable=False),
        sa.Column("type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("left_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("right_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("left_right_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("severity", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "severity IN ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')",
            name="ck_warnings_severity",
        ),
    )
    op.create_index("ix_warnings_type", "warnings", ["type"])
    op.create_index("ix_warnings_is_resolved_severity", "warnings", ["is_resolved", "severity"])


def downgrade() -> None:
    op.drop_table("warnings")
    op.drop_table("lookup_values")
    op.drop_table("lookups")
    op.drop_table("set_values")
    op.drop_table("sets")
    op.drop_table("apps")
    op.drop_table("users")
