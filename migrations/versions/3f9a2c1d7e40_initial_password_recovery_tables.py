"""initial password recovery tables

Revision ID: 3f9a2c1d7e40
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "3f9a2c1d7e40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name: str) -> bool:
    inspector = sa.inspect(op.get_bind())
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # 应用启动时 create_all 可能已经建好表
    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("email", sa.String(length=100), nullable=False),
            sa.Column("password", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if not _table_exists("reset_codes"):
        op.create_table(
            "reset_codes",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("code", sa.String(length=10), nullable=False),
            sa.Column("expiration_time", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_reset_codes_code", "reset_codes", ["code"])
        op.create_index("ix_reset_codes_expiration_time", "reset_codes", ["expiration_time"])

    if not _table_exists("smtp_config"):
        op.create_table(
            "smtp_config",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("host", sa.String(length=100), nullable=False),
            sa.Column("port", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("password", sa.String(length=500), nullable=False),
            sa.Column("from_email", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_smtp_config_is_active", "smtp_config", ["is_active"])


def downgrade() -> None:
    for table_name in ("reset_codes", "smtp_config", "users"):
        if _table_exists(table_name):
            op.drop_table(table_name)
