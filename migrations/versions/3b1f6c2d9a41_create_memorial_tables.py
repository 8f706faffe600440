"""create memorial tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "3b1f6c2d9a41"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "tributes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("media_type", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("candle_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_tributes_user_id", "tributes", ["user_id"])
    op.create_index("ix_tributes_created_at", "tributes", ["created_at"])

    op.create_table(
        "candles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "tribute_id", sa.Integer(), sa.ForeignKey("tributes.id"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "tribute_id", name="uq_candle_user_tribute"),
    )
    op.create_index("ix_candles_user_id", "candles", ["user_id"])
    op.create_index("ix_candles_tribute_id", "candles", ["tribute_id"])

    op.create_table(
        "gallery_images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("storage_key", sa.String(length=512), nullable=True),
        sa.Column("caption", sa.String(length=255), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
    )
    op.create_index("ix_settings_key", "settings", ["key"], unique=True)

    op.create_table(
        "funeral_program",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.String(length=120), nullable=False),
        sa.Column("time", sa.String(length=120), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("stream_link", sa.Text(), nullable=True),
        sa.Column("program_pdf_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("funeral_program")
    op.drop_index("ix_settings_key", table_name="settings")
    op.drop_table("settings")
    op.drop_table("gallery_images")
    op.drop_index("ix_candles_tribute_id", table_name="candles")
    op.drop_index("ix_candles_user_id", table_name="candles")
    op.drop_table("candles")
    op.drop_index("ix_tributes_created_at", table_name="tributes")
    op.drop_index("ix_tributes_user_id", table_name="tributes")
    op.drop_table("tributes")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
