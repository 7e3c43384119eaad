"""create otp logs table

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None

log_action = sa.Enum("send", "verify", name="otp_log_action")
log_channel_type = sa.Enum("email", "sms", name="otp_log_channel_type")


def upgrade() -> None:
    op.create_table(
        "otp_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("action", log_action, nullable=False),
        sa.Column("type", log_channel_type, nullable=False),
        sa.Column("value", sa.String(length=320), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_otp_logs_created_at", "otp_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_otp_logs_created_at", table_name="otp_logs")
    op.drop_table("otp_logs")
    log_action.drop(op.get_bind(), checkfirst=True)
    log_channel_type.drop(op.get_bind(), checkfirst=True)
