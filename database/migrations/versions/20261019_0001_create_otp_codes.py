"""create otp codes table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

channel_type = sa.Enum("email", "sms", name="otp_channel_type")


def upgrade() -> None:
    op.create_table(
        "otp_codes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("type", channel_type, nullable=False),
        sa.Column("value", sa.String(length=320), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_otp_codes_lookup", "otp_codes", ["type", "value", "code", "verified"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_otp_codes_lookup", table_name="otp_codes")
    op.drop_table("otp_codes")
    channel_type.drop(op.get_bind(), checkfirst=True)
