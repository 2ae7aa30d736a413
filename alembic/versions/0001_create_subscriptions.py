"""create subscriptions + payment_records

Revision ID: 0001_create_subscriptions
Revises:
Create Date: 2026-10-18T09:00:00.000000Z
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_create_subscriptions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "subscriptions",
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("subject_id", sa.BigInteger(), nullable=False),
        sa.Column("tier", sa.String(length=16), nullable=False),
        sa.Column("start_time", sa.Float(), nullable=False),
        sa.Column("end_time", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("source_tx_id", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("duration_months", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchaser_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("scope", "subject_id"),
    )
    op.create_index("ix_subscriptions_end_time", "subscriptions", ["end_time"])
    op.create_index("ix_subscriptions_active_end", "subscriptions", ["active", "end_time"])

    op.create_table(
        "payment_records",
        sa.Column("tx_hash", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), nullable=True),
        sa.Column("tier", sa.String(length=16), nullable=False),
        sa.Column("months", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("amount_ada", sa.Float(), nullable=False, server_default="0"),
        sa.Column("block_height", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("tx_hash"),
    )
    op.create_index("ix_payment_records_user_id", "payment_records", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_payment_records_user_id", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_subscriptions_active_end", table_name="subscriptions")
    op.drop_index("ix_subscriptions_end_time", table_name="subscriptions")
    op.drop_table("subscriptions")
