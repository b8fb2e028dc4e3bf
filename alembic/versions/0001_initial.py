"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "escrows",
        sa.Column("payment_id", sa.String(length=32), primary_key=True),
        sa.Column("sender", sa.String(length=64), nullable=False),
        sa.Column("asset", sa.String(length=12), nullable=False),
        sa.Column("amount", sa.String(length=40), nullable=False),
        sa.Column("pin_hash", sa.LargeBinary(length=32), nullable=False),
        sa.Column("expiry", sa.String(length=40), nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_escrows_sender", "escrows", ["sender"])
    op.create_index("ix_escrows_asset", "escrows", ["asset"])

    op.create_table(
        "token_balances",
        sa.Column("asset", sa.String(length=12), primary_key=True),
        sa.Column("account", sa.String(length=64), primary_key=True),
        sa.Column("amount", sa.String(length=40), nullable=False),
        sa.Column("authorized", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "contract_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("topic", sa.String(length=32), nullable=False),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_contract_events_topic", "contract_events", ["topic"])


def downgrade() -> None:
    op.drop_index("ix_contract_events_topic", table_name="contract_events")
    op.drop_table("contract_events")
    op.drop_table("token_balances")
    op.drop_index("ix_escrows_asset", table_name="escrows")
    op.drop_index("ix_escrows_sender", table_name="escrows")
    op.drop_table("escrows")
