"""create opensea_events table

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "opensea_events",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("asset_contract_address", sa.String(length=64), nullable=True),
        sa.Column("token_id", sa.String(length=128), nullable=True),
        sa.Column("asset_id", sa.String(length=64), nullable=True),
        sa.Column("raw", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("event_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_opensea_events_event_id", "opensea_events", ["event_id"], unique=True)
    op.create_index(
        "ix_opensea_events_asset_contract_address", "opensea_events", ["asset_contract_address"]
    )


def downgrade() -> None:
    op.drop_index("ix_opensea_events_asset_contract_address", table_name="opensea_events")
    op.drop_index("ix_opensea_events_event_id", table_name="opensea_events")
    op.drop_table("opensea_events")
