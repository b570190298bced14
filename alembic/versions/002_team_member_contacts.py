"""team member contact details and explicit ordering

Revision ID: 002_team_member_contacts
Revises: 001_initial_schema
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "002_team_member_contacts"
down_revision: Union[str, None] = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "sales_team_members",
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column("sales_team_members", sa.Column("name", sa.String(256), nullable=True))
    op.add_column("sales_team_members", sa.Column("email", sa.String(320), nullable=True))
    op.add_column("sales_team_members", sa.Column("whatsapp", sa.String(32), nullable=True))

    # Existing members keep their join order
    op.execute(
        """
        UPDATE sales_team_members AS m
        SET position = ordered.rn - 1
        FROM (
            SELECT id, ROW_NUMBER() OVER (PARTITION BY team_id ORDER BY created_at, id) AS rn
            FROM sales_team_members
        ) AS ordered
        WHERE m.id = ordered.id
        """
    )
    op.create_index(
        "ix_sales_team_members_team_position", "sales_team_members", ["team_id", "position"]
    )


def downgrade() -> None:
    op.drop_index("ix_sales_team_members_team_position", table_name="sales_team_members")
    op.drop_column("sales_team_members", "whatsapp")
    op.drop_column("sales_team_members", "email")
    op.drop_column("sales_team_members", "name")
    op.drop_column("sales_team_members", "position")
