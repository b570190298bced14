"""initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID

from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LISTING_STATUSES = ("DRAFT", "AWAITING_PAYMENT", "PUBLISHED", "ARCHIVED")
PAYMENT_STATUSES = ("PENDING", "PROOF_SUBMITTED", "APPROVED", "REJECTED", "EXPIRED", "CANCELLED")
MEMBER_AVAILABILITIES = ("AVAILABLE", "UNAVAILABLE")


def upgrade() -> None:
    bind = op.get_bind()
    ENUM(*LISTING_STATUSES, name="listing_status").create(bind, checkfirst=True)
    ENUM(*PAYMENT_STATUSES, name="payment_status").create(bind, checkfirst=True)
    ENUM(*MEMBER_AVAILABILITIES, name="member_availability").create(bind, checkfirst=True)

    listing_status = ENUM(*LISTING_STATUSES, name="listing_status", create_type=False)
    payment_status = ENUM(*PAYMENT_STATUSES, name="payment_status", create_type=False)
    member_availability = ENUM(
        *MEMBER_AVAILABILITIES, name="member_availability", create_type=False
    )

    # Sales teams (referenced by listings)
    op.create_table(
        "sales_teams",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("seller_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_sales_teams_seller_id", "sales_teams", ["seller_id"])

    op.create_table(
        "sales_team_members",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "team_id",
            UUID(as_uuid=True),
            sa.ForeignKey("sales_teams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("availability", member_availability, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("team_id", "user_id", name="uq_sales_team_members_team_user"),
    )
    op.create_index("ix_sales_team_members_team_id", "sales_team_members", ["team_id"])

    # Listings
    op.create_table(
        "listings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("seller_id", sa.String(128), nullable=False),
        # Content
        sa.Column("product_ref", sa.String(256), nullable=True),
        sa.Column("price_override", sa.Numeric(10, 2), nullable=True),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("photo_ref", sa.String(2048), nullable=True),
        sa.Column("is_donation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "sales_team_id",
            UUID(as_uuid=True),
            sa.ForeignKey("sales_teams.id", ondelete="SET NULL"),
            nullable=True,
        ),
        # State
        sa.Column("status", listing_status, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=False),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_listings_seller_id", "listings", ["seller_id"])
    op.create_index("ix_listings_status", "listings", ["status"])
    op.create_index("ix_listings_seller_status", "listings", ["seller_id", "status"])

    # Activation payments; rows are never deleted
    op.create_table(
        "payments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id",
            UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_reference", sa.String(256), nullable=False),
        sa.Column("copy_paste_code", sa.Text(), nullable=True),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("proof_ref", sa.String(2048), nullable=True),
        sa.Column("proof_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewer_id", sa.String(128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_decision_note", sa.Text(), nullable=True),
    )
    op.create_index("ix_payments_listing_id", "payments", ["listing_id"])
    op.create_index("ix_payments_status_expires_at", "payments", ["status", "expires_at"])
    op.create_index(
        "uq_payments_one_live_per_listing",
        "payments",
        ["listing_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'PROOF_SUBMITTED')"),
    )

    # Status history for audit trail (listing and payment transitions)
    op.create_table(
        "status_history",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id",
            UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(16), nullable=False),
        sa.Column("subject_id", UUID(as_uuid=True), nullable=False),
        sa.Column("from_status", sa.String(32), nullable=True),
        sa.Column("to_status", sa.String(32), nullable=False),
        sa.Column(
            "transitioned_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("triggered_by", sa.String(256), nullable=False),
        sa.Column("metadata", JSONB, nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("ix_status_history_listing_id", "status_history", ["listing_id"])


def downgrade() -> None:
    op.drop_table("status_history")
    op.drop_table("payments")
    op.drop_table("listings")
    op.drop_table("sales_team_members")
    op.drop_table("sales_teams")
    bind = op.get_bind()
    ENUM(name="member_availability").drop(bind, checkfirst=True)
    ENUM(name="payment_status").drop(bind, checkfirst=True)
    ENUM(name="listing_status").drop(bind, checkfirst=True)
