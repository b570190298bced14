"""
SQLAlchemy ORM models.

Domain entities are mapped to and from these rows inside the repository
implementations; nothing outside ``infrastructure`` imports this module.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.enums.member_availability import MemberAvailability
from listing_lifecycle.domain.enums.payment_status import PaymentStatus
from listing_lifecycle.infrastructure.database.connection import Base

_listing_status_enum = SAEnum(
    ListingStatus,
    name="listing_status",
    values_callable=lambda obj: [e.value for e in obj],
)
_payment_status_enum = SAEnum(
    PaymentStatus,
    name="payment_status",
    values_callable=lambda obj: [e.value for e in obj],
)
_member_availability_enum = SAEnum(
    MemberAvailability,
    name="member_availability",
    values_callable=lambda obj: [e.value for e in obj],
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingModel(Base):
    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Content
    product_ref: Mapped[str | None] = mapped_column(String(256), nullable=True)
    price_override: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_ref: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    is_donation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sales_team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sales_teams.id", ondelete="SET NULL"),
        nullable=True,
    )

    # State
    status: Mapped[str] = mapped_column(_listing_status_enum, nullable=False, index=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status_changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payments: Mapped[list["PaymentModel"]] = relationship(
        "PaymentModel", back_populates="listing", lazy="select"
    )

    __table_args__ = (
        Index("ix_listings_seller_status", "seller_id", "status"),
    )


class PaymentModel(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("listings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_reference: Mapped[str] = mapped_column(String(256), nullable=False)
    copy_paste_code: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(_payment_status_enum, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    proof_ref: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    proof_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reviewer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    listing: Mapped[ListingModel] = relationship("ListingModel", back_populates="payments")

    __table_args__ = (
        Index("ix_payments_status_expires_at", "status", "expires_at"),
        Index(
            "uq_payments_one_live_per_listing",
            "listing_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'PROOF_SUBMITTED')"),
        ),
    )


class SalesTeamModel(Base):
    __tablename__ = "sales_teams"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    members: Mapped[list["TeamMemberModel"]] = relationship(
        "TeamMemberModel",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMemberModel.position",
        lazy="selectin",
    )


class TeamMemberModel(Base):
    __tablename__ = "sales_team_members"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sales_teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    availability: Mapped[str] = mapped_column(_member_availability_enum, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    team: Mapped[SalesTeamModel] = relationship("SalesTeamModel", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_sales_team_members_team_user"),
        Index("ix_sales_team_members_team_position", "team_id", "position"),
    )


class StatusHistoryModel(Base):
    __tablename__ = "status_history"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("listings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(16), nullable=False)
    subject_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    transitioned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    triggered_by: Mapped[str] = mapped_column(String(256), nullable=False)
    metadata_: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        "metadata", JSONB, nullable=False, default=dict
    )
