from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.enums.payment_status import PaymentStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ListingCreatedEvent(DomainEvent):
    listing_id: UUID = field(default_factory=uuid4)
    seller_id: str = ""
    title: str = ""
    is_donation: bool = False


@dataclass(frozen=True)
class ListingStatusChangedEvent(DomainEvent):
    """Published whenever a listing moves between statuses."""

    listing_id: UUID = field(default_factory=uuid4)
    from_status: ListingStatus | None = None
    to_status: ListingStatus = ListingStatus.DRAFT
    triggered_by: str = ""


@dataclass(frozen=True)
class ListingVisibilityChangedEvent(DomainEvent):
    """Published when a published listing is deactivated or reactivated."""

    listing_id: UUID = field(default_factory=uuid4)
    active: bool = True
    triggered_by: str = ""


@dataclass(frozen=True)
class PaymentEvent(DomainEvent):
    """Common payload for every payment lifecycle notification."""

    payment_id: UUID = field(default_factory=uuid4)
    listing_id: UUID = field(default_factory=uuid4)
    status: PaymentStatus = PaymentStatus.PENDING
    triggered_by: str = ""


@dataclass(frozen=True)
class PaymentCreatedEvent(PaymentEvent):
    amount: str = "0"
    payment_reference: str = ""
    expires_at: datetime | None = None


@dataclass(frozen=True)
class ProofSubmittedEvent(PaymentEvent):
    proof_ref: str = ""


@dataclass(frozen=True)
class PaymentApprovedEvent(PaymentEvent):
    reviewer_id: str = ""


@dataclass(frozen=True)
class PaymentRejectedEvent(PaymentEvent):
    reviewer_id: str = ""
    note: str | None = None


@dataclass(frozen=True)
class PaymentExpiredEvent(PaymentEvent):
    expired_from: PaymentStatus = PaymentStatus.PENDING


@dataclass(frozen=True)
class PaymentCancelledEvent(PaymentEvent):
    reason: str = ""
