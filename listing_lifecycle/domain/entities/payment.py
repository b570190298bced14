from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from listing_lifecycle.domain.enums.payment_status import (
    EXPIRABLE_PAYMENT_STATUSES,
    PaymentStatus,
)
from listing_lifecycle.domain.events.domain_events import (
    DomainEvent,
    PaymentApprovedEvent,
    PaymentCancelledEvent,
    PaymentCreatedEvent,
    PaymentExpiredEvent,
    PaymentRejectedEvent,
    ProofSubmittedEvent,
)
from listing_lifecycle.domain.exceptions import InvalidStateError, WindowExpiredError
from listing_lifecycle.domain.state_machine.payment_state_machine import PaymentStateMachine

_state_machine = PaymentStateMachine()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Payment:
    """
    Activation-fee payment gating public visibility of a listing.

    ``expires_at`` is fixed at creation; only ``status`` and the proof/review
    stamps change afterwards. Mutators return nothing and leave persistence
    (a compare-and-set on the previous status) to the caller.
    """

    id: UUID = field(default_factory=uuid4)
    listing_id: UUID = field(default_factory=uuid4)
    amount: Decimal = Decimal("0")
    payment_reference: str = ""
    copy_paste_code: str | None = None

    status: PaymentStatus = PaymentStatus.PENDING

    created_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # Proof of payment
    proof_ref: str | None = None
    proof_submitted_at: datetime | None = None

    # Moderation
    reviewer_id: str | None = None
    reviewed_at: datetime | None = None
    review_decision_note: str | None = None

    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def issue(
        cls,
        *,
        listing_id: UUID,
        amount: Decimal,
        payment_reference: str,
        ttl: timedelta,
        copy_paste_code: str | None = None,
        triggered_by: str = "",
        now: datetime | None = None,
    ) -> "Payment":
        now = now or _utcnow()
        payment = cls(
            listing_id=listing_id,
            amount=amount,
            payment_reference=payment_reference,
            copy_paste_code=copy_paste_code,
            created_at=now,
            expires_at=now + ttl,
            updated_at=now,
        )
        payment._events.append(
            PaymentCreatedEvent(
                payment_id=payment.id,
                listing_id=listing_id,
                status=payment.status,
                triggered_by=triggered_by,
                amount=str(amount),
                payment_reference=payment_reference,
                expires_at=payment.expires_at,
            )
        )
        return payment

    # -------------------------------------------------------------------------
    # Time window
    # -------------------------------------------------------------------------

    def window_open(self, now: datetime) -> bool:
        return now < self.expires_at

    def effective_status(self, now: datetime) -> PaymentStatus:
        """Status as callers must see it: stale records past the window read as EXPIRED."""
        if self.status in EXPIRABLE_PAYMENT_STATUSES and not self.window_open(now):
            return PaymentStatus.EXPIRED
        return self.status

    def is_live(self, now: datetime) -> bool:
        return self.effective_status(now).is_live

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def submit_proof(self, proof_ref: str, triggered_by: str, now: datetime) -> None:
        if not self.status.accepts_proof:
            raise InvalidStateError(
                f"Payment {self.id} does not accept proof while {self.status.value}."
            )
        if not self.window_open(now):
            raise WindowExpiredError(self.id)

        self._move_to(PaymentStatus.PROOF_SUBMITTED, now)
        self.proof_ref = proof_ref
        self.proof_submitted_at = now
        self._events.append(
            ProofSubmittedEvent(
                payment_id=self.id,
                listing_id=self.listing_id,
                status=self.status,
                triggered_by=triggered_by,
                proof_ref=proof_ref,
            )
        )

    def approve(self, reviewer_id: str, now: datetime) -> None:
        self._require_reviewable(now)
        self._move_to(PaymentStatus.APPROVED, now)
        self._stamp_review(reviewer_id, None, now)
        self._events.append(
            PaymentApprovedEvent(
                payment_id=self.id,
                listing_id=self.listing_id,
                status=self.status,
                triggered_by=reviewer_id,
                reviewer_id=reviewer_id,
            )
        )

    def reject(self, reviewer_id: str, note: str | None, now: datetime) -> None:
        self._require_reviewable(now)
        self._move_to(PaymentStatus.REJECTED, now)
        self._stamp_review(reviewer_id, note, now)
        self._events.append(
            PaymentRejectedEvent(
                payment_id=self.id,
                listing_id=self.listing_id,
                status=self.status,
                triggered_by=reviewer_id,
                reviewer_id=reviewer_id,
                note=note,
            )
        )

    def expire(self, now: datetime, triggered_by: str = "sweep") -> None:
        if self.status not in EXPIRABLE_PAYMENT_STATUSES or self.window_open(now):
            raise InvalidStateError(f"Payment {self.id} is not due to expire.")
        previous = self.status
        self._move_to(PaymentStatus.EXPIRED, now)
        self._events.append(
            PaymentExpiredEvent(
                payment_id=self.id,
                listing_id=self.listing_id,
                status=self.status,
                triggered_by=triggered_by,
                expired_from=previous,
            )
        )

    def cancel(self, triggered_by: str, reason: str, now: datetime) -> None:
        self._move_to(PaymentStatus.CANCELLED, now)
        self._events.append(
            PaymentCancelledEvent(
                payment_id=self.id,
                listing_id=self.listing_id,
                status=self.status,
                triggered_by=triggered_by,
                reason=reason,
            )
        )

    def _require_reviewable(self, now: datetime) -> None:
        if self.effective_status(now) is not PaymentStatus.PROOF_SUBMITTED:
            raise InvalidStateError(
                f"Payment {self.id} is {self.effective_status(now).value}, not awaiting review."
            )

    def _stamp_review(self, reviewer_id: str, note: str | None, now: datetime) -> None:
        self.reviewer_id = reviewer_id
        self.reviewed_at = now
        self.review_decision_note = note

    def _move_to(self, new_status: PaymentStatus, now: datetime) -> None:
        _state_machine.validate_transition(self.id, self.status, new_status)
        self.status = new_status
        self.updated_at = now

    # -------------------------------------------------------------------------
    # Event collection
    # -------------------------------------------------------------------------

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events
