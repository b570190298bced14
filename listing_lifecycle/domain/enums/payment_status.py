from enum import Enum


class PaymentStatus(str, Enum):
    """All possible states of an activation payment."""

    PENDING = "PENDING"
    PROOF_SUBMITTED = "PROOF_SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @property
    def is_live(self) -> bool:
        """A live payment blocks creation of another one for the same listing."""
        return self in LIVE_PAYMENT_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.APPROVED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED)

    @property
    def accepts_proof(self) -> bool:
        return self in (PaymentStatus.PENDING, PaymentStatus.REJECTED)


LIVE_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PENDING, PaymentStatus.PROOF_SUBMITTED}
)

# Statuses that lapse to EXPIRED once the payment window has elapsed.
EXPIRABLE_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PENDING, PaymentStatus.PROOF_SUBMITTED, PaymentStatus.REJECTED}
)
