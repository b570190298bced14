from uuid import UUID

from listing_lifecycle.domain.enums.payment_status import PaymentStatus
from listing_lifecycle.domain.exceptions import InvalidStateError


# Mapping of valid transitions: from_status -> set of allowed to_statuses
VALID_PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.PROOF_SUBMITTED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.PROOF_SUBMITTED: frozenset(
        {
            PaymentStatus.APPROVED,
            PaymentStatus.REJECTED,
            PaymentStatus.EXPIRED,
            PaymentStatus.CANCELLED,
        }
    ),
    # Resubmission inside the original window, or superseded by a new activation
    PaymentStatus.REJECTED: frozenset(
        {PaymentStatus.PROOF_SUBMITTED, PaymentStatus.EXPIRED, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.APPROVED: frozenset(),
    PaymentStatus.EXPIRED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}


class InvalidPaymentTransitionError(InvalidStateError):
    def __init__(
        self, payment_id: UUID, from_status: PaymentStatus, to_status: PaymentStatus
    ) -> None:
        self.payment_id = payment_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payment {payment_id} cannot move from {from_status.value} to {to_status.value}."
        )


class PaymentStateMachine:
    """Validates payment status transitions."""

    def can_transition(self, from_status: PaymentStatus, to_status: PaymentStatus) -> bool:
        if from_status.is_terminal:
            return False
        return to_status in VALID_PAYMENT_TRANSITIONS.get(from_status, frozenset())

    def validate_transition(
        self, payment_id: UUID, from_status: PaymentStatus, to_status: PaymentStatus
    ) -> None:
        if not self.can_transition(from_status, to_status):
            raise InvalidPaymentTransitionError(payment_id, from_status, to_status)
