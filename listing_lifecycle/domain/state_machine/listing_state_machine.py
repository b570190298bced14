from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.exceptions import InvalidStateError


# Mapping of valid transitions: from_status -> set of allowed to_statuses
VALID_TRANSITIONS: dict[ListingStatus, frozenset[ListingStatus]] = {
    ListingStatus.DRAFT: frozenset({ListingStatus.AWAITING_PAYMENT, ListingStatus.ARCHIVED}),
    ListingStatus.AWAITING_PAYMENT: frozenset({ListingStatus.PUBLISHED, ListingStatus.ARCHIVED}),
    ListingStatus.PUBLISHED: frozenset({ListingStatus.ARCHIVED}),
    # Terminal: soft-deleted listings are retained for audit
    ListingStatus.ARCHIVED: frozenset(),
}


class InvalidStateTransitionError(InvalidStateError):
    """Raised when an invalid listing status transition is attempted."""

    def __init__(self, from_status: ListingStatus, to_status: ListingStatus) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition from {from_status.value} to {to_status.value}. "
            f"Allowed transitions: {[s.value for s in VALID_TRANSITIONS.get(from_status, frozenset())]}"
        )


class ListingStateMachine:
    """
    Validates status transitions for the listing lifecycle.

    Stateless; call can_transition() or validate_transition() with explicit statuses.
    """

    def can_transition(self, from_status: ListingStatus, to_status: ListingStatus) -> bool:
        if from_status.is_terminal:
            return False
        return to_status in VALID_TRANSITIONS.get(from_status, frozenset())

    def validate_transition(self, from_status: ListingStatus, to_status: ListingStatus) -> None:
        """Raise InvalidStateTransitionError if the transition is not permitted."""
        if not self.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(from_status, to_status)

    def get_allowed_transitions(self, from_status: ListingStatus) -> frozenset[ListingStatus]:
        return VALID_TRANSITIONS.get(from_status, frozenset())
