"""
Domain error taxonomy.

Every error carries a stable ``code`` so the API layer can map it to an
actionable message instead of a generic server error. None of these are
retried automatically.
"""
from uuid import UUID


class ListingLifecycleError(Exception):
    """Base class for all lifecycle errors surfaced to callers."""

    code = "lifecycle_error"


class NotFoundError(ListingLifecycleError):
    code = "not_found"

    def __init__(self, kind: str, identifier: UUID | str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found.")


class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: UUID) -> None:
        super().__init__("Listing", listing_id)


class PaymentNotFoundError(NotFoundError):
    def __init__(self, identifier: UUID) -> None:
        super().__init__("Payment", identifier)


class SalesTeamNotFoundError(NotFoundError):
    def __init__(self, team_id: UUID) -> None:
        super().__init__("Sales team", team_id)


class ForbiddenError(ListingLifecycleError):
    code = "forbidden"


class NotOwnerError(ForbiddenError):
    code = "not_owner"

    def __init__(self, requester_id: str, listing_id: UUID) -> None:
        self.requester_id = requester_id
        self.listing_id = listing_id
        super().__init__(f"User {requester_id} does not own listing {listing_id}.")


class InvalidStateError(ListingLifecycleError):
    """The operation is not legal in the record's current status."""

    code = "invalid_state"


class WindowExpiredError(ListingLifecycleError):
    code = "window_expired"

    def __init__(self, payment_id: UUID) -> None:
        self.payment_id = payment_id
        super().__init__(
            f"Payment window for {payment_id} has expired. Request a new activation."
        )


class ConflictError(ListingLifecycleError):
    """A concurrent mutation won the compare-and-set race; re-fetch and retry."""

    code = "conflict"
