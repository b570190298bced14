from enum import Enum


class ListingStatus(str, Enum):
    """Lifecycle statuses of a seller's listing."""

    DRAFT = "DRAFT"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"

    @property
    def is_terminal(self) -> bool:
        """Archived listings are kept for audit and never leave that state."""
        return self is ListingStatus.ARCHIVED
