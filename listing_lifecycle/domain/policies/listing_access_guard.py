"""
Single authority for "may this requester mutate this listing right now".

Every mutating entry point consults the guard; a False answer is surfaced
through the ``ensure_*`` helpers as an authorization error, never a no-op.
"""
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.exceptions import ForbiddenError, NotOwnerError


class ListingAccessGuard:
    """Stateless authorization rules over (listing, requester)."""

    def is_owner_or_admin(self, listing: Listing, requester: Requester) -> bool:
        return requester.is_admin or requester.user_id == listing.seller_id

    def can_edit(self, listing: Listing, requester: Requester) -> bool:
        if not self.is_owner_or_admin(listing, requester):
            return False
        if listing.status in (ListingStatus.DRAFT, ListingStatus.AWAITING_PAYMENT):
            return True
        # A deactivated published listing must be reactivated before editing
        return listing.status is ListingStatus.PUBLISHED and listing.active

    def can_deactivate(self, listing: Listing, requester: Requester) -> bool:
        return (
            self.is_owner_or_admin(listing, requester)
            and listing.status is ListingStatus.PUBLISHED
            and listing.active
        )

    def can_reactivate(self, listing: Listing, requester: Requester) -> bool:
        return (
            self.is_owner_or_admin(listing, requester)
            and listing.status is ListingStatus.PUBLISHED
            and not listing.active
        )

    def can_delete(self, listing: Listing, requester: Requester) -> bool:
        return (
            self.is_owner_or_admin(listing, requester)
            and listing.status is not ListingStatus.ARCHIVED
        )

    # -------------------------------------------------------------------------
    # Raising variants
    # -------------------------------------------------------------------------

    def ensure_owner_or_admin(self, listing: Listing, requester: Requester) -> None:
        if not self.is_owner_or_admin(listing, requester):
            raise NotOwnerError(requester.user_id, listing.id)

    def ensure_can_edit(self, listing: Listing, requester: Requester) -> None:
        self.ensure_owner_or_admin(listing, requester)
        if not self.can_edit(listing, requester):
            raise ForbiddenError(
                f"Listing {listing.id} cannot be edited while {self._describe(listing)}."
            )

    def ensure_can_deactivate(self, listing: Listing, requester: Requester) -> None:
        self.ensure_owner_or_admin(listing, requester)
        if not self.can_deactivate(listing, requester):
            raise ForbiddenError(
                f"Listing {listing.id} cannot be deactivated while {self._describe(listing)}."
            )

    def ensure_can_reactivate(self, listing: Listing, requester: Requester) -> None:
        self.ensure_owner_or_admin(listing, requester)
        if not self.can_reactivate(listing, requester):
            raise ForbiddenError(
                f"Listing {listing.id} cannot be reactivated while {self._describe(listing)}."
            )

    def ensure_can_delete(self, listing: Listing, requester: Requester) -> None:
        self.ensure_owner_or_admin(listing, requester)
        if not self.can_delete(listing, requester):
            raise ForbiddenError(f"Listing {listing.id} is already archived.")

    @staticmethod
    def _describe(listing: Listing) -> str:
        if listing.status is ListingStatus.PUBLISHED:
            return "published and active" if listing.active else "published and inactive"
        return listing.status.value.lower()
