from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.exceptions import ListingNotFoundError
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

logger = structlog.get_logger(__name__)


@dataclass
class SetListingVisibilityInput:
    listing_id: UUID
    requester: Requester
    active: bool


@dataclass
class SetListingVisibilityOutput:
    listing: Listing


class SetListingVisibility:
    """
    Use case: Deactivate or reactivate a published listing.

    Only flips ``active``; the paid status and its payments are untouched.
    """

    def __init__(
        self,
        listing_repo: ListingRepository,
        event_publisher: EventPublisher,
        *,
        guard: ListingAccessGuard | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._listing_repo = listing_repo
        self._event_publisher = event_publisher
        self._guard = guard or ListingAccessGuard()
        self._clock = clock

    async def execute(self, input_data: SetListingVisibilityInput) -> SetListingVisibilityOutput:
        requester = input_data.requester
        async with self._listing_repo.lock(input_data.listing_id):
            listing = await self._listing_repo.get_by_id(input_data.listing_id)
            if listing is None:
                raise ListingNotFoundError(input_data.listing_id)

            if input_data.active:
                self._guard.ensure_can_reactivate(listing, requester)
                listing.reactivate(triggered_by=requester.audit_name, now=self._clock())
            else:
                self._guard.ensure_can_deactivate(listing, requester)
                listing.deactivate(triggered_by=requester.audit_name, now=self._clock())

            await self._listing_repo.save(listing)
            await self._event_publisher.publish_many(listing.collect_events())

        logger.info(
            "listing_visibility_changed",
            listing_id=str(listing.id),
            active=listing.active,
            requester_id=requester.user_id,
        )
        return SetListingVisibilityOutput(listing=listing)
