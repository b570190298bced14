from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRepository,
)
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    PaymentLifecycleManager,
)
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.exceptions import ListingNotFoundError
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

logger = structlog.get_logger(__name__)


@dataclass
class ArchiveListingInput:
    listing_id: UUID
    requester: Requester


@dataclass
class ArchiveListingOutput:
    listing_id: UUID
    from_status: ListingStatus
    released_payments: int


class ArchiveListing:
    """
    Use case: Soft-delete a listing.

    The listing moves to ARCHIVED and is never removed, so its payments stay
    auditable. Payments that could still progress are cancelled first.
    """

    def __init__(
        self,
        listing_repo: ListingRepository,
        history_repo: StatusHistoryRepository,
        event_publisher: EventPublisher,
        payment_manager: PaymentLifecycleManager,
        *,
        guard: ListingAccessGuard | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._listing_repo = listing_repo
        self._history_repo = history_repo
        self._event_publisher = event_publisher
        self._payment_manager = payment_manager
        self._guard = guard or ListingAccessGuard()
        self._clock = clock

    async def execute(self, input_data: ArchiveListingInput) -> ArchiveListingOutput:
        requester = input_data.requester
        async with self._listing_repo.lock(input_data.listing_id):
            listing = await self._listing_repo.get_by_id(input_data.listing_id)
            if listing is None:
                raise ListingNotFoundError(input_data.listing_id)

            self._guard.ensure_can_delete(listing, requester)

            released = await self._payment_manager.release_open_payments(
                listing.id, triggered_by=requester.audit_name, reason="listing_archived"
            )

            from_status = listing.status
            listing.transition_to(
                ListingStatus.ARCHIVED, triggered_by=requester.audit_name, now=self._clock()
            )
            await self._listing_repo.save(listing)
            await self._history_repo.save(
                listing_id=listing.id,
                subject="listing",
                subject_id=listing.id,
                from_status=from_status.value,
                to_status=ListingStatus.ARCHIVED.value,
                triggered_by=requester.audit_name,
                metadata={"released_payments": released},
            )
            await self._event_publisher.publish_many(listing.collect_events())

        logger.info(
            "listing_archived",
            listing_id=str(listing.id),
            from_status=from_status.value,
            released_payments=released,
        )
        return ArchiveListingOutput(
            listing_id=listing.id, from_status=from_status, released_payments=released
        )
