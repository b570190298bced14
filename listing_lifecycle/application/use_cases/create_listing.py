from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRepository,
)
from listing_lifecycle.application.services.team_ownership import get_seller_team
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.exceptions import ForbiddenError, SalesTeamNotFoundError

logger = structlog.get_logger(__name__)


@dataclass
class CreateListingInput:
    requester: Requester
    seller_id: str
    title: str
    product_ref: str | None = None
    price_override: Decimal | None = None
    description: str | None = None
    photo_ref: str | None = None
    is_donation: bool = False
    sales_team_id: UUID | None = None
    expires_at: datetime | None = None


@dataclass
class CreateListingOutput:
    listing: Listing


class CreateListing:
    """
    Use case: A seller (or an admin on their behalf) creates a listing.

    Regular listings start as DRAFT and must go through the payment gate;
    donations are published straight away. A bound sales team must belong
    to the same seller.
    """

    def __init__(
        self,
        listing_repo: ListingRepository,
        history_repo: StatusHistoryRepository,
        event_publisher: EventPublisher,
        *,
        team_repo: SalesTeamRepository | None = None,
        content_ttl: timedelta | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._listing_repo = listing_repo
        self._history_repo = history_repo
        self._event_publisher = event_publisher
        self._team_repo = team_repo
        self._content_ttl = content_ttl
        self._clock = clock

    async def execute(self, input_data: CreateListingInput) -> CreateListingOutput:
        requester = input_data.requester
        if not requester.is_admin and requester.user_id != input_data.seller_id:
            raise ForbiddenError(
                f"User {requester.user_id} cannot create listings for seller {input_data.seller_id}."
            )
        if input_data.sales_team_id is not None:
            if self._team_repo is None:
                raise SalesTeamNotFoundError(input_data.sales_team_id)
            await get_seller_team(self._team_repo, input_data.sales_team_id, input_data.seller_id)

        listing = Listing.create(
            seller_id=input_data.seller_id,
            title=input_data.title,
            product_ref=input_data.product_ref,
            price_override=input_data.price_override,
            description=input_data.description,
            photo_ref=input_data.photo_ref,
            is_donation=input_data.is_donation,
            sales_team_id=input_data.sales_team_id,
            content_ttl=self._content_ttl,
            expires_at=input_data.expires_at,
            now=self._clock(),
        )

        await self._listing_repo.save(listing)
        await self._history_repo.save(
            listing_id=listing.id,
            subject="listing",
            subject_id=listing.id,
            from_status=None,
            to_status=listing.status.value,
            triggered_by=requester.audit_name,
            metadata={"is_donation": listing.is_donation},
        )
        await self._event_publisher.publish_many(listing.collect_events())

        logger.info(
            "listing_created",
            listing_id=str(listing.id),
            seller_id=listing.seller_id,
            status=listing.status.value,
            is_donation=listing.is_donation,
        )
        return CreateListingOutput(listing=listing)
