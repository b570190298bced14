from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_seller_team
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.exceptions import ListingNotFoundError, SalesTeamNotFoundError
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

logger = structlog.get_logger(__name__)


@dataclass
class EditListingInput:
    listing_id: UUID
    requester: Requester
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass
class EditListingOutput:
    listing: Listing
    changed_fields: list[str]


class EditListing:
    """Use case: Change content fields of a listing the requester may edit."""

    def __init__(
        self,
        listing_repo: ListingRepository,
        *,
        team_repo: SalesTeamRepository | None = None,
        guard: ListingAccessGuard | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._listing_repo = listing_repo
        self._team_repo = team_repo
        self._guard = guard or ListingAccessGuard()
        self._clock = clock

    async def execute(self, input_data: EditListingInput) -> EditListingOutput:
        async with self._listing_repo.lock(input_data.listing_id):
            listing = await self._listing_repo.get_by_id(input_data.listing_id)
            if listing is None:
                raise ListingNotFoundError(input_data.listing_id)

            self._guard.ensure_can_edit(listing, input_data.requester)

            team_id = input_data.changes.get("sales_team_id")
            if team_id is not None and team_id != listing.sales_team_id:
                if self._team_repo is None:
                    raise SalesTeamNotFoundError(team_id)
                await get_seller_team(self._team_repo, team_id, listing.seller_id)

            changed = listing.apply_changes(input_data.changes, now=self._clock())
            if changed:
                await self._listing_repo.save(listing)

        logger.info(
            "listing_edited",
            listing_id=str(listing.id),
            changed_fields=changed,
            requester_id=input_data.requester.user_id,
        )
        return EditListingOutput(listing=listing, changed_fields=changed)
