from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRecord,
    StatusHistoryRepository,
)
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.exceptions import ListingNotFoundError
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

logger = structlog.get_logger(__name__)


@dataclass
class GetListingHistoryInput:
    listing_id: UUID
    requester: Requester


@dataclass
class GetListingHistoryOutput:
    listing_id: UUID
    history: list[StatusHistoryRecord]


class GetListingHistory:
    """Use case: Retrieve the audit trail of a listing and its payments."""

    def __init__(
        self,
        listing_repo: ListingRepository,
        history_repo: StatusHistoryRepository,
        *,
        guard: ListingAccessGuard | None = None,
    ) -> None:
        self._listing_repo = listing_repo
        self._history_repo = history_repo
        self._guard = guard or ListingAccessGuard()

    async def execute(self, input_data: GetListingHistoryInput) -> GetListingHistoryOutput:
        listing = await self._listing_repo.get_by_id(input_data.listing_id)
        if listing is None:
            raise ListingNotFoundError(input_data.listing_id)

        if not input_data.requester.can_moderate:
            self._guard.ensure_owner_or_admin(listing, input_data.requester)

        history = await self._history_repo.get_history_for_listing(input_data.listing_id)

        return GetListingHistoryOutput(listing_id=input_data.listing_id, history=history)
