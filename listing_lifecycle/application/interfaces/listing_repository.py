from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from uuid import UUID

from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.enums.listing_status import ListingStatus


class ListingRepository(ABC):
    """Port for persisting and querying Listing aggregates."""

    @abstractmethod
    async def save(self, listing: Listing) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, listing_id: UUID) -> Listing | None:
        ...

    @abstractmethod
    async def list_by_seller(
        self,
        seller_id: str,
        *,
        status: ListingStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Listing], int]:
        """Return (listings, total_count)."""
        ...

    @abstractmethod
    def lock(self, listing_id: UUID) -> AbstractAsyncContextManager[None]:
        """Serialize mutations of one listing and its payments until released."""
        ...
