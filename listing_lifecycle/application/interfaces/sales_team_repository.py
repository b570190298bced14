from abc import ABC, abstractmethod
from uuid import UUID

from listing_lifecycle.domain.entities.sales_team import SalesTeam


class SalesTeamRepository(ABC):
    """Port for reading seller-owned sales teams with their members."""

    @abstractmethod
    async def save(self, team: SalesTeam) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, team_id: UUID) -> SalesTeam | None:
        ...

    @abstractmethod
    async def list_by_seller(self, seller_id: str) -> list[SalesTeam]:
        """Teams of one seller in creation order."""
        ...

    @abstractmethod
    async def delete(self, team_id: UUID) -> None:
        """Remove the team together with its members."""
        ...
