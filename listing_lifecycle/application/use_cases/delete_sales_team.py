from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_managed_team
from listing_lifecycle.domain.entities.requester import Requester

logger = structlog.get_logger(__name__)


@dataclass
class DeleteSalesTeamInput:
    team_id: UUID
    requester: Requester


class DeleteSalesTeam:
    """
    Use case: Delete a sales team and its members.

    Listings bound to the team keep working: contact routing skips a bound
    team that no longer exists and falls back to the seller's other teams.
    """

    def __init__(self, team_repo: SalesTeamRepository) -> None:
        self._team_repo = team_repo

    async def execute(self, input_data: DeleteSalesTeamInput) -> None:
        team = await get_managed_team(self._team_repo, input_data.team_id, input_data.requester)
        await self._team_repo.delete(team.id)

        logger.info(
            "sales_team_deleted",
            team_id=str(team.id),
            seller_id=team.seller_id,
            members=len(team.members),
        )
