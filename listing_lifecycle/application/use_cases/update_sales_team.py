from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_managed_team
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam

logger = structlog.get_logger(__name__)


@dataclass
class UpdateSalesTeamInput:
    team_id: UUID
    requester: Requester
    name: str | None = None
    description: str | None = None


@dataclass
class UpdateSalesTeamOutput:
    team: SalesTeam


class UpdateSalesTeam:
    """Use case: Rename a sales team or change its description."""

    def __init__(self, team_repo: SalesTeamRepository) -> None:
        self._team_repo = team_repo

    async def execute(self, input_data: UpdateSalesTeamInput) -> UpdateSalesTeamOutput:
        team = await get_managed_team(self._team_repo, input_data.team_id, input_data.requester)

        # Raises ValueError on a blank name
        team.update_details(name=input_data.name, description=input_data.description)
        await self._team_repo.save(team)

        logger.info("sales_team_updated", team_id=str(team.id), seller_id=team.seller_id)
        return UpdateSalesTeamOutput(team=team)
