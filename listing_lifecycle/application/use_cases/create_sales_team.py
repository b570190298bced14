from dataclasses import dataclass, field

import structlog

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam
from listing_lifecycle.domain.exceptions import ForbiddenError

logger = structlog.get_logger(__name__)


@dataclass
class CreateSalesTeamInput:
    requester: Requester
    seller_id: str
    name: str
    description: str | None = None
    member_user_ids: list[str] = field(default_factory=list)


@dataclass
class CreateSalesTeamOutput:
    team: SalesTeam


class CreateSalesTeam:
    """Use case: A seller registers a sales team, optionally with initial members."""

    def __init__(self, team_repo: SalesTeamRepository) -> None:
        self._team_repo = team_repo

    async def execute(self, input_data: CreateSalesTeamInput) -> CreateSalesTeamOutput:
        requester = input_data.requester
        if not requester.is_admin and requester.user_id != input_data.seller_id:
            raise ForbiddenError(
                f"User {requester.user_id} cannot manage teams of seller {input_data.seller_id}."
            )

        team = SalesTeam(
            seller_id=input_data.seller_id,
            name=input_data.name,
            description=input_data.description,
        )
        for user_id in input_data.member_user_ids:
            team.add_member(user_id)

        await self._team_repo.save(team)

        logger.info(
            "sales_team_created",
            team_id=str(team.id),
            seller_id=team.seller_id,
            members=len(team.members),
        )
        return CreateSalesTeamOutput(team=team)
