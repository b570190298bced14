from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_managed_team
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam
from listing_lifecycle.domain.exceptions import NotFoundError

logger = structlog.get_logger(__name__)


@dataclass
class RemoveTeamMemberInput:
    team_id: UUID
    requester: Requester
    user_id: str


@dataclass
class RemoveTeamMemberOutput:
    team: SalesTeam


class RemoveTeamMember:
    """Use case: Take a user out of a sales team so buyers are no longer routed to them."""

    def __init__(self, team_repo: SalesTeamRepository) -> None:
        self._team_repo = team_repo

    async def execute(self, input_data: RemoveTeamMemberInput) -> RemoveTeamMemberOutput:
        team = await get_managed_team(self._team_repo, input_data.team_id, input_data.requester)
        if team.find_member(input_data.user_id) is None:
            raise NotFoundError("Team member", input_data.user_id)

        team.remove_member(input_data.user_id)
        await self._team_repo.save(team)

        logger.info(
            "team_member_removed",
            team_id=str(team.id),
            user_id=input_data.user_id,
            remaining=len(team.members),
        )
        return RemoveTeamMemberOutput(team=team)
