from dataclasses import dataclass
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_managed_team
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam, TeamMember
from listing_lifecycle.domain.enums.member_availability import MemberAvailability

logger = structlog.get_logger(__name__)


@dataclass
class UpdateTeamMembershipInput:
    team_id: UUID
    requester: Requester
    user_id: str
    availability: MemberAvailability = MemberAvailability.AVAILABLE
    name: str | None = None
    email: str | None = None
    whatsapp: str | None = None


@dataclass
class UpdateTeamMembershipOutput:
    team: SalesTeam
    member: TeamMember
    created: bool


class UpdateTeamMembership:
    """
    Use case: Add a user to a sales team or update their availability and contact details.

    A user already in the team keeps their position; contact fields left out
    of the request keep their current values.
    """

    def __init__(self, team_repo: SalesTeamRepository) -> None:
        self._team_repo = team_repo

    async def execute(self, input_data: UpdateTeamMembershipInput) -> UpdateTeamMembershipOutput:
        team = await get_managed_team(self._team_repo, input_data.team_id, input_data.requester)

        created = team.find_member(input_data.user_id) is None
        if created:
            member = team.add_member(
                input_data.user_id,
                input_data.availability,
                name=input_data.name,
                email=input_data.email,
                whatsapp=input_data.whatsapp,
            )
        else:
            team.set_availability(input_data.user_id, input_data.availability)
            member = team.update_contact(
                input_data.user_id,
                name=input_data.name,
                email=input_data.email,
                whatsapp=input_data.whatsapp,
            )

        await self._team_repo.save(team)

        logger.info(
            "team_membership_updated",
            team_id=str(team.id),
            user_id=input_data.user_id,
            availability=input_data.availability.value,
            position=member.position,
            created=created,
        )
        return UpdateTeamMembershipOutput(team=team, member=member, created=created)
