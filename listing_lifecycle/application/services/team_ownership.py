from uuid import UUID

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam
from listing_lifecycle.domain.exceptions import ForbiddenError, SalesTeamNotFoundError


async def get_seller_team(
    team_repo: SalesTeamRepository, team_id: UUID, seller_id: str
) -> SalesTeam:
    """Load a team that belongs to ``seller_id``; another seller's team counts as missing."""
    team = await team_repo.get_by_id(team_id)
    if team is None or team.seller_id != seller_id:
        raise SalesTeamNotFoundError(team_id)
    return team


async def get_managed_team(
    team_repo: SalesTeamRepository, team_id: UUID, requester: Requester
) -> SalesTeam:
    """Load a team the requester may change: the owning seller or an admin."""
    team = await team_repo.get_by_id(team_id)
    if team is None:
        raise SalesTeamNotFoundError(team_id)
    if not requester.is_admin and requester.user_id != team.seller_id:
        raise ForbiddenError(f"User {requester.user_id} cannot manage team {team.id}.")
    return team
