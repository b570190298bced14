"""
Read-time resolution of which sales team members a buyer may contact.

Routing never guesses: with more than one candidate team the caller gets an
AMBIGUOUS selection and must come back with an explicit team choice.
"""
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.services.team_ownership import get_seller_team
from listing_lifecycle.domain.entities.sales_team import SalesTeam, TeamMember
from listing_lifecycle.domain.exceptions import (
    InvalidStateError,
    ListingNotFoundError,
    SalesTeamNotFoundError,
)

logger = structlog.get_logger(__name__)


class SelectionOutcome(str, Enum):
    NONE = "NONE"
    SELECTED = "SELECTED"
    AMBIGUOUS = "AMBIGUOUS"


@dataclass
class TeamSelection:
    outcome: SelectionOutcome
    team: SalesTeam | None = None
    candidates: list[SalesTeam] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return self.outcome is SelectionOutcome.AMBIGUOUS


@dataclass
class ContactRoute:
    """Routing answer for one listing: the team decision plus who is reachable."""

    listing_id: UUID
    selection: TeamSelection
    members: list[TeamMember] = field(default_factory=list)


class ContactRoutingResolver:
    def __init__(
        self,
        team_repo: SalesTeamRepository,
        listing_repo: ListingRepository | None = None,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._team_repo = team_repo
        self._listing_repo = listing_repo
        self._clock = clock

    async def resolve_teams(self, seller_id: str) -> list[SalesTeam]:
        return await self._team_repo.list_by_seller(seller_id)

    @staticmethod
    def select_team(teams: list[SalesTeam]) -> TeamSelection:
        if not teams:
            return TeamSelection(outcome=SelectionOutcome.NONE)
        if len(teams) == 1:
            return TeamSelection(outcome=SelectionOutcome.SELECTED, team=teams[0])
        return TeamSelection(outcome=SelectionOutcome.AMBIGUOUS, candidates=list(teams))

    @staticmethod
    def available_members(team: SalesTeam) -> list[TeamMember]:
        return [member for member in team.members if member.is_available]

    async def available_members_for_team(self, team_id: UUID) -> list[TeamMember]:
        """Like available_members, but an unknown team is NotFound rather than empty."""
        team = await self._team_repo.get_by_id(team_id)
        if team is None:
            raise SalesTeamNotFoundError(team_id)
        return self.available_members(team)

    async def route_contact(self, listing_id: UUID, team_id: UUID | None = None) -> ContactRoute:
        """
        Resolve the contact route for a publicly visible listing.

        Precedence: the team bound to the listing, then the caller's explicit
        choice, then automatic selection among the seller's teams. A bound team
        that no longer belongs to the seller is skipped.
        """
        if self._listing_repo is None:
            raise RuntimeError("route_contact requires a listing repository")

        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if not listing.is_publicly_visible(self._clock()):
            raise InvalidStateError(f"Listing {listing_id} is not publicly visible.")

        selection: TeamSelection | None = None
        if listing.sales_team_id is not None:
            bound = await self._team_repo.get_by_id(listing.sales_team_id)
            if bound is not None and bound.seller_id == listing.seller_id:
                selection = TeamSelection(outcome=SelectionOutcome.SELECTED, team=bound)
            else:
                logger.warning(
                    "contact_route_bound_team_missing",
                    listing_id=str(listing_id),
                    team_id=str(listing.sales_team_id),
                )
        if selection is None and team_id is not None:
            team = await get_seller_team(self._team_repo, team_id, listing.seller_id)
            selection = TeamSelection(outcome=SelectionOutcome.SELECTED, team=team)
        if selection is None:
            selection = self.select_team(await self.resolve_teams(listing.seller_id))

        members = self.available_members(selection.team) if selection.team else []
        logger.debug(
            "contact_route_resolved",
            listing_id=str(listing_id),
            outcome=selection.outcome.value,
            team_id=str(selection.team.id) if selection.team else None,
            members=len(members),
        )
        return ContactRoute(listing_id=listing_id, selection=selection, members=members)
