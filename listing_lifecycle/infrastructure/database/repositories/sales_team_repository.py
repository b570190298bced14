from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.domain.entities.sales_team import SalesTeam, TeamMember
from listing_lifecycle.domain.enums.member_availability import MemberAvailability
from listing_lifecycle.infrastructure.database.models import SalesTeamModel, TeamMemberModel


def _member_to_domain(m: TeamMemberModel) -> TeamMember:
    return TeamMember(
        id=m.id,
        team_id=m.team_id,
        user_id=m.user_id,
        availability=MemberAvailability(m.availability),
        position=m.position,
        name=m.name,
        email=m.email,
        whatsapp=m.whatsapp,
        created_at=m.created_at,
    )


def _to_domain(model: SalesTeamModel) -> SalesTeam:
    return SalesTeam(
        id=model.id,
        seller_id=model.seller_id,
        name=model.name,
        description=model.description,
        created_at=model.created_at,
        members=[_member_to_domain(m) for m in model.members],
    )


def _apply_member(row: TeamMemberModel, member: TeamMember) -> None:
    row.availability = member.availability.value
    row.position = member.position
    row.name = member.name
    row.email = member.email
    row.whatsapp = member.whatsapp


class SqlAlchemySalesTeamRepository(SalesTeamRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, team: SalesTeam) -> None:
        model = await self._session.get(SalesTeamModel, team.id)
        if model is None:
            model = SalesTeamModel(
                id=team.id,
                seller_id=team.seller_id,
                created_at=team.created_at,
                members=[],
            )
            self._session.add(model)
        model.name = team.name
        model.description = team.description

        kept = {member.id for member in team.members}
        # delete-orphan removes the rows dropped from the collection
        for row in [m for m in model.members if m.id not in kept]:
            model.members.remove(row)

        existing = {m.id: m for m in model.members}
        for member in team.members:
            row = existing.get(member.id)
            if row is None:
                row = TeamMemberModel(
                    id=member.id,
                    team_id=team.id,
                    user_id=member.user_id,
                    created_at=member.created_at,
                )
                model.members.append(row)
            _apply_member(row, member)
        await self._session.flush()

    async def get_by_id(self, team_id: UUID) -> SalesTeam | None:
        model = await self._session.get(SalesTeamModel, team_id)
        return _to_domain(model) if model is not None else None

    async def list_by_seller(self, seller_id: str) -> list[SalesTeam]:
        result = await self._session.execute(
            select(SalesTeamModel)
            .where(SalesTeamModel.seller_id == seller_id)
            .order_by(SalesTeamModel.created_at.asc())
        )
        return [_to_domain(m) for m in result.scalars().all()]

    async def delete(self, team_id: UUID) -> None:
        model = await self._session.get(SalesTeamModel, team_id)
        if model is not None:
            await self._session.delete(model)
            await self._session.flush()
