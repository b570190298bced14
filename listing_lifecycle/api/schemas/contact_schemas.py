from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from listing_lifecycle.application.services.contact_routing_resolver import SelectionOutcome
from listing_lifecycle.domain.enums.member_availability import MemberAvailability


class TeamMemberResponse(BaseModel):
    id: UUID
    user_id: str
    availability: MemberAvailability
    position: int
    name: str | None = None
    email: str | None = None
    whatsapp: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SalesTeamResponse(BaseModel):
    id: UUID
    seller_id: str
    name: str
    description: str | None = None
    members: list[TeamMemberResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamSelectionResponse(BaseModel):
    outcome: SelectionOutcome
    team: SalesTeamResponse | None = None
    candidates: list[SalesTeamResponse] = []


class ContactRouteResponse(BaseModel):
    listing_id: UUID
    selection: TeamSelectionResponse
    members: list[TeamMemberResponse]


class AvailableMembersResponse(BaseModel):
    team_id: UUID
    members: list[TeamMemberResponse]


class CreateSalesTeamRequest(BaseModel):
    seller_id: str | None = None
    name: str = Field(min_length=1, max_length=256)
    description: str | None = None
    member_user_ids: list[str] = []


class UpdateSalesTeamRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    description: str | None = None


class MembershipRequest(BaseModel):
    availability: MemberAvailability = MemberAvailability.AVAILABLE
    name: str | None = Field(default=None, max_length=256)
    email: EmailStr | None = None
    whatsapp: str | None = Field(default=None, max_length=32, pattern=r"^\+?[0-9 ()-]{8,32}$")
