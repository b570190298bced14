from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from listing_lifecycle.api.dependencies import (
    get_contact_resolver,
    get_create_sales_team_use_case,
    get_delete_sales_team_use_case,
    get_remove_team_member_use_case,
    get_requester,
    get_update_membership_use_case,
    get_update_sales_team_use_case,
)
from listing_lifecycle.api.errors import HANDLED_ERRORS, http_error
from listing_lifecycle.api.schemas.contact_schemas import (
    AvailableMembersResponse,
    ContactRouteResponse,
    CreateSalesTeamRequest,
    MembershipRequest,
    SalesTeamResponse,
    TeamMemberResponse,
    TeamSelectionResponse,
    UpdateSalesTeamRequest,
)
from listing_lifecycle.application.services.contact_routing_resolver import (
    ContactRoutingResolver,
    TeamSelection,
)
from listing_lifecycle.application.use_cases.create_sales_team import (
    CreateSalesTeam,
    CreateSalesTeamInput,
)
from listing_lifecycle.application.use_cases.delete_sales_team import (
    DeleteSalesTeam,
    DeleteSalesTeamInput,
)
from listing_lifecycle.application.use_cases.remove_team_member import (
    RemoveTeamMember,
    RemoveTeamMemberInput,
)
from listing_lifecycle.application.use_cases.update_sales_team import (
    UpdateSalesTeam,
    UpdateSalesTeamInput,
)
from listing_lifecycle.application.use_cases.update_team_membership import (
    UpdateTeamMembership,
    UpdateTeamMembershipInput,
)
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.entities.sales_team import SalesTeam

router = APIRouter(tags=["contacts"])


def _team_to_response(team: SalesTeam) -> SalesTeamResponse:
    return SalesTeamResponse.model_validate(team)


def _selection_to_response(selection: TeamSelection) -> TeamSelectionResponse:
    return TeamSelectionResponse(
        outcome=selection.outcome,
        team=_team_to_response(selection.team) if selection.team else None,
        candidates=[_team_to_response(t) for t in selection.candidates],
    )


@router.get("/listings/{listing_id}/contact", response_model=ContactRouteResponse)
async def route_contact(
    listing_id: UUID,
    team_id: UUID | None = Query(default=None),
    resolver: ContactRoutingResolver = Depends(get_contact_resolver),
) -> ContactRouteResponse:
    """
    Who a buyer should talk to about a listing.

    An AMBIGUOUS outcome lists the candidate teams; call again with
    ``team_id`` set to one of them.
    """
    try:
        route = await resolver.route_contact(listing_id, team_id)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return ContactRouteResponse(
        listing_id=route.listing_id,
        selection=_selection_to_response(route.selection),
        members=[TeamMemberResponse.model_validate(m) for m in route.members],
    )


@router.get("/sellers/{seller_id}/teams", response_model=TeamSelectionResponse)
async def resolve_seller_teams(
    seller_id: str,
    resolver: ContactRoutingResolver = Depends(get_contact_resolver),
) -> TeamSelectionResponse:
    teams = await resolver.resolve_teams(seller_id)
    return _selection_to_response(resolver.select_team(teams))


@router.get("/teams/{team_id}/members/available", response_model=AvailableMembersResponse)
async def list_available_members(
    team_id: UUID,
    resolver: ContactRoutingResolver = Depends(get_contact_resolver),
) -> AvailableMembersResponse:
    try:
        members = await resolver.available_members_for_team(team_id)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return AvailableMembersResponse(
        team_id=team_id, members=[TeamMemberResponse.model_validate(m) for m in members]
    )


@router.post("/teams", response_model=SalesTeamResponse, status_code=status.HTTP_201_CREATED)
async def create_sales_team(
    body: CreateSalesTeamRequest,
    requester: Requester = Depends(get_requester),
    use_case: CreateSalesTeam = Depends(get_create_sales_team_use_case),
) -> SalesTeamResponse:
    try:
        result = await use_case.execute(
            CreateSalesTeamInput(
                requester=requester,
                seller_id=body.seller_id or requester.user_id,
                name=body.name,
                description=body.description,
                member_user_ids=body.member_user_ids,
            )
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _team_to_response(result.team)


@router.put("/teams/{team_id}/members/{user_id}", response_model=SalesTeamResponse)
async def put_team_member(
    team_id: UUID,
    user_id: str,
    body: MembershipRequest,
    requester: Requester = Depends(get_requester),
    use_case: UpdateTeamMembership = Depends(get_update_membership_use_case),
) -> SalesTeamResponse:
    """Add the user to the team, or update their availability and contact details."""
    try:
        result = await use_case.execute(
            UpdateTeamMembershipInput(
                team_id=team_id,
                requester=requester,
                user_id=user_id,
                availability=body.availability,
                name=body.name,
                email=body.email,
                whatsapp=body.whatsapp,
            )
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _team_to_response(result.team)


@router.delete("/teams/{team_id}/members/{user_id}", response_model=SalesTeamResponse)
async def delete_team_member(
    team_id: UUID,
    user_id: str,
    requester: Requester = Depends(get_requester),
    use_case: RemoveTeamMember = Depends(get_remove_team_member_use_case),
) -> SalesTeamResponse:
    try:
        result = await use_case.execute(
            RemoveTeamMemberInput(team_id=team_id, requester=requester, user_id=user_id)
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _team_to_response(result.team)


@router.patch("/teams/{team_id}", response_model=SalesTeamResponse)
async def update_sales_team(
    team_id: UUID,
    body: UpdateSalesTeamRequest,
    requester: Requester = Depends(get_requester),
    use_case: UpdateSalesTeam = Depends(get_update_sales_team_use_case),
) -> SalesTeamResponse:
    try:
        result = await use_case.execute(
            UpdateSalesTeamInput(
                team_id=team_id,
                requester=requester,
                name=body.name,
                description=body.description,
            )
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _team_to_response(result.team)


@router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sales_team(
    team_id: UUID,
    requester: Requester = Depends(get_requester),
    use_case: DeleteSalesTeam = Depends(get_delete_sales_team_use_case),
) -> Response:
    try:
        await use_case.execute(DeleteSalesTeamInput(team_id=team_id, requester=requester))
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
