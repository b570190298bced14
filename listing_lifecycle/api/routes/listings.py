from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from listing_lifecycle.api.dependencies import (
    get_archive_listing_use_case,
    get_clock,
    get_create_listing_use_case,
    get_edit_listing_use_case,
    get_listing_history_use_case,
    get_listing_repo,
    get_optional_requester,
    get_payment_manager,
    get_requester,
    get_set_visibility_use_case,
)
from listing_lifecycle.api.errors import HANDLED_ERRORS, http_error
from listing_lifecycle.api.schemas.listing_schemas import (
    ArchiveListingResponse,
    CreateListingRequest,
    EditListingRequest,
    EditListingResponse,
    ListingHistoryResponse,
    ListingPermissionsResponse,
    ListingResponse,
    ListingStatusResponse,
    PaginatedListingsResponse,
    StatusHistoryEntryResponse,
)
from listing_lifecycle.application.interfaces.clock import Clock
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    PaymentLifecycleManager,
)
from listing_lifecycle.application.use_cases.archive_listing import (
    ArchiveListing,
    ArchiveListingInput,
)
from listing_lifecycle.application.use_cases.create_listing import (
    CreateListing,
    CreateListingInput,
)
from listing_lifecycle.application.use_cases.edit_listing import EditListing, EditListingInput
from listing_lifecycle.application.use_cases.get_listing_history import (
    GetListingHistory,
    GetListingHistoryInput,
)
from listing_lifecycle.application.use_cases.set_listing_visibility import (
    SetListingVisibility,
    SetListingVisibilityInput,
)
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.exceptions import ForbiddenError
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

router = APIRouter(tags=["listings"])

_guard = ListingAccessGuard()


def _listing_to_response(listing: Listing) -> ListingResponse:
    return ListingResponse.model_validate(listing)


def _may_see_hidden(requester: Requester | None, seller_id: str) -> bool:
    """Hidden listings are readable by their seller, admins and moderators only."""
    if requester is None:
        return False
    return requester.can_moderate or requester.user_id == seller_id


def _not_found(listing_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "not_found", "message": f"Listing {listing_id} not found."},
    )


@router.post("/listings", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    body: CreateListingRequest,
    requester: Requester = Depends(get_requester),
    use_case: CreateListing = Depends(get_create_listing_use_case),
) -> ListingResponse:
    try:
        result = await use_case.execute(
            CreateListingInput(
                requester=requester,
                seller_id=body.seller_id or requester.user_id,
                title=body.title,
                product_ref=body.product_ref,
                price_override=body.price_override,
                description=body.description,
                photo_ref=body.photo_ref,
                is_donation=body.is_donation,
                sales_team_id=body.sales_team_id,
                expires_at=body.expires_at,
            )
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _listing_to_response(result.listing)


@router.get("/listings/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID,
    requester: Requester | None = Depends(get_optional_requester),
    repo: ListingRepository = Depends(get_listing_repo),
    clock: Clock = Depends(get_clock),
) -> ListingResponse:
    """Publicly visible listings are readable by anyone; others only by owner or staff."""
    listing = await repo.get_by_id(listing_id)
    if listing is None:
        raise _not_found(listing_id)
    if not listing.is_publicly_visible(clock()) and not _may_see_hidden(
        requester, listing.seller_id
    ):
        raise _not_found(listing_id)
    return _listing_to_response(listing)


@router.get("/sellers/{seller_id}/listings", response_model=PaginatedListingsResponse)
async def list_seller_listings(
    seller_id: str,
    status_filter: ListingStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    requester: Requester = Depends(get_requester),
    repo: ListingRepository = Depends(get_listing_repo),
) -> PaginatedListingsResponse:
    if not requester.is_admin and requester.user_id != seller_id:
        raise http_error(
            ForbiddenError(f"User {requester.user_id} cannot list listings of {seller_id}.")
        )
    listings, total = await repo.list_by_seller(
        seller_id, status=status_filter, limit=limit, offset=offset
    )
    return PaginatedListingsResponse(
        listings=[_listing_to_response(listing) for listing in listings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.patch("/listings/{listing_id}", response_model=EditListingResponse)
async def edit_listing(
    listing_id: UUID,
    body: EditListingRequest,
    requester: Requester = Depends(get_requester),
    use_case: EditListing = Depends(get_edit_listing_use_case),
) -> EditListingResponse:
    try:
        result = await use_case.execute(
            EditListingInput(listing_id=listing_id, requester=requester, changes=body.changes())
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return EditListingResponse(
        listing=_listing_to_response(result.listing), changed_fields=result.changed_fields
    )


@router.delete("/listings/{listing_id}", response_model=ArchiveListingResponse)
async def archive_listing(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    use_case: ArchiveListing = Depends(get_archive_listing_use_case),
) -> ArchiveListingResponse:
    """Soft delete: the listing is archived, never removed."""
    try:
        result = await use_case.execute(
            ArchiveListingInput(listing_id=listing_id, requester=requester)
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return ArchiveListingResponse(
        listing_id=result.listing_id,
        from_status=result.from_status,
        released_payments=result.released_payments,
    )


@router.post("/listings/{listing_id}/deactivate", response_model=ListingResponse)
async def deactivate_listing(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    use_case: SetListingVisibility = Depends(get_set_visibility_use_case),
) -> ListingResponse:
    try:
        result = await use_case.execute(
            SetListingVisibilityInput(listing_id=listing_id, requester=requester, active=False)
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _listing_to_response(result.listing)


@router.post("/listings/{listing_id}/reactivate", response_model=ListingResponse)
async def reactivate_listing(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    use_case: SetListingVisibility = Depends(get_set_visibility_use_case),
) -> ListingResponse:
    try:
        result = await use_case.execute(
            SetListingVisibilityInput(listing_id=listing_id, requester=requester, active=True)
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return _listing_to_response(result.listing)


@router.get("/listings/{listing_id}/status", response_model=ListingStatusResponse)
async def get_listing_status(
    listing_id: UUID,
    requester: Requester | None = Depends(get_optional_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> ListingStatusResponse:
    """Same visibility rule as the listing itself."""
    try:
        view = await manager.get_listing_status(listing_id)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    if not view.publicly_visible and not _may_see_hidden(requester, view.seller_id):
        raise _not_found(listing_id)
    return ListingStatusResponse(
        listing_id=view.listing_id,
        status=view.status,
        active=view.active,
        publicly_visible=view.publicly_visible,
        is_donation=view.is_donation,
    )


@router.get("/listings/{listing_id}/permissions", response_model=ListingPermissionsResponse)
async def get_listing_permissions(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    repo: ListingRepository = Depends(get_listing_repo),
) -> ListingPermissionsResponse:
    """What the requester may do with the listing right now, for rendering controls."""
    listing = await repo.get_by_id(listing_id)
    if listing is None:
        raise _not_found(listing_id)
    return ListingPermissionsResponse(
        listing_id=listing.id,
        can_edit=_guard.can_edit(listing, requester),
        can_deactivate=_guard.can_deactivate(listing, requester),
        can_reactivate=_guard.can_reactivate(listing, requester),
        can_delete=_guard.can_delete(listing, requester),
    )


@router.get("/listings/{listing_id}/history", response_model=ListingHistoryResponse)
async def get_listing_history(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    use_case: GetListingHistory = Depends(get_listing_history_use_case),
) -> ListingHistoryResponse:
    try:
        result = await use_case.execute(
            GetListingHistoryInput(listing_id=listing_id, requester=requester)
        )
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return ListingHistoryResponse(
        listing_id=result.listing_id,
        history=[
            StatusHistoryEntryResponse(
                id=entry.id,
                subject=entry.subject,
                subject_id=entry.subject_id,
                from_status=entry.from_status,
                to_status=entry.to_status,
                transitioned_at=entry.transitioned_at,
                triggered_by=entry.triggered_by,
                metadata=entry.metadata,
            )
            for entry in result.history
        ],
    )
