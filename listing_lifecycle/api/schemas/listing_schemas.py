from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from listing_lifecycle.domain.enums.listing_status import ListingStatus


class ListingResponse(BaseModel):
    id: UUID
    seller_id: str
    title: str
    description: str | None = None
    product_ref: str | None = None
    price_override: Decimal | None = None
    photo_ref: str | None = None
    is_donation: bool
    sales_team_id: UUID | None = None
    status: ListingStatus
    active: bool
    created_at: datetime
    updated_at: datetime
    status_changed_at: datetime
    expires_at: datetime | None = None
    published_at: datetime | None = None
    archived_at: datetime | None = None

    model_config = {"from_attributes": True}


class PaginatedListingsResponse(BaseModel):
    listings: list[ListingResponse]
    total: int
    limit: int
    offset: int


class CreateListingRequest(BaseModel):
    seller_id: str | None = None
    title: str = Field(min_length=1, max_length=512)
    description: str | None = None
    product_ref: str | None = None
    price_override: Decimal | None = Field(default=None, ge=0)
    photo_ref: str | None = None
    is_donation: bool = False
    sales_team_id: UUID | None = None
    expires_at: AwareDatetime | None = None


class EditListingRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=512)
    description: str | None = None
    product_ref: str | None = None
    price_override: Decimal | None = Field(default=None, ge=0)
    photo_ref: str | None = None
    sales_team_id: UUID | None = None
    expires_at: AwareDatetime | None = None

    @field_validator("title", "expires_at")
    @classmethod
    def reject_null(cls, v: object) -> object:
        # Only runs for values the client sent; omitted fields stay unset
        if v is None:
            raise ValueError("field cannot be null")
        return v

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


class EditListingResponse(BaseModel):
    listing: ListingResponse
    changed_fields: list[str]


class ArchiveListingResponse(BaseModel):
    listing_id: UUID
    from_status: ListingStatus
    released_payments: int


class ListingStatusResponse(BaseModel):
    listing_id: UUID
    status: ListingStatus
    active: bool
    publicly_visible: bool
    is_donation: bool


class ListingPermissionsResponse(BaseModel):
    listing_id: UUID
    can_edit: bool
    can_deactivate: bool
    can_reactivate: bool
    can_delete: bool


class StatusHistoryEntryResponse(BaseModel):
    id: UUID
    subject: str
    subject_id: UUID
    from_status: str | None
    to_status: str
    transitioned_at: datetime
    triggered_by: str
    metadata: dict  # type: ignore[type-arg]


class ListingHistoryResponse(BaseModel):
    listing_id: UUID
    history: list[StatusHistoryEntryResponse]
