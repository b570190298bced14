from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.exceptions import ConflictError, ListingNotFoundError
from listing_lifecycle.infrastructure.database.models import ListingModel

# Postgres lock_not_available, raised once lock_timeout elapses
_LOCK_NOT_AVAILABLE = "55P03"


def _to_domain(model: ListingModel) -> Listing:
    return Listing(
        id=model.id,
        seller_id=model.seller_id,
        product_ref=model.product_ref,
        price_override=(
            Decimal(str(model.price_override)) if model.price_override is not None else None
        ),
        title=model.title,
        description=model.description,
        photo_ref=model.photo_ref,
        is_donation=model.is_donation,
        sales_team_id=model.sales_team_id,
        status=ListingStatus(model.status),
        active=model.active,
        created_at=model.created_at,
        updated_at=model.updated_at,
        status_changed_at=model.status_changed_at,
        expires_at=model.expires_at,
        published_at=model.published_at,
        archived_at=model.archived_at,
    )


def _apply(model: ListingModel, listing: Listing) -> None:
    model.product_ref = listing.product_ref
    model.price_override = listing.price_override
    model.title = listing.title
    model.description = listing.description
    model.photo_ref = listing.photo_ref
    model.is_donation = listing.is_donation
    model.sales_team_id = listing.sales_team_id
    model.status = listing.status.value
    model.active = listing.active
    model.status_changed_at = listing.status_changed_at
    model.updated_at = listing.updated_at
    model.expires_at = listing.expires_at
    model.published_at = listing.published_at
    model.archived_at = listing.archived_at


class SqlAlchemyListingRepository(ListingRepository):
    """SQLAlchemy implementation for listing persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, listing: Listing) -> None:
        model = await self._session.get(ListingModel, listing.id)
        if model is None:
            model = ListingModel(
                id=listing.id, seller_id=listing.seller_id, created_at=listing.created_at
            )
            _apply(model, listing)
            self._session.add(model)
        else:
            _apply(model, listing)
        await self._session.flush()

    async def get_by_id(self, listing_id: UUID) -> Listing | None:
        result = await self._session.execute(
            select(ListingModel)
            .where(ListingModel.id == listing_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return _to_domain(model) if model is not None else None

    async def list_by_seller(
        self,
        seller_id: str,
        *,
        status: ListingStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Listing], int]:
        query = select(ListingModel).where(ListingModel.seller_id == seller_id)
        count_query = (
            select(func.count())
            .select_from(ListingModel)
            .where(ListingModel.seller_id == seller_id)
        )

        if status is not None:
            query = query.where(ListingModel.status == status.value)
            count_query = count_query.where(ListingModel.status == status.value)

        query = query.order_by(ListingModel.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        models = result.scalars().all()

        count_result = await self._session.execute(count_query)
        total = count_result.scalar_one()

        return [_to_domain(m) for m in models], total

    @asynccontextmanager
    async def lock(self, listing_id: UUID) -> AsyncIterator[None]:
        # Row lock is held until the request's transaction ends
        try:
            result = await self._session.execute(
                select(ListingModel.id).where(ListingModel.id == listing_id).with_for_update()
            )
        except DBAPIError as exc:
            if getattr(exc.orig, "sqlstate", None) == _LOCK_NOT_AVAILABLE:
                raise ConflictError(
                    f"Listing {listing_id} is busy with another change; retry shortly."
                ) from exc
            raise
        if result.scalar_one_or_none() is None:
            raise ListingNotFoundError(listing_id)
        yield
