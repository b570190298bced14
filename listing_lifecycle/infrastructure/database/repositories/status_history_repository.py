import uuid
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRecord,
    StatusHistoryRepository,
)
from listing_lifecycle.infrastructure.database.models import StatusHistoryModel


def _to_record(model: StatusHistoryModel) -> StatusHistoryRecord:
    return StatusHistoryRecord(
        id=model.id,
        listing_id=model.listing_id,
        subject=model.subject,
        subject_id=model.subject_id,
        from_status=model.from_status,
        to_status=model.to_status,
        transitioned_at=model.transitioned_at,
        triggered_by=model.triggered_by,
        metadata=model.metadata_,
    )


class SqlAlchemyStatusHistoryRepository(StatusHistoryRepository):
    """SQLAlchemy-backed implementation of StatusHistoryRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(
        self,
        *,
        listing_id: UUID,
        subject: str,
        subject_id: UUID,
        from_status: str | None,
        to_status: str,
        triggered_by: str,
        metadata: dict | None = None,  # type: ignore[type-arg]
    ) -> StatusHistoryRecord:
        model = StatusHistoryModel(
            id=uuid.uuid4(),
            listing_id=listing_id,
            subject=subject,
            subject_id=subject_id,
            from_status=from_status,
            to_status=to_status,
            triggered_by=triggered_by,
            metadata_=metadata or {},
        )
        self._session.add(model)
        await self._session.flush()
        return _to_record(model)

    async def get_history_for_listing(self, listing_id: UUID) -> list[StatusHistoryRecord]:
        result = await self._session.execute(
            select(StatusHistoryModel)
            .where(StatusHistoryModel.listing_id == listing_id)
            .order_by(StatusHistoryModel.transitioned_at.asc())
        )
        return [_to_record(m) for m in result.scalars().all()]
