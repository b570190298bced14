from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass
class StatusHistoryRecord:
    id: UUID
    listing_id: UUID
    subject: str  # "listing" | "payment"
    subject_id: UUID
    from_status: str | None
    to_status: str
    transitioned_at: datetime
    triggered_by: str
    metadata: dict  # type: ignore[type-arg]


class StatusHistoryRepository(ABC):
    """Port for the audit trail of listing and payment status transitions."""

    @abstractmethod
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
        ...

    @abstractmethod
    async def get_history_for_listing(self, listing_id: UUID) -> list[StatusHistoryRecord]:
        ...
