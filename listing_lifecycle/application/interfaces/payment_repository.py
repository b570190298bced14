from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.enums.payment_status import PaymentStatus


class PaymentRepository(ABC):
    """
    Port for persisting Payment records.

    Implementations must enforce "one PENDING/PROOF_SUBMITTED payment per
    listing" on insert and offer a compare-and-set on status for updates.
    """

    @abstractmethod
    async def add(self, payment: Payment) -> None:
        """Insert a new payment; raise ConflictError if the listing already has a live one."""
        ...

    @abstractmethod
    async def compare_and_set(self, payment: Payment, expected: PaymentStatus) -> bool:
        """Persist ``payment`` only if the stored status still equals ``expected``."""
        ...

    @abstractmethod
    async def get_by_id(self, payment_id: UUID) -> Payment | None:
        ...

    @abstractmethod
    async def get_latest_for_listing(self, listing_id: UUID) -> Payment | None:
        ...

    @abstractmethod
    async def list_for_listing(self, listing_id: UUID) -> list[Payment]:
        """All payments of a listing, oldest first."""
        ...

    @abstractmethod
    async def list_expirable(
        self, now: datetime, *, listing_id: UUID | None = None, limit: int = 500
    ) -> list[Payment]:
        """Payments whose window elapsed but whose stored status still reads as open."""
        ...

    @abstractmethod
    async def list_by_status(
        self,
        status: PaymentStatus,
        *,
        open_at: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Payment], int]:
        """Return (payments, total_count); with ``open_at``, only those whose window is still open then."""
        ...
