"""
In-process repositories for local development and tests.

Every read returns a copy, so callers mutate their own instance and only a
``save`` or a successful ``compare_and_set`` changes what others observe.
"""
import asyncio
import copy
import uuid
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TypeVar
from uuid import UUID

from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.payment_repository import PaymentRepository
from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRecord,
    StatusHistoryRepository,
)
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.entities.sales_team import SalesTeam
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.enums.payment_status import (
    EXPIRABLE_PAYMENT_STATUSES,
    LIVE_PAYMENT_STATUSES,
    PaymentStatus,
)
from listing_lifecycle.domain.exceptions import ConflictError

_T = TypeVar("_T")


def _detached(entity: _T) -> _T:
    clone = copy.deepcopy(entity)
    if hasattr(clone, "_events"):
        clone._events = []
    return clone


class InMemoryListingRepository(ListingRepository):
    def __init__(self) -> None:
        self._listings: dict[UUID, Listing] = {}
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def save(self, listing: Listing) -> None:
        self._listings[listing.id] = _detached(listing)

    async def get_by_id(self, listing_id: UUID) -> Listing | None:
        listing = self._listings.get(listing_id)
        return _detached(listing) if listing is not None else None

    async def list_by_seller(
        self,
        seller_id: str,
        *,
        status: ListingStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Listing], int]:
        matches = [
            listing
            for listing in self._listings.values()
            if listing.seller_id == seller_id and (status is None or listing.status is status)
        ]
        matches.sort(key=lambda listing: listing.created_at, reverse=True)
        return [_detached(m) for m in matches[offset : offset + limit]], len(matches)

    @asynccontextmanager
    async def lock(self, listing_id: UUID) -> AsyncIterator[None]:
        async with self._locks[listing_id]:
            yield


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(self) -> None:
        self._payments: dict[UUID, Payment] = {}

    async def add(self, payment: Payment) -> None:
        if payment.status in LIVE_PAYMENT_STATUSES and self._has_other_live(payment):
            raise ConflictError(f"Listing {payment.listing_id} already has a live payment.")
        self._payments[payment.id] = _detached(payment)

    async def compare_and_set(self, payment: Payment, expected: PaymentStatus) -> bool:
        stored = self._payments.get(payment.id)
        if stored is None or stored.status is not expected:
            return False
        if payment.status in LIVE_PAYMENT_STATUSES and self._has_other_live(payment):
            raise ConflictError(f"Listing {payment.listing_id} already has a live payment.")
        self._payments[payment.id] = _detached(payment)
        return True

    async def get_by_id(self, payment_id: UUID) -> Payment | None:
        payment = self._payments.get(payment_id)
        return _detached(payment) if payment is not None else None

    async def get_latest_for_listing(self, listing_id: UUID) -> Payment | None:
        payments = await self.list_for_listing(listing_id)
        return payments[-1] if payments else None

    async def list_for_listing(self, listing_id: UUID) -> list[Payment]:
        payments = [p for p in self._payments.values() if p.listing_id == listing_id]
        payments.sort(key=lambda p: p.created_at)
        return [_detached(p) for p in payments]

    async def list_expirable(
        self, now: datetime, *, listing_id: UUID | None = None, limit: int = 500
    ) -> list[Payment]:
        due = [
            p
            for p in self._payments.values()
            if p.status in EXPIRABLE_PAYMENT_STATUSES
            and p.expires_at <= now
            and (listing_id is None or p.listing_id == listing_id)
        ]
        due.sort(key=lambda p: p.expires_at)
        return [_detached(p) for p in due[:limit]]

    async def list_by_status(
        self,
        status: PaymentStatus,
        *,
        open_at: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Payment], int]:
        matches = [
            p
            for p in self._payments.values()
            if p.status is status and (open_at is None or p.window_open(open_at))
        ]
        matches.sort(key=lambda p: p.updated_at)
        return [_detached(p) for p in matches[offset : offset + limit]], len(matches)

    def _has_other_live(self, payment: Payment) -> bool:
        return any(
            p.listing_id == payment.listing_id
            and p.id != payment.id
            and p.status in LIVE_PAYMENT_STATUSES
            for p in self._payments.values()
        )


class InMemorySalesTeamRepository(SalesTeamRepository):
    def __init__(self) -> None:
        self._teams: dict[UUID, SalesTeam] = {}

    async def save(self, team: SalesTeam) -> None:
        self._teams[team.id] = _detached(team)

    async def get_by_id(self, team_id: UUID) -> SalesTeam | None:
        team = self._teams.get(team_id)
        return _detached(team) if team is not None else None

    async def list_by_seller(self, seller_id: str) -> list[SalesTeam]:
        teams = [t for t in self._teams.values() if t.seller_id == seller_id]
        teams.sort(key=lambda t: t.created_at)
        return [_detached(t) for t in teams]

    async def delete(self, team_id: UUID) -> None:
        self._teams.pop(team_id, None)


class InMemoryStatusHistoryRepository(StatusHistoryRepository):
    def __init__(self) -> None:
        self._records: list[StatusHistoryRecord] = []

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
        record = StatusHistoryRecord(
            id=uuid.uuid4(),
            listing_id=listing_id,
            subject=subject,
            subject_id=subject_id,
            from_status=from_status,
            to_status=to_status,
            transitioned_at=datetime.now(timezone.utc),
            triggered_by=triggered_by,
            metadata=dict(metadata or {}),
        )
        self._records.append(record)
        return record

    async def get_history_for_listing(self, listing_id: UUID) -> list[StatusHistoryRecord]:
        return [r for r in self._records if r.listing_id == listing_id]
