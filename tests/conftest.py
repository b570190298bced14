"""Shared fixtures: in-memory repositories, a controllable clock and fake collaborators."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.payment_rail import PaymentRail, PaymentReference
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    ActivationTerms,
    PaymentLifecycleManager,
)
from listing_lifecycle.domain.events.domain_events import DomainEvent
from listing_lifecycle.infrastructure.memory.repositories import (
    InMemoryListingRepository,
    InMemoryPaymentRepository,
    InMemorySalesTeamRepository,
    InMemoryStatusHistoryRepository,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEventPublisher(EventPublisher):
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


class CountingPaymentRail(PaymentRail):
    def __init__(self) -> None:
        self.calls = 0

    async def create_payment_reference(self, amount: Decimal) -> PaymentReference:
        self.calls += 1
        return PaymentReference(reference=f"REF-{self.calls}", copy_paste_code=f"CODE-{self.calls}")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def listing_repo() -> InMemoryListingRepository:
    return InMemoryListingRepository()


@pytest.fixture()
def payment_repo() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture()
def team_repo() -> InMemorySalesTeamRepository:
    return InMemorySalesTeamRepository()


@pytest.fixture()
def history_repo() -> InMemoryStatusHistoryRepository:
    return InMemoryStatusHistoryRepository()


@pytest.fixture()
def publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture()
def rail() -> CountingPaymentRail:
    return CountingPaymentRail()


@pytest.fixture()
def terms() -> ActivationTerms:
    return ActivationTerms(fee=Decimal("9.90"), ttl=timedelta(minutes=30))


@pytest.fixture()
def manager(
    listing_repo: InMemoryListingRepository,
    payment_repo: InMemoryPaymentRepository,
    history_repo: InMemoryStatusHistoryRepository,
    publisher: RecordingEventPublisher,
    rail: CountingPaymentRail,
    terms: ActivationTerms,
    clock: FakeClock,
) -> PaymentLifecycleManager:
    return PaymentLifecycleManager(
        listing_repo,
        payment_repo,
        history_repo,
        publisher,
        rail,
        terms,
        clock=clock,
    )
