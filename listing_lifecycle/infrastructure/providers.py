"""
Composition helpers shared by the HTTP app, the background sweep loop and
the Azure Functions entry point.
"""
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import pika
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.payment_rail import PaymentRail
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    ActivationTerms,
    PaymentLifecycleManager,
)
from listing_lifecycle.config import Settings, settings
from listing_lifecycle.infrastructure.database.connection import AsyncSessionLocal, transaction
from listing_lifecycle.infrastructure.database.repositories.listing_repository import (
    SqlAlchemyListingRepository,
)
from listing_lifecycle.infrastructure.database.repositories.payment_repository import (
    SqlAlchemyPaymentRepository,
)
from listing_lifecycle.infrastructure.database.repositories.status_history_repository import (
    SqlAlchemyStatusHistoryRepository,
)
from listing_lifecycle.infrastructure.external_services.local_payment_rail import LocalPaymentRail
from listing_lifecycle.infrastructure.external_services.payment_rail_client import (
    HttpPaymentRailClient,
)
from listing_lifecycle.infrastructure.messaging.buffered_publisher import BufferedEventPublisher
from listing_lifecycle.infrastructure.messaging.noop_publisher import NoOpEventPublisher
from listing_lifecycle.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher

logger = structlog.get_logger(__name__)


def build_event_publisher(config: Settings = settings) -> EventPublisher:
    if not config.publish_events:
        return NoOpEventPublisher()
    return RabbitMQPublisher(config.rabbitmq_url, config.events_exchange)


def build_payment_rail(config: Settings = settings) -> PaymentRail:
    if config.payment_rail_url:
        return HttpPaymentRailClient(
            config.payment_rail_url,
            config.payment_rail_api_key,
            timeout=config.payment_rail_timeout_seconds,
        )
    return LocalPaymentRail()


def build_payment_manager(
    session: AsyncSession,
    *,
    event_publisher: EventPublisher | None = None,
    payment_rail: PaymentRail | None = None,
    clock: Clock = utcnow,
    config: Settings = settings,
) -> PaymentLifecycleManager:
    return PaymentLifecycleManager(
        SqlAlchemyListingRepository(session),
        SqlAlchemyPaymentRepository(session),
        SqlAlchemyStatusHistoryRepository(session),
        event_publisher or build_event_publisher(config),
        payment_rail or build_payment_rail(config),
        ActivationTerms.from_settings(config),
        clock=clock,
        sweep_batch_size=config.sweep_batch_size,
    )


@dataclass
class UnitOfWork:
    """One session plus the events to publish once it commits."""

    session: AsyncSession
    events: BufferedEventPublisher


@asynccontextmanager
async def unit_of_work(
    publisher: EventPublisher | None = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncIterator[UnitOfWork]:
    """
    Open a transaction whose buffered events are published only after commit.

    A failing body or commit rolls back and drops the buffered events.
    """
    events = BufferedEventPublisher(publisher or build_event_publisher())
    try:
        async with transaction(session_factory) as session:
            yield UnitOfWork(session=session, events=events)
    except BaseException:
        events.discard()
        raise
    await events.flush()


async def run_payment_sweep(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    publisher: EventPublisher | None = None,
) -> int:
    """One expiration sweep in its own transaction; returns how many payments expired."""
    async with unit_of_work(publisher, session_factory) as uow:
        return await build_payment_manager(uow.session, event_publisher=uow.events).sweep()


async def sweep_loop(
    interval_seconds: float,
    runner: Callable[[], Awaitable[int]] = run_payment_sweep,
) -> None:
    """Run the sweep forever; a failed run is logged and retried on the next tick."""
    logger.info("payment_sweep_loop_started", interval_seconds=interval_seconds)
    while True:
        try:
            await runner()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("payment_sweep_failed", error=str(exc))
        await asyncio.sleep(interval_seconds)


def _ping_rabbitmq(url: str) -> None:
    pika.BlockingConnection(pika.URLParameters(url)).close()


async def check_dependencies(
    config: Settings = settings,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> dict[str, str]:
    """Status of the database and broker, shared by both health endpoints."""
    report = {"database": "connected", "rabbitmq": "disabled"}
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        report["database"] = f"error: {exc}"

    if config.publish_events:
        report["rabbitmq"] = "connected"
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, _ping_rabbitmq, config.rabbitmq_url
            )
        except Exception as exc:
            report["rabbitmq"] = f"error: {exc}"

    healthy = report["database"] == "connected" and report["rabbitmq"] in ("connected", "disabled")
    report["status"] = "healthy" if healthy else "degraded"
    report["payment_rail"] = "http" if config.payment_rail_url else "local"
    return report
