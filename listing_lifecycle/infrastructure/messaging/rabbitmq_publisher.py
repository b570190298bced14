"""
RabbitMQ event publisher.

pika is blocking, so each publish runs in the default thread-pool executor.
A connection is opened per publish call; dispatch failures are logged and
never propagate into the request that produced the event.
"""
import asyncio
import dataclasses
import json
from enum import Enum
from functools import partial

import pika
import structlog

from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.config import settings
from listing_lifecycle.domain.events.domain_events import (
    DomainEvent,
    ListingCreatedEvent,
    ListingStatusChangedEvent,
    ListingVisibilityChangedEvent,
    PaymentApprovedEvent,
    PaymentCancelledEvent,
    PaymentCreatedEvent,
    PaymentExpiredEvent,
    PaymentRejectedEvent,
    ProofSubmittedEvent,
)

logger = structlog.get_logger(__name__)

_PAYMENT_ROUTING_KEYS: dict[type[DomainEvent], str] = {
    PaymentCreatedEvent: "payment.created",
    ProofSubmittedEvent: "payment.proof_submitted",
    PaymentApprovedEvent: "payment.approved",
    PaymentRejectedEvent: "payment.rejected",
    PaymentExpiredEvent: "payment.expired",
    PaymentCancelledEvent: "payment.cancelled",
}


def _event_to_routing_key(event: DomainEvent) -> str:
    if type(event) in _PAYMENT_ROUTING_KEYS:
        return _PAYMENT_ROUTING_KEYS[type(event)]
    if isinstance(event, ListingStatusChangedEvent):
        return f"listing.status.{event.to_status.value.lower()}"
    if isinstance(event, ListingVisibilityChangedEvent):
        return "listing.visibility"
    if isinstance(event, ListingCreatedEvent):
        return "listing.created"
    return "event.unknown"


def _json_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return value


def _serialise_event(event: DomainEvent) -> str:
    payload: dict = {"event_type": _event_to_routing_key(event)}  # type: ignore[type-arg]
    for f in dataclasses.fields(event):
        payload[f.name] = _json_value(getattr(event, f.name))
    return json.dumps(payload, default=str)


def _blocking_publish(rabbitmq_url: str, exchange: str, routing_key: str, body: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(rabbitmq_url))
    try:
        channel = connection.channel()
        channel.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
        channel.basic_publish(
            exchange=exchange,
            routing_key=routing_key,
            body=body.encode(),
            properties=pika.BasicProperties(
                delivery_mode=pika.DeliveryMode.Persistent,
                content_type="application/json",
            ),
        )
    finally:
        connection.close()


class RabbitMQPublisher(EventPublisher):
    """Publishes domain events to a RabbitMQ topic exchange."""

    def __init__(
        self,
        rabbitmq_url: str = settings.rabbitmq_url,
        exchange: str = settings.events_exchange,
    ) -> None:
        self._url = rabbitmq_url
        self._exchange = exchange

    async def publish(self, event: DomainEvent) -> None:
        routing_key = _event_to_routing_key(event)
        body = _serialise_event(event)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                partial(_blocking_publish, self._url, self._exchange, routing_key, body),
            )
            logger.debug("event_published", routing_key=routing_key, event_id=str(event.event_id))
        except Exception as exc:
            logger.error(
                "failed_to_publish_event",
                routing_key=routing_key,
                error=str(exc),
            )
