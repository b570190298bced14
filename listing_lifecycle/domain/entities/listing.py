from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.events.domain_events import (
    DomainEvent,
    ListingCreatedEvent,
    ListingStatusChangedEvent,
    ListingVisibilityChangedEvent,
)
from listing_lifecycle.domain.exceptions import InvalidStateError
from listing_lifecycle.domain.state_machine.listing_state_machine import ListingStateMachine

_state_machine = ListingStateMachine()

# Content fields a seller may change through EditListing
EDITABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "photo_ref",
        "product_ref",
        "price_override",
        "sales_team_id",
        "expires_at",
    }
)

# Editable fields that may be changed but never cleared
REQUIRED_FIELDS: frozenset[str] = frozenset({"title", "expires_at"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Listing:
    """
    A sellable item or service posted by a seller.

    ``status`` tracks the payment-gated lifecycle; ``active`` is an orthogonal
    visibility switch that only matters once the listing is PUBLISHED.
    Emits domain events on changes; callers collect and publish them.
    """

    # Identity
    id: UUID = field(default_factory=uuid4)
    seller_id: str = ""

    # Content
    product_ref: str | None = None
    price_override: Decimal | None = None
    title: str = ""
    description: str | None = None
    photo_ref: str | None = None
    is_donation: bool = False
    sales_team_id: UUID | None = None

    # State
    status: ListingStatus = ListingStatus.DRAFT
    active: bool = False

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    status_changed_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime | None = None
    published_at: datetime | None = None
    archived_at: datetime | None = None

    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        *,
        seller_id: str,
        title: str,
        product_ref: str | None = None,
        price_override: Decimal | None = None,
        description: str | None = None,
        photo_ref: str | None = None,
        is_donation: bool = False,
        sales_team_id: UUID | None = None,
        content_ttl: timedelta | None = None,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> "Listing":
        """
        Build a new listing.

        Donations skip the payment gate: they are published and active from
        the start, with a zero price. An explicit ``expires_at`` wins over
        ``content_ttl``.
        """
        now = now or _utcnow()
        if expires_at is not None and expires_at <= now:
            raise ValueError("expires_at must be in the future.")
        if expires_at is None and content_ttl:
            expires_at = now + content_ttl
        listing = cls(
            seller_id=seller_id,
            product_ref=product_ref,
            price_override=Decimal("0") if is_donation else price_override,
            title=title,
            description=description,
            photo_ref=photo_ref,
            is_donation=is_donation,
            sales_team_id=sales_team_id,
            status=ListingStatus.PUBLISHED if is_donation else ListingStatus.DRAFT,
            active=is_donation,
            created_at=now,
            updated_at=now,
            status_changed_at=now,
            expires_at=expires_at,
            published_at=now if is_donation else None,
        )
        listing._events.append(
            ListingCreatedEvent(
                listing_id=listing.id,
                seller_id=seller_id,
                title=title,
                is_donation=is_donation,
            )
        )
        return listing

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def transition_to(
        self,
        new_status: ListingStatus,
        triggered_by: str,
        now: datetime | None = None,
        *,
        content_ttl: timedelta | None = None,
    ) -> None:
        """
        Validate and apply a status transition, recording the domain event.

        Publishing with a ``content_ttl`` renews a missing or lapsed expiry so
        a listing that waited for payment approval is visible once published.
        """
        _state_machine.validate_transition(self.status, new_status)

        old_status = self.status
        now = now or _utcnow()

        self.status = new_status
        self.status_changed_at = now
        self.updated_at = now

        if new_status is ListingStatus.PUBLISHED:
            self.published_at = now
            self.active = True
            if content_ttl and (self.expires_at is None or self.expires_at <= now):
                self.expires_at = now + content_ttl
        elif new_status is ListingStatus.ARCHIVED:
            self.archived_at = now

        self._events.append(
            ListingStatusChangedEvent(
                listing_id=self.id,
                from_status=old_status,
                to_status=new_status,
                triggered_by=triggered_by,
            )
        )

    # -------------------------------------------------------------------------
    # Visibility
    # -------------------------------------------------------------------------

    def deactivate(self, triggered_by: str, now: datetime | None = None) -> None:
        if self.status is not ListingStatus.PUBLISHED or not self.active:
            raise InvalidStateError(f"Listing {self.id} is not an active published listing.")
        self._set_active(False, triggered_by, now)

    def reactivate(self, triggered_by: str, now: datetime | None = None) -> None:
        if self.status is not ListingStatus.PUBLISHED or self.active:
            raise InvalidStateError(f"Listing {self.id} is not a deactivated published listing.")
        self._set_active(True, triggered_by, now)

    def _set_active(self, active: bool, triggered_by: str, now: datetime | None) -> None:
        self.active = active
        self.updated_at = now or _utcnow()
        self._events.append(
            ListingVisibilityChangedEvent(
                listing_id=self.id, active=active, triggered_by=triggered_by
            )
        )

    def is_publicly_visible(self, now: datetime | None = None) -> bool:
        if self.status is not ListingStatus.PUBLISHED or not self.active:
            return False
        return self.expires_at is None or (now or _utcnow()) < self.expires_at

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    def apply_changes(self, changes: dict[str, Any], now: datetime | None = None) -> list[str]:
        """Apply content edits and return the names of fields that actually changed."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        cleared = sorted(name for name in REQUIRED_FIELDS & set(changes) if changes[name] is None)
        if cleared:
            raise ValueError(f"Fields cannot be null: {cleared}")
        if isinstance(changes.get("title"), str) and not changes["title"].strip():
            raise ValueError("title cannot be blank.")
        now = now or _utcnow()
        if "expires_at" in changes and changes["expires_at"] <= now:
            raise ValueError("expires_at must be in the future.")
        if self.is_donation and changes.get("price_override") not in (None, Decimal("0")):
            raise InvalidStateError("Donation listings cannot carry a price.")

        changed = [name for name, value in changes.items() if getattr(self, name) != value]
        for name in changed:
            setattr(self, name, changes[name])
        if changed:
            self.updated_at = now
        return changed

    # -------------------------------------------------------------------------
    # Event collection
    # -------------------------------------------------------------------------

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events
