"""
Owner of every Payment status transition and its Listing side effects.

Locking discipline: operations that touch a listing's payments run inside
``ListingRepository.lock(listing_id)``; every payment status write is a
compare-and-set on the status observed before the change. The expiration
sweep takes no lock and relies on compare-and-set alone.

Events are handed to the publisher while locks are held; the composition root
wraps it in a buffer that is flushed only after the transaction commits.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

import structlog

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.payment_rail import PaymentRail
from listing_lifecycle.application.interfaces.payment_repository import PaymentRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRepository,
)
from listing_lifecycle.config import Settings
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.enums.payment_status import PaymentStatus
from listing_lifecycle.domain.enums.review_decision import ReviewDecision
from listing_lifecycle.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ListingNotFoundError,
    NotFoundError,
    PaymentNotFoundError,
)
from listing_lifecycle.domain.policies.listing_access_guard import ListingAccessGuard

logger = structlog.get_logger(__name__)

SWEEP_ACTOR = "sweep"


@dataclass(frozen=True)
class ActivationTerms:
    """Fee and window applied to payments, plus the content TTL granted on approval."""

    fee: Decimal
    ttl: timedelta
    content_ttl: timedelta | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActivationTerms":
        return cls(
            fee=settings.activation_fee,
            ttl=timedelta(minutes=settings.payment_ttl_minutes),
            content_ttl=timedelta(days=settings.listing_content_ttl_days),
        )


@dataclass
class ListingStatusView:
    listing_id: UUID
    seller_id: str
    status: ListingStatus
    active: bool
    publicly_visible: bool
    is_donation: bool


@dataclass
class PaymentStatusView:
    payment: Payment
    effective_status: PaymentStatus


class PaymentLifecycleManager:
    def __init__(
        self,
        listing_repo: ListingRepository,
        payment_repo: PaymentRepository,
        history_repo: StatusHistoryRepository,
        event_publisher: EventPublisher,
        payment_rail: PaymentRail,
        terms: ActivationTerms,
        *,
        clock: Clock = utcnow,
        sweep_batch_size: int = 500,
        guard: ListingAccessGuard | None = None,
    ) -> None:
        self._listing_repo = listing_repo
        self._payment_repo = payment_repo
        self._history_repo = history_repo
        self._event_publisher = event_publisher
        self._payment_rail = payment_rail
        self._terms = terms
        self._clock = clock
        self._sweep_batch_size = sweep_batch_size
        self._guard = guard or ListingAccessGuard()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def request_activation(self, listing_id: UUID, requester: Requester) -> Payment:
        """
        Issue a payment for the listing, or return the one that is still live.

        The check-then-create runs under the listing lock; the repository's
        one-live-payment constraint is the backstop if two writers still race.
        """
        async with self._listing_repo.lock(listing_id):
            listing = await self._get_listing(listing_id)
            self._guard.ensure_owner_or_admin(listing, requester)

            if listing.is_donation:
                raise InvalidStateError(f"Donation listing {listing_id} needs no activation payment.")
            if listing.status not in (ListingStatus.DRAFT, ListingStatus.AWAITING_PAYMENT):
                raise InvalidStateError(
                    f"Listing {listing_id} cannot request activation while {listing.status.value}."
                )

            await self.sweep(listing_id=listing_id)
            now = self._clock()

            payments = await self._payment_repo.list_for_listing(listing_id)
            live = self._first_live(payments, now)
            if live is not None:
                logger.info(
                    "activation_reused_live_payment",
                    listing_id=str(listing_id),
                    payment_id=str(live.id),
                )
                return live

            for rejected in payments:
                if rejected.effective_status(now) is PaymentStatus.REJECTED:
                    await self._cancel_locked(rejected, requester.audit_name, "superseded", now)

            reference = await self._payment_rail.create_payment_reference(self._terms.fee)
            payment = Payment.issue(
                listing_id=listing_id,
                amount=self._terms.fee,
                payment_reference=reference.reference,
                copy_paste_code=reference.copy_paste_code,
                ttl=self._terms.ttl,
                triggered_by=requester.audit_name,
                now=now,
            )
            try:
                await self._payment_repo.add(payment)
            except ConflictError:
                winner = self._first_live(
                    await self._payment_repo.list_for_listing(listing_id), now
                )
                if winner is None:
                    raise
                logger.warning(
                    "activation_lost_insert_race",
                    listing_id=str(listing_id),
                    payment_id=str(winner.id),
                )
                return winner

            await self._record_payment(payment, None, requester.audit_name)

            if listing.status is ListingStatus.DRAFT:
                listing.transition_to(
                    ListingStatus.AWAITING_PAYMENT, triggered_by=requester.audit_name, now=now
                )
                await self._listing_repo.save(listing)
                await self._record_listing(listing, ListingStatus.DRAFT, requester.audit_name)

            await self._event_publisher.publish_many(
                payment.collect_events() + listing.collect_events()
            )

        logger.info(
            "payment_created",
            listing_id=str(listing_id),
            payment_id=str(payment.id),
            amount=str(payment.amount),
            expires_at=payment.expires_at.isoformat(),
        )
        return payment

    async def submit_proof(
        self, payment_id: UUID, requester: Requester, proof_ref: str
    ) -> Payment:
        payment = await self._get_payment(payment_id)
        async with self._listing_repo.lock(payment.listing_id):
            payment = await self._get_payment(payment_id)
            listing = await self._get_listing(payment.listing_id)
            self._guard.ensure_owner_or_admin(listing, requester)
            now = self._clock()

            previous = payment.status
            if previous is PaymentStatus.REJECTED:
                others = await self._payment_repo.list_for_listing(listing.id)
                if any(p.id != payment.id and p.is_live(now) for p in others):
                    raise InvalidStateError(
                        f"Payment {payment_id} was superseded by a newer activation request."
                    )

            # Raises InvalidStateError or WindowExpiredError
            payment.submit_proof(proof_ref, triggered_by=requester.audit_name, now=now)
            await self._commit_transition(payment, previous)
            await self._record_payment(payment, previous, requester.audit_name)
            await self._event_publisher.publish_many(payment.collect_events())

        logger.info(
            "proof_submitted",
            payment_id=str(payment_id),
            listing_id=str(payment.listing_id),
            resubmission=previous is PaymentStatus.REJECTED,
        )
        return payment

    async def review(
        self,
        payment_id: UUID,
        reviewer: Requester,
        decision: ReviewDecision,
        note: str | None = None,
    ) -> Payment:
        if not reviewer.can_moderate:
            raise ForbiddenError(f"User {reviewer.user_id} is not allowed to moderate payments.")

        payment = await self._get_payment(payment_id)
        async with self._listing_repo.lock(payment.listing_id):
            payment = await self._get_payment(payment_id)
            listing = await self._get_listing(payment.listing_id)
            now = self._clock()
            previous = payment.status

            if decision is ReviewDecision.APPROVE:
                if listing.status is not ListingStatus.AWAITING_PAYMENT:
                    raise InvalidStateError(
                        f"Listing {listing.id} is {listing.status.value}, not awaiting payment."
                    )
                payment.approve(reviewer.user_id, now=now)
            else:
                payment.reject(reviewer.user_id, note, now=now)
            await self._commit_transition(payment, previous)
            await self._record_payment(
                payment, previous, reviewer.audit_name, {"note": note} if note else None
            )

            events = payment.collect_events()
            if decision is ReviewDecision.APPROVE:
                from_status = listing.status
                listing.transition_to(
                    ListingStatus.PUBLISHED,
                    triggered_by=reviewer.audit_name,
                    now=now,
                    content_ttl=self._terms.content_ttl,
                )
                await self._listing_repo.save(listing)
                await self._record_listing(listing, from_status, reviewer.audit_name)
                events += listing.collect_events()

            await self._event_publisher.publish_many(events)

        logger.info(
            "payment_reviewed",
            payment_id=str(payment_id),
            listing_id=str(payment.listing_id),
            decision=decision.value,
            reviewer_id=reviewer.user_id,
        )
        return payment

    async def cancel(self, payment_id: UUID, requester: Requester) -> Payment:
        payment = await self._get_payment(payment_id)
        async with self._listing_repo.lock(payment.listing_id):
            payment = await self._get_payment(payment_id)
            listing = await self._get_listing(payment.listing_id)
            self._guard.ensure_owner_or_admin(listing, requester)
            now = self._clock()

            if not payment.is_live(now):
                raise InvalidStateError(
                    f"Payment {payment_id} is {payment.effective_status(now).value} and cannot be cancelled."
                )
            await self._cancel_locked(payment, requester.audit_name, "cancelled_by_requester", now)

        logger.info("payment_cancelled", payment_id=str(payment_id), listing_id=str(listing.id))
        return payment

    async def release_open_payments(self, listing_id: UUID, triggered_by: str, reason: str) -> int:
        """
        Cancel every payment of the listing that could still move forward.

        Must be called while holding the listing lock (e.g. when archiving).
        """
        now = self._clock()
        released = 0
        for payment in await self._payment_repo.list_for_listing(listing_id):
            if payment.effective_status(now) in (
                PaymentStatus.PENDING,
                PaymentStatus.PROOF_SUBMITTED,
                PaymentStatus.REJECTED,
            ):
                if await self._cancel_locked(payment, triggered_by, reason, now):
                    released += 1
        return released

    async def sweep(self, listing_id: UUID | None = None) -> int:
        """
        Mark payments whose window has elapsed as EXPIRED.

        The only place EXPIRED is written. Records that moved concurrently fail
        the compare-and-set and are left alone.
        """
        now = self._clock()
        candidates = await self._payment_repo.list_expirable(
            now, listing_id=listing_id, limit=self._sweep_batch_size
        )
        expired = 0
        for payment in candidates:
            previous = payment.status
            try:
                payment.expire(now, triggered_by=SWEEP_ACTOR)
            except InvalidStateError:
                continue
            if not await self._payment_repo.compare_and_set(payment, expected=previous):
                logger.info(
                    "sweep_skipped_concurrent_update",
                    payment_id=str(payment.id),
                    observed_status=previous.value,
                )
                continue
            expired += 1
            await self._record_payment(payment, previous, SWEEP_ACTOR)
            await self._event_publisher.publish_many(payment.collect_events())

        if expired or listing_id is None:
            logger.info(
                "payment_sweep_completed",
                expired=expired,
                scanned=len(candidates),
                listing_id=str(listing_id) if listing_id else None,
            )
        return expired

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def ensure_can_view_payments(self, listing_id: UUID, requester: Requester) -> None:
        """Payments are visible to the seller, admins and moderators."""
        listing = await self._get_listing(listing_id)
        if not requester.can_moderate:
            self._guard.ensure_owner_or_admin(listing, requester)

    async def get_listing_status(self, listing_id: UUID) -> ListingStatusView:
        listing = await self._get_listing(listing_id)
        return ListingStatusView(
            listing_id=listing.id,
            seller_id=listing.seller_id,
            status=listing.status,
            active=listing.active,
            publicly_visible=listing.is_publicly_visible(self._clock()),
            is_donation=listing.is_donation,
        )

    async def get_payment_status(self, listing_id: UUID) -> PaymentStatusView:
        """Latest payment of the listing, with lazy expiry applied."""
        await self._get_listing(listing_id)
        payment = await self._payment_repo.get_latest_for_listing(listing_id)
        if payment is None:
            raise NotFoundError("Payment for listing", listing_id)
        return PaymentStatusView(
            payment=payment, effective_status=payment.effective_status(self._clock())
        )

    async def get_payment(self, payment_id: UUID) -> PaymentStatusView:
        payment = await self._get_payment(payment_id)
        return PaymentStatusView(
            payment=payment, effective_status=payment.effective_status(self._clock())
        )

    async def list_awaiting_review(
        self, *, limit: int = 50, offset: int = 0
    ) -> tuple[list[PaymentStatusView], int]:
        now = self._clock()
        payments, total = await self._payment_repo.list_by_status(
            PaymentStatus.PROOF_SUBMITTED, open_at=now, limit=limit, offset=offset
        )
        return [PaymentStatusView(p, p.effective_status(now)) for p in payments], total

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _get_listing(self, listing_id: UUID) -> Listing:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    async def _get_payment(self, payment_id: UUID) -> Payment:
        payment = await self._payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    @staticmethod
    def _first_live(payments: list[Payment], now: datetime) -> Payment | None:
        return next((p for p in payments if p.is_live(now)), None)

    async def _commit_transition(self, payment: Payment, previous: PaymentStatus) -> None:
        if not await self._payment_repo.compare_and_set(payment, expected=previous):
            raise ConflictError(
                f"Payment {payment.id} changed concurrently; re-fetch it and retry."
            )

    async def _cancel_locked(
        self, payment: Payment, triggered_by: str, reason: str, now: datetime
    ) -> bool:
        previous = payment.status
        payment.cancel(triggered_by=triggered_by, reason=reason, now=now)
        if not await self._payment_repo.compare_and_set(payment, expected=previous):
            logger.info("cancel_skipped_concurrent_update", payment_id=str(payment.id))
            return False
        await self._record_payment(payment, previous, triggered_by, {"reason": reason})
        await self._event_publisher.publish_many(payment.collect_events())
        return True

    async def _record_payment(
        self,
        payment: Payment,
        from_status: PaymentStatus | None,
        triggered_by: str,
        metadata: dict | None = None,  # type: ignore[type-arg]
    ) -> None:
        await self._history_repo.save(
            listing_id=payment.listing_id,
            subject="payment",
            subject_id=payment.id,
            from_status=from_status.value if from_status else None,
            to_status=payment.status.value,
            triggered_by=triggered_by,
            metadata=metadata,
        )

    async def _record_listing(
        self, listing: Listing, from_status: ListingStatus | None, triggered_by: str
    ) -> None:
        await self._history_repo.save(
            listing_id=listing.id,
            subject="listing",
            subject_id=listing.id,
            from_status=from_status.value if from_status else None,
            to_status=listing.status.value,
            triggered_by=triggered_by,
        )
