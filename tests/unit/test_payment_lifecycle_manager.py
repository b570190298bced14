"""
Unit tests for PaymentLifecycleManager.

Collaborators are the in-memory repositories from conftest, with a fake
clock so payment windows can be crossed deterministically.
"""
import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from listing_lifecycle.application.services.payment_lifecycle_manager import (
    PaymentLifecycleManager,
)
from listing_lifecycle.domain.entities.listing import Listing
from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.enums.listing_status import ListingStatus
from listing_lifecycle.domain.enums.payment_status import PaymentStatus
from listing_lifecycle.domain.enums.review_decision import ReviewDecision
from listing_lifecycle.domain.events.domain_events import (
    PaymentApprovedEvent,
    PaymentCancelledEvent,
    PaymentCreatedEvent,
    PaymentExpiredEvent,
    PaymentRejectedEvent,
    ProofSubmittedEvent,
)
from listing_lifecycle.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ListingNotFoundError,
    NotFoundError,
    NotOwnerError,
    WindowExpiredError,
)
from listing_lifecycle.infrastructure.memory.repositories import InMemoryPaymentRepository

SELLER = Requester(user_id="seller-1")
STRANGER = Requester(user_id="intruder")
ADMIN = Requester(user_id="root", is_admin=True)
MODERATOR = Requester(user_id="mod-1", is_moderator=True)


async def _seed_listing(listing_repo, clock, **overrides) -> Listing:  # type: ignore[no-untyped-def]
    defaults = dict(seller_id="seller-1", title="Notebook", price_override=Decimal("2500"))
    defaults.update(overrides)
    listing = Listing.create(now=clock(), **defaults)
    listing.collect_events()
    await listing_repo.save(listing)
    return listing


async def _pending(manager, listing_repo, clock) -> tuple[Listing, Payment]:  # type: ignore[no-untyped-def]
    listing = await _seed_listing(listing_repo, clock)
    payment = await manager.request_activation(listing.id, SELLER)
    return listing, payment


async def _proof_submitted(manager, listing_repo, clock) -> tuple[Listing, Payment]:  # type: ignore[no-untyped-def]
    listing, payment = await _pending(manager, listing_repo, clock)
    clock.advance(minutes=5)
    payment = await manager.submit_proof(payment.id, SELLER, "proofs/1.png")
    return listing, payment


class TestRequestActivation:
    @pytest.mark.asyncio
    async def test_creates_pending_payment_and_moves_listing(
        self, manager, listing_repo, rail, publisher, clock, terms
    ) -> None:
        listing = await _seed_listing(listing_repo, clock)

        payment = await manager.request_activation(listing.id, SELLER)

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == terms.fee
        assert payment.expires_at == clock() + terms.ttl
        assert payment.payment_reference == "REF-1"
        assert payment.copy_paste_code == "CODE-1"
        assert rail.calls == 1
        stored = await listing_repo.get_by_id(listing.id)
        assert stored.status == ListingStatus.AWAITING_PAYMENT
        assert len(publisher.of_type(PaymentCreatedEvent)) == 1

    @pytest.mark.asyncio
    async def test_is_idempotent_while_payment_is_live(
        self, manager, listing_repo, rail, clock
    ) -> None:
        listing, first = await _pending(manager, listing_repo, clock)
        clock.advance(minutes=10)

        second = await manager.request_activation(listing.id, SELLER)

        assert second.id == first.id
        assert rail.calls == 1

    @pytest.mark.asyncio
    async def test_returns_payment_under_review(self, manager, listing_repo, clock) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)
        again = await manager.request_activation(listing.id, SELLER)
        assert again.id == payment.id
        assert again.status == PaymentStatus.PROOF_SUBMITTED

    @pytest.mark.asyncio
    async def test_concurrent_requests_create_a_single_payment(
        self, manager, listing_repo, payment_repo, rail, clock
    ) -> None:
        listing = await _seed_listing(listing_repo, clock)

        results = await asyncio.gather(
            *(manager.request_activation(listing.id, SELLER) for _ in range(5))
        )

        assert len({p.id for p in results}) == 1
        assert rail.calls == 1
        payments = await payment_repo.list_for_listing(listing.id)
        assert len(payments) == 1

    @pytest.mark.asyncio
    async def test_unknown_listing(self, manager) -> None:
        with pytest.raises(ListingNotFoundError):
            await manager.request_activation(uuid4(), SELLER)

    @pytest.mark.asyncio
    async def test_stranger_is_not_owner(self, manager, listing_repo, clock) -> None:
        listing = await _seed_listing(listing_repo, clock)
        with pytest.raises(NotOwnerError):
            await manager.request_activation(listing.id, STRANGER)

    @pytest.mark.asyncio
    async def test_admin_may_request_for_any_listing(self, manager, listing_repo, clock) -> None:
        listing = await _seed_listing(listing_repo, clock)
        payment = await manager.request_activation(listing.id, ADMIN)
        assert payment.status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_donation_needs_no_payment(self, manager, listing_repo, rail, clock) -> None:
        listing = await _seed_listing(listing_repo, clock, is_donation=True)
        with pytest.raises(InvalidStateError):
            await manager.request_activation(listing.id, SELLER)
        assert rail.calls == 0

    @pytest.mark.asyncio
    async def test_published_listing_cannot_request_again(
        self, manager, listing_repo, clock
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)
        await manager.review(payment.id, MODERATOR, ReviewDecision.APPROVE)
        with pytest.raises(InvalidStateError):
            await manager.request_activation(listing.id, SELLER)

    @pytest.mark.asyncio
    async def test_new_request_supersedes_rejected_payment(
        self, manager, listing_repo, payment_repo, clock
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)
        await manager.review(payment.id, MODERATOR, ReviewDecision.REJECT, "unclear image")

        fresh = await manager.request_activation(listing.id, SELLER)

        assert fresh.id != payment.id
        old = await payment_repo.get_by_id(payment.id)
        assert old.status == PaymentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_losing_insert_returns_the_winner(
        self, listing_repo, history_repo, publisher, rail, terms, clock
    ) -> None:
        class RacingPaymentRepository(InMemoryPaymentRepository):
            """Lets a rival insert land between the live check and our insert."""

            def __init__(self) -> None:
                super().__init__()
                self.rival: Payment | None = None

            async def add(self, payment: Payment) -> None:
                if self.rival is None:
                    self.rival = Payment.issue(
                        listing_id=payment.listing_id,
                        amount=payment.amount,
                        payment_reference="RIVAL",
                        ttl=terms.ttl,
                        now=clock(),
                    )
                    await super().add(self.rival)
                await super().add(payment)

        payment_repo = RacingPaymentRepository()
        manager = PaymentLifecycleManager(
            listing_repo, payment_repo, history_repo, publisher, rail, terms, clock=clock
        )
        listing = await _seed_listing(listing_repo, clock)

        result = await manager.request_activation(listing.id, SELLER)

        assert result.payment_reference == "RIVAL"
        assert len(await payment_repo.list_for_listing(listing.id)) == 1


class TestExpiryScenario:
    @pytest.mark.asyncio
    async def test_expired_payment_is_replaced_by_a_new_one(
        self, manager, listing_repo, payment_repo, clock, terms
    ) -> None:
        listing, first = await _pending(manager, listing_repo, clock)

        clock.advance(seconds=terms.ttl.total_seconds() + 1)
        view = await manager.get_payment_status(listing.id)
        assert view.effective_status == PaymentStatus.EXPIRED
        # Lazy expiry is read-only
        assert (await payment_repo.get_by_id(first.id)).status == PaymentStatus.PENDING

        second = await manager.request_activation(listing.id, SELLER)

        assert second.id != first.id
        assert second.status == PaymentStatus.PENDING
        assert (await payment_repo.get_by_id(first.id)).status == PaymentStatus.EXPIRED
        status = await manager.get_listing_status(listing.id)
        assert status.status == ListingStatus.AWAITING_PAYMENT


class TestSubmitProof:
    @pytest.mark.asyncio
    async def test_moves_to_proof_submitted(self, manager, listing_repo, publisher, clock) -> None:
        _, payment = await _proof_submitted(manager, listing_repo, clock)
        assert payment.status == PaymentStatus.PROOF_SUBMITTED
        assert payment.proof_ref == "proofs/1.png"
        assert payment.proof_submitted_at == clock()
        assert len(publisher.of_type(ProofSubmittedEvent)) == 1

    @pytest.mark.asyncio
    async def test_after_window_is_window_expired(
        self, manager, listing_repo, clock, terms
    ) -> None:
        _, payment = await _pending(manager, listing_repo, clock)
        clock.advance(seconds=terms.ttl.total_seconds())
        with pytest.raises(WindowExpiredError):
            await manager.submit_proof(payment.id, SELLER, "late.png")

    @pytest.mark.asyncio
    async def test_on_approved_payment_is_invalid_state(
        self, manager, listing_repo, clock
    ) -> None:
        _, payment = await _proof_submitted(manager, listing_repo, clock)
        await manager.review(payment.id, MODERATOR, ReviewDecision.APPROVE)
        with pytest.raises(InvalidStateError):
            await manager.submit_proof(payment.id, SELLER, "again.png")

    @pytest.mark.asyncio
    async def test_stranger_cannot_submit(self, manager, listing_repo, clock) -> None:
        _, payment = await _pending(manager, listing_repo, clock)
        with pytest.raises(NotOwnerError):
            await manager.submit_proof(payment.id, STRANGER, "x.png")

    @pytest.mark.asyncio
    async def test_reject_then_resubmit_scenario(
        self, manager, listing_repo, publisher, clock
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)

        rejected = await manager.review(
            payment.id, MODERATOR, ReviewDecision.REJECT, "unclear image"
        )
        assert rejected.status == PaymentStatus.REJECTED
        assert rejected.review_decision_note == "unclear image"
        assert (await listing_repo.get_by_id(listing.id)).status == ListingStatus.AWAITING_PAYMENT
        assert len(publisher.of_type(PaymentRejectedEvent)) == 1

        clock.advance(minutes=5)
        resubmitted = await manager.submit_proof(payment.id, SELLER, "proofs/2.png")

        assert resubmitted.status == PaymentStatus.PROOF_SUBMITTED
        assert resubmitted.proof_ref == "proofs/2.png"

    @pytest.mark.asyncio
    async def test_superseded_rejected_payment_cannot_be_resubmitted(
        self, manager, listing_repo, clock
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)
        await manager.review(payment.id, MODERATOR, ReviewDecision.REJECT, "blurry")
        await manager.request_activation(listing.id, SELLER)

        with pytest.raises(InvalidStateError):
            await manager.submit_proof(payment.id, SELLER, "proofs/2.png")

    @pytest.mark.asyncio
    async def test_lost_compare_and_set_is_conflict(
        self, listing_repo, history_repo, publisher, rail, terms, clock
    ) -> None:
        class StaleWritePaymentRepository(InMemoryPaymentRepository):
            fail_next_write = False

            async def compare_and_set(self, payment, expected):  # type: ignore[no-untyped-def]
                if self.fail_next_write:
                    return False
                return await super().compare_and_set(payment, expected)

        payment_repo = StaleWritePaymentRepository()
        manager = PaymentLifecycleManager(
            listing_repo, payment_repo, history_repo, publisher, rail, terms, clock=clock
        )
        _, payment = await _pending(manager, listing_repo, clock)
        payment_repo.fail_next_write = True

        with pytest.raises(ConflictError):
            await manager.submit_proof(payment.id, SELLER, "p.png")


class TestReview:
    @pytest.mark.asyncio
    async def test_approve_publishes_listing(
        self, manager, listing_repo, history_repo, publisher, clock
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)

        approved = await manager.review(payment.id, MODERATOR, ReviewDecision.APPROVE)

        assert approved.status == PaymentStatus.APPROVED
        assert approved.reviewer_id == "mod-1"
        stored = await listing_repo.get_by_id(listing.id)
        assert stored.status == ListingStatus.PUBLISHED
        assert stored.active is True
        assert len(publisher.of_type(PaymentApprovedEvent)) == 1

        history = await history_repo.get_history_for_listing(listing.id)
        assert [(h.subject, h.to_status) for h in history][-2:] == [
            ("payment", "APPROVED"),
            ("listing", "PUBLISHED"),
        ]

    @pytest.mark.asyncio
    async def test_late_approval_renews_content_expiry(
        self, listing_repo, payment_repo, history_repo, publisher, rail, terms, clock
    ) -> None:
        content_ttl = timedelta(days=7)
        manager = PaymentLifecycleManager(
            listing_repo,
            payment_repo,
            history_repo,
            publisher,
            rail,
            replace(terms, content_ttl=content_ttl),
            clock=clock,
        )
        listing = await _seed_listing(listing_repo, clock, content_ttl=content_ttl)
        clock.advance(days=8)
        payment = await manager.request_activation(listing.id, SELLER)
        await manager.submit_proof(payment.id, SELLER, "proofs/late.png")

        await manager.review(payment.id, MODERATOR, ReviewDecision.APPROVE)

        stored = await listing_repo.get_by_id(listing.id)
        assert stored.expires_at == clock() + content_ttl
        view = await manager.get_listing_status(listing.id)
        assert view.status == ListingStatus.PUBLISHED
        assert view.publicly_visible is True

    @pytest.mark.asyncio
    async def test_seller_cannot_review(self, manager, listing_repo, clock) -> None:
        _, payment = await _proof_submitted(manager, listing_repo, clock)
        with pytest.raises(ForbiddenError):
            await manager.review(payment.id, SELLER, ReviewDecision.APPROVE)

    @pytest.mark.asyncio
    async def test_admin_can_review(self, manager, listing_repo, clock) -> None:
        _, payment = await _proof_submitted(manager, listing_repo, clock)
        approved = await manager.review(payment.id, ADMIN, ReviewDecision.APPROVE)
        assert approved.status == PaymentStatus.APPROVED

    @pytest.mark.asyncio
    async def test_pending_payment_cannot_be_reviewed(self, manager, listing_repo, clock) -> None:
        _, payment = await _pending(manager, listing_repo, clock)
        with pytest.raises(InvalidStateError):
            await manager.review(payment.id, MODERATOR, ReviewDecision.REJECT)

    @pytest.mark.asyncio
    async def test_concurrent_reviews_exactly_one_wins(
        self, manager, listing_repo, clock
    ) -> None:
        _, payment = await _proof_submitted(manager, listing_repo, clock)

        results = await asyncio.gather(
            manager.review(payment.id, MODERATOR, ReviewDecision.APPROVE),
            manager.review(payment.id, ADMIN, ReviewDecision.REJECT, "late"),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, Payment)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], (InvalidStateError, ConflictError))


class TestCancel:
    @pytest.mark.asyncio
    async def test_owner_cancels_live_payment(self, manager, listing_repo, publisher, clock) -> None:
        listing, payment = await _pending(manager, listing_repo, clock)

        cancelled = await manager.cancel(payment.id, SELLER)

        assert cancelled.status == PaymentStatus.CANCELLED
        assert len(publisher.of_type(PaymentCancelledEvent)) == 1
        fresh = await manager.request_activation(listing.id, SELLER)
        assert fresh.id != payment.id

    @pytest.mark.asyncio
    async def test_expired_payment_cannot_be_cancelled(
        self, manager, listing_repo, clock, terms
    ) -> None:
        _, payment = await _pending(manager, listing_repo, clock)
        clock.advance(seconds=terms.ttl.total_seconds() + 1)
        with pytest.raises(InvalidStateError):
            await manager.cancel(payment.id, SELLER)


class TestSweep:
    @pytest.mark.asyncio
    async def test_expires_only_payments_past_their_window(
        self, manager, listing_repo, payment_repo, publisher, clock
    ) -> None:
        _, old = await _pending(manager, listing_repo, clock)
        clock.advance(minutes=20)
        _, recent = await _pending(manager, listing_repo, clock)
        clock.advance(minutes=15)

        expired = await manager.sweep()

        assert expired == 1
        assert (await payment_repo.get_by_id(old.id)).status == PaymentStatus.EXPIRED
        assert (await payment_repo.get_by_id(recent.id)).status == PaymentStatus.PENDING
        events = publisher.of_type(PaymentExpiredEvent)
        assert [e.payment_id for e in events] == [old.id]

    @pytest.mark.asyncio
    async def test_expires_rejected_payment_and_keeps_listing_awaiting(
        self, manager, listing_repo, payment_repo, clock, terms
    ) -> None:
        listing, payment = await _proof_submitted(manager, listing_repo, clock)
        await manager.review(payment.id, MODERATOR, ReviewDecision.REJECT, "no")
        clock.advance(seconds=terms.ttl.total_seconds())

        assert await manager.sweep() == 1
        assert (await payment_repo.get_by_id(payment.id)).status == PaymentStatus.EXPIRED
        assert (await listing_repo.get_by_id(listing.id)).status == ListingStatus.AWAITING_PAYMENT

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, manager, listing_repo, clock, terms) -> None:
        await _pending(manager, listing_repo, clock)
        clock.advance(seconds=terms.ttl.total_seconds() + 1)
        assert await manager.sweep() == 1
        assert await manager.sweep() == 0

    @pytest.mark.asyncio
    async def test_skips_record_that_moved_concurrently(
        self, listing_repo, history_repo, publisher, rail, terms, clock
    ) -> None:
        class MovedUnderneathRepository(InMemoryPaymentRepository):
            async def compare_and_set(self, payment, expected):  # type: ignore[no-untyped-def]
                if payment.status is PaymentStatus.EXPIRED:
                    return False
                return await super().compare_and_set(payment, expected)

        manager = PaymentLifecycleManager(
            listing_repo,
            MovedUnderneathRepository(),
            history_repo,
            publisher,
            rail,
            terms,
            clock=clock,
        )
        await _pending(manager, listing_repo, clock)
        clock.advance(hours=1)

        assert await manager.sweep() == 0
        assert publisher.of_type(PaymentExpiredEvent) == []


class TestReads:
    @pytest.mark.asyncio
    async def test_payment_status_without_payment_is_not_found(
        self, manager, listing_repo, clock
    ) -> None:
        listing = await _seed_listing(listing_repo, clock)
        with pytest.raises(NotFoundError):
            await manager.get_payment_status(listing.id)

    @pytest.mark.asyncio
    async def test_listing_status_reports_visibility(self, manager, listing_repo, clock) -> None:
        listing = await _seed_listing(listing_repo, clock, is_donation=True)
        view = await manager.get_listing_status(listing.id)
        assert view.status == ListingStatus.PUBLISHED
        assert view.publicly_visible is True
        assert view.is_donation is True
        assert view.seller_id == "seller-1"

    @pytest.mark.asyncio
    async def test_moderation_queue_lists_open_submissions_only(
        self, manager, listing_repo, clock
    ) -> None:
        await _proof_submitted(manager, listing_repo, clock)
        clock.advance(minutes=20)
        _, fresh = await _proof_submitted(manager, listing_repo, clock)
        clock.advance(minutes=10)

        views, total = await manager.list_awaiting_review()

        assert total == 1
        assert [v.payment.id for v in views] == [fresh.id]

    @pytest.mark.asyncio
    async def test_moderator_may_view_payments(self, manager, listing_repo, clock) -> None:
        listing, _ = await _pending(manager, listing_repo, clock)
        await manager.ensure_can_view_payments(listing.id, MODERATOR)
        with pytest.raises(NotOwnerError):
            await manager.ensure_can_view_payments(listing.id, STRANGER)
