from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from listing_lifecycle.application.interfaces.payment_repository import PaymentRepository
from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.enums.payment_status import (
    EXPIRABLE_PAYMENT_STATUSES,
    PaymentStatus,
)
from listing_lifecycle.domain.exceptions import ConflictError
from listing_lifecycle.infrastructure.database.models import PaymentModel

logger = structlog.get_logger(__name__)


def _to_domain(model: PaymentModel) -> Payment:
    return Payment(
        id=model.id,
        listing_id=model.listing_id,
        amount=Decimal(str(model.amount)),
        payment_reference=model.payment_reference,
        copy_paste_code=model.copy_paste_code,
        status=PaymentStatus(model.status),
        created_at=model.created_at,
        expires_at=model.expires_at,
        updated_at=model.updated_at,
        proof_ref=model.proof_ref,
        proof_submitted_at=model.proof_submitted_at,
        reviewer_id=model.reviewer_id,
        reviewed_at=model.reviewed_at,
        review_decision_note=model.review_decision_note,
    )


def _to_model(payment: Payment) -> PaymentModel:
    return PaymentModel(
        id=payment.id,
        listing_id=payment.listing_id,
        amount=payment.amount,
        payment_reference=payment.payment_reference,
        copy_paste_code=payment.copy_paste_code,
        status=payment.status.value,
        created_at=payment.created_at,
        expires_at=payment.expires_at,
        updated_at=payment.updated_at,
        proof_ref=payment.proof_ref,
        proof_submitted_at=payment.proof_submitted_at,
        reviewer_id=payment.reviewer_id,
        reviewed_at=payment.reviewed_at,
        review_decision_note=payment.review_decision_note,
    )


class SqlAlchemyPaymentRepository(PaymentRepository):
    """
    SQLAlchemy implementation for payment persistence.

    The partial unique index ``uq_payments_one_live_per_listing`` rejects a
    second PENDING/PROOF_SUBMITTED row for a listing; inserts run inside a
    SAVEPOINT so the violation can be reported without aborting the request.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, payment: Payment) -> None:
        try:
            async with self._session.begin_nested():
                self._session.add(_to_model(payment))
        except IntegrityError as exc:
            logger.warning(
                "payment_insert_conflict",
                payment_id=str(payment.id),
                listing_id=str(payment.listing_id),
            )
            raise ConflictError(
                f"Listing {payment.listing_id} already has a live payment."
            ) from exc

    async def compare_and_set(self, payment: Payment, expected: PaymentStatus) -> bool:
        stmt = (
            update(PaymentModel)
            .where(PaymentModel.id == payment.id, PaymentModel.status == expected.value)
            .values(
                status=payment.status.value,
                updated_at=payment.updated_at,
                proof_ref=payment.proof_ref,
                proof_submitted_at=payment.proof_submitted_at,
                reviewer_id=payment.reviewer_id,
                reviewed_at=payment.reviewed_at,
                review_decision_note=payment.review_decision_note,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        except IntegrityError as exc:
            raise ConflictError(
                f"Listing {payment.listing_id} already has a live payment."
            ) from exc
        return result.rowcount == 1

    async def get_by_id(self, payment_id: UUID) -> Payment | None:
        result = await self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.id == payment_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return _to_domain(model) if model is not None else None

    async def get_latest_for_listing(self, listing_id: UUID) -> Payment | None:
        result = await self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.listing_id == listing_id)
            .order_by(PaymentModel.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return _to_domain(model) if model is not None else None

    async def list_for_listing(self, listing_id: UUID) -> list[Payment]:
        result = await self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.listing_id == listing_id)
            .order_by(PaymentModel.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_domain(m) for m in result.scalars().all()]

    async def list_expirable(
        self, now: datetime, *, listing_id: UUID | None = None, limit: int = 500
    ) -> list[Payment]:
        query = select(PaymentModel).where(
            PaymentModel.status.in_([s.value for s in EXPIRABLE_PAYMENT_STATUSES]),
            PaymentModel.expires_at <= now,
        )
        if listing_id is not None:
            query = query.where(PaymentModel.listing_id == listing_id)
        query = (
            query.order_by(PaymentModel.expires_at.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )

        result = await self._session.execute(query)
        return [_to_domain(m) for m in result.scalars().all()]

    async def list_by_status(
        self,
        status: PaymentStatus,
        *,
        open_at: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Payment], int]:
        conditions = [PaymentModel.status == status.value]
        if open_at is not None:
            conditions.append(PaymentModel.expires_at > open_at)

        query = (
            select(PaymentModel)
            .where(*conditions)
            .order_by(PaymentModel.updated_at.asc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        count_query = (
            select(func.count()).select_from(PaymentModel).where(*conditions)
        )

        result = await self._session.execute(query)
        models = result.scalars().all()

        count_result = await self._session.execute(count_query)
        total = count_result.scalar_one()

        return [_to_domain(m) for m in models], total
