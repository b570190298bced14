from uuid import UUID

from fastapi import APIRouter, Depends, Query

from listing_lifecycle.api.dependencies import get_clock, get_payment_manager, get_requester
from listing_lifecycle.api.errors import HANDLED_ERRORS, http_error
from listing_lifecycle.api.schemas.payment_schemas import (
    PaginatedPaymentsResponse,
    PaymentResponse,
    ReviewRequest,
    SweepResponse,
    payment_to_response,
)
from listing_lifecycle.application.interfaces.clock import Clock
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    PaymentLifecycleManager,
)
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.domain.exceptions import ForbiddenError

router = APIRouter(prefix="/admin", tags=["admin"])


def _ensure_moderator(requester: Requester) -> None:
    if not requester.can_moderate:
        raise http_error(
            ForbiddenError(f"User {requester.user_id} is not allowed to moderate payments.")
        )


@router.get("/payments/awaiting-review", response_model=PaginatedPaymentsResponse)
async def list_awaiting_review(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaginatedPaymentsResponse:
    """Moderation queue: payments with proof submitted, oldest first."""
    _ensure_moderator(requester)
    views, total = await manager.list_awaiting_review(limit=limit, offset=offset)
    return PaginatedPaymentsResponse(
        payments=[payment_to_response(v.payment, v.effective_status) for v in views],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/payments/{payment_id}/review", response_model=PaymentResponse)
async def review_payment(
    payment_id: UUID,
    body: ReviewRequest,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
    clock: Clock = Depends(get_clock),
) -> PaymentResponse:
    try:
        payment = await manager.review(payment_id, requester, body.decision, body.note)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(payment, payment.effective_status(clock()))


@router.post("/payments/sweep", response_model=SweepResponse)
async def sweep_expired_payments(
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> SweepResponse:
    """Run the expiration sweep now instead of waiting for the next scheduled run."""
    _ensure_moderator(requester)
    expired = await manager.sweep()
    return SweepResponse(expired=expired)
