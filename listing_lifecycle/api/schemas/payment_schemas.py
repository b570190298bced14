from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from listing_lifecycle.domain.entities.payment import Payment
from listing_lifecycle.domain.enums.payment_status import PaymentStatus
from listing_lifecycle.domain.enums.review_decision import ReviewDecision


class PaymentResponse(BaseModel):
    id: UUID
    listing_id: UUID
    amount: Decimal
    payment_reference: str
    copy_paste_code: str | None = None
    status: PaymentStatus
    created_at: datetime
    expires_at: datetime
    updated_at: datetime
    proof_ref: str | None = None
    proof_submitted_at: datetime | None = None
    reviewer_id: str | None = None
    reviewed_at: datetime | None = None
    review_decision_note: str | None = None


class PaginatedPaymentsResponse(BaseModel):
    payments: list[PaymentResponse]
    total: int
    limit: int
    offset: int


class SubmitProofRequest(BaseModel):
    proof_ref: str = Field(min_length=1, max_length=2048)


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    note: str | None = Field(default=None, max_length=2000)


class SweepResponse(BaseModel):
    expired: int


def payment_to_response(payment: Payment, effective_status: PaymentStatus) -> PaymentResponse:
    """Render a payment with lazy expiry applied to its status."""
    return PaymentResponse(
        id=payment.id,
        listing_id=payment.listing_id,
        amount=payment.amount,
        payment_reference=payment.payment_reference,
        copy_paste_code=payment.copy_paste_code,
        status=effective_status,
        created_at=payment.created_at,
        expires_at=payment.expires_at,
        updated_at=payment.updated_at,
        proof_ref=payment.proof_ref,
        proof_submitted_at=payment.proof_submitted_at,
        reviewer_id=payment.reviewer_id,
        reviewed_at=payment.reviewed_at,
        review_decision_note=payment.review_decision_note,
    )
