from uuid import UUID

from fastapi import APIRouter, Depends, status

from listing_lifecycle.api.dependencies import get_clock, get_payment_manager, get_requester
from listing_lifecycle.api.errors import HANDLED_ERRORS, http_error
from listing_lifecycle.api.schemas.payment_schemas import (
    PaymentResponse,
    SubmitProofRequest,
    payment_to_response,
)
from listing_lifecycle.application.interfaces.clock import Clock
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    PaymentLifecycleManager,
)
from listing_lifecycle.domain.entities.requester import Requester

router = APIRouter(tags=["payments"])


@router.post(
    "/listings/{listing_id}/activation",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_activation(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
    clock: Clock = Depends(get_clock),
) -> PaymentResponse:
    """
    Create the activation payment for a listing.

    Idempotent while a payment is live: the existing one is returned instead
    of a second reference.
    """
    try:
        payment = await manager.request_activation(listing_id, requester)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(payment, payment.effective_status(clock()))


@router.get("/listings/{listing_id}/payment", response_model=PaymentResponse)
async def get_listing_payment(
    listing_id: UUID,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    try:
        await manager.ensure_can_view_payments(listing_id, requester)
        view = await manager.get_payment_status(listing_id)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(view.payment, view.effective_status)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
) -> PaymentResponse:
    try:
        view = await manager.get_payment(payment_id)
        await manager.ensure_can_view_payments(view.payment.listing_id, requester)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(view.payment, view.effective_status)


@router.post("/payments/{payment_id}/proof", response_model=PaymentResponse)
async def submit_proof(
    payment_id: UUID,
    body: SubmitProofRequest,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
    clock: Clock = Depends(get_clock),
) -> PaymentResponse:
    try:
        payment = await manager.submit_proof(payment_id, requester, body.proof_ref)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(payment, payment.effective_status(clock()))


@router.post("/payments/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment(
    payment_id: UUID,
    requester: Requester = Depends(get_requester),
    manager: PaymentLifecycleManager = Depends(get_payment_manager),
    clock: Clock = Depends(get_clock),
) -> PaymentResponse:
    try:
        payment = await manager.cancel(payment_id, requester)
    except HANDLED_ERRORS as exc:
        raise http_error(exc) from exc
    return payment_to_response(payment, payment.effective_status(clock()))
