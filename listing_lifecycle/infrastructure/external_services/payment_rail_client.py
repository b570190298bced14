"""HTTP client for the payment provider that issues Pix references."""
from decimal import Decimal

import httpx
import structlog

from listing_lifecycle.application.interfaces.payment_rail import (
    PaymentRail,
    PaymentRailError,
    PaymentReference,
)

logger = structlog.get_logger(__name__)


class HttpPaymentRailClient(PaymentRail):
    """Thin wrapper around the provider's ``POST /payments`` endpoint."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def create_payment_reference(self, amount: Decimal) -> PaymentReference:
        """
        POST /payments {"amount": "9.90", "method": "pix"}
        -> {"reference": "...", "copy_paste_code": "..."}
        """
        payload = {"amount": str(amount), "method": "pix"}

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(
                    f"{self._base_url}/payments",
                    json=payload,
                    headers=self._headers,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "payment_rail_request_failed",
                    status_code=exc.response.status_code,
                    response=exc.response.text,
                )
                raise PaymentRailError(
                    f"Payment rail returned {exc.response.status_code}: {exc.response.text}"
                ) from exc
            except httpx.RequestError as exc:
                logger.error("payment_rail_connection_failed", error=str(exc))
                raise PaymentRailError(f"Failed to reach payment rail: {exc}") from exc

        reference = data.get("reference")
        if not reference:
            raise PaymentRailError("Payment rail response carried no reference.")

        logger.info("payment_reference_issued", reference=reference, amount=str(amount))
        return PaymentReference(reference=reference, copy_paste_code=data.get("copy_paste_code"))
