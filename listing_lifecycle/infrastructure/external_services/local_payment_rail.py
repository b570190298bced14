"""
Stand-in payment rail for local development.

Produces Pix-shaped references and "copy and paste" payloads without
talking to any provider; nothing generated here can actually be paid.
"""
import secrets
import string
import time
from decimal import Decimal

import structlog

from listing_lifecycle.application.interfaces.payment_rail import PaymentRail, PaymentReference

logger = structlog.get_logger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits


def _copy_paste_code(reference: str, amount: Decimal, merchant_name: str, city: str) -> str:
    return (
        "00020126580014br.gov.bcb.brcode"
        f"01{len(reference):02d}{reference}"
        "52040000"
        "5303986"
        f"54{len(f'{amount:.2f}'):02d}{amount:.2f}"
        "5802BR"
        f"59{len(merchant_name):02d}{merchant_name}"
        f"60{len(city):02d}{city}"
        "62070503***"
    )


class LocalPaymentRail(PaymentRail):
    def __init__(self, merchant_name: str = "Listings", city: str = "SaoPaulo") -> None:
        self._merchant_name = merchant_name
        self._city = city

    async def create_payment_reference(self, amount: Decimal) -> PaymentReference:
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
        reference = f"PIX-{int(time.time() * 1000)}-{suffix}"
        logger.debug("local_payment_reference_issued", reference=reference)
        return PaymentReference(
            reference=reference,
            copy_paste_code=_copy_paste_code(reference, amount, self._merchant_name, self._city),
        )
