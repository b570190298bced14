from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


class PaymentRailError(Exception):
    """The payment provider could not produce a payment reference."""


@dataclass(frozen=True)
class PaymentReference:
    reference: str
    copy_paste_code: str | None = None


class PaymentRail(ABC):
    """Port for the external payment provider (e.g. a Pix gateway)."""

    @abstractmethod
    async def create_payment_reference(self, amount: Decimal) -> PaymentReference:
        ...
