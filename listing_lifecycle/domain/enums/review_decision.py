from enum import Enum


class ReviewDecision(str, Enum):
    """Moderator verdict on a submitted proof of payment."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
