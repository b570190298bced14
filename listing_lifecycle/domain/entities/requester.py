from dataclasses import dataclass


@dataclass(frozen=True)
class Requester:
    """Identity resolved from the incoming request by the session layer."""

    user_id: str
    is_admin: bool = False
    is_moderator: bool = False

    @property
    def can_moderate(self) -> bool:
        return self.is_admin or self.is_moderator

    @property
    def audit_name(self) -> str:
        return f"admin:{self.user_id}" if self.is_admin else f"user:{self.user_id}"
