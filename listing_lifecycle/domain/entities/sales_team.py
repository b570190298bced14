from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from listing_lifecycle.domain.enums.member_availability import MemberAvailability


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TeamMember:
    """A user who can be surfaced to buyers on behalf of a sales team."""

    id: UUID = field(default_factory=uuid4)
    team_id: UUID = field(default_factory=uuid4)
    user_id: str = ""
    availability: MemberAvailability = MemberAvailability.AVAILABLE
    position: int = 0

    # Contact details shown to buyers
    name: str | None = None
    email: str | None = None
    whatsapp: str | None = None

    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_available(self) -> bool:
        return self.availability is MemberAvailability.AVAILABLE


@dataclass
class SalesTeam:
    """A seller-owned group of contacts. Members are kept ordered by ``position``."""

    id: UUID = field(default_factory=uuid4)
    seller_id: str = ""
    name: str = ""
    description: str | None = None
    members: list[TeamMember] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)

    def add_member(
        self,
        user_id: str,
        availability: MemberAvailability = MemberAvailability.AVAILABLE,
        *,
        name: str | None = None,
        email: str | None = None,
        whatsapp: str | None = None,
    ) -> TeamMember:
        if self.find_member(user_id) is not None:
            raise ValueError(f"User {user_id} is already a member of team {self.id}.")
        # Positions only grow, so removals never reorder the remaining members
        position = max((m.position for m in self.members), default=-1) + 1
        member = TeamMember(
            team_id=self.id,
            user_id=user_id,
            availability=availability,
            position=position,
            name=name,
            email=email,
            whatsapp=whatsapp,
        )
        self.members.append(member)
        return member

    def find_member(self, user_id: str) -> TeamMember | None:
        return next((m for m in self.members if m.user_id == user_id), None)

    def set_availability(self, user_id: str, availability: MemberAvailability) -> TeamMember:
        member = self._require_member(user_id)
        member.availability = availability
        return member

    def update_contact(
        self,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        whatsapp: str | None = None,
    ) -> TeamMember:
        """Overwrite the contact fields that are given; ``None`` keeps the current value."""
        member = self._require_member(user_id)
        if name is not None:
            member.name = name
        if email is not None:
            member.email = email
        if whatsapp is not None:
            member.whatsapp = whatsapp
        return member

    def remove_member(self, user_id: str) -> TeamMember:
        member = self._require_member(user_id)
        self.members.remove(member)
        return member

    def update_details(self, *, name: str | None = None, description: str | None = None) -> None:
        if name is not None:
            if not name.strip():
                raise ValueError("Team name cannot be blank.")
            self.name = name
        if description is not None:
            self.description = description

    def _require_member(self, user_id: str) -> TeamMember:
        member = self.find_member(user_id)
        if member is None:
            raise LookupError(f"User {user_id} is not a member of team {self.id}.")
        return member
