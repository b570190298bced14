"""
FastAPI dependency injection wiring.

Each dependency function returns a fully-constructed object with its
collaborators injected, keeping the route handlers thin. All repositories of
one request share the request's unit of work: row locks and writes commit or
roll back together, and events go out only after the commit.
"""
from collections.abc import AsyncGenerator
from datetime import timedelta

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from listing_lifecycle.application.interfaces.clock import Clock, utcnow
from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.application.interfaces.listing_repository import ListingRepository
from listing_lifecycle.application.interfaces.payment_rail import PaymentRail
from listing_lifecycle.application.interfaces.payment_repository import PaymentRepository
from listing_lifecycle.application.interfaces.sales_team_repository import SalesTeamRepository
from listing_lifecycle.application.interfaces.status_history_repository import (
    StatusHistoryRepository,
)
from listing_lifecycle.application.services.contact_routing_resolver import (
    ContactRoutingResolver,
)
from listing_lifecycle.application.services.payment_lifecycle_manager import (
    ActivationTerms,
    PaymentLifecycleManager,
)
from listing_lifecycle.application.use_cases.archive_listing import ArchiveListing
from listing_lifecycle.application.use_cases.create_listing import CreateListing
from listing_lifecycle.application.use_cases.create_sales_team import CreateSalesTeam
from listing_lifecycle.application.use_cases.delete_sales_team import DeleteSalesTeam
from listing_lifecycle.application.use_cases.edit_listing import EditListing
from listing_lifecycle.application.use_cases.get_listing_history import GetListingHistory
from listing_lifecycle.application.use_cases.remove_team_member import RemoveTeamMember
from listing_lifecycle.application.use_cases.set_listing_visibility import SetListingVisibility
from listing_lifecycle.application.use_cases.update_sales_team import UpdateSalesTeam
from listing_lifecycle.application.use_cases.update_team_membership import UpdateTeamMembership
from listing_lifecycle.config import settings
from listing_lifecycle.domain.entities.requester import Requester
from listing_lifecycle.infrastructure.database.repositories.listing_repository import (
    SqlAlchemyListingRepository,
)
from listing_lifecycle.infrastructure.database.repositories.payment_repository import (
    SqlAlchemyPaymentRepository,
)
from listing_lifecycle.infrastructure.database.repositories.sales_team_repository import (
    SqlAlchemySalesTeamRepository,
)
from listing_lifecycle.infrastructure.database.repositories.status_history_repository import (
    SqlAlchemyStatusHistoryRepository,
)
from listing_lifecycle.infrastructure.providers import (
    UnitOfWork,
    build_event_publisher,
    build_payment_rail,
    unit_of_work,
)

ADMIN_ROLES = frozenset({"admin", "adm"})
MODERATOR_ROLES = frozenset({"moderator"})


# ---- Identity --------------------------------------------------------------

def _requester_from_headers(user_id: str | None, role: str | None) -> Requester | None:
    if not user_id:
        return None
    role = (role or "").strip().lower()
    return Requester(
        user_id=user_id,
        is_admin=role in ADMIN_ROLES,
        is_moderator=role in MODERATOR_ROLES,
    )


async def get_optional_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Requester | None:
    return _requester_from_headers(x_user_id, x_user_role)


async def get_requester(
    requester: Requester | None = Depends(get_optional_requester),
) -> Requester:
    if requester is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Missing X-User-Id header."},
        )
    return requester


# ---- Low-level dependencies ------------------------------------------------

async def get_unit_of_work() -> AsyncGenerator[UnitOfWork, None]:
    async with unit_of_work(build_event_publisher(settings)) as uow:
        yield uow


def get_session(uow: UnitOfWork = Depends(get_unit_of_work)) -> AsyncSession:
    return uow.session


def get_clock() -> Clock:
    return utcnow


def get_listing_repo(session: AsyncSession = Depends(get_session)) -> ListingRepository:
    return SqlAlchemyListingRepository(session)


def get_payment_repo(session: AsyncSession = Depends(get_session)) -> PaymentRepository:
    return SqlAlchemyPaymentRepository(session)


def get_team_repo(session: AsyncSession = Depends(get_session)) -> SalesTeamRepository:
    return SqlAlchemySalesTeamRepository(session)


def get_history_repo(session: AsyncSession = Depends(get_session)) -> StatusHistoryRepository:
    return SqlAlchemyStatusHistoryRepository(session)


def get_event_publisher(uow: UnitOfWork = Depends(get_unit_of_work)) -> EventPublisher:
    return uow.events


def get_payment_rail() -> PaymentRail:
    return build_payment_rail(settings)


# ---- Services --------------------------------------------------------------

def get_payment_manager(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    payment_repo: PaymentRepository = Depends(get_payment_repo),
    history_repo: StatusHistoryRepository = Depends(get_history_repo),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    payment_rail: PaymentRail = Depends(get_payment_rail),
    clock: Clock = Depends(get_clock),
) -> PaymentLifecycleManager:
    return PaymentLifecycleManager(
        listing_repo,
        payment_repo,
        history_repo,
        event_publisher,
        payment_rail,
        ActivationTerms.from_settings(settings),
        clock=clock,
        sweep_batch_size=settings.sweep_batch_size,
    )


def get_contact_resolver(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
    listing_repo: ListingRepository = Depends(get_listing_repo),
    clock: Clock = Depends(get_clock),
) -> ContactRoutingResolver:
    return ContactRoutingResolver(team_repo, listing_repo, clock=clock)


# ---- Use-case dependencies -------------------------------------------------

def get_create_listing_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    history_repo: StatusHistoryRepository = Depends(get_history_repo),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    team_repo: SalesTeamRepository = Depends(get_team_repo),
    clock: Clock = Depends(get_clock),
) -> CreateListing:
    return CreateListing(
        listing_repo,
        history_repo,
        event_publisher,
        team_repo=team_repo,
        content_ttl=timedelta(days=settings.listing_content_ttl_days),
        clock=clock,
    )


def get_edit_listing_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    team_repo: SalesTeamRepository = Depends(get_team_repo),
    clock: Clock = Depends(get_clock),
) -> EditListing:
    return EditListing(listing_repo, team_repo=team_repo, clock=clock)


def get_archive_listing_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    history_repo: StatusHistoryRepository = Depends(get_history_repo),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    payment_manager: PaymentLifecycleManager = Depends(get_payment_manager),
    clock: Clock = Depends(get_clock),
) -> ArchiveListing:
    return ArchiveListing(listing_repo, history_repo, event_publisher, payment_manager, clock=clock)


def get_set_visibility_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock),
) -> SetListingVisibility:
    return SetListingVisibility(listing_repo, event_publisher, clock=clock)


def get_listing_history_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    history_repo: StatusHistoryRepository = Depends(get_history_repo),
) -> GetListingHistory:
    return GetListingHistory(listing_repo, history_repo)


def get_create_sales_team_use_case(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
) -> CreateSalesTeam:
    return CreateSalesTeam(team_repo)


def get_update_membership_use_case(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
) -> UpdateTeamMembership:
    return UpdateTeamMembership(team_repo)


def get_update_sales_team_use_case(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
) -> UpdateSalesTeam:
    return UpdateSalesTeam(team_repo)


def get_delete_sales_team_use_case(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
) -> DeleteSalesTeam:
    return DeleteSalesTeam(team_repo)


def get_remove_team_member_use_case(
    team_repo: SalesTeamRepository = Depends(get_team_repo),
) -> RemoveTeamMember:
    return RemoveTeamMember(team_repo)
