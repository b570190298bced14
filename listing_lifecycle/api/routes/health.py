from fastapi import APIRouter

from listing_lifecycle.infrastructure.providers import check_dependencies

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness + dependency health check."""
    return await check_dependencies()
