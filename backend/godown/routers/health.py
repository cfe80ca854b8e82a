"""Health check endpoint for load balancers and monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter

from godown.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Returns 200 OK if the service is running.

    The billing service has no database or cache of its own, so there is
    nothing else to probe.
    """
    return {
        "status": "ok",
        "service": "godown-billing",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }
