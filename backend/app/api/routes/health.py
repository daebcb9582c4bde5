"""Health Probe — liveness endpoint.

Invariants:
    - GET or POST /api/health always returns 200 if the process is up
    - Vendor reachability is NOT checked (a probe must not spend vendor quota)
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from app.schemas.detection import HealthStatus

router = APIRouter(prefix="/api", tags=["health"])


@router.api_route("/health", methods=["GET", "POST"], response_model=HealthStatus)
async def health_check():
    """Basic liveness probe."""
    return HealthStatus(
        status="ok", timestamp=datetime.now(timezone.utc).isoformat(),
    )
