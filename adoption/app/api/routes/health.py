"""Health check endpoints.

- /health: liveness, always ok while the process runs
- /healthz: readiness, checks the database and Redis the process depends on
"""

from typing import Annotated, Any

import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from adoption.app.api.guards import get_services
from adoption.app.config import Settings
from adoption.app.services import Services

router = APIRouter()


async def check_db(services: Services) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    if services.db_engine is None:
        return (True, "in_memory")

    try:
        with services.db_engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    try:
        client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
        client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(services: Annotated[Services, Depends(get_services)]) -> dict[str, Any] | JSONResponse:
    """Readiness check.

    Returns:
        200 with component status if the stores are reachable
        503 if any of them fails
    """
    db_ok, db_status = await check_db(services)
    redis_ok, redis_status = await check_redis(services.settings)

    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "scheduler": "running" if services.scheduler.running else "stopped",
        },
    }

    if not core_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
