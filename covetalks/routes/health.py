"""
Health Check Endpoints

Liveness and readiness for the load balancer. Readiness checks that the
configured dependencies can be reached.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from covetalks.config import Settings, get_settings
from covetalks.dependencies import Clients, get_clients
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import utc_now_iso

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Returns 200 if the application is running"""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "version": settings.app_version,
        },
    )


def _check_supabase(clients: Clients) -> Dict[str, Any]:
    clients.supabase.table("members").select("id").limit(1).execute()
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(clients: Clients = Depends(get_clients)):
    """
    Readiness check.

    Verifies Supabase is reachable, the Stripe client can be built and,
    when configured, that Redis answers a ping.
    """
    dependencies: Dict[str, Any] = {}
    overall_healthy = True

    try:
        dependencies["supabase"] = await run_in_threadpool(_check_supabase, clients)
    except Exception as e:
        logger.warning(f"Supabase readiness check failed: {e}")
        dependencies["supabase"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    try:
        clients.stripe  # constructs the client
        dependencies["stripe"] = {"status": "healthy", "api_version": clients.settings.stripe_api_version}
    except Exception as e:
        dependencies["stripe"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    if clients.redis_service is not None:
        if await clients.redis_service.ping():
            dependencies["redis"] = {"status": "healthy"}
        else:
            dependencies["redis"] = {"status": "unhealthy", "connected": clients.redis_service.connected}
            overall_healthy = False

    return JSONResponse(
        status_code=200 if overall_healthy else 503,
        content={
            "status": "ready" if overall_healthy else "not_ready",
            "timestamp": utc_now_iso(),
            "dependencies": dependencies,
            "summary": {
                "total_checks": len(dependencies),
                "healthy": sum(1 for d in dependencies.values() if d.get("status") == "healthy"),
                "unhealthy": sum(1 for d in dependencies.values() if d.get("status") == "unhealthy"),
            },
        },
    )


@router.get("/health/live")
async def liveness_check():
    """Returns 200 if the application is alive"""
    return JSONResponse(
        status_code=200,
        content={"status": "alive", "timestamp": utc_now_iso()},
    )
