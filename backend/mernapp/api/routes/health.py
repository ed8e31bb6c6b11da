"""Health & Readiness Probes — liveness and readiness endpoints outside the pipeline.

Invariants:
    - GET /health always returns 200 if the process is up (liveness)
    - GET /health/ready returns 503 unless the pipeline is active and the datastore
      answers SELECT 1; the supervisor state is reported alongside

Design Decisions:
    - Served by FastAPI directly, not by the pipeline: they report on the pipeline and
      the datastore instead of depending on them, and answer 503 for an app whose boot
      continuation has not run (or whose datastore stopped answering after boot)
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "mernapp",
        "version": request.app.version,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — supervisor state, pipeline activation and datastore round-trip."""
    state = request.app.state
    supervisor = getattr(state, "supervisor", None)
    datastore = getattr(state, "datastore", None)
    pipeline_active = getattr(state, "pipeline", None) is not None
    db_ok = await datastore.health_check() if datastore else False

    connection = supervisor.state.value if supervisor else "unsupervised"
    checks = {
        "connection": connection,
        "pipeline": "active" if pipeline_active else "inactive",
        "database": "healthy" if db_ok else "unavailable",
    }
    if not (pipeline_active and db_ok):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
