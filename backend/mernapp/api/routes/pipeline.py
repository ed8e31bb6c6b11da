"""Pipeline Route — catch-all that hands every non-probe request to the Pipeline.

Invariants:
    - Registered last, so explicit routes (health, api-docs) always win
    - Before the boot continuation has run, every request answers 503 SERVICE_UNAVAILABLE

Design Decisions:
    - One catch-all route instead of one FastAPI route per schema entry: routing,
      validation and error shaping stay owned by the interface schema and the chain
"""

from fastapi import APIRouter, Request
from starlette.responses import Response

from mernapp.core.errors import ServiceUnavailableError

router = APIRouter(tags=["pipeline"])

PIPELINE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route(
    "/{full_path:path}", methods=PIPELINE_METHODS, include_in_schema=False,
)
async def run_pipeline(request: Request, full_path: str) -> Response:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        return request.app.state.classifier.classify(
            ServiceUnavailableError(), path=request.url.path,
        )
    return await pipeline.handle(request)
