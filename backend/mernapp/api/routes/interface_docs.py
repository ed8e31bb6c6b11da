"""Interface Document Route — serves the loaded interface schema back to clients.

Invariants:
    - GET /api-docs returns the document the running Pipeline was built from, not a
      fresh read of the file on disk
    - Before the boot continuation has run it answers 503 SERVICE_UNAVAILABLE

Design Decisions:
    - Served by FastAPI directly, like /health: clients fetch the contract without
      passing through sessions, validation or gatekeepers
    - Lives outside basePath, so it can never shadow a declared operation
"""

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.responses import Response

from mernapp.core.errors import ServiceUnavailableError

router = APIRouter(tags=["interface"])


@router.get("/api-docs", include_in_schema=False)
async def interface_document(request: Request) -> Response:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        return request.app.state.classifier.classify(
            ServiceUnavailableError(), path=request.url.path,
        )
    return JSONResponse(jsonable_encoder(pipeline.schema.document))
