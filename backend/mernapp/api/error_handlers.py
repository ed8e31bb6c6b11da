"""Error Handlers — FastAPI-level exception handlers that reuse the ErrorClassifier.

Invariants:
    - Errors raised outside the pipeline (health routes, FastAPI routing) get the same
      envelope and the same tier decision as errors inside it
    - Exception (catch-all) → never leaks internal details

Design Decisions:
    - One delegate for every registered type: response shaping lives in the classifier,
      the handlers only forward
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mernapp.core.classifier import ErrorClassifier
from mernapp.core.errors import PipelineError


def register_error_handlers(app: FastAPI) -> None:
    """Register global error handlers on the FastAPI app."""

    async def classify(request: Request, exc: Exception):
        classifier: ErrorClassifier = request.app.state.classifier
        return classifier.classify(
            exc, path=request.url.path,
            request_id=request.headers.get("x-request-id"),
        )

    for exc_type in (
        PipelineError, StarletteHTTPException, RequestValidationError, Exception,
    ):
        app.add_exception_handler(exc_type, classify)
