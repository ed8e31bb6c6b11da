"""Error Classifier — four-tier, first-match-wins mapping from errors to response shapes.

Invariants:
    - Tiers are tried in fixed priority: application → domain_rule → business → protocol
    - Exactly one tier claims an error; later tiers never see a claimed error
    - Errors no tier claims become 500 INTERNAL_ERROR with a generic message
    - Every resolved error has the same shape: status, code, message, category, detail
    - classify() logs each error exactly once at the tier's level

Design Decisions:
    - Tagged-union dispatch: tag_error() reduces any exception to an ErrorKind (or None)
      and each tier claims by kind, not by poking at arbitrary attributes
    - Foreign exceptions get a kind here, not in the code that raised them:
      SQLAlchemyError → business, Starlette HTTPException / RequestValidationError → protocol
    - Business-tier detail is logged, never returned
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from mernapp.core.envelope import send_error_response
from mernapp.core.errors import (
    APP_CODE_STATUS, ErrorKind, PipelineError,
)

logger = logging.getLogger(__name__)

UNEXPECTED = "unexpected"
GENERIC_MESSAGE = "An unexpected error occurred"


@dataclass(frozen=True)
class ClassifiedError:
    """Tier-independent description of an error response."""
    tier: str
    status: int
    code: str
    message: str
    detail: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def to_response(self) -> JSONResponse:
        return send_error_response(
            self.status, self.code, self.message,
            category=self.tier, detail=self.detail, headers=self.headers,
        )


@dataclass(frozen=True)
class Tier:
    """One priority level: a claim predicate, a shaper, and a log level."""
    name: str
    claims: Callable[[BaseException], bool]
    shape: Callable[[BaseException], ClassifiedError]
    log_level: int = logging.WARNING
    log_traceback: bool = False


def tag_error(exc: BaseException) -> ErrorKind | None:
    """Reduce an exception to its kind tag; None means no tier owns it."""
    if isinstance(exc, PipelineError):
        return exc.kind
    if isinstance(exc, SQLAlchemyError):
        return ErrorKind.BUSINESS
    if isinstance(exc, (StarletteHTTPException, RequestValidationError)):
        return ErrorKind.PROTOCOL
    return None


# ─── Shapers ─────────────────────────────────────────────────────

def _shape_application(exc: PipelineError) -> ClassifiedError:
    return ClassifiedError(
        ErrorKind.APPLICATION.value, APP_CODE_STATUS[exc.code], exc.code,
        exc.message, exc.detail, dict(exc.headers),
    )


def _shape_domain_rule(exc: PipelineError) -> ClassifiedError:
    status = exc.http_status if 400 <= exc.http_status < 500 else 409
    return ClassifiedError(
        ErrorKind.DOMAIN_RULE.value, status, exc.code, exc.message, exc.detail,
    )


def _shape_business(exc: BaseException) -> ClassifiedError:
    if isinstance(exc, PipelineError):
        return ClassifiedError(
            ErrorKind.BUSINESS.value, exc.http_status, exc.code,
            exc.public_message,
        )
    return ClassifiedError(
        ErrorKind.BUSINESS.value, 503, "DATABASE_ERROR",
        "The datastore is temporarily unavailable",
    )


def _shape_protocol(exc: BaseException) -> ClassifiedError:
    tier = ErrorKind.PROTOCOL.value
    if isinstance(exc, PipelineError):
        return ClassifiedError(
            tier, exc.http_status, exc.code, exc.message, exc.detail,
            dict(exc.headers),
        )
    if isinstance(exc, RequestValidationError):
        return ClassifiedError(
            tier, 400, "VALIDATION_ERROR", "Invalid request data",
            [
                {
                    "parameter": ".".join(str(loc) for loc in e["loc"]),
                    "reason": e["type"],
                    "message": e["msg"],
                }
                for e in exc.errors()
            ],
        )
    status = exc.status_code
    try:
        phrase = HTTPStatus(status)
        code, default_message = phrase.name, phrase.phrase
    except ValueError:
        code, default_message = "HTTP_ERROR", "HTTP error"
    message = exc.detail if isinstance(exc.detail, str) else default_message
    return ClassifiedError(
        tier, status, code, message, headers=dict(exc.headers or {}),
    )


def _shape_unexpected(exc: BaseException) -> ClassifiedError:
    return ClassifiedError(UNEXPECTED, 500, "INTERNAL_ERROR", GENERIC_MESSAGE)


def _claims_kind(kind: ErrorKind) -> Callable[[BaseException], bool]:
    def claims(exc: BaseException) -> bool:
        return tag_error(exc) is kind
    return claims


def _claims_application(exc: BaseException) -> bool:
    # Only codes with a known status count as "recognized"
    return tag_error(exc) is ErrorKind.APPLICATION and exc.code in APP_CODE_STATUS


def default_tiers() -> list[Tier]:
    return [
        Tier(ErrorKind.APPLICATION.value, _claims_application,
             _shape_application, logging.WARNING),
        Tier(ErrorKind.DOMAIN_RULE.value, _claims_kind(ErrorKind.DOMAIN_RULE),
             _shape_domain_rule, logging.INFO),
        Tier(ErrorKind.BUSINESS.value, _claims_kind(ErrorKind.BUSINESS),
             _shape_business, logging.WARNING, log_traceback=True),
        Tier(ErrorKind.PROTOCOL.value, _claims_kind(ErrorKind.PROTOCOL),
             _shape_protocol, logging.INFO),
    ]


class ErrorClassifier:
    """Decides which tier owns an error and renders its response."""

    def __init__(self, tiers: Sequence[Tier] | None = None):
        self.tiers = tuple(tiers if tiers is not None else default_tiers())
        self._fallback = Tier(
            UNEXPECTED, lambda exc: True, _shape_unexpected,
            logging.ERROR, log_traceback=True,
        )

    def owner(self, exc: BaseException) -> Tier:
        for tier in self.tiers:
            if tier.claims(exc):
                return tier
        return self._fallback

    def resolve(self, exc: BaseException) -> ClassifiedError:
        """Pure part of classify(): no logging, no response object."""
        return self.owner(exc).shape(exc)

    def classify(
        self,
        exc: BaseException,
        *,
        stage: str | None = None,
        path: str | None = None,
        request_id: str | None = None,
    ) -> JSONResponse:
        tier = self.owner(exc)
        classified = tier.shape(exc)
        if stage is None and isinstance(exc, PipelineError):
            stage = exc.stage
        logger.log(
            tier.log_level,
            f"{tier.name} error {classified.code}: {exc}",
            exc_info=exc if tier.log_traceback else None,
            extra={
                "tier": tier.name,
                "error_code": classified.code,
                "status_code": classified.status,
                "stage": stage,
                "path": path,
                "request_id": request_id,
            },
        )
        return classified.to_response()
