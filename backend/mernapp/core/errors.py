"""Error Hierarchy — kind-tagged exceptions for every failure the pipeline can classify.

Invariants:
    - Every error has a kind (ErrorKind), code (str), message (str) and http_status (int)
    - The kind tag alone decides which classifier tier may claim the error
    - stage is None until the chain driver attaches the originating stage name
    - public_message is what callers see; message may carry internal detail

Design Decisions:
    - Single hierarchy with PipelineError base: the classifier dispatches on the kind
      tag, never on duck-typed attributes (ADR: tagged-union dispatch)
    - Four kinds mirror the classifier tiers: application, domain_rule, business, protocol
"""

from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorKind(str, Enum):
    """Kind tag carried by every PipelineError — maps 1:1 onto classifier tiers."""
    APPLICATION = "application"
    DOMAIN_RULE = "domain_rule"
    BUSINESS = "business"
    PROTOCOL = "protocol"


class AppErrorCode(str, Enum):
    """Codes the application raises on its own behalf. Status derives from the code."""
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    UNPROCESSABLE = "UNPROCESSABLE"
    RATE_LIMITED = "RATE_LIMITED"
    UNAVAILABLE = "UNAVAILABLE"


APP_CODE_STATUS: dict[str, int] = {
    AppErrorCode.UNAUTHORIZED.value: 401,
    AppErrorCode.FORBIDDEN.value: 403,
    AppErrorCode.CONFLICT.value: 409,
    AppErrorCode.UNPROCESSABLE.value: 422,
    AppErrorCode.RATE_LIMITED.value: 429,
    AppErrorCode.UNAVAILABLE.value: 503,
}


class PipelineError(Exception):
    """Base exception for all classified mernapp errors."""

    kind: ErrorKind = ErrorKind.BUSINESS

    def __init__(
        self,
        message: str,
        code: str,
        http_status: int = 500,
        detail: Any = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.detail = detail
        self.headers = headers or {}
        self.stage: str | None = None

    @property
    def public_message(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ─── Tier 1: Application-owned ───────────────────────────────────

class AppError(PipelineError):
    """Raised by this codebase's own logic with a recognized AppErrorCode."""
    kind = ErrorKind.APPLICATION

    def __init__(
        self, code: AppErrorCode | str, message: str, detail: Any = None,
        headers: dict[str, str] | None = None,
    ):
        code = code.value if isinstance(code, AppErrorCode) else code
        super().__init__(
            message, code, APP_CODE_STATUS.get(code, 500), detail, headers,
        )


class InvalidTokenError(AppError):
    """Admin token missing or wrong."""
    def __init__(self, message: str = "Missing or invalid admin token"):
        super().__init__(AppErrorCode.UNAUTHORIZED, message)


class AdminAccessDisabledError(AppError):
    """Token-gated route hit while no admin token is configured."""
    def __init__(self):
        super().__init__(
            AppErrorCode.FORBIDDEN, "Admin access is disabled on this server",
        )


# ─── Tier 2: Domain / business-rule ─────────────────────────────

class DomainRuleError(PipelineError):
    """A violated real-world invariant. code names the rule."""
    kind = ErrorKind.DOMAIN_RULE

    def __init__(
        self, rule: str, message: str, http_status: int = 409, detail: Any = None,
    ):
        super().__init__(message, rule, http_status, detail)

    @property
    def rule(self) -> str:
        return self.code


class ResourceNotFoundError(DomainRuleError):
    """Requested resource does not exist."""
    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            "NOT_FOUND", f"{resource_type} '{resource_id}' not found", 404,
            {"resource": resource_type, "id": resource_id},
        )


class RecordPendingError(DomainRuleError):
    """Record is still pending and cannot be modified yet."""
    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            "RECORD_PENDING",
            f"{resource_type} '{resource_id}' is pending and cannot be modified",
            409, {"resource": resource_type, "id": resource_id},
        )


# ─── Tier 3: Generic business ───────────────────────────────────

class BusinessError(PipelineError):
    """Application-logic failure whose detail must not reach the caller."""
    kind = ErrorKind.BUSINESS

    def __init__(
        self, message: str, code: str = "BUSINESS_ERROR", http_status: int = 500,
        public_message: str = "The request could not be completed",
        detail: Any = None,
    ):
        super().__init__(message, code, http_status, detail)
        self._public_message = public_message

    @property
    def public_message(self) -> str:
        return self._public_message


class DatabaseError(BusinessError):
    """Datastore operation failed mid-request."""
    def __init__(self, message: str, operation: str):
        super().__init__(
            f"Database {operation} failed: {message}", "DATABASE_ERROR", 503,
            public_message="The datastore is temporarily unavailable",
        )
        self.operation = operation


# ─── Tier 4: Protocol / HTTP ────────────────────────────────────

class ProtocolError(PipelineError):
    """Malformed or unroutable request. Never carries business framing."""
    kind = ErrorKind.PROTOCOL

    def __init__(
        self, message: str, code: str, http_status: int, detail: Any = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message, code, http_status, detail, headers)


class RouteNotFoundError(ProtocolError):
    def __init__(self, method: str, path: str):
        super().__init__(
            f"No route matches {method} {path}", "ROUTE_NOT_FOUND", 404,
        )


class MethodNotAllowedError(ProtocolError):
    def __init__(self, method: str, path: str, allowed: list[str]):
        super().__init__(
            f"Method {method} is not allowed on {path}", "METHOD_NOT_ALLOWED",
            405, {"allowed": allowed}, {"Allow": ", ".join(allowed)},
        )


class SchemaValidationError(ProtocolError):
    """Request is structurally invalid. detail lists every offending parameter."""
    def __init__(self, violations: list[dict[str, str]]):
        names = ", ".join(v["parameter"] for v in violations)
        super().__init__(
            f"Invalid request parameters: {names}", "VALIDATION_ERROR", 400,
            violations,
        )
        self.violations = violations


class MalformedRequestError(ProtocolError):
    def __init__(self, message: str):
        super().__init__(message, "MALFORMED_REQUEST", 400)


class OperationNotImplementedError(ProtocolError):
    def __init__(self, operation_id: str):
        super().__init__(
            f"Operation '{operation_id}' has no handler",
            "NOT_IMPLEMENTED", HTTPStatus.NOT_IMPLEMENTED.value,
        )


class ServiceUnavailableError(ProtocolError):
    def __init__(self, message: str = "Server is still starting up"):
        super().__init__(message, "SERVICE_UNAVAILABLE", 503)
