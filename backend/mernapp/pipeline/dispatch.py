"""Business Dispatch — final stage that hands a validated request to its handler.

Invariants:
    - Handlers are looked up by the matched entry's operationId
    - A declared operation without a handler answers 501 NOT_IMPLEMENTED
    - Handler return values are wrapped in the success envelope with the entry's first
      declared 2xx status; a returned Response is passed through untouched

Design Decisions:
    - Registry is an explicit object filled at boot (no import-time decorators on a
      global), so tests can build one with just the handlers they need
"""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from starlette.responses import Response

from mernapp.core.envelope import send_success_response
from mernapp.core.errors import OperationNotImplementedError
from mernapp.pipeline.chain import Fail, Respond, Stage, StepResult
from mernapp.pipeline.context import RequestContext

Handler = Callable[[RequestContext], Awaitable[Any]]


class HandlerRegistry:
    """operationId → business handler."""

    def __init__(self, handlers: dict[str, Handler] | None = None):
        self._handlers: dict[str, Handler] = dict(handlers or {})

    def register(self, operation_id: str, handler: Handler) -> None:
        if operation_id in self._handlers:
            raise ValueError(f"Handler for '{operation_id}' already registered")
        self._handlers[operation_id] = handler

    def get(self, operation_id: str) -> Handler | None:
        return self._handlers.get(operation_id)

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._handlers

    @property
    def operation_ids(self) -> list[str]:
        return list(self._handlers)

    def unknown_operations(self, declared: Iterable[str]) -> list[str]:
        """Registered handlers whose operationId the schema never declares."""
        declared = set(declared)
        return [op for op in self._handlers if op not in declared]


def dispatch_stage(registry: HandlerRegistry) -> Stage:

    async def dispatch(ctx: RequestContext) -> StepResult:
        entry = ctx.route.entry
        handler = registry.get(entry.operation_id)
        if handler is None:
            return Fail(OperationNotImplementedError(entry.operation_id))
        result = await handler(ctx)
        if isinstance(result, Response):
            return Respond(result)
        if entry.success_status == 204:
            return Respond(Response(status_code=204))
        return Respond(send_success_response(result, entry.success_status))

    return Stage("dispatch", dispatch)
