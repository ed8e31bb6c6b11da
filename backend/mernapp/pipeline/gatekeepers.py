"""Gatekeepers — pre-business checks that may short-circuit a validated request.

Invariants:
    - Gatekeepers run after schema validation (ctx.route and ctx.params are set)
    - Each gate only acts on routes whose schema entry opts in via its flag
    - Gates run in declared list order; the first failing gate ends the request

Design Decisions:
    - Token comparison with hmac.compare_digest on bytes (constant time, non-ASCII safe)
    - The pending-record gate takes a lookup coroutine so it knows nothing about models
"""

import hmac
from collections.abc import Awaitable, Callable

from mernapp.core.errors import (
    AdminAccessDisabledError, InvalidTokenError, RecordPendingError,
)
from mernapp.pipeline.chain import CONTINUE, Fail, Stage, StepResult
from mernapp.pipeline.context import RequestContext

ADMIN_TOKEN_HEADER = "X-Admin-Token"

StateLookup = Callable[[RequestContext], Awaitable[str | None]]


def reject_if_token_invalid(
    admin_token: str | None, header: str = ADMIN_TOKEN_HEADER,
) -> Stage:
    """Token-gated routes need header == admin_token; no token configured → 403."""

    async def check_token(ctx: RequestContext) -> StepResult:
        if ctx.route is None or not ctx.route.entry.requires_token:
            return CONTINUE
        if not admin_token:
            return Fail(AdminAccessDisabledError())
        provided = ctx.headers.get(header.lower())
        if provided is None or not hmac.compare_digest(
            provided.encode(), admin_token.encode(),
        ):
            return Fail(InvalidTokenError())
        return CONTINUE

    return Stage("reject_if_token_invalid", check_token)


def reject_if_pending_record(
    lookup_state: StateLookup,
    resource: str = "Record",
    pending_state: str = "pending",
    id_param: str = "id",
) -> Stage:
    """Block opted-in routes while the addressed record is still pending."""

    async def check_pending(ctx: RequestContext) -> StepResult:
        if ctx.route is None or not ctx.route.entry.reject_when_pending:
            return CONTINUE
        state = await lookup_state(ctx)
        if state == pending_state:
            return Fail(RecordPendingError(resource, ctx.params.get(id_param)))
        return CONTINUE

    return Stage("reject_if_pending_record", check_pending)
