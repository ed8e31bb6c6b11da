"""Gatekeepers — tests for the token and pending-record gates.

Tests cover:
    - gates ignore routes that do not opt in
    - token gate: missing/wrong token → 401, no configured token → 403
    - pending gate: pending → RECORD_PENDING, other states and absent records pass
"""

import pytest

from mernapp.core.errors import (
    AdminAccessDisabledError, InvalidTokenError, RecordPendingError,
)
from mernapp.core.interface_schema import parse_interface_schema
from mernapp.pipeline.chain import Continue, Fail
from mernapp.pipeline.context import RequestContext
from mernapp.pipeline.gatekeepers import (
    reject_if_pending_record, reject_if_token_invalid,
)
from tests.pipeline.request_factory import make_request

SCHEMA = parse_interface_schema({
    "paths": {
        "/open/{id}": {
            "parameters": [{"name": "id", "in": "path", "type": "integer"}],
            "patch": {"operationId": "openPatch"},
        },
        "/guarded/{id}": {
            "parameters": [{"name": "id", "in": "path", "type": "integer"}],
            "patch": {
                "operationId": "guardedPatch",
                "x-requires-token": True,
                "x-reject-when-pending": True,
            },
        },
    },
})


def _ctx(path: str, token: str | None = None, record_id: int = 5) -> RequestContext:
    headers = {"x-admin-token": token} if token is not None else {}
    ctx = RequestContext(request=make_request("PATCH", path, headers=headers))
    ctx.route = SCHEMA.match("PATCH", path)
    ctx.headers = headers
    ctx.params = {"id": record_id}
    return ctx


# ─── reject_if_token_invalid ─────────────────────────────────────

async def test_token_gate_ignores_open_routes():
    result = await reject_if_token_invalid("secret").run(_ctx("/open/5"))
    assert isinstance(result, Continue)


async def test_token_gate_accepts_matching_token():
    result = await reject_if_token_invalid("secret").run(_ctx("/guarded/5", "secret"))
    assert isinstance(result, Continue)


@pytest.mark.parametrize("token", [None, "", "wrong", "secret "])
async def test_token_gate_rejects_bad_tokens(token):
    result = await reject_if_token_invalid("secret").run(_ctx("/guarded/5", token))
    assert isinstance(result, Fail)
    assert isinstance(result.error, InvalidTokenError)
    assert result.error.http_status == 401


async def test_token_gate_non_ascii_token_rejected_not_crashing():
    result = await reject_if_token_invalid("secret").run(_ctx("/guarded/5", "sécret"))
    assert isinstance(result.error, InvalidTokenError)


@pytest.mark.parametrize("configured", [None, ""])
async def test_token_gate_without_configured_token_is_forbidden(configured):
    result = await reject_if_token_invalid(configured).run(_ctx("/guarded/5", "anything"))
    assert isinstance(result.error, AdminAccessDisabledError)
    assert result.error.http_status == 403


# ─── reject_if_pending_record ────────────────────────────────────

def _lookup(state):
    calls = []

    async def lookup(ctx):
        calls.append(ctx.params["id"])
        return state

    return lookup, calls


async def test_pending_gate_rejects_pending_record():
    lookup, calls = _lookup("pending")
    result = await reject_if_pending_record(lookup, resource="Item").run(
        _ctx("/guarded/5", record_id=5),
    )
    assert isinstance(result.error, RecordPendingError)
    assert result.error.detail == {"resource": "Item", "id": 5}
    assert calls == [5]


@pytest.mark.parametrize("state", ["active", None])
async def test_pending_gate_passes_other_states(state):
    lookup, _ = _lookup(state)
    result = await reject_if_pending_record(lookup).run(_ctx("/guarded/5"))
    assert isinstance(result, Continue)


async def test_pending_gate_skips_lookup_on_open_routes():
    lookup, calls = _lookup("pending")
    result = await reject_if_pending_record(lookup).run(_ctx("/open/5"))
    assert isinstance(result, Continue)
    assert calls == []
