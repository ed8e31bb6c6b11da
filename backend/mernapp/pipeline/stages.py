"""Request Stages — metadata, session, static, parsing and schema validation.

Invariants:
    - Stages never shape error responses: they return Fail(error) or raise
    - parse_request runs before validate_schema (the validator expects parsed values)
    - serve_static only answers GET/HEAD for files inside the static root
    - A missing or unknown session cookie always yields a fresh session
    - A fresh session that stays empty is neither stored nor announced with a cookie

Design Decisions:
    - Each stage is built by a factory that closes over its collaborators, so the chain
      itself stays ignorant of schemas, stores and directories
    - Route matching happens in attach_metadata; rejecting unmatched routes waits for
      validate_schema so static files can still be served for unmatched paths
"""

import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from starlette.responses import FileResponse, Response

from mernapp.core.errors import (
    MalformedRequestError, MethodNotAllowedError, RouteNotFoundError,
)
from mernapp.core.interface_schema import InterfaceSchema
from mernapp.core.schema_validator import validate_request
from mernapp.pipeline.chain import CONTINUE, Fail, Respond, Stage, StepResult
from mernapp.pipeline.context import RequestContext
from mernapp.pipeline.session_store import SessionStore, new_session_id

JSON_CONTENT_TYPES = ("application/json", "application/vnd.api+json")
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
DEFAULT_LOCALE = "en"


def preferred_locale(accept_language: str | None, default: str = DEFAULT_LOCALE) -> str:
    """Highest-q language tag of an Accept-Language header."""
    if not accept_language:
        return default
    best, best_q = default, -1.0
    for part in accept_language.split(","):
        tag, _, params = part.strip().partition(";")
        tag = tag.strip()
        if not tag or tag == "*":
            continue
        q = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                q = float(params[2:])
            except ValueError:
                q = 0.0
        if q > best_q:
            best, best_q = tag, q
    return best


def metadata_stage(
    schema: InterfaceSchema, resources: Mapping[str, Any],
) -> Stage:
    """Attach request id, locale, route match and per-process resources."""

    async def attach_metadata(ctx: RequestContext) -> StepResult:
        ctx.request_id = ctx.request.headers.get("x-request-id") or str(uuid.uuid4())
        ctx.route = schema.match(ctx.method, ctx.path)
        for key, value in resources.items():
            ctx.bag.attach(key, value)
        ctx.bag.attach("request_id", ctx.request_id)
        ctx.bag.attach(
            "locale", preferred_locale(ctx.request.headers.get("accept-language")),
        )
        return CONTINUE

    return Stage("metadata", attach_metadata)


def session_stage(
    store: SessionStore, cookie_name: str = "JSESSION", secure: bool = False,
) -> Stage:
    """Load or create the visitor session; persist it once the response exists."""

    async def attach_session(ctx: RequestContext) -> StepResult:
        session_id = ctx.request.cookies.get(cookie_name)
        data = await store.load(session_id) if session_id else None
        is_new = data is None
        if is_new:
            session_id = new_session_id()
            data = {}

        async def persist(response: Response) -> None:
            if is_new and not data:
                return
            await store.save(session_id, data)
            if is_new:
                response.set_cookie(
                    cookie_name, session_id,
                    httponly=True, samesite="lax", secure=secure,
                )

        ctx.on_response(persist)
        ctx.bag.attach("session_id", session_id)
        ctx.bag.attach("session", data)
        return CONTINUE

    return Stage("session", attach_session)


def static_stage(directory: str | Path) -> Stage:
    """Short-circuit GET/HEAD requests for files under directory."""
    root = Path(directory).resolve()

    async def serve_static(ctx: RequestContext) -> StepResult:
        if ctx.method not in ("GET", "HEAD") or not root.is_dir():
            return CONTINUE
        candidate = (root / ctx.path.lstrip("/")).resolve()
        if candidate != root and root not in candidate.parents:
            return CONTINUE
        if candidate.is_dir():
            candidate = candidate / "index.html"
        if not candidate.is_file():
            return CONTINUE
        return Respond(FileResponse(candidate))

    return Stage("static", serve_static)


def parse_stage() -> Stage:
    """Parse query string, headers and body into plain Python values."""

    async def parse_request(ctx: RequestContext) -> StepResult:
        request = ctx.request
        ctx.query = {
            key: request.query_params.getlist(key)
            for key in request.query_params.keys()
        }
        ctx.headers = {k.lower(): v for k, v in request.headers.items()}

        raw = await request.body()
        if not raw:
            ctx.body = None
            return CONTINUE

        content_type = ctx.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type in JSON_CONTENT_TYPES or content_type.endswith("+json"):
            try:
                ctx.body = await request.json()
            except ValueError:
                return Fail(MalformedRequestError("Request body is not valid JSON"))
        elif content_type in FORM_CONTENT_TYPES:
            form = await request.form()
            ctx.body = {
                key: values[0] if len(values) == 1 else values
                for key, values in ((k, form.getlist(k)) for k in form.keys())
            }
        else:
            ctx.body = raw
        return CONTINUE

    return Stage("parse", parse_request)


def validation_stage(schema: InterfaceSchema) -> Stage:
    """Reject unroutable or structurally invalid requests; store coerced params."""

    async def validate_schema(ctx: RequestContext) -> StepResult:
        if ctx.route is None:
            allowed = schema.allowed_methods(ctx.path)
            if allowed:
                return Fail(MethodNotAllowedError(ctx.method, ctx.path, allowed))
            return Fail(RouteNotFoundError(ctx.method, ctx.path))
        ctx.params = validate_request(
            ctx.route, query=ctx.query, headers=ctx.headers, body=ctx.body,
        )
        return CONTINUE

    return Stage("validate", validate_schema)

