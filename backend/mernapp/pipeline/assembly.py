"""Pipeline Assembly — builds the stage list in its one legal order.

Invariants:
    - Order: metadata → session → static → parse → validate → gatekeepers… → dispatch
    - CORS and compression wrap the whole app (see main.py) and therefore run first
      and last around every one of these stages
    - Exactly one Pipeline per process; it is created by the boot continuation

Design Decisions:
    - Gatekeepers passed as an ordered list so deployments can add their own gates
      between validation and dispatch without touching the chain
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from mernapp.core.classifier import ErrorClassifier
from mernapp.core.interface_schema import InterfaceSchema
from mernapp.pipeline.chain import MiddlewareChain, Stage
from mernapp.pipeline.context import RequestContext
from mernapp.pipeline.dispatch import HandlerRegistry, dispatch_stage
from mernapp.pipeline.session_store import InMemorySessionStore, SessionStore
from mernapp.pipeline.stages import (
    metadata_stage, parse_stage, session_stage, static_stage, validation_stage,
)

logger = logging.getLogger(__name__)


class Pipeline:
    """Entry point used by the HTTP layer: one Request in, one Response out."""

    def __init__(self, chain: MiddlewareChain, schema: InterfaceSchema):
        self.chain = chain
        self.schema = schema

    async def handle(self, request: Request) -> Response:
        return await self.chain.run(RequestContext(request=request))


def build_pipeline(
    schema: InterfaceSchema,
    registry: HandlerRegistry,
    classifier: ErrorClassifier,
    *,
    resources: Mapping[str, Any] | None = None,
    session_store: SessionStore | None = None,
    session_cookie_name: str = "JSESSION",
    secure_cookies: bool = False,
    static_dir: str | None = None,
    gatekeepers: Sequence[Stage] = (),
) -> Pipeline:
    stages = [
        metadata_stage(schema, resources or {}),
        session_stage(
            session_store if session_store is not None else InMemorySessionStore(),
            session_cookie_name, secure_cookies,
        ),
    ]
    if static_dir:
        stages.append(static_stage(static_dir))
    stages += [parse_stage(), validation_stage(schema), *gatekeepers]

    unknown = registry.unknown_operations(schema.operation_ids)
    if unknown:
        logger.warning(f"Handlers registered for undeclared operations: {unknown}")
    missing = [op for op in schema.operation_ids if op not in registry]
    if missing:
        logger.warning(f"Declared operations without handlers (501): {missing}")

    chain = MiddlewareChain(stages, dispatch_stage(registry), classifier)
    logger.info(f"Pipeline assembled: {' -> '.join(chain.stage_names)}")
    return Pipeline(chain, schema)
