"""Middleware Chain — ordered stages with explicit step results and one driver loop.

Invariants:
    - Stages run strictly in list order; each at most once per request
    - A stage returns Continue, Respond(response) or Fail(error); raising is Fail
    - A failing stage is never retried; its error goes to the ErrorClassifier with the
      stage name attached
    - The context bag is sealed immediately before the handler stage
    - A RequestContext can be driven only once (no chain re-entry)
    - A failing response hook replaces the response with its classified error; hooks
      after it are skipped

Design Decisions:
    - Step-result type replaces the next()/next(err) callback convention: a stage can
      not "call both" or "call neither" by accident
    - The chain always produces a Response; the caller never sees an exception
"""

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from starlette.responses import Response

from mernapp.core.classifier import ErrorClassifier
from mernapp.core.errors import PipelineError
from mernapp.pipeline.context import RequestContext

RESPONSE_HOOKS = "response_hooks"


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class Respond:
    response: Response


@dataclass(frozen=True)
class Fail:
    error: BaseException


StepResult = Continue | Respond | Fail
CONTINUE = Continue()


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[RequestContext], Awaitable[StepResult]]


class ChainReentryError(RuntimeError):
    pass


class ChainExhaustedError(RuntimeError):
    pass


class MiddlewareChain:
    """Drives a RequestContext through stages, then the handler stage."""

    def __init__(
        self,
        stages: Sequence[Stage],
        handler: Stage,
        classifier: ErrorClassifier,
    ):
        names = [s.name for s in stages] + [handler.name]
        if len(set(names)) != len(names):
            raise ValueError(f"Stage names must be unique: {names}")
        self.stages = tuple(stages)
        self.handler = handler
        self.classifier = classifier

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages] + [self.handler.name]

    async def run(self, ctx: RequestContext) -> Response:
        if ctx.driven:
            raise ChainReentryError("RequestContext has already been driven")
        ctx.driven = True
        response = await self._drive(ctx)
        try:
            for hook in ctx.response_hooks:
                result = hook(response)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            response = self.classifier.classify(
                e, stage=RESPONSE_HOOKS, path=ctx.path, request_id=ctx.request_id,
            )
        if ctx.request_id:
            response.headers["X-Request-ID"] = ctx.request_id
        return response

    async def _drive(self, ctx: RequestContext) -> Response:
        for stage in self.stages:
            response = await self._step(stage, ctx)
            if response is not None:
                return response
        ctx.bag.seal()
        response = await self._step(self.handler, ctx)
        if response is not None:
            return response
        return self._fail(
            ChainExhaustedError(
                f"Handler stage '{self.handler.name}' produced no response",
            ),
            self.handler, ctx,
        )

    async def _step(self, stage: Stage, ctx: RequestContext) -> Response | None:
        ctx.visited.append(stage.name)
        try:
            result = await stage.run(ctx)
        except Exception as e:
            return self._fail(e, stage, ctx)
        if isinstance(result, Continue):
            return None
        if isinstance(result, Respond):
            return result.response
        if isinstance(result, Fail):
            return self._fail(result.error, stage, ctx)
        return self._fail(
            TypeError(f"Stage '{stage.name}' returned {result!r}, not a step result"),
            stage, ctx,
        )

    def _fail(
        self, error: BaseException, stage: Stage, ctx: RequestContext,
    ) -> Response:
        if isinstance(error, PipelineError) and error.stage is None:
            error.stage = stage.name
        return self.classifier.classify(
            error, stage=stage.name, path=ctx.path, request_id=ctx.request_id,
        )
