"""Request Context — everything the stages know about one in-flight request.

Invariants:
    - One RequestContext per request; it is driven through the chain at most once
    - ContextBag keys are write-once; after seal() the bag rejects every write
    - The bag is sealed before business handlers run (they only read it)
    - response_hooks run on the final response, success or error alike

Design Decisions:
    - Bag is a Mapping (read with bag["cache"]) plus attach(): no attribute magic
    - Per-process resources (cache, datastore) are injected by the metadata stage,
      so the no-cross-worker-sharing boundary is explicit in one place
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from mernapp.core.interface_schema import RouteMatch


class ContextSealedError(RuntimeError):
    pass


class ContextBag(Mapping):
    """Write-once, sealable bag of per-request shared values."""

    def __init__(self):
        self._values: dict[str, Any] = {}
        self._sealed = False

    def attach(self, key: str, value: Any) -> None:
        if self._sealed:
            raise ContextSealedError(f"Context bag is sealed; cannot attach '{key}'")
        if key in self._values:
            raise ContextSealedError(f"Context key '{key}' is already set")
        self._values[key] = value

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ContextBag({sorted(self._values)}, sealed={self._sealed})"


@dataclass
class RequestContext:
    request: Request
    bag: ContextBag = field(default_factory=ContextBag)
    route: RouteMatch | None = None
    query: dict[str, list[str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    visited: list[str] = field(default_factory=list)
    response_hooks: list[Callable[[Response], Any]] = field(default_factory=list)
    driven: bool = False

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def path(self) -> str:
        return self.request.url.path

    @property
    def operation_id(self) -> str | None:
        return self.route.entry.operation_id if self.route else None

    def on_response(self, hook: Callable[[Response], Any]) -> None:
        """Register a (sync or async) callback run on the final response."""
        self.response_hooks.append(hook)
