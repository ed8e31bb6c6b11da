"""Interface Schema — immutable description of every route the server accepts.

Invariants:
    - Entries are loaded once at boot and never mutated afterwards (frozen dataclasses,
      tuples instead of lists)
    - match() is exact on method and on the compiled path pattern; the first matching
      entry in declaration order wins
    - Path-level parameters are merged into every operation under that path;
      operation-level parameters with the same (name, location) override them

Design Decisions:
    - Swagger 2.0 document layout (basePath, paths, parameters with `in`/`type`);
      OpenAPI 3 style `schema: {type: ...}` accepted on parameters too
    - `formData` parameters are treated as body fields (same coercion rules)
    - Gatekeeper flags ride on vendor extensions: x-requires-token, x-reject-when-pending
    - The parsed source document is kept alongside the entries so it can be served back
      as-is; nothing reads it for routing
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch")
PARAMETER_TYPES = ("string", "integer", "number", "boolean", "array", "object")

_LOCATION_ALIASES = {
    "path": "path", "query": "query", "header": "header",
    "body": "body", "formData": "body",
}
_TEMPLATE_VAR = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class InterfaceSchemaError(ValueError):
    """The interface schema document itself is malformed."""


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    location: str
    type: str = "string"
    required: bool = False
    items_type: str | None = None
    default: Any = None


@dataclass(frozen=True)
class SchemaEntry:
    """One (method, path pattern) operation."""
    method: str
    pattern: str
    operation_id: str
    parameters: tuple[ParameterSpec, ...] = ()
    responses: tuple[int, ...] = ()
    tags: tuple[str, ...] = ()
    requires_token: bool = False
    reject_when_pending: bool = False
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_regex", compile_pattern(self.pattern))

    def match_path(self, path: str) -> dict[str, str] | None:
        m = self._regex.match(path)
        return m.groupdict() if m else None

    @property
    def success_status(self) -> int:
        """First declared 2xx code, 200 when none is declared."""
        for code in self.responses:
            if 200 <= code < 300:
                return code
        return 200


@dataclass(frozen=True)
class RouteMatch:
    entry: SchemaEntry
    path_params: dict[str, str]


@dataclass(frozen=True)
class InterfaceSchema:
    entries: tuple[SchemaEntry, ...]
    title: str = ""
    version: str = ""
    document: Any = field(default=None, compare=False, repr=False)

    def match(self, method: str, path: str) -> RouteMatch | None:
        method = method.upper()
        for entry in self.entries:
            if entry.method != method:
                continue
            params = entry.match_path(path)
            if params is not None:
                return RouteMatch(entry, params)
        return None

    def allowed_methods(self, path: str) -> list[str]:
        """Methods declared for any pattern matching path (for 405 responses)."""
        allowed = []
        for entry in self.entries:
            if entry.match_path(path) is not None and entry.method not in allowed:
                allowed.append(entry.method)
        return allowed

    def operation(self, operation_id: str) -> SchemaEntry | None:
        for entry in self.entries:
            if entry.operation_id == operation_id:
                return entry
        return None

    @property
    def operation_ids(self) -> list[str]:
        return [e.operation_id for e in self.entries]


def compile_pattern(pattern: str) -> re.Pattern:
    """/items/{id} → ^/items/(?P<id>[^/]+)/?$"""
    parts = []
    pos = 0
    for m in _TEMPLATE_VAR.finditer(pattern):
        parts.append(re.escape(pattern[pos:m.start()]))
        parts.append(f"(?P<{m.group(1)}>[^/]+)")
        pos = m.end()
    parts.append(re.escape(pattern[pos:].rstrip("/")))
    return re.compile("^" + "".join(parts) + "/?$")


def load_interface_schema(path: str | Path) -> InterfaceSchema:
    """Read a YAML interface document from disk."""
    try:
        with open(path, encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise InterfaceSchemaError(f"Cannot read interface schema {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InterfaceSchemaError(f"Invalid YAML in {path}: {e}") from e
    return parse_interface_schema(document)


def parse_interface_schema(document: Any) -> InterfaceSchema:
    """Build an InterfaceSchema from an already-parsed document."""
    if not isinstance(document, dict) or not isinstance(document.get("paths"), dict):
        raise InterfaceSchemaError("Interface schema needs a 'paths' mapping")

    base_path = (document.get("basePath") or "").rstrip("/")
    info = document.get("info") or {}
    entries: list[SchemaEntry] = []
    seen_ids: set[str] = set()

    for raw_path, path_item in document["paths"].items():
        if not isinstance(path_item, dict):
            raise InterfaceSchemaError(f"Path '{raw_path}' must be a mapping")
        shared = _parse_parameters(path_item.get("parameters") or [], raw_path)
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if operation is None:
                continue
            entry = _parse_operation(
                base_path + raw_path, method, operation, shared,
            )
            if entry.operation_id in seen_ids:
                raise InterfaceSchemaError(
                    f"Duplicate operationId '{entry.operation_id}'",
                )
            seen_ids.add(entry.operation_id)
            entries.append(entry)

    return InterfaceSchema(
        entries=tuple(entries),
        title=str(info.get("title", "")),
        version=str(info.get("version", "")),
        document=document,
    )


def _parse_operation(
    pattern: str, method: str, operation: dict, shared: list[ParameterSpec],
) -> SchemaEntry:
    own = _parse_parameters(operation.get("parameters") or [], pattern)
    own_keys = {(p.name, p.location) for p in own}
    parameters = [p for p in shared if (p.name, p.location) not in own_keys] + own

    template_vars = set(_TEMPLATE_VAR.findall(pattern))
    declared_path = {p.name for p in parameters if p.location == "path"}
    missing = template_vars - declared_path
    if missing:
        raise InterfaceSchemaError(
            f"{method.upper()} {pattern}: path parameters not declared: {sorted(missing)}",
        )

    operation_id = operation.get("operationId") or _default_operation_id(
        method, pattern,
    )
    return SchemaEntry(
        method=method.upper(),
        pattern=pattern,
        operation_id=operation_id,
        parameters=tuple(parameters),
        responses=_parse_responses(operation.get("responses") or {}),
        tags=tuple(operation.get("tags") or ()),
        requires_token=bool(operation.get("x-requires-token", False)),
        reject_when_pending=bool(operation.get("x-reject-when-pending", False)),
    )


def _parse_parameters(raw: list, where: str) -> list[ParameterSpec]:
    specs = []
    for p in raw:
        if not isinstance(p, dict) or "name" not in p or "in" not in p:
            raise InterfaceSchemaError(f"{where}: parameter needs 'name' and 'in'")
        location = _LOCATION_ALIASES.get(p["in"])
        if location is None:
            raise InterfaceSchemaError(
                f"{where}: unsupported parameter location '{p['in']}'",
            )
        type_source = p.get("schema") or p
        param_type = type_source.get("type", "string")
        if param_type not in PARAMETER_TYPES:
            raise InterfaceSchemaError(
                f"{where}: parameter '{p['name']}' has unknown type '{param_type}'",
            )
        items = type_source.get("items") or {}
        specs.append(ParameterSpec(
            name=p["name"],
            location=location,
            type=param_type,
            # path parameters are always required
            required=bool(p.get("required", False)) or location == "path",
            items_type=items.get("type") if param_type == "array" else None,
            default=type_source.get("default"),
        ))
    return specs


def _parse_responses(raw: dict) -> tuple[int, ...]:
    codes = []
    for key in raw:
        try:
            codes.append(int(key))
        except (TypeError, ValueError):
            continue  # "default"
    return tuple(codes)


def _default_operation_id(method: str, pattern: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", pattern).strip("_")
    return f"{method}_{slug}" if slug else method
