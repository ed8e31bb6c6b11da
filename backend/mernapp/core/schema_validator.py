"""Schema Validator — structural conformance check of a request against its schema entry.

Invariants:
    - Purely structural: never looks at business state, never mutates the schema
    - Every violation is collected before raising (callers see all offending parameters)
    - Reasons are exactly "missing_required" or "wrong_type"
    - Absent optional parameters take their declared default, or are left out

Design Decisions:
    - pydantic TypeAdapter (lax mode) for coercion: "42" → 42, "true" → True, same rules
      for path, query, header and body values
    - Adapters built once per (type, items_type) and reused across requests
    - JSON true/false never satisfy integer or number, even though lax mode would accept
      them as 1/0
"""

from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import Annotated, Any

from pydantic import BeforeValidator, TypeAdapter, ValidationError

from mernapp.core.errors import SchemaValidationError
from mernapp.core.interface_schema import ParameterSpec, RouteMatch


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("a boolean is not a number")
    return value


_PYTHON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": Annotated[int, BeforeValidator(_reject_bool)],
    "number": Annotated[float, BeforeValidator(_reject_bool)],
    "boolean": bool,
    "object": dict,
}

MISSING_REQUIRED = "missing_required"
WRONG_TYPE = "wrong_type"


@lru_cache(maxsize=None)
def _adapter(param_type: str, items_type: str | None) -> TypeAdapter:
    if param_type == "array":
        inner = _PYTHON_TYPES.get(items_type or "string", Any)
        return TypeAdapter(list[inner])
    return TypeAdapter(_PYTHON_TYPES[param_type])


def validate_request(
    match: RouteMatch,
    *,
    query: Mapping[str, Sequence[str]] | None = None,
    headers: Mapping[str, str] | None = None,
    body: Any = None,
) -> dict[str, Any]:
    """Return coerced parameters by name, or raise SchemaValidationError.

    query maps each key to all of its values (repeated keys preserved).
    headers must be keyed in lower case.
    """
    query = query or {}
    headers = headers or {}
    violations: list[dict[str, str]] = []
    params: dict[str, Any] = {}

    body_specs = [p for p in match.entry.parameters if p.location == "body"]
    if body_specs and body is not None and not isinstance(body, Mapping):
        violations.append(_violation("body", "body", WRONG_TYPE, "expected an object"))
        body = None

    for spec in match.entry.parameters:
        present, raw = _extract(spec, match.path_params, query, headers, body)
        if not present:
            if spec.required:
                violations.append(_violation(
                    spec.name, spec.location, MISSING_REQUIRED,
                    f"{spec.location} parameter '{spec.name}' is required",
                ))
            elif spec.default is not None:
                params[spec.name] = spec.default
            continue
        try:
            params[spec.name] = coerce(spec, raw)
        except ValidationError as e:
            violations.append(_violation(
                spec.name, spec.location, WRONG_TYPE,
                f"expected {_describe(spec)}: {e.errors()[0]['msg']}",
            ))

    if violations:
        raise SchemaValidationError(violations)
    return params


def coerce(spec: ParameterSpec, raw: Any) -> Any:
    """Coerce one raw value to the declared type. Raises pydantic.ValidationError."""
    return _adapter(spec.type, spec.items_type).validate_python(raw)


def _extract(
    spec: ParameterSpec,
    path_params: Mapping[str, str],
    query: Mapping[str, Sequence[str]],
    headers: Mapping[str, str],
    body: Any,
) -> tuple[bool, Any]:
    if spec.location == "path":
        value = path_params.get(spec.name)
        return value is not None, value
    if spec.location == "query":
        values = query.get(spec.name)
        if not values:
            return False, None
        return True, list(values) if spec.type == "array" else values[-1]
    if spec.location == "header":
        value = headers.get(spec.name.lower())
        return value is not None, value
    if isinstance(body, Mapping) and spec.name in body:
        return True, body[spec.name]
    return False, None


def _describe(spec: ParameterSpec) -> str:
    if spec.type == "array":
        return f"array of {spec.items_type or 'string'}"
    return spec.type


def _violation(parameter: str, location: str, reason: str, message: str) -> dict:
    return {
        "parameter": parameter,
        "location": location,
        "reason": reason,
        "message": message,
    }
