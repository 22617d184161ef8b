from __future__ import annotations

"""Structural validation of tool arguments against a JSON-schema object.

Only the subset needed to catch obviously malformed calls is checked:
required properties, unknown properties when ``additionalProperties`` is
false, primitive ``type`` and ``enum`` of top-level properties. Full schema
validation belongs to the provider layer.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol

from ..errors import ToolArgumentValidationError

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, Mapping),
    "null": lambda v: v is None,
}


class ArgumentValidator(Protocol):
    def __call__(self, tool_name: str, schema: Optional[Dict[str, Any]], args: Dict[str, Any]) -> None: ...


def _type_matches(expected: Any, value: Any) -> bool:
    names = expected if isinstance(expected, list) else [expected]
    checks = [_TYPE_CHECKS[n] for n in names if n in _TYPE_CHECKS]
    return not checks or any(check(value) for check in checks)


def validate_tool_arguments(tool_name: str, schema: Optional[Dict[str, Any]], args: Dict[str, Any]) -> None:
    """
    Check ``args`` against ``schema``.

    Raises:
        ToolArgumentValidationError: Listing every problem found.
    """
    if not schema:
        return

    problems: List[str] = []
    properties: Mapping[str, Any] = schema.get("properties") or {}

    for key in schema.get("required") or []:
        if key not in args:
            problems.append(f'missing required property "{key}"')

    if schema.get("additionalProperties") is False:
        for key in args:
            if key not in properties:
                problems.append(f'unexpected property "{key}"')

    for key, prop in properties.items():
        if key not in args or not isinstance(prop, Mapping):
            continue
        value = args[key]
        if "type" in prop and not _type_matches(prop["type"], value):
            problems.append(f'property "{key}" should be of type {prop["type"]}')
        elif "enum" in prop and value not in prop["enum"]:
            allowed = ", ".join(repr(v) for v in prop["enum"])
            problems.append(f'property "{key}" must be one of {allowed}')

    if problems:
        raise ToolArgumentValidationError(tool_name, problems)
