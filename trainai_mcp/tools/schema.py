"""Per-field input shapes and argument validation."""

import json
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlsplit

from ..errors import ValidationError

FIELD_TYPES = ("string", "integer", "url", "object")

MISSING = "missing"
WRONG_TYPE = "wrong type"
OUT_OF_RANGE = "out of range"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    required: bool = False
    default: Any = None
    minimum: int | None = None
    maximum: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"unsupported field type: {self.type}")


def _is_absolute_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def _check(field: FieldSpec, value: Any) -> Any:
    """Return ``value`` if it satisfies ``field``; raise ValidationError otherwise."""
    if field.type in ("string", "url"):
        if not isinstance(value, str):
            raise ValidationError(field.name, f"{WRONG_TYPE} (expected string)")
        if not value.strip():
            raise ValidationError(field.name, f"{WRONG_TYPE} (expected non-empty string)")
        if field.type == "url" and not _is_absolute_url(value):
            raise ValidationError(field.name, f"{WRONG_TYPE} (expected absolute http(s) URL)")
        return value

    if field.type == "integer":
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field.name, f"{WRONG_TYPE} (expected integer)")
        if (field.minimum is not None and value < field.minimum) or (
            field.maximum is not None and value > field.maximum
        ):
            raise ValidationError(
                field.name, f"{OUT_OF_RANGE} ({value} not in [{field.minimum}, {field.maximum}])"
            )
        return value

    # object
    if not isinstance(value, dict):
        raise ValidationError(field.name, f"{WRONG_TYPE} (expected object)")
    try:
        json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(field.name, f"{WRONG_TYPE} (not JSON-serializable: {e})") from e
    return value


def validate_arguments(fields: Iterable[FieldSpec], arguments: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validate ``arguments`` against ``fields`` in declared order.

    Unknown keys are dropped. Absent optional fields take their default;
    a field present with a ``None`` value counts as the wrong type.
    Raises ValidationError for the first failing field.
    """
    arguments = arguments or {}
    validated: dict[str, Any] = {}
    for field in fields:
        if field.name not in arguments:
            if field.required:
                raise ValidationError(field.name, MISSING)
            if field.default is not None:
                validated[field.name] = field.default
            continue
        validated[field.name] = _check(field, arguments[field.name])
    return validated


def input_schema(fields: Iterable[FieldSpec]) -> dict[str, Any]:
    """Render ``fields`` as the JSON Schema published in the tool catalog."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for field in fields:
        prop: dict[str, Any] = {}
        if field.type == "url":
            prop.update({"type": "string", "format": "uri"})
        elif field.type == "object":
            prop.update({"type": "object", "additionalProperties": True})
        elif field.type == "string":
            prop.update({"type": "string", "minLength": 1})
        else:
            prop["type"] = "integer"
        if field.minimum is not None:
            prop["minimum"] = field.minimum
        if field.maximum is not None:
            prop["maximum"] = field.maximum
        if field.default is not None:
            prop["default"] = field.default
        if field.description:
            prop["description"] = field.description
        properties[field.name] = prop
        if field.required:
            required.append(field.name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema
