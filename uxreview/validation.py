from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .schema_nodes import (
    AnyNode,
    ArrayNode,
    BooleanNode,
    NumberNode,
    ObjectNode,
    SchemaNode,
    StringNode,
    UnionNode,
)

ROOT_PATH = "root"


@dataclass(frozen=True)
class SchemaViolation:
    message: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "path": self.path}


@dataclass
class ValidationResult:
    valid: bool
    errors: list[SchemaViolation] = field(default_factory=list)

    def errors_payload(self) -> list[dict[str, str]]:
        return [error.to_dict() for error in self.errors]


def validate(value: Any, schema: SchemaNode, path: str = ROOT_PATH) -> list[SchemaViolation]:
    """Collect every violation of ``schema`` found in ``value``.

    Traversal is depth-first: required-field errors of an object come first,
    then its children in the value's key order; array elements in index order.
    """
    errors: list[SchemaViolation] = []
    _validate_node(value, schema, path, errors)
    return errors


def check_additional_properties(value: Any, schema: SchemaNode, path: str = ROOT_PATH) -> list[SchemaViolation]:
    if not isinstance(schema, ObjectNode) or schema.additional_properties:
        return []
    if not _is_object(value):
        return []
    known = set(schema.property_names)
    return [
        SchemaViolation(message=f"Unexpected field: {key}", path=f"{path}.{key}")
        for key in value.keys()
        if key not in known
    ]


def validate_document(value: Any, schema: SchemaNode) -> ValidationResult:
    errors = validate(value, schema)
    errors.extend(check_additional_properties(value, schema))
    return ValidationResult(valid=not errors, errors=errors)


def _validate_node(value: Any, schema: SchemaNode, path: str, errors: list[SchemaViolation]) -> None:
    validator = _VALIDATORS.get(type(schema))
    if validator is None:
        return
    validator(value, schema, path, errors)


def _validate_object(value: Any, schema: ObjectNode, path: str, errors: list[SchemaViolation]) -> None:
    if not _is_object(value):
        errors.append(SchemaViolation(message=f"Expected object at {path}", path=path))
        return

    for key in schema.required:
        if key not in value:
            errors.append(SchemaViolation(message=f"Missing required field: {key}", path=f"{path}.{key}"))

    for key, child in value.items():
        child_schema = schema.property_schema(key)
        if child_schema is not None:
            _validate_node(child, child_schema, f"{path}.{key}", errors)


def _validate_array(value: Any, schema: ArrayNode, path: str, errors: list[SchemaViolation]) -> None:
    if not isinstance(value, list):
        errors.append(SchemaViolation(message=f"Expected array at {path}", path=path))
        return

    if schema.min_items is not None and len(value) < schema.min_items:
        errors.append(SchemaViolation(message=f"Array must have at least {schema.min_items} items", path=path))
    if schema.max_items is not None and len(value) > schema.max_items:
        errors.append(SchemaViolation(message=f"Array must have at most {schema.max_items} items", path=path))

    if schema.items is None:
        return
    for index, item in enumerate(value):
        _validate_node(item, schema.items, f"{path}[{index}]", errors)


def _validate_string(value: Any, schema: StringNode, path: str, errors: list[SchemaViolation]) -> None:
    if not isinstance(value, str):
        errors.append(SchemaViolation(message=f"Expected string at {path}", path=path))
    if schema.enum is not None and value not in schema.enum:
        allowed = ", ".join(str(item) for item in schema.enum)
        errors.append(SchemaViolation(message=f"Value must be one of: {allowed}", path=path))


def _validate_number(value: Any, schema: NumberNode, path: str, errors: list[SchemaViolation]) -> None:
    if not _is_number(value):
        errors.append(SchemaViolation(message=f"Expected number at {path}", path=path))
        return
    if schema.minimum is not None and value < schema.minimum:
        errors.append(SchemaViolation(message=f"Value must be >= {_format_bound(schema.minimum)}", path=path))
    if schema.maximum is not None and value > schema.maximum:
        errors.append(SchemaViolation(message=f"Value must be <= {_format_bound(schema.maximum)}", path=path))


def _validate_boolean(value: Any, schema: BooleanNode, path: str, errors: list[SchemaViolation]) -> None:
    if not isinstance(value, bool):
        errors.append(SchemaViolation(message=f"Expected boolean at {path}", path=path))


def _validate_union(value: Any, schema: UnionNode, path: str, errors: list[SchemaViolation]) -> None:
    if any(_matches_kind(value, kind) for kind in schema.kinds):
        return
    errors.append(SchemaViolation(message=f"Expected one of types: {', '.join(schema.kinds)}", path=path))


def _validate_any(value: Any, schema: AnyNode, path: str, errors: list[SchemaViolation]) -> None:
    return


_VALIDATORS: dict[type, Callable[[Any, Any, str, list[SchemaViolation]], None]] = {
    ObjectNode: _validate_object,
    ArrayNode: _validate_array,
    StringNode: _validate_string,
    NumberNode: _validate_number,
    BooleanNode: _validate_boolean,
    UnionNode: _validate_union,
    AnyNode: _validate_any,
}


def _matches_kind(value: Any, kind: str) -> bool:
    if kind == "null":
        return value is None
    if kind == "string":
        return isinstance(value, str)
    if kind == "number":
        return _is_number(value)
    if kind == "integer":
        return _is_number(value) and float(value).is_integer()
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "array":
        return isinstance(value, list)
    if kind == "object":
        return _is_object(value)
    return False


def _is_object(value: Any) -> bool:
    return isinstance(value, dict)


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON booleans are not numbers
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_bound(bound: float) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)
