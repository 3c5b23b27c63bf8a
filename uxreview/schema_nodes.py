from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


class SchemaDefinitionError(RuntimeError):
    pass


PRIMITIVE_KINDS = ("null", "string", "number", "integer", "boolean", "array", "object")


@dataclass(frozen=True)
class AnyNode:
    """Unknown or unsupported kind. Accepts every value."""

    kind: str = ""


@dataclass(frozen=True)
class StringNode:
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NumberNode:
    minimum: float | None = None
    maximum: float | None = None


@dataclass(frozen=True)
class BooleanNode:
    pass


@dataclass(frozen=True)
class ArrayNode:
    items: "SchemaNode | None" = None
    min_items: int | None = None
    max_items: int | None = None


@dataclass(frozen=True)
class ObjectNode:
    properties: tuple[tuple[str, "SchemaNode"], ...] = ()
    required: tuple[str, ...] = ()
    additional_properties: bool = True

    def property_schema(self, key: str) -> "SchemaNode | None":
        for name, node in self.properties:
            if name == key:
                return node
        return None

    @property
    def property_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.properties)


@dataclass(frozen=True)
class UnionNode:
    kinds: tuple[str, ...] = field(default_factory=tuple)


SchemaNode = Union[AnyNode, StringNode, NumberNode, BooleanNode, ArrayNode, ObjectNode, UnionNode]


def compile_schema(raw: dict[str, Any]) -> SchemaNode:
    if not isinstance(raw, dict):
        raise SchemaDefinitionError(f"Schema node must be an object, got {type(raw).__name__}")

    kind = raw.get("type")
    if isinstance(kind, list):
        kinds = tuple(str(item) for item in kind)
        if not kinds:
            raise SchemaDefinitionError("Union schema must list at least one type.")
        return UnionNode(kinds=kinds)

    if kind == "object":
        properties_raw = raw.get("properties") or {}
        if not isinstance(properties_raw, dict):
            raise SchemaDefinitionError("Object schema 'properties' must be an object.")
        required_raw = raw.get("required") or []
        if not isinstance(required_raw, list):
            raise SchemaDefinitionError("Object schema 'required' must be a list.")
        return ObjectNode(
            properties=tuple((str(name), compile_schema(child)) for name, child in properties_raw.items()),
            required=tuple(str(name) for name in required_raw),
            additional_properties=raw.get("additionalProperties") is not False,
        )

    if kind == "array":
        items_raw = raw.get("items")
        return ArrayNode(
            items=compile_schema(items_raw) if items_raw is not None else None,
            min_items=_optional_int(raw.get("minItems"), "minItems"),
            max_items=_optional_int(raw.get("maxItems"), "maxItems"),
        )

    if kind == "string":
        enum_raw = raw.get("enum")
        if enum_raw is not None and not isinstance(enum_raw, list):
            raise SchemaDefinitionError("String schema 'enum' must be a list.")
        return StringNode(enum=tuple(enum_raw) if enum_raw is not None else None)

    if kind == "number":
        return NumberNode(
            minimum=_optional_number(raw.get("minimum"), "minimum"),
            maximum=_optional_number(raw.get("maximum"), "maximum"),
        )

    if kind == "boolean":
        return BooleanNode()

    return AnyNode(kind=str(kind or ""))


def _optional_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaDefinitionError(f"Schema '{key}' must be an integer.")
    return value


def _optional_number(value: Any, key: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaDefinitionError(f"Schema '{key}' must be a number.")
    return value
