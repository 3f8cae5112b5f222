"""Input validation of raw tool arguments against a tool's schema.

Validation is pure: it never performs I/O. A successful validation returns
typed arguments, so implementations only ever see values of the declared
types:

- ``decimal`` fields become ``decimal.Decimal`` (parsed exactly, never via float)
- ``uint`` fields become ``int``
- undeclared fields are dropped, optional fields get their defaults
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from ..models.schema import ADDRESS_PATTERN, DECIMAL_PATTERN, UINT256_MAX, UINT_PATTERN, FieldSchema
from ..units import parse_units
from .error_handler import ConstraintViolation, MissingField, TypeMismatch

ROOT = "$"

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)
_DECIMAL_RE = re.compile(DECIMAL_PATTERN)
_UINT_RE = re.compile(UINT_PATTERN)

TypedArguments = dict[str, Any]


def validate(args: Any, schema: FieldSchema) -> TypedArguments:
    """Validate ``args`` against ``schema``.

    Args:
        args: Raw arguments as received from the client.
        schema: Input schema of the target tool (normally an object schema).

    Returns:
        Typed arguments.

    Raises:
        MissingField: A required field is absent.
        TypeMismatch: A value has the wrong JSON type.
        ConstraintViolation: A value has the right type but is malformed or out of range.
    """
    return _validate_node(args, schema, ROOT)


def json_type(value: Any) -> str:
    """Name the JSON type of a Python value, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _child_path(path: str, key: str) -> str:
    return key if path == ROOT else f"{path}.{key}"


def _validate_node(value: Any, node: FieldSchema, path: str) -> Any:
    return _VALIDATORS[node.type](value, node, path)


def _validate_object(value: Any, node: FieldSchema, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeMismatch(path, "object", json_type(value))
    if not node.properties:
        # Free-form object, passed through as-is
        return dict(value)

    typed: dict[str, Any] = {}
    for name, child in node.properties.items():
        child_path = _child_path(path, name)
        raw = value.get(name)
        if raw is None:
            if child.required:
                raise MissingField(child_path)
            if child.default is not None:
                typed[name] = _validate_node(child.default, child, child_path)
            continue
        typed[name] = _validate_node(raw, child, child_path)
    return typed


def _validate_array(value: Any, node: FieldSchema, path: str) -> list[Any]:
    if not isinstance(value, (list, tuple)):
        raise TypeMismatch(path, "array", json_type(value))
    if node.min_items is not None and len(value) < node.min_items:
        raise ConstraintViolation(path, f"must contain at least {node.min_items} items")
    if node.max_items is not None and len(value) > node.max_items:
        raise ConstraintViolation(path, f"must contain at most {node.max_items} items")
    return [_validate_node(item, node.items, f"{path}[{i}]") for i, item in enumerate(value)]


def _validate_string(value: Any, node: FieldSchema, path: str) -> str:
    if not isinstance(value, str):
        raise TypeMismatch(path, "string", json_type(value))
    if node.min_length is not None and len(value) < node.min_length:
        raise ConstraintViolation(path, f"must be at least {node.min_length} characters")
    if node.max_length is not None and len(value) > node.max_length:
        raise ConstraintViolation(path, f"must be at most {node.max_length} characters")
    if node.pattern is not None and not re.fullmatch(node.pattern, value):
        raise ConstraintViolation(path, f"does not match pattern {node.pattern}")
    if node.enum is not None and value not in node.enum:
        raise ConstraintViolation(path, f"must be one of {', '.join(node.enum)}")
    return value


def _check_bounds(value: float, node: FieldSchema, path: str) -> None:
    if node.minimum is not None and value < node.minimum:
        raise ConstraintViolation(path, f"must be >= {node.minimum:g}")
    if node.maximum is not None and value > node.maximum:
        raise ConstraintViolation(path, f"must be <= {node.maximum:g}")


def _validate_integer(value: Any, node: FieldSchema, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeMismatch(path, "integer", json_type(value))
    _check_bounds(value, node, path)
    return value


def _validate_number(value: Any, node: FieldSchema, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeMismatch(path, "number", json_type(value))
    if isinstance(value, float) and not math.isfinite(value):
        raise ConstraintViolation(path, "must be a finite number")
    _check_bounds(value, node, path)
    return value


def _validate_boolean(value: Any, node: FieldSchema, path: str) -> bool:
    if not isinstance(value, bool):
        raise TypeMismatch(path, "boolean", json_type(value))
    return value


def _validate_address(value: Any, node: FieldSchema, path: str) -> str:
    if not isinstance(value, str):
        raise TypeMismatch(path, "address string", json_type(value))
    if not _ADDRESS_RE.fullmatch(value):
        raise ConstraintViolation(
            path, "is not a valid address (expected 0x followed by 40 hex digits)"
        )
    return value


def _validate_decimal(value: Any, node: FieldSchema, path: str) -> Decimal:
    # Floats are rejected: token quantities must arrive with exact precision
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeMismatch(path, "decimal string", json_type(value))

    if isinstance(value, int) and value < 0:
        raise ConstraintViolation(path, "must not be negative")
    text = str(value)
    if not _DECIMAL_RE.fullmatch(text):
        raise ConstraintViolation(path, f"'{value}' is not a plain non-negative decimal number")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ConstraintViolation(path, f"'{value}' is not a decimal number")

    if node.max_scale is not None:
        scale = _fractional_digits(amount)
        if scale > node.max_scale:
            raise ConstraintViolation(
                path, f"has {scale} fractional digits, at most {node.max_scale} allowed"
            )
        if node.max_base_units is not None and parse_units(amount, node.max_scale) > node.max_base_units:
            raise ConstraintViolation(path, f"is too large: exceeds {node.max_base_units} base units")
    if node.minimum is not None and amount < Decimal(str(node.minimum)):
        raise ConstraintViolation(path, f"must be >= {node.minimum:g}")
    if node.maximum is not None and amount > Decimal(str(node.maximum)):
        raise ConstraintViolation(path, f"must be <= {node.maximum:g}")
    return amount


def _fractional_digits(amount: Decimal) -> int:
    """Significant fractional digits, ignoring trailing zeros ("1.50" -> 1)."""
    if amount == 0:
        return 0
    _, digits, exponent = amount.as_tuple()
    if exponent >= 0:
        return 0
    trailing_zeros = len(digits) - len("".join(map(str, digits)).rstrip("0"))
    return max(0, -exponent - trailing_zeros)


def _validate_uint(value: Any, node: FieldSchema, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeMismatch(path, "unsigned integer string", json_type(value))

    if isinstance(value, int):
        amount = value
    else:
        if not _UINT_RE.fullmatch(value):
            raise ConstraintViolation(path, f"'{value}' is not an unsigned integer")
        amount = int(value)

    if amount < 0:
        raise ConstraintViolation(path, "must not be negative")
    if amount > UINT256_MAX:
        raise ConstraintViolation(path, "exceeds the uint256 range")
    _check_bounds(amount, node, path)
    return amount


_VALIDATORS: dict[str, Callable[[Any, FieldSchema, str], Any]] = {
    "object": _validate_object,
    "array": _validate_array,
    "string": _validate_string,
    "integer": _validate_integer,
    "number": _validate_number,
    "boolean": _validate_boolean,
    "address": _validate_address,
    "decimal": _validate_decimal,
    "uint": _validate_uint,
}
