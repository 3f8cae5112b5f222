# Schema domain models
# Field constraint trees describing tool inputs and outputs

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FieldType = Literal[
    "object",
    "array",
    "string",
    "integer",
    "number",
    "boolean",
    "address",
    "decimal",
    "uint",
]

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
DECIMAL_PATTERN = r"^[0-9]+(\.[0-9]+)?$"
UINT_PATTERN = r"^[0-9]+$"
UINT256_MAX = 2**256 - 1


class FieldSchema(BaseModel):
    """One node of a tool schema.

    A node carries a type tag plus the constraints that make sense for that
    tag. ``address``, ``decimal`` and ``uint`` are domain tags layered on top
    of JSON strings: a 20-byte hex address, an exact non-negative decimal
    quantity and a non-negative integer amount in base units.
    """

    model_config = ConfigDict(frozen=True)

    type: FieldType
    description: str | None = None
    required: bool = True
    default: Any = None

    # object
    properties: dict[str, FieldSchema] = Field(default_factory=dict)

    # array
    items: FieldSchema | None = None
    min_items: int | None = Field(default=None, ge=0)
    max_items: int | None = Field(default=None, ge=0)

    # string
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None
    enum: tuple[str, ...] | None = None

    # integer / number
    minimum: float | None = None
    maximum: float | None = None

    # decimal
    max_scale: int | None = Field(default=None, ge=0)
    # upper bound of the amount once scaled to base units
    max_base_units: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_shape(self) -> FieldSchema:
        """Reject constraint combinations that can never be satisfied."""
        if self.type == "array" and self.items is None:
            raise ValueError("array schema requires 'items'")
        if self.properties and self.type != "object":
            raise ValueError("only object schemas may declare 'properties'")
        if self.required and self.default is not None:
            raise ValueError("a required field cannot declare a default")
        if self.max_base_units is not None and (self.type != "decimal" or self.max_scale is None):
            raise ValueError("'max_base_units' needs a decimal schema with 'max_scale'")
        return self

    def to_json_schema(self) -> dict[str, Any]:
        """Render this node as JSON Schema for discovery responses."""
        schema: dict[str, Any]
        if self.type == "address":
            schema = {"type": "string", "pattern": ADDRESS_PATTERN}
        elif self.type == "decimal":
            # Whole amounts may also be sent as JSON integers
            schema = {
                "type": ["string", "integer"],
                "format": "decimal",
                "pattern": DECIMAL_PATTERN,
                "minimum": 0,
            }
        elif self.type == "uint":
            schema = {
                "type": ["string", "integer"],
                "format": "uint256",
                "pattern": UINT_PATTERN,
                "minimum": 0,
            }
        else:
            schema = {"type": self.type}

        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default

        if self.type == "object":
            schema["properties"] = {
                name: child.to_json_schema() for name, child in self.properties.items()
            }
            required = [name for name, child in self.properties.items() if child.required]
            if required:
                schema["required"] = required
        elif self.type == "array":
            schema["items"] = self.items.to_json_schema()
            if self.min_items is not None:
                schema["minItems"] = self.min_items
            if self.max_items is not None:
                schema["maxItems"] = self.max_items
        elif self.type == "string":
            if self.min_length is not None:
                schema["minLength"] = self.min_length
            if self.max_length is not None:
                schema["maxLength"] = self.max_length
            if self.pattern is not None:
                schema["pattern"] = self.pattern
            if self.enum is not None:
                schema["enum"] = list(self.enum)
        elif self.type in ("integer", "number"):
            if self.minimum is not None:
                schema["minimum"] = self.minimum
            if self.maximum is not None:
                schema["maximum"] = self.maximum

        return schema


FieldSchema.model_rebuild()


# Constructors used by tool modules to keep schema declarations short


def object_schema(
    properties: dict[str, FieldSchema] | None = None,
    description: str | None = None,
    required: bool = True,
) -> FieldSchema:
    return FieldSchema(
        type="object",
        properties=properties or {},
        description=description,
        required=required,
    )


def string_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="string", description=description, **constraints)


def integer_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="integer", description=description, **constraints)


def number_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="number", description=description, **constraints)


def boolean_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="boolean", description=description, **constraints)


def array_field(items: FieldSchema, description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="array", items=items, description=description, **constraints)


def address_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="address", description=description, **constraints)


def decimal_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    """A decimal amount. With ``max_scale`` set, its base-unit value must fit in a uint256."""
    if constraints.get("max_scale") is not None:
        constraints.setdefault("max_base_units", UINT256_MAX)
    return FieldSchema(type="decimal", description=description, **constraints)


def uint_field(description: str | None = None, **constraints: Any) -> FieldSchema:
    return FieldSchema(type="uint", description=description, **constraints)
