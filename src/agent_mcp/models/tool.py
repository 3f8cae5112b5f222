# Tool domain models
# Descriptors, call requests and call results shared by every transport

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..services.error_handler import ToolError
from .schema import FieldSchema

_TOOL_NAME_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


class ToolDescriptor(BaseModel):
    """Static metadata of a registered tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique tool name")
    description: str = Field(..., description="Tool description for LLM consumption")
    input_schema: FieldSchema
    output_schema: FieldSchema
    state_changing: bool = Field(
        default=False, description="Whether a call may change upstream state"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Default call timeout in seconds, server default when unset"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the name is usable as an MCP tool name."""
        if not _TOOL_NAME_RE.fullmatch(v):
            raise ValueError(f"Invalid tool name: {v!r}")
        return v

    def to_wire(self, detailed: bool = False) -> dict[str, Any]:
        """Discovery representation, with schemas rendered as JSON Schema."""
        wire = {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema.to_json_schema(),
            "output_schema": self.output_schema.to_json_schema(),
        }
        if detailed:
            wire["state_changing"] = self.state_changing
            wire["timeout"] = self.timeout
        return wire


class CallRequest(BaseModel):
    """A single inbound tool call."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    timeout: float | None = Field(default=None, gt=0, description="Per-call timeout override")


@dataclass(frozen=True)
class Success:
    result: Any
    ok: ClassVar[bool] = True

    def to_wire(self) -> dict[str, Any]:
        return {"status": "ok", "result": self.result}


@dataclass(frozen=True)
class Failure:
    error: ToolError
    ok: ClassVar[bool] = False

    def to_wire(self) -> dict[str, Any]:
        return self.error.to_wire()


CallResult = Union[Success, Failure]
