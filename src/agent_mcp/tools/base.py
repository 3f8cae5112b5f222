"""Tool abstraction.

Every tool is a subclass of ``Tool`` that declares its name, description and
schemas as class attributes and implements ``invoke``. The registry and the
dispatcher only ever talk to tools through this interface.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextvars import ContextVar
from typing import Any, ClassVar, Optional

from ..models.schema import FieldSchema
from ..models.tool import ToolDescriptor

# Details the running call has recorded about itself, set by the dispatcher per call
call_details: ContextVar[Optional[dict[str, Any]]] = ContextVar("call_details", default=None)


class Tool(ABC):
    """A named, schema-typed callable action."""

    name: ClassVar[str]
    description: ClassVar[str]
    input_schema: ClassVar[FieldSchema]
    output_schema: ClassVar[FieldSchema]
    state_changing: ClassVar[bool] = False
    timeout: ClassVar[Optional[float]] = None

    @abstractmethod
    async def invoke(self, args: dict[str, Any], deadline: float) -> dict[str, Any]:
        """Run the tool.

        Args:
            args: Arguments already validated against ``input_schema``.
            deadline: Absolute event-loop time (``loop.time()``) by which the
                dispatcher stops waiting for a result.

        Returns:
            A JSON-serializable result matching ``output_schema``.

        Raises:
            UpstreamFailure: When the upstream system reports an error.
        """
        raise NotImplementedError

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
            output_schema=self.output_schema,
            state_changing=self.state_changing,
            timeout=self.timeout,
        )

    @staticmethod
    def remaining(deadline: float, floor: float = 0.1) -> float:
        """Seconds left until ``deadline``, never below ``floor``."""
        return max(floor, deadline - asyncio.get_running_loop().time())

    @staticmethod
    def annotate(**details: Any) -> None:
        """Record details about the running call, such as a submitted transaction hash.

        They are added to any error the dispatcher reports for the call, a timeout included.
        """
        current = call_details.get()
        if current is not None:
            current.update(details)
