"""Tool Registry Service"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.tool import ToolDescriptor
from ..tools.base import Tool
from .error_handler import DuplicateToolName, RegistryFrozen

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredTool:
    """A descriptor together with the implementation it was derived from."""

    descriptor: ToolDescriptor
    implementation: Tool


class ToolRegistry:
    """Holds the set of tools exposed to clients.

    Tools are registered once at startup. ``freeze()`` ends registration;
    after that the registry is only read, so sessions may look tools up
    concurrently without locking.
    """

    def __init__(self) -> None:
        # dicts keep insertion order, which is the discovery order
        self._tools: Dict[str, RegisteredTool] = {}
        self._frozen = False

    def register(self, tool: Tool, descriptor: Optional[ToolDescriptor] = None) -> ToolDescriptor:
        """Register a tool implementation.

        Args:
            tool: Tool implementation
            descriptor: Descriptor to publish, derived from the tool when omitted

        Returns:
            The registered descriptor

        Raises:
            DuplicateToolName: If a tool with the same name is already registered
            RegistryFrozen: If the registry no longer accepts registrations
        """
        descriptor = descriptor or tool.descriptor()
        if self._frozen:
            raise RegistryFrozen(descriptor.name)
        if descriptor.name in self._tools:
            raise DuplicateToolName(descriptor.name)

        self._tools[descriptor.name] = RegisteredTool(descriptor=descriptor, implementation=tool)
        logger.info(
            f"Registered tool: {descriptor.name} "
            f"(state_changing={descriptor.state_changing}, timeout={descriptor.timeout})"
        )
        return descriptor

    def freeze(self) -> None:
        """Stop accepting registrations."""
        self._frozen = True
        logger.info(f"Tool registry frozen with {len(self._tools)} tools: {self.names()}")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> Optional[RegisteredTool]:
        """Get a registered tool by name"""
        return self._tools.get(name)

    def list(self) -> List[ToolDescriptor]:
        """List descriptors in registration order"""
        return [entry.descriptor for entry in self._tools.values()]

    def names(self) -> List[str]:
        """List all registered tool names"""
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
