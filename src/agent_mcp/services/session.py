"""Session layer: per-connection handling of discovery and call messages.

A session accepts two kinds of messages:

    {"type": "list_tools", "id": 1}
    {"type": "call_tool", "id": 2, "name": "eth_get_balance", "arguments": {...}}

Each call is dispatched as its own task as soon as it arrives, so a slow call
never holds up the transport. Responses are written back strictly in the order
the requests arrived. The session keeps no state between calls.
"""

import asyncio
import logging
import uuid
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .dispatcher import Dispatcher
from .error_handler import ConstraintViolation, InvalidInput, UpstreamFailure
from .registry import ToolRegistry
from .validator import ROOT

logger = logging.getLogger(__name__)

MessageId = Union[int, str, None]


class ListToolsMessage(BaseModel):
    type: Literal["list_tools"]
    id: MessageId = None


class CallToolMessage(BaseModel):
    type: Literal["call_tool"]
    id: MessageId = None
    name: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = Field(default=None, gt=0)


SessionMessage = Annotated[Union[ListToolsMessage, CallToolMessage], Field(discriminator="type")]
_message_adapter: TypeAdapter = TypeAdapter(SessionMessage)

Receive = Callable[[], Awaitable[Optional[Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]


class ToolSession:
    """One client connection: Connected -> (ListTools | CallTool)* -> Closed."""

    def __init__(self, registry: ToolRegistry, dispatcher: Dispatcher, session_id: Optional[str] = None):
        self.registry = registry
        self.dispatcher = dispatcher
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.state = "connected"

    def list_tools(self) -> list:
        return [descriptor.to_wire() for descriptor in self.registry.list()]

    async def handle(self, message: Any) -> Dict[str, Any]:
        """Handle one message and return its serialized response.

        Never raises for a bad message or a failed call; both become error
        envelopes so the session stays usable.
        """
        try:
            parsed = _message_adapter.validate_python(message)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or ROOT}: {err['msg']}" for err in e.errors()
            )
            error = InvalidInput(ConstraintViolation(ROOT, f"malformed message ({problems})"))
            logger.info(f"Session {self.session_id} rejected malformed message: {problems}")
            return self._with_id(error.to_wire(), message.get("id") if isinstance(message, dict) else None)

        try:
            if isinstance(parsed, ListToolsMessage):
                response = {"status": "ok", "result": self.list_tools()}
            else:
                result = await self.dispatcher.dispatch(parsed.name, parsed.arguments, parsed.timeout)
                response = result.to_wire()
        except Exception as e:  # noqa: BLE001 - a session must survive internal faults
            logger.exception(f"Session {self.session_id} failed to handle message")
            response = UpstreamFailure(f"Internal error: {e}", upstream="agent-mcp").to_wire()

        return self._with_id(response, parsed.id)

    async def run(self, receive: Receive, send: Send) -> None:
        """Drive the session until ``receive`` returns None.

        Args:
            receive: Returns the next decoded message, or None at end of stream
            send: Writes one response
        """
        logger.info(f"Session {self.session_id} connected")
        pending: asyncio.Queue = asyncio.Queue()

        async def write_responses() -> None:
            while True:
                task = await pending.get()
                if task is None:
                    return
                await send(await task)

        writer = asyncio.create_task(write_responses(), name=f"session:{self.session_id}:writer")
        try:
            while True:
                message = await receive()
                if message is None:
                    break
                pending.put_nowait(asyncio.create_task(self.handle(message)))
            pending.put_nowait(None)
            await writer
        except BaseException:
            writer.cancel()
            while not pending.empty():
                task = pending.get_nowait()
                if task is not None:
                    task.cancel()
            raise
        finally:
            self.state = "closed"
            logger.info(f"Session {self.session_id} closed")

    @staticmethod
    def _with_id(response: Dict[str, Any], message_id: MessageId) -> Dict[str, Any]:
        if message_id is None:
            return response
        return {"id": message_id, **response}
