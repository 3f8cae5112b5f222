"""Tool API endpoints: discovery, single calls and WebSocket sessions"""

import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from ..services.dispatcher import Dispatcher
from ..services.error_handler import ErrorHandler
from ..services.registry import ToolRegistry
from ..services.session import ToolSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools", tags=["tools"])
ws_router = APIRouter(tags=["session"])


def _service(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=500, detail=f"{name} not initialized")
    return service


async def get_registry(request: Request) -> ToolRegistry:
    """Get the tool registry from app state

    Raises:
        HTTPException: If the registry is not initialized
    """
    return _service(request, "registry")


async def get_dispatcher(request: Request) -> Dispatcher:
    return _service(request, "dispatcher")


async def get_error_handler(request: Request) -> ErrorHandler:
    return _service(request, "error_handler")


@router.get("", operation_id="list_tools")
async def list_tools(registry: ToolRegistry = Depends(get_registry)) -> List[Dict[str, Any]]:  # noqa: B008
    """List every registered tool with its schemas, in registration order."""
    return [descriptor.to_wire(detailed=True) for descriptor in registry.list()]


@router.get("/errors", operation_id="get_error_summary")
async def get_error_summary(
    error_handler: ErrorHandler = Depends(get_error_handler),  # noqa: B008
) -> Dict[str, Any]:
    """Failure counts per tool and kind."""
    return error_handler.get_error_summary()


@router.get("/{tool_name}", operation_id="get_tool")
async def get_tool(tool_name: str, registry: ToolRegistry = Depends(get_registry)) -> Dict[str, Any]:  # noqa: B008
    entry = registry.lookup(tool_name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Tool '{tool_name}' not found")
    return entry.descriptor.to_wire(detailed=True)


@router.post("/call", operation_id="call_tool")
async def call_tool(
    message: Dict[str, Any] = Body(...),  # noqa: B008
    registry: ToolRegistry = Depends(get_registry),  # noqa: B008
    dispatcher: Dispatcher = Depends(get_dispatcher),  # noqa: B008
) -> Dict[str, Any]:
    """Call one tool.

    The body is a call message without its ``type``:
    ``{"name": "eth_get_balance", "arguments": {...}, "timeout": 10}``.
    Tool failures are returned as error envelopes with HTTP 200.
    """
    session = ToolSession(registry, dispatcher)
    return await session.handle({**message, "type": "call_tool"})


@ws_router.websocket("/ws")
async def tool_session(websocket: WebSocket) -> None:
    """Run a tool session over JSON text frames."""
    registry = getattr(websocket.app.state, "registry", None)
    dispatcher = getattr(websocket.app.state, "dispatcher", None)
    if registry is None or dispatcher is None:
        await websocket.close(code=1011)
        return

    await websocket.accept()
    session = ToolSession(registry, dispatcher)

    async def receive() -> Any:
        frame = await websocket.receive()
        if frame["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
        text = frame.get("text")
        if text is None:
            # Binary frames are not part of the protocol; the session rejects them
            return frame.get("bytes") or b""
        try:
            message = json.loads(text)
        except json.JSONDecodeError:
            # Rejected as malformed by the session
            return text
        return text if message is None else message

    async def send(response: Dict[str, Any]) -> None:
        await websocket.send_json(response)

    try:
        await session.run(receive, send)
    except WebSocketDisconnect:
        logger.info(f"Session {session.session_id} disconnected")
