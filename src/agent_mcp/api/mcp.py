"""MCP transport: the tool set served over SSE with the mcp SDK's low-level server.

``tools/list`` returns the registry's descriptors and ``tools/call`` goes
through the same dispatcher as every other transport. A failed call becomes an
MCP error result whose text is the JSON error envelope.
"""

import json
import logging
from typing import Any, Dict, List

import mcp.types as types
from fastapi import FastAPI, Request
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from starlette.responses import Response

from ..models.tool import ToolDescriptor
from ..services.dispatcher import Dispatcher
from ..services.registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "agent-mcp"


class ToolCallFailed(Exception):
    """Carries a serialized error envelope out of the call handler.

    The SDK turns exceptions raised by a call handler into results with
    ``isError`` set and the exception text as content.
    """


def to_mcp_tool(descriptor: ToolDescriptor) -> types.Tool:
    # outputSchema is left unset: results are returned inside the JSON envelope
    return types.Tool(
        name=descriptor.name,
        description=descriptor.description,
        inputSchema=descriptor.input_schema.to_json_schema(),
    )


def create_mcp_server(registry: ToolRegistry, dispatcher: Dispatcher) -> Server:
    """Build an MCP server exposing every registered tool."""
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [to_mcp_tool(descriptor) for descriptor in registry.list()]

    # Arguments are validated by the dispatcher, which knows the richer schema types
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        result = await dispatcher.dispatch(name, arguments)
        text = json.dumps(result.to_wire(), default=str)
        if not result.ok:
            raise ToolCallFailed(text)
        return [types.TextContent(type="text", text=text)]

    return server


def mount_mcp(app: FastAPI, sse_path: str = "/sse", messages_path: str = "/messages/") -> SseServerTransport:
    """Expose the MCP server stored on ``app.state.mcp_server`` over SSE."""
    sse = SseServerTransport(messages_path)

    async def handle_sse(request: Request) -> Response:
        server = getattr(request.app.state, "mcp_server", None)
        if server is None:
            return Response("MCP server not initialized", status_code=503)

        logger.info(f"MCP client connected from {request.client.host if request.client else 'unknown'}")
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        logger.info("MCP client disconnected")
        return Response()

    app.add_route(sse_path, handle_sse, methods=["GET"])
    app.mount(messages_path, app=sse.handle_post_message)
    return sse
