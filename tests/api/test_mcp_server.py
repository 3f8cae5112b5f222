"""Tests for the MCP request handlers built on top of the dispatcher"""

import json

import mcp.types as types
import pytest

from agent_mcp.api.mcp import SERVER_NAME, create_mcp_server, to_mcp_tool


@pytest.fixture
def server(registry, dispatcher):
    return create_mcp_server(registry, dispatcher)


async def call(server, name, arguments=None):
    request = types.CallToolRequest(
        method="tools/call", params=types.CallToolRequestParams(name=name, arguments=arguments)
    )
    return (await server.request_handlers[types.CallToolRequest](request)).root


def test_server_name(server):
    assert server.name == SERVER_NAME


def test_tool_conversion(registry):
    tool = to_mcp_tool(registry.lookup("echo").descriptor)

    assert tool.name == "echo"
    assert tool.inputSchema["type"] == "object"
    assert tool.inputSchema["required"] == ["message"]
    assert tool.outputSchema is None


@pytest.mark.asyncio
async def test_list_tools(server):
    request = types.ListToolsRequest(method="tools/list")

    result = (await server.request_handlers[types.ListToolsRequest](request)).root

    assert [tool.name for tool in result.tools] == ["echo", "amount", "sleep"]


@pytest.mark.asyncio
async def test_call_tool(server):
    result = await call(server, "echo", {"message": "hi", "repeat": 2})

    assert result.isError is False
    assert json.loads(result.content[0].text) == {"status": "ok", "result": {"echo": "hi hi"}}


@pytest.mark.asyncio
async def test_decimal_strings_are_not_rejected_by_the_sdk(server):
    result = await call(server, "amount", {"account": "0x" + "11" * 20, "amount": "0.000000000000000001"})

    assert result.isError is False
    assert json.loads(result.content[0].text)["result"]["amount"] == "1E-18"


@pytest.mark.asyncio
async def test_failed_call_is_an_error_result(server):
    result = await call(server, "echo", {"repeat": 9})

    assert result.isError is True
    envelope = json.loads(result.content[0].text)
    assert envelope["status"] == "error"
    assert envelope["kind"] == "InvalidInput"


@pytest.mark.asyncio
async def test_unknown_tool(server):
    result = await call(server, "missing", {})

    assert result.isError is True
    assert json.loads(result.content[0].text)["kind"] == "UnknownTool"
