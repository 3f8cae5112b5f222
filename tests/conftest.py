"""
Test configuration and shared fixtures for Agent MCP tests.

Provides small in-process tools for exercising the registry, dispatcher and
session layer, and a fake JSON-RPC node served through ``httpx.MockTransport``
so the Ethereum tools run without a real chain.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from agent_mcp.clients.eth_rpc import EthRpcClient
from agent_mcp.config import Settings
from agent_mcp.models.schema import (
    address_field,
    decimal_field,
    integer_field,
    object_schema,
    string_field,
)
from agent_mcp.services.dispatcher import Dispatcher
from agent_mcp.services.error_handler import ErrorHandler, UpstreamFailure
from agent_mcp.services.registry import ToolRegistry
from agent_mcp.tools.base import Tool

ONE_ETHER = 10**18
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
TOKEN = "0x" + "70" * 20
ROUTER = "0x" + "7a" * 20
TX_HASH = "0x" + "ab" * 32


class EchoTool(Tool):
    """Returns its typed arguments, stringified where they are not JSON types."""

    name = "echo"
    description = "Echo the message back"
    input_schema = object_schema(
        {
            "message": string_field("Text to echo"),
            "repeat": integer_field("Repetitions", required=False, default=1, minimum=1, maximum=5),
        }
    )
    output_schema = object_schema({"echo": string_field()})

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        return {"echo": " ".join([args["message"]] * args["repeat"])}


class AmountTool(Tool):
    """Reports the Python types it received."""

    name = "amount"
    description = "Inspect typed amounts"
    input_schema = object_schema(
        {
            "account": address_field(),
            "amount": decimal_field(max_scale=18),
        }
    )
    output_schema = object_schema()

    def __init__(self) -> None:
        self.received: List[Dict[str, Any]] = []

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        self.received.append(args)
        return {"account": args["account"], "amount": str(args["amount"]), "type": type(args["amount"]).__name__}


class SleepTool(Tool):
    """Sleeps for ``seconds`` before answering."""

    name = "sleep"
    description = "Sleep, then answer"
    input_schema = object_schema({"seconds": integer_field(minimum=0)})
    output_schema = object_schema({"slept": integer_field()})
    timeout = 0.2

    def __init__(self) -> None:
        self.cancelled = False

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        try:
            await asyncio.sleep(args["seconds"])
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return {"slept": args["seconds"]}


class SlowWriteTool(Tool):
    """A state-changing tool that finishes after its timeout."""

    name = "slow_write"
    description = "Submit something slowly"
    input_schema = object_schema()
    output_schema = object_schema()
    state_changing = True
    timeout = 0.05

    def __init__(self, duration: float = 0.2) -> None:
        self.duration = duration
        self.finished = asyncio.Event()

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        await asyncio.sleep(self.duration)
        self.finished.set()
        return {"submitted": True}


class FlakyUpstreamTool(Tool):
    """Fails with an upstream error and counts its invocations."""

    name = "flaky"
    description = "Always fails upstream"
    input_schema = object_schema()
    output_schema = object_schema()

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error or UpstreamFailure("upstream said no", upstream="test", status_code=503)

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        self.calls += 1
        raise self.error


@pytest.fixture
def registry():
    """Frozen registry with the in-process test tools"""
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(AmountTool())
    registry.register(SleepTool())
    registry.freeze()
    return registry


@pytest.fixture
def error_handler():
    return ErrorHandler()


@pytest.fixture
def dispatcher(registry, error_handler):
    return Dispatcher(registry, error_handler, default_timeout=1.0)


# Fake Ethereum node


class RpcErrorReply:
    """Makes the fake node answer a method with a JSON-RPC error."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message


class FakeNode:
    """In-memory JSON-RPC endpoint.

    ``results`` maps a method name to its result, to a callable taking the
    params, or to an ``RpcErrorReply``.
    """

    def __init__(self, **results: Any):
        self.results: Dict[str, Any] = results
        self.requests: List[Dict[str, Any]] = []

    def methods(self) -> List[str]:
        return [request["method"] for request in self.requests]

    def params(self, method: str) -> List[Any]:
        return [request["params"] for request in self.requests if request["method"] == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if body["method"] not in self.results:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "method not found"}},
            )
        result = self.results[body["method"]]
        if callable(result):
            result = result(body["params"])
        if isinstance(result, RpcErrorReply):
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": result.code, "message": result.message}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def rpc(self) -> EthRpcClient:
        return EthRpcClient("http://node.test", client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))


def mined_receipt(status: str = "0x1", block: int = 7, gas_used: int = 21000) -> Dict[str, Any]:
    return {
        "transactionHash": TX_HASH,
        "status": status,
        "blockNumber": hex(block),
        "gasUsed": hex(gas_used),
    }


def record_requests(responder: Callable[[httpx.Request], httpx.Response]):
    """Wrap a MockTransport handler, keeping every request it sees."""
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responder(request)

    return handler, seen


@pytest.fixture
def settings():
    """Settings pointing every upstream at a test host"""
    return Settings(
        eth_rpc="http://node.test",
        brave_api_key="brave-test-key",
        brave_base_url="https://brave.test/res/v1",
        zero_x_api_key="zero-x-test-key",
        zero_x_base_url="https://zerox.test",
        default_timeout=5.0,
        receipt_poll_interval=0.01,
    )
