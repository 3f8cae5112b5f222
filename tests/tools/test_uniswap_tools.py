"""Tests for the Uniswap V2 swap tools"""

import time

import pytest

from agent_mcp.services.dispatcher import Dispatcher
from agent_mcp.services.registry import ToolRegistry
from agent_mcp.tools.uniswap_tools import (
    SWAP_DEADLINE_SECONDS,
    WETH_ADDRESS,
    SwapEthForTokens,
    SwapTokensForEth,
    with_slippage,
)
from tests.conftest import ALICE, ONE_ETHER, ROUTER, TOKEN, TX_HASH, FakeNode, mined_receipt

GWEI = 10**9


def words(data: str):
    body = data[10:]
    return [body[i:i + 64] for i in range(0, len(body), 64)]


def padded(address: str) -> str:
    return "0" * 24 + address[2:].lower()


def swap_node(**overrides) -> FakeNode:
    results = dict(
        eth_getBalance=hex(10 * ONE_ETHER),
        eth_gasPrice=hex(20 * GWEI),
        eth_sendTransaction=TX_HASH,
        eth_getTransactionReceipt=mined_receipt(block=100, gas_used=150_000),
    )
    results.update(overrides)
    return FakeNode(**results)


def dispatcher_for(tool) -> Dispatcher:
    registry = ToolRegistry()
    registry.register(tool)
    return Dispatcher(registry)


def test_slippage():
    assert with_slippage(1000) == 900
    assert with_slippage(1) == 0
    assert with_slippage(10**30) == 9 * 10**29


class TestSwapEthForTokens:
    @pytest.mark.asyncio
    async def test_swap(self):
        node = swap_node()
        dispatcher = dispatcher_for(SwapEthForTokens(node.rpc(), poll_interval=0.01))
        before = int(time.time())

        result = await dispatcher.dispatch(
            "uniswap_swap_eth_for_tokens",
            {"router": ROUTER, "amount_in": "0.5", "min_amount_out": "1000", "to_token": TOKEN, "account": ALICE},
        )

        assert result.to_wire() == {
            "status": "ok",
            "result": {"transaction_hash": TX_HASH, "status": "success", "gas_used": 150_000, "block_number": 100},
        }
        [[tx]] = node.params("eth_sendTransaction")
        assert tx["from"] == ALICE
        assert tx["to"] == ROUTER
        assert tx["value"] == hex(ONE_ETHER // 2)
        assert tx["data"].startswith("0x7ff36ab5")

        amount_out_min, path_offset, to, deadline, path_length, hop_in, hop_out = words(tx["data"])
        assert int(amount_out_min, 16) == 900
        assert int(path_offset, 16) == 128
        assert to == padded(ALICE)
        assert before + SWAP_DEADLINE_SECONDS <= int(deadline, 16) <= int(time.time()) + SWAP_DEADLINE_SECONDS
        assert int(path_length, 16) == 2
        assert hop_in == padded(WETH_ADDRESS)
        assert hop_out == padded(TOKEN)

    @pytest.mark.asyncio
    async def test_balance_must_cover_amount_and_gas(self):
        # 1 ETH covers the swap amount but not the 200k gas at 20 gwei on top
        node = swap_node(eth_getBalance=hex(ONE_ETHER))
        dispatcher = dispatcher_for(SwapEthForTokens(node.rpc(), poll_interval=0.01))

        wire = (
            await dispatcher.dispatch(
                "uniswap_swap_eth_for_tokens",
                {"router": ROUTER, "amount_in": "1", "min_amount_out": "1", "to_token": TOKEN, "account": ALICE},
            )
        ).to_wire()

        assert wire["kind"] == "UpstreamFailure"
        assert wire["details"]["outcome"] == "not_executed"
        assert wire["details"]["required"] == str(ONE_ETHER + 200_000 * 20 * GWEI)
        assert "eth_sendTransaction" not in node.methods()

    @pytest.mark.asyncio
    async def test_amount_in_must_be_a_decimal(self):
        node = swap_node()
        dispatcher = dispatcher_for(SwapEthForTokens(node.rpc()))

        wire = (
            await dispatcher.dispatch(
                "uniswap_swap_eth_for_tokens",
                {"router": ROUTER, "amount_in": 0.5, "min_amount_out": "1", "to_token": TOKEN, "account": ALICE},
            )
        ).to_wire()

        assert wire["kind"] == "InvalidInput"
        assert wire["details"]["reason"] == "type_mismatch"
        assert node.requests == []


class TestSwapTokensForEth:
    @pytest.mark.asyncio
    async def test_swap(self):
        node = swap_node()
        dispatcher = dispatcher_for(SwapTokensForEth(node.rpc(), poll_interval=0.01))

        result = await dispatcher.dispatch(
            "uniswap_swap_tokens_for_eth",
            {"router": ROUTER, "amount_in": "5000000", "min_amount_out": "0.1", "from_token": TOKEN, "account": ALICE},
        )

        assert result.ok
        [[tx]] = node.params("eth_sendTransaction")
        assert "value" not in tx
        assert tx["data"].startswith("0x18cbafe5")

        amount_in, amount_out_min, path_offset, to, _deadline, path_length, hop_in, hop_out = words(tx["data"])
        assert int(amount_in, 16) == 5_000_000
        assert int(amount_out_min, 16) == ONE_ETHER // 10 * 9 // 10
        assert int(path_offset, 16) == 160
        assert to == padded(ALICE)
        assert int(path_length, 16) == 2
        assert hop_in == padded(TOKEN)
        assert hop_out == padded(WETH_ADDRESS)
        # No ETH goes in, so no balance pre-check
        assert "eth_getBalance" not in node.methods()

    @pytest.mark.asyncio
    async def test_reverted_swap(self):
        node = swap_node(eth_getTransactionReceipt=mined_receipt(status="0x0"))
        dispatcher = dispatcher_for(SwapTokensForEth(node.rpc(), poll_interval=0.01))

        wire = (
            await dispatcher.dispatch(
                "uniswap_swap_tokens_for_eth",
                {"router": ROUTER, "amount_in": "1", "min_amount_out": "0", "from_token": TOKEN, "account": ALICE},
            )
        ).to_wire()

        assert wire["kind"] == "UpstreamFailure"
        assert wire["details"]["outcome"] == "reverted"

    @pytest.mark.asyncio
    async def test_oversized_min_amount_is_rejected_before_the_node(self):
        node = swap_node()
        dispatcher = dispatcher_for(SwapTokensForEth(node.rpc(), poll_interval=0.01))

        wire = (
            await dispatcher.dispatch(
                "uniswap_swap_tokens_for_eth",
                {
                    "router": ROUTER,
                    "amount_in": "1",
                    "min_amount_out": "1" + "0" * 70,
                    "from_token": TOKEN,
                    "account": ALICE,
                },
            )
        ).to_wire()

        assert wire["kind"] == "InvalidInput"
        assert wire["details"]["reason"] == "constraint_violation"
        assert wire["details"]["path"] == "min_amount_out"
        assert node.requests == []
