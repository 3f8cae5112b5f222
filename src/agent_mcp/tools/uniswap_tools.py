"""Uniswap V2 router swaps submitted through a node-managed account."""

import time
from typing import Any, Dict

from ..clients.abi import SWAP_EXACT_ETH_FOR_TOKENS, SWAP_EXACT_TOKENS_FOR_ETH, encode_call
from ..clients.eth_rpc import to_quantity
from ..models.schema import address_field, decimal_field, object_schema, uint_field
from ..units import ETHER_DECIMALS, parse_ether
from .eth_tools import RECEIPT_SCHEMA, EthTool, ensure_funds, submit_transaction

WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

# Slippage protection: accept at most 10% below the requested minimum
SLIPPAGE_NUMERATOR = 90
SLIPPAGE_DENOMINATOR = 100

SWAP_DEADLINE_SECONDS = 300
SWAP_GAS_ESTIMATE = 200_000


def with_slippage(min_amount_out: int) -> int:
    return min_amount_out * SLIPPAGE_NUMERATOR // SLIPPAGE_DENOMINATOR


def swap_deadline() -> int:
    """Router deadline, as a unix timestamp."""
    return int(time.time()) + SWAP_DEADLINE_SECONDS


class SwapEthForTokens(EthTool):
    name = "uniswap_swap_eth_for_tokens"
    description = (
        "Swap exact ETH for tokens through a Uniswap V2 router. "
        "min_amount_out is reduced by 10% for slippage."
    )
    input_schema = object_schema(
        {
            "router": address_field("Uniswap V2 router address"),
            "amount_in": decimal_field("Amount of ETH to swap", max_scale=ETHER_DECIMALS),
            "min_amount_out": uint_field("Minimum tokens to receive, in base units"),
            "to_token": address_field("Token to buy"),
            "account": address_field("Node-managed account that pays and receives"),
        }
    )
    output_schema = RECEIPT_SCHEMA
    state_changing = True
    timeout = 180.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        account = args["account"]
        amount_in = parse_ether(args["amount_in"])
        await ensure_funds(self.rpc, account, amount_in, SWAP_GAS_ESTIMATE, deadline)

        data = encode_call(
            SWAP_EXACT_ETH_FOR_TOKENS,
            ["uint256", "address[]", "address", "uint256"],
            [with_slippage(args["min_amount_out"]), [WETH_ADDRESS, args["to_token"]], account, swap_deadline()],
        )
        tx = {"from": account, "to": args["router"], "value": to_quantity(amount_in), "data": data}
        return await submit_transaction(self.rpc, tx, deadline, self.poll_interval)


class SwapTokensForEth(EthTool):
    name = "uniswap_swap_tokens_for_eth"
    description = (
        "Swap exact tokens for ETH through a Uniswap V2 router. The router must already "
        "be approved to spend the tokens. min_amount_out is reduced by 10% for slippage."
    )
    input_schema = object_schema(
        {
            "router": address_field("Uniswap V2 router address"),
            "amount_in": uint_field("Amount of tokens to swap, in base units"),
            "min_amount_out": decimal_field("Minimum ETH to receive", max_scale=ETHER_DECIMALS),
            "from_token": address_field("Token to sell"),
            "account": address_field("Node-managed account that pays and receives"),
        }
    )
    output_schema = RECEIPT_SCHEMA
    state_changing = True
    timeout = 180.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        account = args["account"]
        data = encode_call(
            SWAP_EXACT_TOKENS_FOR_ETH,
            ["uint256", "uint256", "address[]", "address", "uint256"],
            [
                args["amount_in"],
                with_slippage(parse_ether(args["min_amount_out"])),
                [args["from_token"], WETH_ADDRESS],
                account,
                swap_deadline(),
            ],
        )
        tx = {"from": account, "to": args["router"], "data": data}
        return await submit_transaction(self.rpc, tx, deadline, self.poll_interval)
