"""Ethereum tools backed by a JSON-RPC node."""

import asyncio
import logging
from typing import Any, Dict

from ..clients.abi import ERC20_BALANCE_OF, ERC20_DECIMALS, ERC20_SYMBOL, decode_string, decode_uint, encode_call
from ..clients.eth_rpc import UPSTREAM, EthRpcClient, from_quantity, to_quantity
from ..models.schema import (
    address_field,
    array_field,
    boolean_field,
    decimal_field,
    integer_field,
    object_schema,
    string_field,
)
from ..services.error_handler import (
    OUTCOME_NOT_EXECUTED,
    OUTCOME_REVERTED,
    OUTCOME_UNKNOWN,
    ToolError,
    UpstreamFailure,
)
from ..units import ETHER_DECIMALS, format_ether, format_units, parse_ether
from .base import Tool

logger = logging.getLogger(__name__)

TRANSFER_GAS = 21_000

# How long a submitted transaction is still watched after the call deadline,
# so the outcome of a timed-out call ends up in the log
RECEIPT_GRACE_SECONDS = 60.0

RECEIPT_SCHEMA = object_schema(
    {
        "transaction_hash": string_field("Hash of the submitted transaction"),
        "status": string_field("Execution status", enum=("success",)),
        "gas_used": integer_field("Gas consumed by the transaction"),
        "block_number": integer_field("Block the transaction was mined in"),
    }
)


class EthTool(Tool):
    """Base for tools that talk to the configured Ethereum node."""

    def __init__(self, rpc: EthRpcClient, poll_interval: float = 1.0):
        self.rpc = rpc
        self.poll_interval = poll_interval


async def ensure_funds(rpc: EthRpcClient, account: str, value: int, gas_limit: int, deadline: float) -> None:
    """Fail before submission when ``account`` cannot cover value plus gas."""
    balance, gas_price = await asyncio.gather(
        rpc.get_balance(account, timeout=Tool.remaining(deadline)),
        rpc.gas_price(timeout=Tool.remaining(deadline)),
    )
    required = value + gas_limit * gas_price
    if balance < required:
        raise UpstreamFailure(
            f"Insufficient balance: {format_ether(balance)} ETH available, "
            f"{format_ether(required)} ETH required including gas",
            upstream=UPSTREAM,
            outcome=OUTCOME_NOT_EXECUTED,
            balance=str(balance),
            required=str(required),
        )


async def submit_transaction(
    rpc: EthRpcClient, tx: Dict[str, Any], deadline: float, poll_interval: float
) -> Dict[str, Any]:
    """Submit ``tx`` through the node's account and wait for its receipt.

    A node that rejects the submission outright means nothing was sent, so the
    failure is marked not executed. Every failure after that carries the
    transaction hash, so the client can look the transaction up.
    """
    try:
        tx_hash = await rpc.send_transaction(tx, timeout=Tool.remaining(deadline))
    except UpstreamFailure as e:
        if "rpc_code" in e.details:
            e.set_outcome(OUTCOME_NOT_EXECUTED)
        raise
    logger.info(f"Submitted transaction {tx_hash} from {tx['from']}")
    # Reported by the dispatcher even if the call times out while polling
    Tool.annotate(transaction_hash=tx_hash)

    try:
        receipt = await wait_for_receipt(rpc, tx_hash, deadline + RECEIPT_GRACE_SECONDS, poll_interval)
        return summarize_receipt(tx_hash, receipt)
    except ToolError as e:
        e.details.setdefault("transaction_hash", tx_hash)
        raise


async def wait_for_receipt(
    rpc: EthRpcClient, tx_hash: str, deadline: float, poll_interval: float
) -> Dict[str, Any]:
    """Poll for a receipt until the transaction is mined or ``deadline`` passes.

    Failed polls are retried; the transaction is already sent, so a node
    hiccup says nothing about its outcome.
    """
    loop = asyncio.get_running_loop()
    last_error = None
    while True:
        try:
            receipt = await rpc.get_transaction_receipt(tx_hash, timeout=Tool.remaining(deadline))
        except UpstreamFailure as e:
            logger.warning(f"Receipt poll for {tx_hash} failed, retrying: {e.message}")
            last_error = e
        else:
            if receipt is not None:
                return receipt
        left = deadline - loop.time()
        if left <= 0:
            raise UpstreamFailure(
                f"Transaction {tx_hash} was not mined before the deadline",
                upstream=UPSTREAM,
                outcome=OUTCOME_UNKNOWN,
                transaction_hash=tx_hash,
                last_error=last_error.message if last_error is not None else None,
            )
        await asyncio.sleep(min(poll_interval, left))


def summarize_receipt(tx_hash: str, receipt: Dict[str, Any]) -> Dict[str, Any]:
    block_number = from_quantity(receipt.get("blockNumber"))
    gas_used = from_quantity(receipt.get("gasUsed"))
    if from_quantity(receipt.get("status")) != 1:
        raise UpstreamFailure(
            f"Transaction {tx_hash} reverted",
            upstream=UPSTREAM,
            outcome=OUTCOME_REVERTED,
            transaction_hash=tx_hash,
            block_number=block_number,
            gas_used=gas_used,
        )
    return {
        "transaction_hash": tx_hash,
        "status": "success",
        "gas_used": gas_used,
        "block_number": block_number,
    }


class EthGetBalance(EthTool):
    name = "eth_get_balance"
    description = "Get the ETH balance of an account"
    input_schema = object_schema({"address": address_field("The address to check the balance for")})
    output_schema = object_schema(
        {
            "balance": string_field("Balance in ETH"),
            "unit": string_field("Currency unit", enum=("ETH",)),
        }
    )
    timeout = 15.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        wei = await self.rpc.get_balance(args["address"], timeout=self.remaining(deadline))
        return {"balance": format_ether(wei), "unit": "ETH"}


class EthAccounts(EthTool):
    name = "eth_accounts"
    description = "List the accounts managed by the connected node"
    input_schema = object_schema()
    output_schema = object_schema({"accounts": array_field(address_field(), "Account addresses")})
    timeout = 15.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        return {"accounts": await self.rpc.accounts(timeout=self.remaining(deadline))}


class EthSend(EthTool):
    name = "eth_send"
    description = (
        "Send ETH from a node-managed account to another address and wait for the receipt. "
        "On timeout the transfer may still be mined; check balances before retrying."
    )
    input_schema = object_schema(
        {
            "sender": address_field("Sending account (must be managed by the node)"),
            "receiver": address_field("Receiving address"),
            "amount": decimal_field("Amount of ETH to send", max_scale=ETHER_DECIMALS),
        }
    )
    output_schema = RECEIPT_SCHEMA
    state_changing = True
    timeout = 120.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        value = parse_ether(args["amount"])
        await ensure_funds(self.rpc, args["sender"], value, TRANSFER_GAS, deadline)
        tx = {"from": args["sender"], "to": args["receiver"], "value": to_quantity(value)}
        return await submit_transaction(self.rpc, tx, deadline, self.poll_interval)


class EthGetContract(EthTool):
    name = "eth_get_contract"
    description = "Check whether contract bytecode is deployed at an address"
    input_schema = object_schema({"address": address_field("The contract address")})
    output_schema = object_schema(
        {
            "address": address_field(),
            "deployed": boolean_field("True if the address holds bytecode"),
            "bytecode_size": integer_field("Bytecode size in bytes"),
        }
    )
    timeout = 15.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        code = await self.rpc.get_code(args["address"], timeout=self.remaining(deadline))
        size = max(0, (len(code) - 2) // 2) if code.startswith("0x") else len(code) // 2
        return {"address": args["address"], "deployed": size > 0, "bytecode_size": size}


class Erc20GetBalance(EthTool):
    name = "erc20_get_balance"
    description = "Get the ERC-20 token balance of an account"
    input_schema = object_schema(
        {
            "token": address_field("The token contract address"),
            "account": address_field("The account to check"),
        }
    )
    output_schema = object_schema(
        {
            "balance": string_field("Balance in whole tokens"),
            "raw_balance": string_field("Balance in base units"),
            "decimals": integer_field("Token decimals"),
            "symbol": string_field("Token symbol", required=False),
        }
    )
    timeout = 15.0

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        token = args["token"]
        timeout = self.remaining(deadline)
        raw_balance, raw_decimals = await asyncio.gather(
            self.rpc.call(token, encode_call(ERC20_BALANCE_OF, ["address"], [args["account"]]), timeout),
            self.rpc.call(token, encode_call(ERC20_DECIMALS), timeout),
        )
        try:
            balance = decode_uint(raw_balance)
            decimals = decode_uint(raw_decimals)
        except ValueError as e:
            raise UpstreamFailure(f"{token} does not look like an ERC-20 token: {e}", upstream=UPSTREAM)
        if decimals > 255:
            raise UpstreamFailure(f"{token} reports invalid decimals: {decimals}", upstream=UPSTREAM)

        result = {
            "balance": format_units(balance, decimals),
            "raw_balance": str(balance),
            "decimals": decimals,
        }
        symbol = await self._symbol(token, deadline)
        if symbol:
            result["symbol"] = symbol
        return result

    async def _symbol(self, token: str, deadline: float) -> str | None:
        # symbol() is optional in ERC-20
        try:
            return decode_string(await self.rpc.call(token, encode_call(ERC20_SYMBOL), self.remaining(deadline)))
        except (UpstreamFailure, ValueError) as e:
            logger.debug(f"Token {token} has no readable symbol: {e}")
            return None
