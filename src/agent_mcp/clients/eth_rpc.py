"""Async Ethereum JSON-RPC client"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..services.error_handler import UpstreamFailure

logger = logging.getLogger(__name__)

UPSTREAM = "eth_rpc"


def to_quantity(value: int) -> str:
    """Encode an integer as a JSON-RPC quantity."""
    return hex(value)


def from_quantity(value: Optional[str]) -> int:
    """Decode a JSON-RPC quantity (``"0x0"`` style hex) into an int."""
    if value is None or value in ("0x", ""):
        return 0
    return int(value, 16)


class EthRpcClient:
    """Minimal JSON-RPC client for an Ethereum node.

    Safe for concurrent use: request ids come from a counter and every call is
    an independent HTTP request on the shared ``httpx.AsyncClient``.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Optional[List[Any]] = None, timeout: Optional[float] = None) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        Raises:
            UpstreamFailure: On transport errors, HTTP errors and JSON-RPC errors.
                JSON-RPC errors carry ``rpc_code``, meaning the node answered and
                rejected the request.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        logger.debug(f"RPC -> {method} {payload['params']}")

        try:
            response = await self._client.post(self.url, json=payload, timeout=timeout)
        except httpx.TimeoutException as e:
            raise UpstreamFailure(f"RPC {method} timed out: {e}", upstream=UPSTREAM, method=method)
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"RPC {method} failed: {e}", upstream=UPSTREAM, method=method)

        if not response.is_success:
            raise UpstreamFailure(
                f"RPC {method} failed with HTTP {response.status_code}",
                upstream=UPSTREAM,
                method=method,
                status_code=response.status_code,
                body=response.text[:500],
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFailure(f"RPC {method} returned invalid JSON: {e}", upstream=UPSTREAM, method=method)

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            raise UpstreamFailure(
                f"RPC {method} error: {error.get('message', error)}",
                upstream=UPSTREAM,
                method=method,
                rpc_code=error.get("code"),
            )
        return body.get("result")

    async def get_balance(self, address: str, block: str = "latest", timeout: Optional[float] = None) -> int:
        return from_quantity(await self.request("eth_getBalance", [address, block], timeout))

    async def get_code(self, address: str, block: str = "latest", timeout: Optional[float] = None) -> str:
        return await self.request("eth_getCode", [address, block], timeout) or "0x"

    async def gas_price(self, timeout: Optional[float] = None) -> int:
        return from_quantity(await self.request("eth_gasPrice", [], timeout))

    async def accounts(self, timeout: Optional[float] = None) -> List[str]:
        return await self.request("eth_accounts", [], timeout) or []

    async def call(self, to: str, data: str, timeout: Optional[float] = None) -> str:
        return await self.request("eth_call", [{"to": to, "data": data}, "latest"], timeout) or "0x"

    async def send_transaction(self, tx: Dict[str, Any], timeout: Optional[float] = None) -> str:
        return await self.request("eth_sendTransaction", [tx], timeout)

    async def get_transaction_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        return await self.request("eth_getTransactionReceipt", [tx_hash], timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
