"""Swap price quotes from the 0x API."""

from typing import Any, Dict

import httpx

from ..clients.http import get_json
from ..models.schema import integer_field, object_schema, string_field, uint_field
from .base import Tool

# 0x uses this placeholder for the chain's native token
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
TOKEN_PATTERN = r"^(0x[0-9a-fA-F]{40}|[eE][tT][hH])$"


def resolve_token(token: str) -> str:
    """Map ``"eth"`` (any case) to the native token placeholder."""
    return NATIVE_TOKEN_ADDRESS if token.lower() == "eth" else token


class SwapGetPrice(Tool):
    name = "swap_get_price"
    description = "Get an indicative swap price from the 0x API"
    input_schema = object_schema(
        {
            "from_token": string_field("Token to sell: an address, or 'eth'", pattern=TOKEN_PATTERN),
            "to_token": string_field("Token to buy: an address, or 'eth'", pattern=TOKEN_PATTERN),
            "amount": uint_field("Amount to sell, in base units of from_token"),
            "chain_id": integer_field("Chain id", required=False, default=1, minimum=1),
        }
    )
    output_schema = object_schema({"price": object_schema(description="Raw 0x price response")})
    timeout = 20.0

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        price = await get_json(
            self.client,
            f"{self.base_url}/swap/permit2/price",
            upstream="0x",
            params={
                "sellToken": resolve_token(args["from_token"]),
                "buyToken": resolve_token(args["to_token"]),
                "sellAmount": str(args["amount"]),
                "chainId": args["chain_id"],
            },
            headers={"0x-api-key": self.api_key, "0x-version": "v2"},
            timeout=self.remaining(deadline),
        )
        return {"price": price}
