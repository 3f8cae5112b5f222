"""Concrete tools and the clients they share."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx

from ..clients.eth_rpc import EthRpcClient
from ..config import Settings
from .base import Tool
from .brave_tools import WebSearch
from .eth_tools import Erc20GetBalance, EthAccounts, EthGetBalance, EthGetContract, EthSend
from .uniswap_tools import SwapEthForTokens, SwapTokensForEth
from .zero_x_tools import SwapGetPrice

logger = logging.getLogger(__name__)

__all__ = ["Tool", "ToolContext", "build_tools"]


@dataclass
class ToolContext:
    """Upstream clients shared by the tools, closed once at shutdown."""

    http: httpx.AsyncClient
    rpc: EthRpcClient

    async def aclose(self) -> None:
        await self.rpc.aclose()
        await self.http.aclose()


def build_tools(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> Tuple[List[Tool], ToolContext]:
    """Instantiate every tool the settings allow.

    Tools whose API key is missing or that are listed in ``disabled_tools``
    are skipped with a warning; the rest of the set stays available.
    """
    http = http_client or httpx.AsyncClient(timeout=settings.default_timeout)
    context = ToolContext(http=http, rpc=EthRpcClient(settings.eth_rpc, client=http))
    poll = settings.receipt_poll_interval

    tools: List[Tool] = [
        EthGetBalance(context.rpc, poll),
        EthAccounts(context.rpc, poll),
        EthSend(context.rpc, poll),
        EthGetContract(context.rpc, poll),
        Erc20GetBalance(context.rpc, poll),
    ]

    if settings.has_brave_key:
        tools.append(WebSearch(http, settings.brave_api_key, settings.brave_base_url))
    else:
        logger.warning("BRAVE_API_KEY is not set, web_search will not be available")

    if settings.has_zero_x_key:
        tools.append(SwapGetPrice(http, settings.zero_x_api_key, settings.zero_x_base_url))
    else:
        logger.warning("ZERO_X_API_KEY is not set, swap_get_price will not be available")

    tools.extend([SwapEthForTokens(context.rpc, poll), SwapTokensForEth(context.rpc, poll)])

    disabled = set(settings.disabled_tools)
    for name in sorted(disabled):
        logger.info(f"Tool {name} disabled by configuration")
    return [tool for tool in tools if tool.name not in disabled], context
