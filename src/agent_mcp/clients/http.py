"""Shared helpers for HTTP API upstreams."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..services.error_handler import UpstreamFailure

logger = logging.getLogger(__name__)

BODY_EXCERPT = 500


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    upstream: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Exactly one request is sent. Transport errors, non-2xx statuses (rate
    limiting included) and undecodable bodies raise ``UpstreamFailure``.
    """
    try:
        response = await client.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        raise UpstreamFailure(f"{upstream} request timed out: {e}", upstream=upstream)
    except httpx.HTTPError as e:
        raise UpstreamFailure(f"{upstream} request failed: {e}", upstream=upstream)

    if not response.is_success:
        body = response.text[:BODY_EXCERPT]
        logger.debug(f"{upstream} returned {response.status_code}: {body}")
        message = f"{upstream} API error: {response.status_code} {response.reason_phrase}"
        if response.status_code == 429:
            message += " (rate limited)"
        raise UpstreamFailure(
            message,
            upstream=upstream,
            status_code=response.status_code,
            body=body,
            retry_after=response.headers.get("retry-after"),
        )

    try:
        return response.json()
    except ValueError as e:
        raise UpstreamFailure(f"{upstream} returned invalid JSON: {e}", upstream=upstream)
