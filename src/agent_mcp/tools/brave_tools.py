"""Web search through the Brave Search API."""

from typing import Any, Dict

import httpx

from ..clients.http import get_json
from ..models.schema import integer_field, object_schema, string_field
from .base import Tool


class WebSearch(Tool):
    name = "web_search"
    description = "Search the web with Brave Search"
    input_schema = object_schema(
        {
            "query": string_field("The search query", min_length=1, max_length=400),
            "count": integer_field(
                "Number of results to return", required=False, default=10, minimum=1, maximum=20
            ),
        }
    )
    output_schema = object_schema(
        {
            "query": string_field("The query that was searched"),
            "results": object_schema(description="Raw Brave Search response"),
        }
    )
    timeout = 20.0

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def invoke(self, args: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        results = await get_json(
            self.client,
            f"{self.base_url}/web/search",
            upstream="brave",
            params={"q": args["query"], "count": args["count"]},
            headers={
                "Accept": "application/json",
                "Accept-Encoding": "gzip",
                "X-Subscription-Token": self.api_key,
            },
            timeout=self.remaining(deadline),
        )
        return {"query": args["query"], "results": results}
