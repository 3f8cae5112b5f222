"""
Agent MCP Test Suite

Covers the tool core (registry, validation, dispatch, sessions), the concrete
tools against mocked upstreams, and the HTTP, WebSocket and MCP transports.
Upstreams are never contacted: the Ethereum node and HTTP APIs are served
through ``httpx.MockTransport``.
"""
