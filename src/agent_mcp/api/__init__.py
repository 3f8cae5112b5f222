# API package
# HTTP, WebSocket and MCP transports
