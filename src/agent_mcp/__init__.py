# Agent MCP: a tool server for agentic clients
# The console entry point lives in agent_mcp.cli, the app in agent_mcp.main

__version__ = "0.1.0"
