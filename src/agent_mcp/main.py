# FastAPI application entry point
# Defines the app, its lifecycle and the core routes

import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI
from pydantic import BaseModel

from . import __version__
from .api import tools as tools_api
from .api.mcp import create_mcp_server, mount_mcp
from .config import Settings
from .services.config_manager import ConfigManager
from .services.dispatcher import Dispatcher
from .services.error_handler import ErrorHandler
from .services.registry import ToolRegistry
from .tools import build_tools

# Configure logging: console + rotating file under run/server.log
_log_formatter = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
logging.basicConfig(level=os.getenv("LOG_LEVEL", "info").upper(), format=_log_formatter)
logger = logging.getLogger(__name__)
try:
    run_dir = Path(os.getenv("AGENT_MCP_RUN_DIR", "run"))
    run_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(run_dir / 'server.log', maxBytes=2_000_000, backupCount=3)
    file_handler.setFormatter(logging.Formatter(_log_formatter))
    logging.getLogger().addHandler(file_handler)
except OSError as e:
    logger.warning(f"File logging disabled, continuing with console only: {e}")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    message: str
    tools: int = 0


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Create the application.

    Args:
        settings: Settings to use instead of loading them at startup
        http_client: Shared HTTP client for the upstream tools
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle"""
        logger.info("Starting Agent MCP...")
        try:
            app_settings = settings or ConfigManager().load_config()
            logger.info(f"Ethereum RPC: {app_settings.eth_rpc}")

            tool_list, context = build_tools(app_settings, http_client)
            registry = ToolRegistry()
            for tool in tool_list:
                registry.register(tool)
            registry.freeze()

            error_handler = ErrorHandler()
            dispatcher = Dispatcher(
                registry,
                error_handler,
                default_timeout=app_settings.default_timeout,
                timeout_overrides=app_settings.tool_timeouts,
            )

            # Store services in app state
            app.state.settings = app_settings
            app.state.registry = registry
            app.state.error_handler = error_handler
            app.state.dispatcher = dispatcher
            app.state.tool_context = context
            app.state.mcp_server = create_mcp_server(registry, dispatcher)
            logger.info(f"Startup complete with {len(registry)} tools")
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        logger.info("Shutting down Agent MCP...")
        await dispatcher.drain()
        await context.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Agent MCP",
        description="Tool server exposing on-chain, swap and search tools to agents over MCP",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(tools_api.router)
    app.include_router(tools_api.ws_router)
    mount_mcp(app)

    @app.get("/", operation_id="root")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Welcome to Agent MCP", "mcp": "/sse", "tools": "/api/tools"}

    @app.get("/health", response_model=HealthResponse, operation_id="health")
    async def health() -> HealthResponse:
        """Health check endpoint."""
        registry: Optional[ToolRegistry] = getattr(app.state, "registry", None)
        if registry is None:
            return HealthResponse(status="starting", message="Tool registry not initialized")
        return HealthResponse(status="healthy", message="Service is running", tools=len(registry))

    return app


app = create_app()
