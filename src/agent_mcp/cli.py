# Command line entry point
# Loads the settings, picks a port and serves the app with uvicorn

import logging
import socket

from .config import Settings
from .services.config_manager import ConfigManager

logger = logging.getLogger(__name__)


def _connect_host(host: str) -> str:
    return "127.0.0.1" if host in ("0.0.0.0", "::", "") else host


def _is_port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.5)
        return s.connect_ex((_connect_host(host), port)) == 0


def _find_available_port(host: str, start_port: int, tries: int = 10) -> int | None:
    for port in range(start_port, start_port + max(1, tries)):
        if not _is_port_in_use(host, port):
            return port
    return None


def _port_is_explicit(settings: Settings) -> bool:
    """True when the port came from the environment, ``.env`` or the config file."""
    return "port" in settings.model_fields_set


def main() -> None:
    """CLI entry point for the application (with dynamic port fallback)."""
    import uvicorn

    try:
        settings = ConfigManager().load_config()
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")

    host = settings.host
    port = settings.port
    if _port_is_explicit(settings):
        # Respect an explicit port (no auto-fallback)
        if _is_port_in_use(host, port):
            raise SystemExit(f"Port {port} is already in use and was explicitly set. Aborting.")
    elif _is_port_in_use(host, port):
        fallback = _find_available_port(host, port + 1, tries=10)
        if fallback is None:
            raise SystemExit(f"No available port found near {port}. Aborting.")
        logger.warning(f"Port {port} is busy, using {fallback} instead")
        port = fallback

    log_level = settings.log_level.lower()
    logger.info(f"Starting Agent MCP on {host}:{port} (log level {log_level})")
    uvicorn.run("agent_mcp.main:app", host=host, port=port, log_level=log_level, reload=False, access_log=True)


if __name__ == "__main__":
    main()
