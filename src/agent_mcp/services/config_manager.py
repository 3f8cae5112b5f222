"""Configuration manager loading the optional YAML/JSON overlay for Agent MCP."""

import json
import logging
import os
import re
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ..config import Settings

logger = logging.getLogger(__name__)

_UNRESOLVED_RE = re.compile(r"\$\{[A-Za-z_][A-Za-z0-9_]*\}")

# Keys accepted in the file, in either camelCase or snake_case
_FILE_KEYS = {
    "host": "host",
    "port": "port",
    "logLevel": "log_level",
    "ethRpc": "eth_rpc",
    "braveApiKey": "brave_api_key",
    "braveBaseUrl": "brave_base_url",
    "zeroXApiKey": "zero_x_api_key",
    "zeroXBaseUrl": "zero_x_base_url",
    "defaultTimeout": "default_timeout",
    "toolTimeouts": "tool_timeouts",
    "disabledTools": "disabled_tools",
    "receiptPollInterval": "receipt_poll_interval",
}


class ConfigManager:
    """Loads settings from the environment, overlaid by a configuration file.

    The file is optional. ``${VAR}`` references inside it are substituted from
    the environment before parsing, so secrets can stay out of the file.
    """

    def __init__(self, config_path: Optional[str] = None, base_settings: Optional[Settings] = None):
        self._base_settings = base_settings
        path = config_path or os.getenv("CONFIG_PATH") or (base_settings.config_path if base_settings else None)
        self.config_path = Path(path or "config/agent_mcp.yaml")

    def load_config(self) -> Settings:
        """Build the effective settings.

        Raises:
            ValueError: If the configuration file exists but is malformed or invalid
        """
        base = self._base_settings or Settings()
        overrides = self._read_file()
        if not overrides:
            return base

        try:
            merged = {**base.model_dump(exclude_unset=True), **overrides, "config_path": str(self.config_path)}
            settings = Settings.model_validate(merged)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ValueError(f"Invalid configuration: {e}")

        logger.info(f"Configuration loaded successfully from {self.config_path}")
        return settings

    def _read_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            logger.info(f"Configuration file {self.config_path} not found, using environment settings")
            return {}

        raw_content = self.config_path.read_text(encoding="utf-8")
        substituted_content = self._substitute_env_vars(raw_content)

        try:
            if self.config_path.suffix.lower() in (".yaml", ".yml"):
                config_data = yaml.safe_load(substituted_content)
            else:
                config_data = json.loads(substituted_content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"Configuration parsing failed: {e}")
            raise ValueError(f"Invalid configuration format: {e}")

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ValueError(f"Invalid configuration format: expected a mapping in {self.config_path}")

        section = config_data.get("agentMcp", config_data) or {}
        overrides: Dict[str, Any] = {}
        for key, value in section.items():
            field = _FILE_KEYS.get(key, key)
            if field not in Settings.model_fields:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            if isinstance(value, str) and _UNRESOLVED_RE.search(value):
                logger.warning(f"Ignoring configuration key {key}: {value} is not set in the environment")
                continue
            overrides[field] = value

        logger.debug(f"Configuration overrides from file: {sorted(overrides)}")
        return overrides

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute environment variables in configuration content."""
        return Template(content).safe_substitute(dict(os.environ))
