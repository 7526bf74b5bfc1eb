# Area: Shared
"""
guess_duel._client_config — Client Configuration
================================================

Default settings, loading (``.env``, JSON file, environment) and
validation for the client.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger("guess_duel")

DEFAULT_CONFIG: Dict[str, Any] = {
    "api_base_url": "http://localhost:8080/api",
    "ws_url": "ws://localhost:8080/ws/websocket",
    "request_timeout": 10.0,
    "reconnect_attempts": 5,
    "reconnect_delay_seconds": 1.0,
    "log_file": "guess_duel.log",
}

# Environment variable -> (config key, converter)
ENV_MAPPINGS = {
    "GUESS_API_BASE_URL": ("api_base_url", str),
    "GUESS_WS_URL": ("ws_url", str),
    "GUESS_REQUEST_TIMEOUT": ("request_timeout", float),
    "GUESS_RECONNECT_ATTEMPTS": ("reconnect_attempts", int),
    "GUESS_RECONNECT_DELAY": ("reconnect_delay_seconds", float),
    "GUESS_LOG_FILE": ("log_file", str),
}

REQUIRED_CONFIG_KEYS = ["api_base_url", "ws_url"]

_NUMERIC_KEYS = {
    "request_timeout": (int, float),
    "reconnect_attempts": (int,),
    "reconnect_delay_seconds": (int, float),
}


def load_config(config_path: Optional[str] = None, dotenv_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the client config.

    Later sources override earlier ones: defaults, JSON file,
    environment (including variables loaded from ``.env``).
    """
    load_dotenv(dotenv_path)
    config: Dict[str, Any] = dict(DEFAULT_CONFIG)

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as f:
                config.update(json.load(f))
        else:
            logger.warning(f"Config file not found: {path}")

    for env_key, (config_key, convert) in ENV_MAPPINGS.items():
        if env_key in os.environ:
            try:
                config[config_key] = convert(os.environ[env_key])
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_key}: {os.environ[env_key]!r}") from e

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    """
    Validate required configuration keys and numeric settings.

    Raises:
        ValueError: If keys are missing or have the wrong type
    """
    missing = [k for k in REQUIRED_CONFIG_KEYS if not config.get(k)]
    if missing:
        raise ValueError(f"Missing required config keys: {missing}")

    for key, types in _NUMERIC_KEYS.items():
        value = config.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, types) or value < 0:
            raise ValueError(f"Config key '{key}' must be a non-negative number, got {value!r}")
