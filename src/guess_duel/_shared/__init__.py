# Area: Shared
"""
Shared utilities used by the session façade and the CLI.

This package contains:
- Session Service HTTP client
- Logging configuration
"""

from .logging_config import setup_logging, log_service_error
from .service_client import SessionServiceClient, DEFAULT_MESSAGES

__all__ = [
    "setup_logging",
    "log_service_error",
    "SessionServiceClient",
    "DEFAULT_MESSAGES",
]
