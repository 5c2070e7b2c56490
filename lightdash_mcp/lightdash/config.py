"""
Lightdash API configuration

Handles environment variables, authentication headers, retry defaults and
the base URL for the Lightdash REST API.
"""

import os
from dataclasses import dataclass
from typing import Dict, Tuple, Optional


DEFAULT_API_URL = "https://app.lightdash.cloud"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SERVER_NAME = "lightdash-mcp-server"
SERVER_VERSION = "0.1.0"
PROTOCOL_VERSION = "2025-06-18"


@dataclass(frozen=True)
class RetryConfig:
    """Retry parameters applied to a single wrapped operation."""
    max_attempts: int = DEFAULT_MAX_RETRIES
    initial_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must not be negative, got {self.initial_delay_ms}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def get_lightdash_config() -> Tuple[str, str, bool]:
    """
    Get Lightdash API configuration from environment variables.

    Returns:
        Tuple of (api_url, api_key, is_configured)
        is_configured is False when the API key is missing
    """
    api_url = os.getenv("LIGHTDASH_API_URL", "") or DEFAULT_API_URL
    api_key = os.getenv("LIGHTDASH_API_KEY", "")
    return api_url.rstrip("/"), api_key, bool(api_key)


def validate_lightdash_config() -> Optional[str]:
    """
    Validate Lightdash API configuration.

    Returns:
        Error message if configuration is invalid, None if valid
    """
    _, _, is_configured = get_lightdash_config()
    if not is_configured:
        return "Error: Lightdash API credentials not configured. Please set LIGHTDASH_API_KEY environment variable."
    return None


def get_retry_config() -> RetryConfig:
    """Default retry parameters from MAX_RETRIES and RETRY_DELAY."""
    return RetryConfig(
        max_attempts=_int_env("MAX_RETRIES", DEFAULT_MAX_RETRIES),
        initial_delay_ms=_int_env("RETRY_DELAY", DEFAULT_RETRY_DELAY_MS),
    )


def get_request_timeout() -> float:
    return _float_env("LIGHTDASH_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)


def get_server_identity() -> Tuple[str, str]:
    """Server (name, version) as advertised to MCP clients."""
    return (
        os.getenv("MCP_SERVER_NAME", "") or DEFAULT_SERVER_NAME,
        os.getenv("MCP_SERVER_VERSION", "") or SERVER_VERSION,
    )


def get_lightdash_headers(api_key: str, additional_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Build request headers for the Lightdash API.

    Args:
        api_key: Personal access token
        additional_headers: Headers merged over the defaults
    """
    headers = {
        "Authorization": f"ApiKey {api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if additional_headers:
        headers.update(additional_headers)
    return headers
