"""
Logging setup for the Lightdash MCP server.
Uses Python's built-in logging with per-session correlation on every record.
"""

import logging
import sys
import os
from typing import Optional, Dict, Any


LOGGER_NAMESPACE = 'lightdash_mcp'


class ColoredFormatter(logging.Formatter):
    """Formatter with timestamps, session context and colored level names."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors=True):
        super().__init__(
            fmt='%(asctime)s - %(component)s%(session_part)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        # Only colorize when stderr is a terminal
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        record.component = record.name.rsplit('.', 1)[-1]
        session = getattr(record, 'session', '')
        record.session_part = f" {session}" if session else ""

        if not self.use_colors:
            return super().format(record)

        original_levelname = record.levelname
        color = self.COLORS.get(record.levelname, '')
        record.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')


# Log level and colors come from the environment, defaulting to INFO with colors
log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
log_level_value = getattr(logging, log_level, logging.INFO)
use_colors = _env_flag('LOG_COLORS', 'true')


class SessionContextFilter(logging.Filter):
    """Stamp the current MCP session id onto log records."""

    def __init__(self):
        super().__init__()
        self.session_id = None

    def set_context(self, session_id: Optional[str] = None):
        self.session_id = session_id

    def filter(self, record):
        record.session = f"session:{self.session_id[:8]}..." if self.session_id else ""
        return True


session_filter = SessionContextFilter()


def get_logger(name: str) -> logging.Logger:
    """
    Get a component logger under the lightdash_mcp namespace.

    Handlers are attached once per logger; records do not propagate to the
    root logger so third-party logging configuration is left untouched.
    """
    logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
    if session_filter not in logger.filters:
        logger.addFilter(session_filter)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(use_colors=use_colors))
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(log_level_value)
    return logger


def set_session_context(session_id: Optional[str] = None):
    """Set session context for all component loggers."""
    session_filter.set_context(session_id)


def log_extra(**kwargs) -> str:
    """Render keyword context in the `key:value | key:value` log style."""
    return " | ".join(f"{k}:{str(v)[:100]}" for k, v in kwargs.items() if v is not None)


def redact_api_key(headers: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of request headers that is safe to log."""
    redacted = {}
    for key, value in headers.items():
        if key.lower() == 'authorization' and value:
            scheme = str(value).split(' ', 1)[0]
            redacted[key] = f"{scheme} ***"
        else:
            redacted[key] = value
    return redacted


# Component-specific loggers
server_logger = get_logger('SERVER')
query_logger = get_logger('QUERY')
resource_logger = get_logger('RESOURCE')
prompt_logger = get_logger('PROMPT')


def log_tool_call(tool_name: str, session_id: Optional[str] = None, **params):
    """Log a tool execution with its non-empty arguments."""
    set_session_context(session_id)
    extra_str = log_extra(**params)
    query_logger.info(f"executing {tool_name} | {extra_str}" if extra_str else f"executing {tool_name}")
