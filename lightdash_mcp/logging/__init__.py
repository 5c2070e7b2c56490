"""
Logging utilities for the Lightdash MCP server.
"""

from .mcp_logger import (
    get_logger,
    set_session_context,
    log_tool_call,
    log_extra,
    redact_api_key,
    server_logger,
    query_logger,
    resource_logger,
    prompt_logger
)

__all__ = [
    'get_logger',
    'set_session_context',
    'log_tool_call',
    'log_extra',
    'redact_api_key',
    'server_logger',
    'query_logger',
    'resource_logger',
    'prompt_logger'
]
