"""
OpenTelemetry instrumentation package for the Lightdash MCP server

Centralized configuration and initialization for tracing and metrics.
"""

from .config import (
    initialize_telemetry,
    get_tracer,
    get_meter,
    shutdown_telemetry,
    is_telemetry_enabled,
    get_telemetry_status
)

from .decorators import (
    trace_mcp_tool,
    trace_lightdash_api_call
)

from .metrics import (
    initialize_metrics,
    record_tool_invocation,
    record_api_request,
    record_retry,
    record_error,
    MetricsTimer,
    get_metrics_status
)

__all__ = [
    # Core configuration
    'initialize_telemetry',
    'get_tracer',
    'get_meter',
    'shutdown_telemetry',
    'is_telemetry_enabled',
    'get_telemetry_status',

    # Decorators
    'trace_mcp_tool',
    'trace_lightdash_api_call',

    # Metrics
    'initialize_metrics',
    'record_tool_invocation',
    'record_api_request',
    'record_retry',
    'record_error',
    'MetricsTimer',
    'get_metrics_status'
]
