"""
OpenTelemetry metrics for MCP server operations

Counters and histograms for tool usage, Lightdash API traffic, retries and
errors. Every recorder is a no-op until initialize_metrics() succeeds.
"""

import time
from typing import Any, Dict

from lightdash_mcp.logging import get_logger

logger = get_logger('TELEMETRY_METRICS')

_metrics_enabled = False

# Metric instruments
_tool_invocation_counter = None
_tool_duration_histogram = None
_api_request_counter = None
_api_duration_histogram = None
_retry_counter = None
_error_counter = None


def initialize_metrics() -> bool:
    """Create metric instruments on the configured meter."""
    global _metrics_enabled
    global _tool_invocation_counter, _tool_duration_histogram
    global _api_request_counter, _api_duration_histogram
    global _retry_counter, _error_counter

    from .config import get_meter
    meter = get_meter()

    if not meter:
        logger.debug("metrics not available | meter not initialized")
        return False

    try:
        _tool_invocation_counter = meter.create_counter(
            name="mcp_tool_invocations_total",
            description="Total number of MCP tool invocations",
            unit="1"
        )
        _tool_duration_histogram = meter.create_histogram(
            name="mcp_tool_duration_seconds",
            description="Duration of MCP tool executions",
            unit="s"
        )
        _api_request_counter = meter.create_counter(
            name="lightdash_api_requests_total",
            description="Total number of Lightdash API requests",
            unit="1"
        )
        _api_duration_histogram = meter.create_histogram(
            name="lightdash_api_duration_seconds",
            description="Duration of Lightdash API requests",
            unit="s"
        )
        _retry_counter = meter.create_counter(
            name="lightdash_api_retries_total",
            description="Retried Lightdash API operations",
            unit="1"
        )
        _error_counter = meter.create_counter(
            name="mcp_errors_total",
            description="Total number of errors by type",
            unit="1"
        )

        _metrics_enabled = True
        logger.info("metrics initialization complete")
        return True

    except Exception as e:
        logger.error(f"metrics initialization failed | error:{e}")
        return False


def _attributes(prefix: str, extra: Dict[str, Any]) -> Dict[str, str]:
    return {
        f"{prefix}.{key}": str(value)
        for key, value in extra.items()
        if isinstance(value, (str, int, float, bool))
    }


def record_tool_invocation(tool_name: str, duration: float, success: bool, **attributes):
    """
    Record a tool invocation.

    Args:
        tool_name: Name of the MCP tool
        duration: Execution duration in seconds
        success: Whether the invocation was successful
    """
    if not _metrics_enabled:
        return

    metric_attributes = {
        "tool_name": tool_name,
        "status": "success" if success else "error",
        **_attributes("tool", attributes),
    }
    _tool_invocation_counter.add(1, metric_attributes)
    _tool_duration_histogram.record(duration, metric_attributes)
    logger.debug(f"recorded tool metrics | tool:{tool_name} | duration:{duration:.3f}s | success:{success}")


def record_api_request(endpoint: str, method: str, status_code: int, duration: float, **attributes):
    """Record a Lightdash API request and its latency."""
    if not _metrics_enabled:
        return

    metric_attributes = {
        "endpoint": endpoint,
        "method": method,
        "status_code": str(status_code),
        "status": "success" if 0 < status_code < 400 else "error",
        **_attributes("api", attributes),
    }
    _api_request_counter.add(1, metric_attributes)
    _api_duration_histogram.record(duration, metric_attributes)


def record_retry(attempt: int, delay_ms: float):
    if not _metrics_enabled:
        return
    _retry_counter.add(1, {"attempt": str(attempt), "delay_ms": str(int(delay_ms))})


def record_error(error_type: str, operation: str, **attributes):
    """Record an error occurrence by type and operation."""
    if not _metrics_enabled:
        return

    _error_counter.add(1, {
        "error_type": error_type,
        "operation": operation,
        **_attributes("error", attributes),
    })
    logger.debug(f"recorded error metric | type:{error_type} | operation:{operation}")


class MetricsTimer:
    """Context manager timing a Lightdash API request."""

    def __init__(self, endpoint: str, method: str):
        self.endpoint = endpoint
        self.method = method
        self.status_code = 0
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        record_api_request(self.endpoint, self.method, self.status_code, duration)
        if exc_type is not None:
            record_error(exc_type.__name__, f"{self.method} {self.endpoint}")

    def set_status(self, status_code: int):
        self.status_code = status_code


def get_metrics_status() -> Dict[str, Any]:
    return {
        "enabled": _metrics_enabled,
        "instruments": {
            "tool_invocation_counter": _tool_invocation_counter is not None,
            "api_request_counter": _api_request_counter is not None,
            "retry_counter": _retry_counter is not None,
            "error_counter": _error_counter is not None
        }
    }
