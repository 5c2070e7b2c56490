"""
OpenTelemetry decorators for instrumenting MCP server operations

Tracing for MCP tool handlers and Lightdash API calls.
"""

import functools
import inspect
import time
from typing import Callable, Optional

from opentelemetry import trace

from lightdash_mcp.logging import get_logger
from .config import get_tracer
from .metrics import record_tool_invocation

logger = get_logger('TELEMETRY_DECORATORS')

# Parameter names never recorded verbatim on spans
SENSITIVE_PARAMS = {
    'token', 'password', 'secret', 'key', 'auth', 'authorization',
    'access_token', 'api_key'
}


def trace_mcp_tool(tool_name: Optional[str] = None,
                   record_args: bool = True,
                   record_result: bool = False):
    """
    Decorator to trace MCP tool execution.

    Args:
        tool_name: Span name (defaults to mcp_tool.<function name>)
        record_args: Whether to record function arguments as span attributes
        record_result: Whether to record the result as a span attribute
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            success = True
            try:
                tracer = get_tracer()
                if not tracer:
                    return await func(*args, **kwargs)

                with tracer.start_as_current_span(tool_name or f"mcp_tool.{func.__name__}") as span:
                    span.set_attribute("mcp.tool.name", func.__name__)
                    span.set_attribute("mcp.operation.type", "tool_execution")
                    if record_args:
                        _record_function_args(span, func, args, kwargs)

                    try:
                        result = await func(*args, **kwargs)
                    except Exception as e:
                        span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                        span.record_exception(e)
                        span.set_attribute("mcp.tool.error_type", type(e).__name__)
                        span.set_attribute("mcp.tool.error_message", str(e)[:1000])
                        raise

                    if record_result and result is not None:
                        result_str = str(result)
                        if len(result_str) <= 1000:
                            span.set_attribute("mcp.tool.result", result_str)
                        else:
                            span.set_attribute("mcp.tool.result_size", len(result_str))

                    span.set_status(trace.Status(trace.StatusCode.OK))
                    return result

            except Exception:
                success = False
                raise
            finally:
                record_tool_invocation(func.__name__, time.time() - start_time, success)

        return wrapper
    return decorator


def trace_lightdash_api_call(operation: Optional[str] = None):
    """
    Decorator to trace Lightdash API calls.

    Args:
        operation: Description of the API operation
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            tracer = get_tracer()
            if not tracer:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(f"lightdash_api.{operation or func.__name__}") as span:
                span.set_attribute("lightdash.operation.type", "api_call")
                if operation:
                    span.set_attribute("lightdash.operation.name", operation)

                bound = _bind(func, args, kwargs)
                for name in ('method', 'endpoint'):
                    if bound.get(name):
                        span.set_attribute(f"lightdash.api.{name}", str(bound[name]))

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    span.set_attribute("lightdash.api.error_type", type(e).__name__)
                    status_code = getattr(e, 'status_code', None)
                    if status_code:
                        span.set_attribute("lightdash.api.status_code", status_code)
                    raise

                if isinstance(result, dict) and 'status' in result:
                    span.set_attribute("lightdash.api.response_status", str(result['status']))
                span.set_status(trace.Status(trace.StatusCode.OK))
                return result

        return wrapper
    return decorator


def _bind(func: Callable, args: tuple, kwargs: dict) -> dict:
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    return dict(bound.arguments)


def _record_function_args(span, func: Callable, args: tuple, kwargs: dict):
    """Record function arguments as span attributes, redacting secrets."""
    for param_name, value in _bind(func, args, kwargs).items():
        if param_name.lower() in SENSITIVE_PARAMS:
            span.set_attribute(f"mcp.args.{param_name}", "[REDACTED]")
        elif param_name == 'ctx':
            session_id = getattr(value, 'session_id', None)
            if session_id:
                span.set_attribute("mcp.session.id", str(session_id))
        elif value is not None:
            value_str = str(value)
            if len(value_str) <= 200:
                span.set_attribute(f"mcp.args.{param_name}", value_str)
            else:
                span.set_attribute(f"mcp.args.{param_name}_size", len(value_str))
