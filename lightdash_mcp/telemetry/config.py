"""
OpenTelemetry configuration and initialization for the Lightdash MCP server

Sets up tracing and metrics export over OTLP gRPC and instruments the httpx
client used for every Lightdash API call.
"""

import os
from typing import Optional

from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from lightdash_mcp.logging import get_logger

logger = get_logger('TELEMETRY')

# Global telemetry state
_telemetry_initialized = False
_tracer: Optional[trace.Tracer] = None
_meter: Optional[metrics.Meter] = None


def is_telemetry_enabled() -> bool:
    """Check if telemetry is enabled via environment variables."""
    return os.getenv('OTEL_TELEMETRY_ENABLED', 'false').lower() in ('true', '1', 'yes', 'on')


def get_service_name() -> str:
    return os.getenv('OTEL_SERVICE_NAME', 'lightdash-mcp-server')


def get_otel_endpoint() -> str:
    return os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT', 'http://localhost:4317')


def get_deployment_environment() -> str:
    return os.getenv('DEPLOYMENT_ENVIRONMENT', 'development')


def initialize_telemetry(service_version: str = "0.0.0") -> bool:
    """
    Initialize OpenTelemetry tracing and metrics.

    Args:
        service_version: Version reported in the service resource

    Returns:
        True if telemetry is active after the call, False otherwise
    """
    global _telemetry_initialized, _tracer, _meter

    if _telemetry_initialized:
        logger.debug("telemetry already initialized")
        return True

    if not is_telemetry_enabled():
        logger.info("telemetry disabled via configuration")
        return False

    try:
        resource = Resource.create({
            "service.name": get_service_name(),
            "service.version": service_version,
            "deployment.environment": get_deployment_environment(),
            "service.namespace": "lightdash-mcp",
        })

        otlp_endpoint = get_otel_endpoint()
        logger.info(f"initializing telemetry | endpoint:{otlp_endpoint} | service:{get_service_name()}")

        trace_provider = TracerProvider(resource=resource)
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        trace.set_tracer_provider(trace_provider)

        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
            export_interval_millis=10000
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

        # Every outbound Lightdash call goes through httpx
        HTTPXClientInstrumentor().instrument()

        _tracer = trace.get_tracer("lightdash_mcp")
        _meter = metrics.get_meter("lightdash_mcp")

        _telemetry_initialized = True
        logger.info("telemetry initialization complete")
        return True

    except Exception as e:
        logger.error(f"telemetry initialization failed | error:{e}")
        return False


def get_tracer() -> Optional[trace.Tracer]:
    """Get the tracer, or None when telemetry is not initialized."""
    return _tracer if _telemetry_initialized else None


def get_meter() -> Optional[metrics.Meter]:
    """Get the meter, or None when telemetry is not initialized."""
    return _meter if _telemetry_initialized else None


def shutdown_telemetry():
    """Flush pending spans and metrics and shut the providers down."""
    global _telemetry_initialized

    if not _telemetry_initialized:
        return

    try:
        trace_provider = trace.get_tracer_provider()
        if hasattr(trace_provider, 'shutdown'):
            trace_provider.shutdown()

        meter_provider = metrics.get_meter_provider()
        if hasattr(meter_provider, 'shutdown'):
            meter_provider.shutdown()

        HTTPXClientInstrumentor().uninstrument()
        logger.info("telemetry shutdown complete")

    except Exception as e:
        logger.error(f"telemetry shutdown error | error:{e}")

    finally:
        _telemetry_initialized = False


def get_telemetry_status() -> dict:
    """Current telemetry configuration, reported by the health endpoint."""
    return {
        "enabled": is_telemetry_enabled(),
        "initialized": _telemetry_initialized,
        "service_name": get_service_name(),
        "endpoint": get_otel_endpoint(),
        "environment": get_deployment_environment(),
    }
