"""
Server health reporting

Tracks tool errors in a fixed window and checks Lightdash connectivity for
the /health endpoint.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from lightdash_mcp.logging import get_logger

from .cache import ResultCache
from .client import LightdashAPIError, LightdashClient
from .config import PROTOCOL_VERSION, get_server_identity

logger = get_logger('HEALTH')

ERROR_RATE_WINDOW_MS = 60 * 1000
MAX_ERROR_RATE = 10


def _now_ms() -> float:
    return time.monotonic() * 1000.0


class ErrorRateTracker:
    """
    Error counter that resets once its window has elapsed.

    The rate is high when more than ``max_errors`` errors were recorded in the
    current window.
    """

    def __init__(
        self,
        window_ms: float = ERROR_RATE_WINDOW_MS,
        max_errors: int = MAX_ERROR_RATE,
        clock: Callable[[], float] = _now_ms
    ):
        self.window_ms = window_ms
        self.max_errors = max_errors
        self._clock = clock
        self._count = 0
        self._window_start = clock()

    def _roll_window(self):
        now = self._clock()
        if now - self._window_start > self.window_ms:
            self._count = 0
            self._window_start = now

    def record(self):
        self._roll_window()
        self._count += 1

    def snapshot(self) -> Tuple[int, bool]:
        """(errors in the current window, whether that count is too high)"""
        self._roll_window()
        return self._count, self._count > self.max_errors


async def check_health(
    client: Optional[LightdashClient],
    tracker: ErrorRateTracker,
    telemetry_status: Optional[Dict[str, Any]] = None,
    cache: Optional[ResultCache] = None
) -> Tuple[Dict[str, Any], int]:
    """
    Check the Lightdash API by listing projects. With a ``cache``, expired
    entries are swept and the remaining ones reported under ``cache``.

    Returns:
        (response body, HTTP status). ``healthy`` is 200; ``degraded`` (high
        error rate) and ``unhealthy`` (check failed or not configured) are 503.
    """
    started = _now_ms()
    error_count, error_rate_high = tracker.snapshot()
    name, version = get_server_identity()
    body: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": name,
        "version": version,
        "protocolVersion": PROTOCOL_VERSION,
        "errorRate": error_count,
    }
    if telemetry_status is not None:
        body["telemetry"] = telemetry_status
    if cache is not None:
        cache.cleanup_expired()
        body["cache"] = cache.stats()

    if client is None:
        body.update(status="unhealthy", error="Lightdash API not configured", lightdashConnected=False)
        return body, 503

    try:
        response = await client.get("/api/v1/org/projects")
    except LightdashAPIError as e:
        logger.warning(f"health check failed | error:{e}")
        body.update(
            status="unhealthy",
            error="Lightdash API connection failed",
            details=str(e),
            responseTime=round(_now_ms() - started),
            lightdashConnected=False
        )
        return body, 503

    body["responseTime"] = round(_now_ms() - started)
    body["lightdashConnected"] = True
    body["projectCount"] = len(response.get("results") or [])

    if error_rate_high:
        body.update(status="degraded", warning="High error rate detected")
        return body, 503

    body["status"] = "healthy"
    return body, 200
