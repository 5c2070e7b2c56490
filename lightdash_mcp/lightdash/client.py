"""
Lightdash API HTTP client

Provides the HTTP client used for every request to the Lightdash REST API,
with error payload enrichment, logging and request telemetry.
"""

import json
from typing import Dict, Any, Optional

import httpx

from lightdash_mcp.logging import get_logger, redact_api_key
from lightdash_mcp.telemetry import trace_lightdash_api_call, MetricsTimer

from .config import (
    get_lightdash_config,
    get_lightdash_headers,
    get_request_timeout,
    validate_lightdash_config
)
from .error_enhancement import enrich_error
from .retry import with_retry

logger = get_logger('HTTP')


class LightdashAPIError(Exception):
    """Raised for any failed Lightdash API request."""

    def __init__(self, message: str, status_code: Optional[int] = None, error: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error = error


class LightdashClient:
    """
    Async client for the Lightdash REST API.

    Responses are the decoded JSON envelope ``{"status": "ok", "results": ...}``.
    Every failure (transport error, HTTP error status or an ``error``
    envelope) raises LightdashAPIError.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout

    def __repr__(self):
        return f"LightdashClient(base_url={self.base_url!r})"

    @trace_lightdash_api_call(operation="http_request")
    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Make a request to the Lightdash API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API path, e.g. ``/api/v1/org/projects``
            params: Query parameters
            json_data: JSON body for POST requests
            headers: Additional headers merged over the defaults

        Returns:
            The decoded JSON response body

        Raises:
            LightdashAPIError: For transport failures and API errors
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        request_headers = get_lightdash_headers(self.api_key, headers)

        logger.debug(
            f"{method} {url} | params:{params} | data_size:{len(json.dumps(json_data)) if json_data else 0}"
            f" | headers:{redact_api_key(request_headers)}"
        )

        with MetricsTimer(endpoint, method) as timer:
            async with httpx.AsyncClient() as client:
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        params=params,
                        json=json_data,
                        headers=request_headers,
                        timeout=self.timeout
                    )
                except httpx.HTTPError as e:
                    logger.error(f"request failed | {method} {url} | error:{e}")
                    raise LightdashAPIError(f"Request failed: {e}") from e

            timer.set_status(response.status_code)
            return _process_response(response)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("POST", endpoint, json_data=json_data)

    async def get_results(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET under the retry policy and return the envelope's ``results``."""
        body = await with_retry(lambda: self.get(endpoint, params=params))
        return body.get("results")

    async def post_results(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """POST under the retry policy and return the envelope's ``results``."""
        body = await with_retry(lambda: self.post(endpoint, json_data=json_data))
        return body.get("results")


def _error_payload(body: Any) -> Optional[Dict[str, Any]]:
    if isinstance(body, dict) and isinstance(body.get("error"), dict) and body["error"].get("name"):
        return body["error"]
    return None


def _process_response(response: httpx.Response) -> Dict[str, Any]:
    """
    Decode a Lightdash response, raising LightdashAPIError for failures.

    Args:
        response: HTTP response object
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if response.status_code >= 400:
        logger.warning(f"response {response.status_code} | size:{len(response.content)}")
        error = _error_payload(body)
        if error:
            raise LightdashAPIError(enrich_error(error), status_code=response.status_code, error=error)
        raise LightdashAPIError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code
        )

    logger.debug(f"response {response.status_code} | size:{len(response.content)}")

    if not isinstance(body, dict):
        raise LightdashAPIError(
            f"Unexpected response format from {response.request.url}: expected a JSON object",
            status_code=response.status_code
        )

    if body.get("status") == "error":
        error = _error_payload(body) or {"name": "UnknownError"}
        raise LightdashAPIError(enrich_error(error), status_code=response.status_code, error=error)

    return body


def get_lightdash_client() -> LightdashClient:
    """
    Build a client from LIGHTDASH_API_URL, LIGHTDASH_API_KEY and
    LIGHTDASH_REQUEST_TIMEOUT.

    Raises:
        ValueError: If the Lightdash API key is not configured
    """
    config_error = validate_lightdash_config()
    if config_error:
        raise ValueError(config_error)

    api_url, api_key, _ = get_lightdash_config()
    return LightdashClient(api_url, api_key, timeout=get_request_timeout())


def format_results(results: Any) -> str:
    """Render API results as the indented JSON text returned to MCP clients."""
    return json.dumps(results, indent=2, default=str)
