import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

import lightdash_server
from lightdash_mcp.lightdash.client import LightdashAPIError
from lightdash_mcp.lightdash.health import ErrorRateTracker


class FakeClock:
    def __call__(self):
        return 0


@pytest.fixture
def tracker(monkeypatch):
    tracker = ErrorRateTracker(clock=FakeClock())
    monkeypatch.setattr(lightdash_server, "error_tracker", tracker)
    return tracker


async def succeed():
    return "[]"


async def fail_with(error):
    raise error


@pytest.mark.asyncio
async def test_run_tool_passes_results_through(tracker):
    assert await lightdash_server._run_tool("lightdash_list_projects", succeed()) == "[]"
    assert tracker.snapshot() == (0, False)


@pytest.mark.asyncio
async def test_run_tool_explains_http_failures(tracker):
    with pytest.raises(ToolError) as exc_info:
        await lightdash_server._run_tool(
            "lightdash_list_projects", fail_with(LightdashAPIError("HTTP 401: Unauthorized", status_code=401))
        )

    assert str(exc_info.value) == "Unauthorized: HTTP 401: Unauthorized. Please check your API key and permissions."
    assert tracker.snapshot() == (1, False)


@pytest.mark.asyncio
async def test_run_tool_reports_missing_configuration(tracker):
    with pytest.raises(ToolError, match="LIGHTDASH_API_KEY"):
        await lightdash_server._run_tool(
            "lightdash_list_projects",
            fail_with(ValueError("Error: Lightdash API credentials not configured. Please set LIGHTDASH_API_KEY"))
        )


@pytest.mark.asyncio
async def test_run_tool_counts_validation_errors(tracker):
    with pytest.raises(ToolError, match="Validation error"):
        await lightdash_server._run_tool("lightdash_get_project", fail_with(ToolError("Validation error: bad")))
    assert tracker.snapshot() == (1, False)


def test_parse_args_defaults(monkeypatch):
    for name in ("MCP_TRANSPORT", "MCP_HOST", "MCP_PORT"):
        monkeypatch.delenv(name, raising=False)

    args = lightdash_server.parse_args([])

    assert args.transport == "streamable-http"
    assert args.host == "0.0.0.0"
    assert args.port == 8000


def test_parse_args_overrides():
    args = lightdash_server.parse_args(["--transport", "stdio", "--port", "9001"])

    assert args.transport == "stdio"
    assert args.port == 9001


@pytest.mark.asyncio
async def test_intelligence_surface_is_registered():
    async with Client(lightdash_server.mcp) as client:
        tools = {tool.name for tool in await client.list_tools()}
        templates = {t.uriTemplate for t in await client.list_resource_templates()}
        prompts = {prompt.name for prompt in await client.list_prompts()}

    assert len(tools) == 27
    assert {
        "lightdash_extract_chart_patterns",
        "lightdash_discover_chart_relationships",
        "lightdash_generate_chart_recommendations",
        "lightdash_auto_optimize_dashboard",
        "lightdash_create_smart_templates",
    } <= tools
    assert "lightdash://explores/{explore_id}/optimization-suggestions" in templates
    assert "lightdash://explores/{explore_id}/optimization-suggestions/comprehensive" in templates
    assert "intelligent-chart-advisor" in prompts
