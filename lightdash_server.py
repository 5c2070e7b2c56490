#!/usr/bin/env python3
"""
Lightdash MCP Server
A Model Context Protocol server that exposes the Lightdash analytics API as
tools, lightdash:// resources and guided prompts.
"""

import argparse
import os
from typing import Any, Awaitable, Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from fastmcp import FastMCP, Context
from fastmcp.exceptions import ToolError, ResourceError
from starlette.requests import Request
from starlette.responses import JSONResponse

from lightdash_mcp.telemetry import (
    initialize_telemetry,
    initialize_metrics,
    shutdown_telemetry,
    get_telemetry_status,
    get_metrics_status,
    trace_mcp_tool
)
from lightdash_mcp.logging import log_tool_call, server_logger, resource_logger, prompt_logger
from lightdash_mcp.lightdash import (
    LightdashAPIError,
    ResultCache,
    ErrorRateTracker,
    check_health,
    create_enhanced_error_message,
    get_lightdash_client,
    get_server_identity,
    validate_lightdash_config,
    read_resource,
    RESOURCE_DEFINITIONS,
    PROMPT_DEFINITIONS,
    analyze_metric_prompt,
    find_and_explore_prompt,
    dashboard_deep_dive_prompt,
    chart_performance_optimizer_prompt,
    intelligent_chart_advisor_prompt
)
from lightdash_mcp.lightdash import projects, queries, intelligence, patterns, recommendations

SERVER_NAME, SERVER_VERSION = get_server_identity()

# Initialize OpenTelemetry instrumentation early
telemetry_enabled = initialize_telemetry(service_version=SERVER_VERSION)
metrics_enabled = initialize_metrics() if telemetry_enabled else False

mcp = FastMCP(name=SERVER_NAME, version=SERVER_VERSION)

# Shared state for the lifetime of the process
result_cache = ResultCache()
error_tracker = ErrorRateTracker()


def _session_id(ctx: Optional[Context]) -> Optional[str]:
    if ctx is None:
        return None
    try:
        return ctx.session_id
    except RuntimeError:
        return None


async def _run_tool(tool_name: str, operation: Awaitable[str]) -> str:
    """Await a tool operation, turning API and configuration failures into ToolErrors."""
    try:
        return await operation
    except ToolError:
        error_tracker.record()
        raise
    except (LightdashAPIError, ValueError) as e:
        error_tracker.record()
        message = create_enhanced_error_message(e)
        server_logger.error(f"tool failed | tool:{tool_name} | error:{message}")
        raise ToolError(message) from e


# ---------------------------------------------------------------------------
# Project and catalog tools
# ---------------------------------------------------------------------------

@mcp.tool(name="lightdash_list_projects")
@trace_mcp_tool(tool_name="lightdash_list_projects")
async def lightdash_list_projects(ctx: Context) -> str:
    """List all projects in the Lightdash organization."""
    log_tool_call("lightdash_list_projects", _session_id(ctx))
    return await _run_tool("lightdash_list_projects", projects.list_projects())


@mcp.tool(name="lightdash_get_project")
@trace_mcp_tool(tool_name="lightdash_get_project")
async def lightdash_get_project(ctx: Context, project_uuid: str) -> str:
    """
    Get details of a specific project.

    Args:
        project_uuid: The UUID of the project. You can obtain it from the project list.
    """
    log_tool_call("lightdash_get_project", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_project", projects.get_project(project_uuid))


@mcp.tool(name="lightdash_list_spaces")
@trace_mcp_tool(tool_name="lightdash_list_spaces")
async def lightdash_list_spaces(ctx: Context, project_uuid: str) -> str:
    """List all spaces in a project."""
    log_tool_call("lightdash_list_spaces", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_list_spaces", projects.list_spaces(project_uuid))


@mcp.tool(name="lightdash_list_charts")
@trace_mcp_tool(tool_name="lightdash_list_charts")
async def lightdash_list_charts(ctx: Context, project_uuid: str) -> str:
    """List all saved charts in a project."""
    log_tool_call("lightdash_list_charts", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_list_charts", projects.list_charts(project_uuid))


@mcp.tool(name="lightdash_list_dashboards")
@trace_mcp_tool(tool_name="lightdash_list_dashboards")
async def lightdash_list_dashboards(ctx: Context, project_uuid: str) -> str:
    """List all dashboards in a project."""
    log_tool_call("lightdash_list_dashboards", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_list_dashboards", projects.list_dashboards(project_uuid))


@mcp.tool(name="lightdash_get_custom_metrics")
@trace_mcp_tool(tool_name="lightdash_get_custom_metrics")
async def lightdash_get_custom_metrics(ctx: Context, project_uuid: str) -> str:
    """Get custom metrics defined in a project."""
    log_tool_call("lightdash_get_custom_metrics", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_custom_metrics", projects.get_custom_metrics(project_uuid))


@mcp.tool(name="lightdash_get_catalog")
@trace_mcp_tool(tool_name="lightdash_get_catalog")
async def lightdash_get_catalog(ctx: Context, project_uuid: str) -> str:
    """Get the data catalog of a project."""
    log_tool_call("lightdash_get_catalog", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_catalog", projects.get_catalog(project_uuid))


@mcp.tool(name="lightdash_get_metrics_catalog")
@trace_mcp_tool(tool_name="lightdash_get_metrics_catalog")
async def lightdash_get_metrics_catalog(ctx: Context, project_uuid: str) -> str:
    """Get the metrics catalog of a project."""
    log_tool_call("lightdash_get_metrics_catalog", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_metrics_catalog", projects.get_metrics_catalog(project_uuid))


@mcp.tool(name="lightdash_get_charts_as_code")
@trace_mcp_tool(tool_name="lightdash_get_charts_as_code")
async def lightdash_get_charts_as_code(ctx: Context, project_uuid: str) -> str:
    """Get the charts of a project as code."""
    log_tool_call("lightdash_get_charts_as_code", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_charts_as_code", projects.get_charts_as_code(project_uuid))


@mcp.tool(name="lightdash_get_dashboards_as_code")
@trace_mcp_tool(tool_name="lightdash_get_dashboards_as_code")
async def lightdash_get_dashboards_as_code(ctx: Context, project_uuid: str) -> str:
    """Get the dashboards of a project as code."""
    log_tool_call("lightdash_get_dashboards_as_code", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_dashboards_as_code", projects.get_dashboards_as_code(project_uuid))


@mcp.tool(name="lightdash_get_metadata")
@trace_mcp_tool(tool_name="lightdash_get_metadata")
async def lightdash_get_metadata(ctx: Context, project_uuid: str, table: str) -> str:
    """
    Get catalog metadata for a table in the data catalog.

    Args:
        project_uuid: The UUID of the project
        table: Name of the table in the data catalog
    """
    log_tool_call("lightdash_get_metadata", _session_id(ctx), project_uuid=project_uuid, table=table)
    return await _run_tool("lightdash_get_metadata", projects.get_metadata(project_uuid, table))


@mcp.tool(name="lightdash_get_analytics")
@trace_mcp_tool(tool_name="lightdash_get_analytics")
async def lightdash_get_analytics(ctx: Context, project_uuid: str, table: str) -> str:
    """Get usage analytics for a table in the data catalog."""
    log_tool_call("lightdash_get_analytics", _session_id(ctx), project_uuid=project_uuid, table=table)
    return await _run_tool("lightdash_get_analytics", projects.get_analytics(project_uuid, table))


@mcp.tool(name="lightdash_get_user_attributes")
@trace_mcp_tool(tool_name="lightdash_get_user_attributes")
async def lightdash_get_user_attributes(ctx: Context) -> str:
    """Get organization user attributes."""
    log_tool_call("lightdash_get_user_attributes", _session_id(ctx))
    return await _run_tool("lightdash_get_user_attributes", projects.get_user_attributes())


# ---------------------------------------------------------------------------
# Query tools
# ---------------------------------------------------------------------------

@mcp.tool(name="lightdash_run_underlying_data_query")
@trace_mcp_tool(tool_name="lightdash_run_underlying_data_query")
async def lightdash_run_underlying_data_query(
    ctx: Context,
    project_uuid: str,
    explore_id: str,
    dimensions: Optional[List[str]] = None,
    metrics: Optional[List[str]] = None,
    filters: Optional[Dict[str, Any]] = None,
    sorts: Optional[List[Dict[str, Any]]] = None,
    table_calculations: Optional[List[Dict[str, Any]]] = None,
    limit: Optional[int] = None
) -> str:
    """
    Run a query against an explore and return its rows.

    Field names may be given short (`status`) or fully qualified with the
    explore name (`orders_status`); short names are qualified automatically
    in dimensions, metrics, filter targets and sorts. Each row comes back as
    `{field_id: {"raw": ..., "formatted": ...}}`.

    Args:
        project_uuid: The UUID of the project
        explore_id: Explore (table) to query, e.g. "orders"
        dimensions: Dimension field ids to group by
        metrics: Metric field ids to aggregate
        filters: Filter groups, e.g. {"dimensions": {"id": "g", "and": [{"id": "f", "target": {"fieldId": "status"}, "operator": "equals", "values": ["completed"]}]}}
        sorts: Sort entries, e.g. [{"fieldId": "order_date", "descending": true}]
        table_calculations: Table calculations to include
        limit: Maximum number of rows
    """
    log_tool_call(
        "lightdash_run_underlying_data_query", _session_id(ctx),
        project_uuid=project_uuid, explore_id=explore_id, dimensions=dimensions, metrics=metrics, limit=limit
    )
    return await _run_tool("lightdash_run_underlying_data_query", queries.run_underlying_data_query(
        project_uuid,
        explore_id,
        dimensions=dimensions,
        metrics=metrics,
        filters=filters,
        sorts=sorts,
        table_calculations=table_calculations,
        limit=limit
    ))


@mcp.tool(name="lightdash_get_catalog_search")
@trace_mcp_tool(tool_name="lightdash_get_catalog_search")
async def lightdash_get_catalog_search(
    ctx: Context,
    project_uuid: str,
    search: Optional[str] = None,
    type: Optional[str] = None,
    limit: Optional[int] = None,
    page: Optional[int] = None
) -> str:
    """
    Search the data catalog for explores, fields, dashboards and charts.

    Args:
        project_uuid: The UUID of the project
        search: Search term
        type: Catalog item type, e.g. "table" or "field"
        limit: Page size
        page: Page number
    """
    log_tool_call("lightdash_get_catalog_search", _session_id(ctx), project_uuid=project_uuid, search=search, type=type)
    return await _run_tool(
        "lightdash_get_catalog_search",
        queries.get_catalog_search(project_uuid, search=search, type=type, limit=limit, page=page)
    )


@mcp.tool(name="lightdash_get_explore_with_full_schema")
@trace_mcp_tool(tool_name="lightdash_get_explore_with_full_schema")
async def lightdash_get_explore_with_full_schema(ctx: Context, project_uuid: str, explore_id: str) -> str:
    """Get the complete schema of an explore with all dimensions and metrics."""
    log_tool_call(
        "lightdash_get_explore_with_full_schema", _session_id(ctx), project_uuid=project_uuid, explore_id=explore_id
    )
    return await _run_tool(
        "lightdash_get_explore_with_full_schema", queries.get_explore_with_full_schema(project_uuid, explore_id)
    )


@mcp.tool(name="lightdash_get_explores_summary")
@trace_mcp_tool(tool_name="lightdash_get_explores_summary")
async def lightdash_get_explores_summary(ctx: Context, project_uuid: str) -> str:
    """List all explores in a project with their basic information."""
    log_tool_call("lightdash_get_explores_summary", _session_id(ctx), project_uuid=project_uuid)
    return await _run_tool("lightdash_get_explores_summary", queries.get_explores_summary(project_uuid))


@mcp.tool(name="lightdash_get_saved_chart_results")
@trace_mcp_tool(tool_name="lightdash_get_saved_chart_results")
async def lightdash_get_saved_chart_results(
    ctx: Context,
    chart_uuid: str,
    invalidate_cache: Optional[bool] = None,
    dashboard_filters: Optional[Dict[str, Any]] = None,
    date_zoom_granularity: Optional[str] = None
) -> str:
    """
    Get the results of a saved chart.

    Args:
        chart_uuid: UUID of the saved chart
        invalidate_cache: Bypass Lightdash's results cache
        dashboard_filters: Dashboard filters to apply to the chart
        date_zoom_granularity: Date zoom granularity, e.g. "Month"
    """
    log_tool_call(
        "lightdash_get_saved_chart_results", _session_id(ctx), chart_uuid=chart_uuid, invalidate_cache=invalidate_cache
    )
    return await _run_tool("lightdash_get_saved_chart_results", queries.get_saved_chart_results(
        chart_uuid,
        invalidate_cache=invalidate_cache,
        dashboard_filters=dashboard_filters,
        date_zoom_granularity=date_zoom_granularity
    ))


@mcp.tool(name="lightdash_get_dashboard_by_uuid")
@trace_mcp_tool(tool_name="lightdash_get_dashboard_by_uuid")
async def lightdash_get_dashboard_by_uuid(ctx: Context, dashboard_uuid: str) -> str:
    """Get a dashboard with all of its tiles and configuration."""
    log_tool_call("lightdash_get_dashboard_by_uuid", _session_id(ctx), dashboard_uuid=dashboard_uuid)
    return await _run_tool("lightdash_get_dashboard_by_uuid", queries.get_dashboard_by_uuid(dashboard_uuid))


# ---------------------------------------------------------------------------
# Chart intelligence tools
# ---------------------------------------------------------------------------

@mcp.tool(name="lightdash_analyze_chart_performance")
@trace_mcp_tool(tool_name="lightdash_analyze_chart_performance")
async def lightdash_analyze_chart_performance(ctx: Context, chart_uuid: str) -> str:
    """
    Measure a saved chart's query execution and score its performance (0-100)
    with bottlenecks and recommendations.
    """
    log_tool_call("lightdash_analyze_chart_performance", _session_id(ctx), chart_uuid=chart_uuid)
    return await _run_tool(
        "lightdash_analyze_chart_performance", intelligence.analyze_chart_performance(chart_uuid)
    )


@mcp.tool(name="lightdash_optimize_chart_query")
@trace_mcp_tool(tool_name="lightdash_optimize_chart_query")
async def lightdash_optimize_chart_query(
    ctx: Context,
    chart_uuid: str,
    optimization_type: Optional[str] = None,
    aggressiveness: Optional[str] = None
) -> str:
    """
    Suggest optimized versions of a chart's query with predicted execution times.

    Args:
        chart_uuid: UUID of the saved chart
        optimization_type: "performance" (default), "accuracy", "user_experience" or "comprehensive"
        aggressiveness: "conservative", "moderate" (default) or "aggressive"
    """
    log_tool_call(
        "lightdash_optimize_chart_query", _session_id(ctx),
        chart_uuid=chart_uuid, optimization_type=optimization_type, aggressiveness=aggressiveness
    )
    return await _run_tool("lightdash_optimize_chart_query", intelligence.optimize_chart_query(
        chart_uuid, optimization_type=optimization_type, aggressiveness=aggressiveness
    ))


@mcp.tool(name="lightdash_benchmark_chart_variations")
@trace_mcp_tool(tool_name="lightdash_benchmark_chart_variations")
async def lightdash_benchmark_chart_variations(
    ctx: Context,
    chart_uuid: str,
    variations: List[str],
    test_duration: Optional[int] = None,
    significance_level: Optional[str] = None
) -> str:
    """
    Benchmark a chart under query variations with timing statistics.

    Args:
        chart_uuid: UUID of the saved chart
        variations: Any of "filter_combinations", "field_selections", "aggregation_levels", "time_ranges", "limit_variations"
        test_duration: Timed runs per variation (default 3, at most 5 are run)
        significance_level: "low", "medium" (default), "high" or "very_high"
    """
    log_tool_call(
        "lightdash_benchmark_chart_variations", _session_id(ctx),
        chart_uuid=chart_uuid, variations=variations, test_duration=test_duration
    )
    return await _run_tool("lightdash_benchmark_chart_variations", intelligence.benchmark_chart_variations(
        chart_uuid, variations=variations, test_duration=test_duration, significance_level=significance_level
    ))


@mcp.tool(name="lightdash_extract_chart_patterns")
@trace_mcp_tool(tool_name="lightdash_extract_chart_patterns")
async def lightdash_extract_chart_patterns(
    ctx: Context,
    chart_uuids: List[str],
    pattern_type: Optional[str] = None,
    min_confidence: Optional[float] = None,
    include_examples: Optional[bool] = None
) -> str:
    """
    Find configuration patterns (shared metrics and dimensions) across saved charts built on the same explore.

    Args:
        chart_uuids: UUIDs of the saved charts to analyze
        pattern_type: Only report "time_series", "metric_breakdown", "comparison" or "custom" patterns
        min_confidence: Share of the requested charts a pattern must cover (default 0.7)
        include_examples: List up to three example charts per pattern
    """
    log_tool_call(
        "lightdash_extract_chart_patterns", _session_id(ctx),
        chart_count=len(chart_uuids or []), pattern_type=pattern_type, min_confidence=min_confidence
    )
    return await _run_tool("lightdash_extract_chart_patterns", patterns.extract_chart_patterns(
        chart_uuids, pattern_type=pattern_type, min_confidence=min_confidence, include_examples=include_examples
    ))


@mcp.tool(name="lightdash_discover_chart_relationships")
@trace_mcp_tool(tool_name="lightdash_discover_chart_relationships")
async def lightdash_discover_chart_relationships(
    ctx: Context,
    chart_uuid: str,
    relationship_type: Optional[str] = None,
    min_strength: Optional[float] = None,
    max_results: Optional[int] = None,
    include_impact_analysis: Optional[bool] = None
) -> str:
    """
    Rank the other charts of a chart's project by shared explore, metrics and dimensions.

    Args:
        chart_uuid: UUID of the source chart
        relationship_type: "all" (default), "shared_explore", "shared_metrics" or "shared_dimensions"
        min_strength: Weakest relationship to report (default 0.3)
        max_results: Maximum related charts (default 25)
        include_impact_analysis: Attach change risk to each relationship (default true)
    """
    log_tool_call(
        "lightdash_discover_chart_relationships", _session_id(ctx),
        chart_uuid=chart_uuid, relationship_type=relationship_type, min_strength=min_strength
    )
    return await _run_tool("lightdash_discover_chart_relationships", patterns.discover_chart_relationships(
        chart_uuid,
        relationship_type=relationship_type,
        min_strength=min_strength,
        max_results=max_results,
        include_impact_analysis=include_impact_analysis
    ))


# ---------------------------------------------------------------------------
# Recommendation tools
# ---------------------------------------------------------------------------

@mcp.tool(name="lightdash_generate_chart_recommendations")
@trace_mcp_tool(tool_name="lightdash_generate_chart_recommendations")
async def lightdash_generate_chart_recommendations(
    ctx: Context,
    explore_id: str,
    analytical_goal: str,
    project_uuid: Optional[str] = None,
    data_context: Optional[Dict[str, Any]] = None,
    max_recommendations: Optional[int] = None,
    include_implementation_guidance: Optional[bool] = None
) -> str:
    """
    Recommend chart configurations for an explore, scored against an analytical goal.

    Args:
        explore_id: Explore (table) name
        analytical_goal: "trend_analysis", "comparison", "distribution", "performance_tracking" or "custom"
        project_uuid: Project of the explore; every accessible project is searched if omitted
        data_context: Optional businessContext, userRole, timeRange and keyMetrics
        max_recommendations: Maximum recommendations (default 10, at most 15)
        include_implementation_guidance: Add step-by-step build guidance
    """
    log_tool_call(
        "lightdash_generate_chart_recommendations", _session_id(ctx),
        explore_id=explore_id, analytical_goal=analytical_goal, project_uuid=project_uuid
    )
    return await _run_tool(
        "lightdash_generate_chart_recommendations",
        recommendations.generate_chart_recommendations(
            explore_id,
            analytical_goal,
            project_uuid=project_uuid,
            data_context=data_context,
            max_recommendations=max_recommendations,
            include_implementation_guidance=include_implementation_guidance
        )
    )


@mcp.tool(name="lightdash_auto_optimize_dashboard")
@trace_mcp_tool(tool_name="lightdash_auto_optimize_dashboard")
async def lightdash_auto_optimize_dashboard(
    ctx: Context,
    dashboard_uuid: str,
    optimization_goals: Optional[List[str]] = None,
    include_implementation_plan: Optional[bool] = None
) -> str:
    """
    Time a dashboard's chart tiles and build an optimization plan with projected scores.

    Args:
        dashboard_uuid: UUID of the dashboard
        optimization_goals: Any of "performance", "user_experience", "data_accuracy" (default the first two)
        include_implementation_plan: Add a phased implementation plan
    """
    log_tool_call(
        "lightdash_auto_optimize_dashboard", _session_id(ctx),
        dashboard_uuid=dashboard_uuid, optimization_goals=optimization_goals
    )
    return await _run_tool("lightdash_auto_optimize_dashboard", recommendations.auto_optimize_dashboard(
        dashboard_uuid, optimization_goals=optimization_goals, include_implementation_plan=include_implementation_plan
    ))


@mcp.tool(name="lightdash_create_smart_templates")
@trace_mcp_tool(tool_name="lightdash_create_smart_templates")
async def lightdash_create_smart_templates(
    ctx: Context,
    organization_context: Optional[Dict[str, Any]] = None,
    template_type: Optional[str] = None,
    project_uuid: Optional[str] = None,
    learning_dataset: Optional[Dict[str, Any]] = None
) -> str:
    """
    Build chart templates from the chart types and fields a project uses most.

    Args:
        organization_context: Industry, team size and similar context, echoed in the result
        template_type: "chart" (default), "kpi_tracking", "analysis_workflow" or "custom"
        project_uuid: Project to learn from; the first accessible project if omitted
        learning_dataset: Optional {"exploreIds": [...]} restricting which charts are learned from
    """
    log_tool_call(
        "lightdash_create_smart_templates", _session_id(ctx), template_type=template_type, project_uuid=project_uuid
    )
    return await _run_tool("lightdash_create_smart_templates", recommendations.create_smart_templates(
        organization_context=organization_context,
        template_type=template_type,
        project_uuid=project_uuid,
        learning_dataset=learning_dataset
    ))


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

_RESOURCE_INFO = {definition["uri"]: definition for definition in RESOURCE_DEFINITIONS}


async def _read(uri: str) -> str:
    try:
        return await read_resource(uri, cache=result_cache)
    except (LightdashAPIError, ValueError) as e:
        error_tracker.record()
        resource_logger.error(f"resource read failed | uri:{uri} | error:{e}")
        raise ResourceError(f"Failed to read resource: {create_enhanced_error_message(e)}") from e


def _resource_kwargs(uri: str) -> Dict[str, str]:
    info = _RESOURCE_INFO[uri]
    return {"name": info["name"], "description": info["description"], "mime_type": "application/json"}


@mcp.resource(
    "lightdash://projects/{project_uuid}/catalog",
    **_resource_kwargs("lightdash://projects/{projectUuid}/catalog")
)
async def project_catalog_resource(project_uuid: str) -> str:
    return await _read(f"lightdash://projects/{project_uuid}/catalog")


@mcp.resource(
    "lightdash://projects/{project_uuid}/explores/{explore_id}/schema",
    **_resource_kwargs("lightdash://projects/{projectUuid}/explores/{exploreId}/schema")
)
async def explore_schema_resource(project_uuid: str, explore_id: str) -> str:
    return await _read(f"lightdash://projects/{project_uuid}/explores/{explore_id}/schema")


@mcp.resource(
    "lightdash://dashboards/{dashboard_uuid}",
    **_resource_kwargs("lightdash://dashboards/{dashboardUuid}")
)
async def dashboard_resource(dashboard_uuid: str) -> str:
    return await _read(f"lightdash://dashboards/{dashboard_uuid}")


@mcp.resource(
    "lightdash://charts/{chart_uuid}",
    **_resource_kwargs("lightdash://charts/{chartUuid}")
)
async def chart_resource(chart_uuid: str) -> str:
    return await _read(f"lightdash://charts/{chart_uuid}")


@mcp.resource(
    "lightdash://charts/{chart_uuid}/analysis",
    name="Chart Configuration with Analysis",
    description="Saved chart configuration with measured performance analysis",
    mime_type="application/json"
)
async def chart_analysis_resource(chart_uuid: str) -> str:
    return await _read(f"lightdash://charts/{chart_uuid}?analysis=true")


@mcp.resource(
    "lightdash://projects/{project_uuid}/chart-analytics",
    **_resource_kwargs("lightdash://projects/{projectUuid}/chart-analytics")
)
async def project_chart_analytics_resource(project_uuid: str) -> str:
    return await _read(f"lightdash://projects/{project_uuid}/chart-analytics")


@mcp.resource(
    "lightdash://explores/{explore_id}/optimization-suggestions",
    **_resource_kwargs("lightdash://explores/{exploreId}/optimization-suggestions")
)
async def explore_optimization_resource(explore_id: str) -> str:
    return await _read(f"lightdash://explores/{explore_id}/optimization-suggestions")


@mcp.resource(
    "lightdash://explores/{explore_id}/optimization-suggestions/comprehensive",
    name="Explore Optimization Suggestions with Field Analysis",
    description="Comprehensive explore suggestions including overused and unused field analysis",
    mime_type="application/json"
)
async def explore_comprehensive_optimization_resource(explore_id: str) -> str:
    return await _read(f"lightdash://explores/{explore_id}/optimization-suggestions?fields=true&type=comprehensive")


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

@mcp.prompt(name="analyze-metric", description=PROMPT_DEFINITIONS["analyze-metric"])
def analyze_metric(
    metric_name: str,
    explore_name: str,
    dimensions: Optional[str] = None,
    filters: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_field: Optional[str] = None,
    sort_direction: Optional[str] = None
) -> str:
    prompt_logger.info(f"prompt | name:analyze-metric | metric:{metric_name} | explore:{explore_name}")
    return analyze_metric_prompt(
        metric_name, explore_name, dimensions, filters, date_range, sort_field, sort_direction
    )


@mcp.prompt(name="find-and-explore", description=PROMPT_DEFINITIONS["find-and-explore"])
def find_and_explore(business_question: str, search_terms: Optional[str] = None) -> str:
    prompt_logger.info("prompt | name:find-and-explore")
    return find_and_explore_prompt(business_question, search_terms)


@mcp.prompt(name="dashboard-deep-dive", description=PROMPT_DEFINITIONS["dashboard-deep-dive"])
def dashboard_deep_dive(dashboard_name: str) -> str:
    prompt_logger.info(f"prompt | name:dashboard-deep-dive | dashboard:{dashboard_name}")
    return dashboard_deep_dive_prompt(dashboard_name)


@mcp.prompt(name="chart-performance-optimizer", description=PROMPT_DEFINITIONS["chart-performance-optimizer"])
def chart_performance_optimizer(
    chartUuid: str,
    performanceGoal: Optional[str] = None,
    userExperience: Optional[str] = None
) -> str:
    prompt_logger.info(f"prompt | name:chart-performance-optimizer | chart:{chartUuid}")
    return chart_performance_optimizer_prompt(chartUuid, performanceGoal, userExperience)


@mcp.prompt(name="intelligent-chart-advisor", description=PROMPT_DEFINITIONS["intelligent-chart-advisor"])
def intelligent_chart_advisor(
    businessQuestion: str,
    dataExploration: Optional[str] = None,
    userExperience: Optional[str] = None,
    organizationalContext: Optional[str] = None
) -> str:
    prompt_logger.info(f"prompt | name:intelligent-chart-advisor | experience:{userExperience or 'intermediate'}")
    return intelligent_chart_advisor_prompt(businessQuestion, dataExploration, userExperience, organizationalContext)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    """Health check with a Lightdash connectivity check, the recent error rate and cache contents."""
    client = get_lightdash_client() if validate_lightdash_config() is None else None
    body, status_code = await check_health(
        client, error_tracker, {**get_telemetry_status(), "metrics": get_metrics_status()}, cache=result_cache
    )
    return JSONResponse(body, status_code=status_code)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lightdash MCP server")
    parser.add_argument(
        "--transport",
        choices=["streamable-http", "stdio"],
        default=os.getenv("MCP_TRANSPORT", "streamable-http"),
        help="MCP transport (default: streamable-http)"
    )
    parser.add_argument("--host", default=os.getenv("MCP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("MCP_PORT", "8000")))
    return parser.parse_args(argv)


if __name__ == "__main__":
    import signal
    import atexit

    # Register shutdown handler for telemetry
    def shutdown_handler():
        if telemetry_enabled:
            shutdown_telemetry()

    atexit.register(shutdown_handler)
    signal.signal(signal.SIGTERM, lambda signum, frame: shutdown_handler())

    args = parse_args()

    config_error = validate_lightdash_config()
    if config_error:
        server_logger.warning(f"starting without Lightdash credentials | {config_error}")

    server_logger.info(
        f"starting {SERVER_NAME} | version:{SERVER_VERSION} | transport:{args.transport}"
        f" | telemetry:{telemetry_enabled} | metrics:{metrics_enabled}"
    )

    if args.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport="streamable-http", host=args.host, port=args.port)
