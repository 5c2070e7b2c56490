"""
Lightdash query operations

Running explore queries, catalog search, explore schemas, saved chart
results and dashboards.
"""

from typing import Any, Dict, List, Optional

from lightdash_mcp.logging import get_logger

from .client import LightdashClient, get_lightdash_client, format_results
from .fields import normalize_field_list, normalize_filters, normalize_sorts
from .rows import flatten_query_results
from .schemas import (
    ProjectRequest,
    ExploreRequest,
    RunUnderlyingDataQueryRequest,
    CatalogSearchRequest,
    SavedChartResultsRequest,
    DashboardRequest,
    parse_arguments
)

logger = get_logger('QUERY')


def build_query_body(args: RunUnderlyingDataQueryRequest) -> Dict[str, Any]:
    """Query body for runUnderlyingDataQuery with every field reference qualified."""
    explore_id = args.explore_id
    body = {
        "dimensions": normalize_field_list(args.dimensions, explore_id),
        "metrics": normalize_field_list(args.metrics, explore_id),
        "sorts": normalize_sorts(args.sorts, explore_id),
        "tableCalculations": args.table_calculations,
        "exploreName": explore_id,
        "filters": normalize_filters(args.filters, explore_id),
    }
    if args.limit:
        body["limit"] = args.limit
    return body


async def run_underlying_data_query(
    project_uuid: str,
    explore_id: str,
    dimensions: Optional[List[str]] = None,
    metrics: Optional[List[str]] = None,
    filters: Optional[Dict[str, Any]] = None,
    sorts: Optional[List[Dict[str, Any]]] = None,
    table_calculations: Optional[List[Dict[str, Any]]] = None,
    limit: Optional[int] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Execute a query against an explore and return its rows.

    Field names may be short (``status``) or fully qualified
    (``orders_status``); short names are qualified with the explore id. Rows
    come back flattened to ``{field_id: {raw, formatted}}``.

    Args:
        project_uuid: Project UUID
        explore_id: Explore (table) to query
        dimensions: Dimension field ids
        metrics: Metric field ids
        filters: Lightdash filter groups
        sorts: Sort entries (``fieldId``, ``descending``)
        table_calculations: Table calculations to include
        limit: Maximum number of rows

    Returns:
        JSON text of the query results
    """
    args = parse_arguments(
        RunUnderlyingDataQueryRequest,
        project_uuid=project_uuid,
        explore_id=explore_id,
        dimensions=dimensions,
        metrics=metrics,
        filters=filters,
        sorts=sorts,
        table_calculations=table_calculations,
        limit=limit
    )
    client = client or get_lightdash_client()
    body = build_query_body(args)

    logger.debug(
        f"running underlying data query | project:{args.project_uuid} | explore:{args.explore_id}"
        f" | dimensions:{body['dimensions']} | metrics:{body['metrics']}"
    )
    results = await client.post_results(
        f"/api/v1/projects/{args.project_uuid}/explores/{args.explore_id}/runUnderlyingDataQuery",
        json_data=body
    )
    flattened = flatten_query_results(results)
    logger.info(f"query complete | explore:{args.explore_id} | rows:{len(flattened['rows'])}")
    return format_results(flattened)


async def get_catalog_search(
    project_uuid: str,
    search: Optional[str] = None,
    type: Optional[str] = None,
    limit: Optional[int] = None,
    page: Optional[int] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """Search catalog items (explores, fields, dashboards, charts) with paging."""
    args = parse_arguments(
        CatalogSearchRequest, project_uuid=project_uuid, search=search, type=type, limit=limit, page=page
    )
    client = client or get_lightdash_client()

    params = {}
    if args.search:
        params["search"] = args.search
    if args.type:
        params["type"] = args.type
    if args.limit:
        params["limit"] = str(args.limit)
    if args.page:
        params["page"] = str(args.page)

    logger.debug(f"searching catalog | params:{params}")
    return format_results(
        await client.get_results(f"/api/v1/projects/{args.project_uuid}/dataCatalog", params=params)
    )


async def get_explore_with_full_schema(
    project_uuid: str,
    explore_id: str,
    client: Optional[LightdashClient] = None
) -> str:
    """Complete explore schema with all dimensions and metrics."""
    args = parse_arguments(ExploreRequest, project_uuid=project_uuid, explore_id=explore_id)
    client = client or get_lightdash_client()
    return format_results(
        await client.get_results(f"/api/v1/projects/{args.project_uuid}/explores/{args.explore_id}")
    )


async def get_explores_summary(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    args = parse_arguments(ProjectRequest, project_uuid=project_uuid)
    client = client or get_lightdash_client()
    return format_results(await client.get_results(f"/api/v1/projects/{args.project_uuid}/explores"))


async def get_saved_chart_results(
    chart_uuid: str,
    invalidate_cache: Optional[bool] = None,
    dashboard_filters: Optional[Dict[str, Any]] = None,
    date_zoom_granularity: Optional[str] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Results of a saved chart, optionally with dashboard filters applied.

    Only the options that were given are sent; an empty request has no body.
    """
    args = parse_arguments(
        SavedChartResultsRequest,
        chart_uuid=chart_uuid,
        invalidate_cache=invalidate_cache,
        dashboard_filters=dashboard_filters,
        date_zoom_granularity=date_zoom_granularity
    )
    client = client or get_lightdash_client()

    body = {}
    if args.invalidate_cache is not None:
        body["invalidateCache"] = args.invalidate_cache
    if args.dashboard_filters:
        body["dashboardFilters"] = args.dashboard_filters
    if args.date_zoom_granularity:
        body["dateZoomGranularity"] = args.date_zoom_granularity

    results = await client.post_results(f"/api/v1/saved/{args.chart_uuid}/results", json_data=body or None)
    return format_results(flatten_query_results(results))


async def get_dashboard_by_uuid(dashboard_uuid: str, client: Optional[LightdashClient] = None) -> str:
    """Dashboard with all tiles and configuration."""
    args = parse_arguments(DashboardRequest, dashboard_uuid=dashboard_uuid)
    client = client or get_lightdash_client()
    return format_results(await client.get_results(f"/api/v1/dashboards/{args.dashboard_uuid}"))
