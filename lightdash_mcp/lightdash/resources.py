"""
lightdash:// resources

Read-only views over the Lightdash API addressed by URI:

    lightdash://projects/{projectUuid}/catalog
    lightdash://projects/{projectUuid}/explores/{exploreId}/schema
    lightdash://dashboards/{dashboardUuid}
    lightdash://charts/{chartUuid}[?analysis=true]
    lightdash://projects/{projectUuid}/chart-analytics[?depth=deep&optimizations=true]
    lightdash://explores/{exploreId}/optimization-suggestions[?fields=true&type=comprehensive]

Project chart analytics is kept in the ResultCache for ten minutes per
project, depth and optimizations flag. Explore optimization suggestions are
kept for fifteen minutes. Expired entries are swept before each store.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl

from lightdash_mcp.logging import get_logger

from .cache import ResultCache
from .client import LightdashAPIError, LightdashClient, get_lightdash_client, format_results
from .error_enhancement import validate_required_params
from .intelligence import (
    ANALYSIS_VERSION,
    describe_configuration,
    performance_threshold,
    score_chart_performance,
    time_chart_results
)
from .optimization import generate_optimization_suggestions
from .performance import calculate_query_complexity_score
from .recommendations import find_explore

logger = get_logger('RESOURCE')

SCHEME = "lightdash://"
CHART_ANALYTICS_TTL_MS = 10 * 60 * 1000
EXPLORE_SUGGESTIONS_TTL_MS = 15 * 60 * 1000
FIELD_ANALYSIS_CHART_LIMIT = 20
OVERUSED_FIELD_SHARE = 0.7
STANDARD_DEPTH_CHART_LIMIT = 50
SLOW_CHART_MS = 3000

RESOURCE_DEFINITIONS = [
    {
        "uri": "lightdash://projects/{projectUuid}/catalog",
        "name": "Project Catalog",
        "description": "Searchable catalog of all items in project (explores, fields, dashboards, charts)",
    },
    {
        "uri": "lightdash://projects/{projectUuid}/explores/{exploreId}/schema",
        "name": "Explore Schema",
        "description": "Complete explore schema with all metrics and dimensions",
    },
    {
        "uri": "lightdash://dashboards/{dashboardUuid}",
        "name": "Dashboard Structure",
        "description": "Dashboard structure and tiles configuration",
    },
    {
        "uri": "lightdash://charts/{chartUuid}",
        "name": "Chart Configuration",
        "description": "Saved chart configuration and metadata",
    },
    {
        "uri": "lightdash://projects/{projectUuid}/chart-analytics",
        "name": "Project Chart Analytics",
        "description": (
            "Aggregated analytics across all project charts with performance metrics, "
            "usage patterns, and optimization opportunities"
        ),
    },
    {
        "uri": "lightdash://explores/{exploreId}/optimization-suggestions",
        "name": "Explore Optimization Suggestions",
        "description": "Field usage analysis and performance recommendations for an explore",
    },
]


def parse_resource_uri(uri: str) -> Tuple[list, Dict[str, str]]:
    """
    Split a lightdash:// URI into path segments and query parameters.

    Raises:
        ValueError: For other schemes or paths with fewer than two segments
    """
    if not uri.startswith(SCHEME):
        raise ValueError("Only lightdash:// URIs are supported")

    path, _, query = uri[len(SCHEME):].partition("?")
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        raise ValueError(f"Invalid resource path: {path}")
    return parts, dict(parse_qsl(query))


async def read_project_catalog(
    project_uuid: str,
    query_params: Optional[Dict[str, str]] = None,
    client: Optional[LightdashClient] = None
) -> str:
    client = client or get_lightdash_client()
    return format_results(
        await client.get_results(f"/api/v1/projects/{project_uuid}/dataCatalog", params=query_params or None)
    )


async def read_explore_schema(project_uuid: str, explore_id: str, client: Optional[LightdashClient] = None) -> str:
    client = client or get_lightdash_client()
    return format_results(await client.get_results(f"/api/v1/projects/{project_uuid}/explores/{explore_id}"))


async def read_dashboard(dashboard_uuid: str, client: Optional[LightdashClient] = None) -> str:
    client = client or get_lightdash_client()
    return format_results(await client.get_results(f"/api/v1/dashboards/{dashboard_uuid}"))


async def read_chart(chart_uuid: str, include_analysis: bool = False, client: Optional[LightdashClient] = None) -> str:
    """
    Saved chart configuration, with an ``_analysis`` block of measured
    performance when ``include_analysis`` is set.
    """
    client = client or get_lightdash_client()
    chart = await client.get_results(f"/api/v1/saved/{chart_uuid}") or {}

    if include_analysis:
        execution_time, row_count, _ = await time_chart_results(client, chart_uuid)
        configuration = describe_configuration(chart.get("metricQuery") or {})
        chart["_analysis"] = {
            "performance": {
                "executionTime": execution_time,
                "rowCount": row_count,
                "performanceScore": score_chart_performance(execution_time, row_count, configuration),
                "threshold": performance_threshold(execution_time),
            },
            "configuration": configuration,
            "metadata": {
                "analyzedAt": datetime.now(timezone.utc).isoformat(),
                "analysisVersion": ANALYSIS_VERSION,
            },
        }

    return format_results(chart)


def _performance_category(execution_time: float) -> str:
    if execution_time > 15000:
        return "very_slow"
    if execution_time > 5000:
        return "slow"
    if execution_time > 1000:
        return "moderate"
    return "fast"


def _top(counter: Counter, n: int) -> Dict[str, int]:
    return dict(counter.most_common(n))


async def read_project_chart_analytics(
    project_uuid: str,
    depth: str = "standard",
    include_optimizations: bool = False,
    client: Optional[LightdashClient] = None,
    cache: Optional[ResultCache] = None
) -> str:
    """
    Performance and usage analytics across the charts of a project.

    Standard depth analyzes the first 50 charts, ``deep`` analyzes all of
    them. Charts that fail to load are logged and skipped.
    """
    cache_key = f"chart-analytics-{project_uuid}-{depth}-{'true' if include_optimizations else 'false'}"
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"chart analytics from cache | key:{cache_key}")
            return format_results(cached)

    client = client or get_lightdash_client()
    charts = await client.get_results(f"/api/v1/projects/{project_uuid}/charts") or []
    selected = charts if depth == "deep" else charts[:STANDARD_DEPTH_CHART_LIMIT]

    distribution = {"fast": 0, "moderate": 0, "slow": 0, "very_slow": 0}
    slow_charts = []
    fast_charts = []
    explores: Counter = Counter()
    metrics: Counter = Counter()
    dimensions: Counter = Counter()
    chart_types: Dict[str, int] = {}
    opportunities = []
    execution_times = []

    for summary in selected:
        chart_uuid = summary.get("uuid")
        try:
            chart = await client.get_results(f"/api/v1/saved/{chart_uuid}") or {}
            execution_time, _, _ = await time_chart_results(client, chart_uuid)
        except LightdashAPIError as e:
            logger.warning(f"failed to analyze chart | chart:{chart_uuid} | error:{e}")
            continue

        metric_query = chart.get("metricQuery") or {}
        chart_type = (chart.get("chartConfig") or {}).get("type") or "table"
        execution_times.append(execution_time)
        distribution[_performance_category(execution_time)] += 1

        if execution_time > 5000:
            slow_charts.append({
                "chartUuid": chart_uuid,
                "chartName": summary.get("name"),
                "executionTime": execution_time,
                "complexityScore": calculate_query_complexity_score(metric_query),
            })
        elif execution_time < 1000:
            fast_charts.append({
                "chartUuid": chart_uuid,
                "chartName": summary.get("name"),
                "executionTime": execution_time,
            })

        explores[chart.get("tableName")] += 1
        chart_types[chart_type] = chart_types.get(chart_type, 0) + 1
        metrics.update(metric_query.get("metrics") or [])
        dimensions.update(metric_query.get("dimensions") or [])

        if include_optimizations and execution_time > SLOW_CHART_MS:
            suggestions = generate_optimization_suggestions(
                metric_query, {"executionTime": execution_time, "rowCount": 0}, "performance", "moderate"
            )
            if suggestions:
                opportunities.append({
                    "chartUuid": chart_uuid,
                    "chartName": summary.get("name"),
                    "currentPerformance": {
                        "executionTime": execution_time,
                        "complexityScore": calculate_query_complexity_score(metric_query),
                    },
                    "suggestions": suggestions[:3],
                })

    analytics = {
        "projectUuid": project_uuid,
        "totalCharts": len(charts),
        "performanceMetrics": {
            "averageExecutionTime": sum(execution_times) / len(execution_times) if execution_times else 0,
            "slowCharts": slow_charts,
            "fastCharts": fast_charts,
            "performanceDistribution": distribution,
        },
        "usagePatterns": {
            "mostUsedExplores": _top(explores, 10),
            "commonMetrics": _top(metrics, 15),
            "commonDimensions": _top(dimensions, 15),
            "chartTypeDistribution": chart_types,
        },
        "optimizationOpportunities": opportunities,
        "metadata": {
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "analysisDepth": depth,
            "includeOptimizations": include_optimizations,
        },
    }

    logger.info(
        f"chart analytics | project:{project_uuid} | charts:{len(charts)} | analyzed:{len(execution_times)}"
    )
    if cache is not None:
        cache.cleanup_expired()
        cache.set(cache_key, analytics, ttl_ms=CHART_ANALYTICS_TTL_MS)
    return format_results(analytics)


def _explore_fields(explore: Dict) -> Tuple[list, list]:
    metrics, dimensions = [], []
    for table_name, table in (explore.get("tables") or {}).items():
        for kind, target in (("metrics", metrics), ("dimensions", dimensions)):
            for field_name, field in (table.get(kind) or {}).items():
                target.append({
                    "fieldId": f"{table_name}_{field_name}",
                    "name": field.get("name") or field_name,
                    "type": field.get("type"),
                    "description": field.get("description"),
                })
    return metrics, dimensions


async def _field_usage(client: LightdashClient, charts: list) -> Counter:
    usage: Counter = Counter()
    for summary in charts[:FIELD_ANALYSIS_CHART_LIMIT]:
        try:
            chart = await client.get_results(f"/api/v1/saved/{summary.get('uuid')}") or {}
        except LightdashAPIError as e:
            logger.warning(f"failed to analyze chart | chart:{summary.get('uuid')} | error:{e}")
            continue
        metric_query = chart.get("metricQuery") or {}
        usage.update((metric_query.get("metrics") or []) + (metric_query.get("dimensions") or []))
    return usage


def _performance_optimizations(overused: list) -> list:
    return [
        {
            "type": "indexing",
            "priority": "high",
            "title": "Add Database Indexes",
            "description": "Consider adding indexes on frequently filtered dimensions",
            "implementation": {
                "effort": "database_admin_required",
                "impact": "high",
                "fields": [f["fieldName"] for f in overused if f["usagePercentage"] > 50][:5],
            },
        },
        {
            "type": "caching",
            "priority": "medium",
            "title": "Enable Query Result Caching",
            "description": "Cache results for frequently accessed charts using this explore",
            "implementation": {"effort": "configuration", "impact": "medium", "recommendedTTL": "1 hour"},
        },
        {
            "type": "aggregation",
            "priority": "medium",
            "title": "Pre-aggregate Common Metrics",
            "description": "Create summary tables for frequently used metric combinations",
            "implementation": {
                "effort": "development_required",
                "impact": "high",
                "suggestedAggregations": [f["fieldName"] for f in overused[:3]],
            },
        },
    ]


async def read_explore_optimization_suggestions(
    explore_id: str,
    include_field_analysis: bool = False,
    optimization_type: str = "performance",
    client: Optional[LightdashClient] = None,
    cache: Optional[ResultCache] = None
) -> str:
    """
    Field usage and performance suggestions for an explore.

    The explore is located across accessible projects. With field analysis,
    the first 20 charts built on it are read: fields used by more than 70%
    of those charts are overused and fields no chart uses are unused.
    Performance optimizations are listed for the ``performance`` and
    ``comprehensive`` types.
    """
    cache_key = f"explore-optimization-{explore_id}-{'true' if include_field_analysis else 'false'}-{optimization_type}"
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"explore suggestions from cache | key:{cache_key}")
            return format_results(cached)

    client = client or get_lightdash_client()
    project_uuid, explore = await find_explore(client, explore_id)
    project_charts = await client.get_results(f"/api/v1/projects/{project_uuid}/charts") or []
    charts = [c for c in project_charts if c.get("tableName") == explore_id]
    metrics, dimensions = _explore_fields(explore)

    overused = []
    unused = []
    if include_field_analysis and charts:
        usage = await _field_usage(client, charts)
        overused = [
            {"fieldName": field, "usageCount": count, "usagePercentage": round(count / len(charts) * 100)}
            for field, count in usage.most_common()
            if count > len(charts) * OVERUSED_FIELD_SHARE
        ][:10]
        unused = [{"fieldName": f["fieldId"]} for f in metrics + dimensions if f["fieldId"] not in usage][:15]

    suggestions = {
        "exploreId": explore_id,
        "projectUuid": project_uuid,
        "totalChartsUsingExplore": len(charts),
        "fieldAnalysis": {
            "totalFields": len(metrics) + len(dimensions),
            "metrics": metrics,
            "dimensions": dimensions,
            "unusedFields": unused,
            "overusedFields": overused,
        },
        "performanceOptimizations": (
            _performance_optimizations(overused) if optimization_type in ("performance", "comprehensive") else []
        ),
        "usagePatterns": {
            "recommendedFilters": [
                {"fieldName": "date_field", "reason": "Time-based filtering significantly improves performance",
                 "suggestedDefault": "last 90 days"},
                {"fieldName": "status_field", "reason": "Status filtering reduces data volume",
                 "suggestedDefault": "active records only"},
            ],
        },
        "bestPractices": [
            {"category": "performance", "title": "Always Include Date Filters",
             "description": "Time-based filtering is the most effective way to improve query performance",
             "priority": "critical"},
            {"category": "usability", "title": "Limit Dimension Count",
             "description": "Keep dimension count under 5 for better visualization clarity",
             "priority": "medium"},
            {"category": "maintenance", "title": "Regular Field Usage Review",
             "description": "Periodically review and remove unused fields to keep the explore clean",
             "priority": "low"},
        ],
        "metadata": {
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "optimizationType": optimization_type,
            "includeFieldAnalysis": include_field_analysis,
        },
    }

    logger.info(
        f"explore suggestions | explore:{explore_id} | project:{project_uuid} | charts:{len(charts)}"
    )
    if cache is not None:
        cache.cleanup_expired()
        cache.set(cache_key, suggestions, ttl_ms=EXPLORE_SUGGESTIONS_TTL_MS)
    return format_results(suggestions)


def _check_uuid(kind: str, value: str) -> None:
    validate_required_params({f"{kind}Uuid": value}, [f"{kind}Uuid"])


async def read_resource(
    uri: str,
    client: Optional[LightdashClient] = None,
    cache: Optional[ResultCache] = None
) -> str:
    """
    Resolve a lightdash:// URI to its JSON text.

    Raises:
        ValueError: For unsupported schemes or paths, or a malformed UUID segment
    """
    parts, query = parse_resource_uri(uri)
    logger.debug(f"reading resource | uri:{uri}")

    if parts[0] in ("projects", "dashboards", "charts"):
        _check_uuid(parts[0][:-1], parts[1])

    if parts[0] == "explores" and len(parts) >= 3 and parts[2] == "optimization-suggestions":
        return await read_explore_optimization_suggestions(
            parts[1],
            include_field_analysis=query.get("fields") == "true",
            optimization_type=query.get("type", "performance"),
            client=client,
            cache=cache
        )

    if parts[0] == "projects" and len(parts) >= 3 and parts[2] == "catalog":
        return await read_project_catalog(parts[1], query, client=client)

    if parts[0] == "projects" and len(parts) >= 5 and parts[2] == "explores" and parts[4] == "schema":
        return await read_explore_schema(parts[1], parts[3], client=client)

    if parts[0] == "projects" and len(parts) >= 3 and parts[2] == "chart-analytics":
        return await read_project_chart_analytics(
            parts[1],
            depth=query.get("depth", "standard"),
            include_optimizations=query.get("optimizations") == "true",
            client=client,
            cache=cache
        )

    if parts[0] == "dashboards":
        return await read_dashboard(parts[1], client=client)

    if parts[0] == "charts":
        include_analysis = query.get("analysis") == "true" or (len(parts) >= 3 and parts[2] == "analysis")
        return await read_chart(parts[1], include_analysis=include_analysis, client=client)

    raise ValueError(f"Unsupported resource path: {'/'.join(parts)}")
