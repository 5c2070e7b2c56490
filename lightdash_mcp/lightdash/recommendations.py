"""
Recommendation operations

Chart recommendations for an explore, dashboard optimization plans and
chart templates learned from a project's saved charts.
"""

import math
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from lightdash_mcp.logging import get_logger

from .client import LightdashAPIError, LightdashClient, get_lightdash_client, format_results
from .intelligence import ANALYSIS_VERSION, fetch_chart, time_chart_results
from .schemas import (
    GenerateChartRecommendationsRequest,
    AutoOptimizeDashboardRequest,
    CreateSmartTemplatesRequest,
    parse_arguments
)
from .scoring import (
    analyze_data_characteristics,
    calculate_recommendation_score,
    candidate_configuration,
    interpret_analytical_goal
)

logger = get_logger('INTELLIGENCE')

RECOMMENDATION_CHART_TYPES = ["line", "bar", "table", "pie", "scatter", "area"]
MAX_RECOMMENDATIONS = 15
MIN_RECOMMENDATION_SCORE = 0.3

MAX_DASHBOARD_TILES = 10
SLOW_TILE_MS = 5000
OPTIMIZE_TILE_MS = 3000
CROWDED_DASHBOARD_TILES = 12
LAYOUT_REVIEW_TILES = 8
DEFAULT_LOAD_TIME_MS = 2000

MAX_TEMPLATE_CHARTS = 50


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _processing_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def find_explore(
    client: LightdashClient,
    explore_id: str,
    project_uuid: Optional[str] = None
) -> Tuple[str, Dict[str, Any]]:
    """
    Locate an explore, in ``project_uuid`` when given, otherwise in the
    first accessible project that has it.

    Raises:
        LightdashAPIError: 404 when no searched project has the explore
    """
    if project_uuid:
        candidates = [project_uuid]
    else:
        projects = await client.get_results("/api/v1/org/projects") or []
        candidates = [p.get("projectUuid") for p in projects]

    for candidate in candidates:
        try:
            explore = await client.get_results(f"/api/v1/projects/{candidate}/explores/{explore_id}")
        except LightdashAPIError as e:
            logger.debug(f"explore not in project | project:{candidate} | explore:{explore_id} | error:{e}")
            continue
        return candidate, explore or {}

    raise LightdashAPIError(f"Explore {explore_id} not found in any accessible project", status_code=404)


def _implementation_guidance(explore_id: str, config: Dict[str, Any]) -> Dict[str, Any]:
    field_count = len(config["dimensions"]) + len(config["metrics"])
    if field_count <= 4:
        complexity = "simple"
    elif field_count <= 7:
        complexity = "moderate"
    else:
        complexity = "complex"

    return {
        "steps": [
            {"stepNumber": 1, "title": "Select Explore",
             "description": f"Choose the {explore_id} explore as your data source", "estimatedTime": "1 minute"},
            {"stepNumber": 2, "title": "Configure Fields",
             "description": "Add the recommended dimensions and metrics to your chart", "estimatedTime": "2-3 minutes"},
            {"stepNumber": 3, "title": "Set Chart Type",
             "description": f"Select {config['chartType']} as your visualization type", "estimatedTime": "30 seconds"},
            {"stepNumber": 4, "title": "Apply Filters",
             "description": "Add relevant filters to focus your analysis", "estimatedTime": "1-2 minutes"},
        ],
        "complexity": complexity,
        "prerequisites": ["Access to the explore", "Understanding of the business context"],
        "tips": [
            "Start with fewer fields and add more as needed",
            "Use filters to focus on relevant data",
            "Consider your audience when choosing chart types",
        ],
    }


async def generate_chart_recommendations(
    explore_id: str,
    analytical_goal: str,
    project_uuid: Optional[str] = None,
    data_context: Optional[Dict[str, Any]] = None,
    max_recommendations: Optional[int] = None,
    include_implementation_guidance: Optional[bool] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Recommend chart configurations for an explore.

    The explore's fields are profiled, one candidate configuration is built
    per chart type the fields support and candidates scoring at least 0.3
    are returned best first.

    Args:
        explore_id: Explore to recommend charts for
        analytical_goal: trend_analysis, comparison, distribution, performance_tracking or custom
        project_uuid: Project of the explore, searched across projects when omitted
        data_context: businessContext, userRole, timeRange and keyMetrics hints
        max_recommendations: At most 15, 10 by default
        include_implementation_guidance: Add build steps to each recommendation
    """
    started = time.perf_counter()
    args = parse_arguments(
        GenerateChartRecommendationsRequest,
        explore_id=explore_id,
        analytical_goal=analytical_goal,
        project_uuid=project_uuid,
        data_context=data_context,
        max_recommendations=max_recommendations,
        include_implementation_guidance=include_implementation_guidance
    )
    client = client or get_lightdash_client()

    found_project, explore = await find_explore(
        client, args.explore_id, str(args.project_uuid) if args.project_uuid else None
    )
    profile = analyze_data_characteristics(explore)
    interpretation = interpret_analytical_goal(
        args.data_context.get("businessContext"),
        args.data_context,
        args.data_context.get("userRole")
    )
    limit = min(args.max_recommendations, MAX_RECOMMENDATIONS)
    goal = args.analytical_goal

    recommendations = []
    for chart_type in RECOMMENDATION_CHART_TYPES:
        if len(recommendations) >= limit:
            break
        config = candidate_configuration(chart_type, args.explore_id, profile)
        if config is None:
            continue

        scoring = calculate_recommendation_score(config, profile, goal)
        if scoring["score"] < MIN_RECOMMENDATION_SCORE:
            continue

        recommendation = {
            "recommendationId": f"rec_{len(recommendations) + 1}",
            "title": f"{chart_type.capitalize()} Chart Analysis",
            "description": f"{chart_type} visualization optimized for {goal} analysis",
            "analyticalGoal": goal,
            "confidence": scoring["confidence"],
            "confidenceScore": scoring["score"],
            "scoringFactors": scoring["factors"],
            "reasoning": {
                "type": "pattern_based",
                "explanation": (
                    f"This {chart_type} chart is recommended based on your {goal} goal "
                    f"and the available data characteristics"
                ),
                "supportingEvidence": [
                    f"Chart type {chart_type} aligns well with {goal} analysis",
                    f"Available data includes {len(profile['numericFields'])} metrics "
                    f"and {len(profile['categoricalFields'])} dimensions",
                ],
                "dataCharacteristics": profile["recommendations"],
            },
            "chartConfiguration": config,
            "expectedOutcomes": {
                "insights": [
                    f"Understand {goal} patterns in your data",
                    "Identify key trends and relationships",
                ],
                "businessValue": f"Enables better {goal} understanding and decision-making",
            },
        }
        if args.include_implementation_guidance:
            recommendation["implementationGuidance"] = _implementation_guidance(args.explore_id, config)
        recommendations.append(recommendation)

    recommendations.sort(key=lambda r: r["confidenceScore"], reverse=True)

    logger.info(
        f"chart recommendations | explore:{args.explore_id} | project:{found_project} | "
        f"goal:{goal} | recommendations:{len(recommendations)}"
    )

    return format_results({
        "exploreId": args.explore_id,
        "projectUuid": found_project,
        "analyticalGoal": goal,
        "goalInterpretation": interpretation,
        "recommendations": recommendations,
        "summary": {
            "totalRecommendations": len(recommendations),
            "averageConfidence": (
                sum(r["confidenceScore"] for r in recommendations) / len(recommendations) if recommendations else 0
            ),
            "recommendationTypes": dict(Counter(r["chartConfiguration"]["chartType"] for r in recommendations)),
            "estimatedImplementationTime": f"{len(recommendations) * 5} minutes",
        },
        "metadata": {
            "generatedAt": _timestamp(),
            "analysisVersion": ANALYSIS_VERSION,
            "processingTime": _processing_ms(started),
        },
    })


async def fetch_dashboard(client: LightdashClient, dashboard_uuid: str) -> Dict[str, Any]:
    """
    Dashboard definition.

    Raises:
        LightdashAPIError: ``Dashboard not found`` for a 404, the API error otherwise
    """
    try:
        dashboard = await client.get_results(f"/api/v1/dashboards/{dashboard_uuid}")
    except LightdashAPIError as e:
        if e.status_code == 404:
            raise LightdashAPIError(
                f"Dashboard not found: {dashboard_uuid}. "
                f"Please check the dashboard UUID and ensure you have access to it.",
                status_code=404,
                error=e.error
            ) from e
        raise
    return dashboard or {}


def dashboard_performance_score(average_load_time: float) -> int:
    if average_load_time > 10000:
        return 30
    if average_load_time > 5000:
        return 50
    if average_load_time > 2000:
        return 70
    return 75


def _percent_gain(current: int, projected: int) -> str:
    return f"{round((projected - current) / current * 100)}%" if current else "0%"


def _implementation_plan(optimizations: List[Dict[str, Any]], average_load_time: float) -> Dict[str, Any]:
    def ids(kind):
        return [o["optimizationId"] for o in optimizations if o["type"] == kind]

    return {
        "phases": [
            {"phaseNumber": 1, "title": "Performance Optimization",
             "description": "Focus on improving tile load times and query performance",
             "optimizations": ids("performance"), "estimatedDuration": "2-3 hours", "dependencies": []},
            {"phaseNumber": 2, "title": "Layout and UX Improvements",
             "description": "Reorganize layout and improve user experience",
             "optimizations": ids("layout"), "estimatedDuration": "1-2 hours",
             "dependencies": ["Phase 1 completion"]},
            {"phaseNumber": 3, "title": "Content Standardization",
             "description": "Standardize metrics and ensure data consistency",
             "optimizations": ids("content"), "estimatedDuration": "2-3 hours",
             "dependencies": ["Phase 1 completion"]},
        ],
        "totalEstimatedTime": "5-8 hours",
        "successMetrics": [
            {"metric": "Average Load Time", "currentValue": f"{round(average_load_time)}ms",
             "targetValue": "<2000ms", "measurementMethod": "Automated performance monitoring"},
        ],
    }


async def auto_optimize_dashboard(
    dashboard_uuid: str,
    optimization_goals: Optional[List[str]] = None,
    include_implementation_plan: Optional[bool] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Time a dashboard's chart tiles and build an optimization plan.

    The first ten saved-chart tiles are timed one results call each. Tiles
    whose call fails are left out of the average. The performance score
    starts at 75 and drops with the average load time; the usability score
    starts at 70 and loses 20 on a dashboard of more than twelve tiles.

    Args:
        dashboard_uuid: Dashboard to optimize
        optimization_goals: performance, user_experience and/or data_accuracy
        include_implementation_plan: Add a phased plan
    """
    started = time.perf_counter()
    args = parse_arguments(
        AutoOptimizeDashboardRequest,
        dashboard_uuid=dashboard_uuid,
        optimization_goals=optimization_goals,
        include_implementation_plan=include_implementation_plan
    )
    dashboard_uuid = str(args.dashboard_uuid)
    client = client or get_lightdash_client()

    dashboard = await fetch_dashboard(client, dashboard_uuid)
    tiles = dashboard.get("tiles") or []
    issues: List[Dict[str, Any]] = []

    timings = []
    for tile in tiles[:MAX_DASHBOARD_TILES]:
        properties = tile.get("properties") or {}
        chart_uuid = properties.get("savedChartUuid")
        if tile.get("type") != "saved_chart" or not chart_uuid:
            continue

        elapsed, _, ok = await time_chart_results(client, chart_uuid)
        if not ok:
            continue
        title = properties.get("title") or "Untitled"
        if elapsed > SLOW_TILE_MS:
            issues.append({
                "type": "performance",
                "severity": "high",
                "description": f'Tile "{title}" has slow load time ({elapsed}ms)',
                "affectedTiles": [tile.get("uuid")],
            })
        timings.append({"tileId": tile.get("uuid"), "loadTime": elapsed, "title": title})

    average_load_time = (
        sum(t["loadTime"] for t in timings) / len(timings) if timings else DEFAULT_LOAD_TIME_MS
    )
    performance_score = dashboard_performance_score(average_load_time)

    usability_score = 70
    if len(tiles) > CROWDED_DASHBOARD_TILES:
        issues.append({
            "type": "usability",
            "severity": "medium",
            "description": "Dashboard has many tiles which may overwhelm users",
            "affectedTiles": [t.get("uuid") for t in tiles],
        })
        usability_score -= 20

    optimizations: List[Dict[str, Any]] = []

    def add(kind: str, **fields: Any) -> None:
        optimizations.append({"optimizationId": f"opt_{len(optimizations) + 1}", "type": kind, **fields})

    if "performance" in args.optimization_goals:
        slow_tiles = [t for t in timings if t["loadTime"] > OPTIMIZE_TILE_MS]
        if slow_tiles:
            add(
                "performance",
                title="Optimize Slow-Loading Tiles",
                description=f"{len(slow_tiles)} tiles have slow load times and should be optimized",
                priority="high",
                implementation={
                    "changes": [
                        {"target": t["tileId"], "action": "optimize_query",
                         "details": f'Optimize query for "{t["title"]}" to improve load time'}
                        for t in slow_tiles
                    ],
                    "estimatedEffort": f"{len(slow_tiles) * 30} minutes",
                    "riskLevel": "low",
                },
                expectedBenefits=["Reduce average load time by 40-60%", "Reduce server load"],
            )

    if "user_experience" in args.optimization_goals and len(tiles) > LAYOUT_REVIEW_TILES:
        add(
            "layout",
            title="Reorganize Dashboard Layout",
            description="Reorganize tiles for better visual hierarchy and user flow",
            priority="medium",
            implementation={
                "changes": [{"target": "dashboard_layout", "action": "reorganize",
                             "details": "Group related tiles and prioritize most important metrics"}],
                "estimatedEffort": "45 minutes",
                "riskLevel": "low",
            },
            expectedBenefits=["Improved visual hierarchy", "Reduced cognitive load"],
        )

    if "data_accuracy" in args.optimization_goals:
        add(
            "content",
            title="Standardize Metrics and Filters",
            description="Ensure consistent metric definitions and filter applications across tiles",
            priority="medium",
            implementation={
                "changes": [{"target": "all_tiles", "action": "standardize_metrics",
                             "details": "Review and align metric calculations across all tiles"}],
                "estimatedEffort": "60 minutes",
                "riskLevel": "medium",
            },
            expectedBenefits=["Improved data consistency", "Better decision-making"],
        )

    projected_performance = min(95, performance_score + 25)
    projected_usability = min(95, usability_score + 20)

    if not optimizations:
        priority = "low"
    elif any(o["priority"] == "high" for o in optimizations):
        priority = "high"
    else:
        priority = "medium"

    result = {
        "dashboardUuid": dashboard_uuid,
        "currentState": {
            "tileCount": len(tiles),
            "analyzedTiles": len(timings),
            "averageLoadTime": average_load_time,
            "performanceScore": performance_score,
            "usabilityScore": usability_score,
            "identifiedIssues": issues,
        },
        "optimizationPlan": {
            "priority": priority,
            "estimatedImpact": {
                "performanceImprovement": _percent_gain(performance_score, projected_performance),
                "usabilityImprovement": _percent_gain(usability_score, projected_usability),
            },
            "optimizations": optimizations,
        },
        "projectedOutcome": {
            "performanceScore": projected_performance,
            "usabilityScore": projected_usability,
            "expectedLoadTime": max(1000, average_load_time * 0.6),
        },
        "metadata": {
            "analyzedAt": _timestamp(),
            "analysisVersion": ANALYSIS_VERSION,
            "processingTime": _processing_ms(started),
        },
    }
    if args.include_implementation_plan:
        result["implementationPlan"] = _implementation_plan(optimizations, average_load_time)

    logger.info(
        f"dashboard optimization | dashboard:{dashboard_uuid} | tiles:{len(tiles)} | "
        f"timed:{len(timings)} | avg_ms:{round(average_load_time)} | optimizations:{len(optimizations)}"
    )

    return format_results(result)


def _top(counts: Counter, n: int) -> List[str]:
    return [name for name, _ in counts.most_common(n)]


async def create_smart_templates(
    organization_context: Optional[Dict[str, Any]] = None,
    template_type: Optional[str] = None,
    project_uuid: Optional[str] = None,
    learning_dataset: Optional[Dict[str, Any]] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Build chart templates from the saved charts of a project.

    Up to fifty charts are read, optionally only those whose explore is
    listed in ``learning_dataset["exploreIds"]``. The most used chart type
    becomes an organizational standard template with the most used fields.
    Chart and custom template types also get a high-performance table
    template.

    Args:
        organization_context: Free-form context echoed in the result
        template_type: chart, kpi_tracking, analysis_workflow or custom
        project_uuid: Project to learn from, the first accessible project when omitted
        learning_dataset: Optional ``exploreIds`` filter
    """
    started = time.perf_counter()
    args = parse_arguments(
        CreateSmartTemplatesRequest,
        organization_context=organization_context,
        template_type=template_type,
        project_uuid=project_uuid,
        learning_dataset=learning_dataset
    )
    client = client or get_lightdash_client()

    if args.project_uuid:
        source_project = str(args.project_uuid)
    else:
        projects = await client.get_results("/api/v1/org/projects") or []
        if not projects:
            raise LightdashAPIError("No accessible projects found for template generation", status_code=404)
        source_project = projects[0].get("projectUuid")

    charts = await client.get_results(f"/api/v1/projects/{source_project}/charts") or []
    explore_filter = set(args.learning_dataset.get("exploreIds") or [])

    chart_types: Counter = Counter()
    dimensions: Counter = Counter()
    metrics: Counter = Counter()
    explores: Counter = Counter()
    analyzed = 0

    for summary in charts[:MAX_TEMPLATE_CHARTS]:
        try:
            chart = await fetch_chart(client, summary.get("uuid"))
        except LightdashAPIError as e:
            logger.warning(f"failed to analyze chart | chart:{summary.get('uuid')} | error:{e}")
            continue
        table_name = chart.get("tableName")
        if explore_filter and table_name not in explore_filter:
            continue

        analyzed += 1
        chart_types[(chart.get("chartConfig") or {}).get("type") or "table"] += 1
        if table_name:
            explores[table_name] += 1
        metric_query = chart.get("metricQuery") or {}
        dimensions.update(metric_query.get("dimensions") or [])
        metrics.update(metric_query.get("metrics") or [])

    templates: List[Dict[str, Any]] = []

    if chart_types:
        chart_type, usage = chart_types.most_common(1)[0]
        top_dimensions = _top(dimensions, 3)
        top_metrics = _top(metrics, 3)
        templates.append({
            "templateId": f"template_{len(templates) + 1}",
            "name": f"{chart_type.capitalize()} Dashboard Standard",
            "description": f"Standard {chart_type} template based on organizational patterns (used in {usage} charts)",
            "category": "organizational_standard",
            "chartType": chart_type,
            "configuration": {
                "chartConfig": {"type": chart_type, "config": {}},
                "suggestedDimensions": top_dimensions,
                "suggestedMetrics": top_metrics,
                "defaultFilters": [],
                "sortConfiguration": (
                    [{"fieldId": top_dimensions[0], "descending": False}] if top_dimensions else []
                ),
            },
            "usageGuidelines": {
                "bestUseCases": [
                    f"Analyzing {' and '.join(top_dimensions[:2])} patterns",
                    f"Tracking {' and '.join(top_metrics[:2])} performance",
                    "Standard organizational reporting",
                ],
            },
            "metadata": {
                "basedOnCharts": usage,
                "confidenceScore": min(95, usage / analyzed * 100 + 50),
                "lastUpdated": _timestamp(),
                "organizationSpecific": True,
            },
        })

    if args.template_type in ("chart", "custom"):
        templates.append({
            "templateId": f"template_{len(templates) + 1}",
            "name": "High-Performance Analytics",
            "description": "Optimized template for fast-loading, high-performance charts",
            "category": "performance_optimized",
            "chartType": "table",
            "configuration": {
                "chartConfig": {"type": "table", "config": {"pagination": {"enabled": True, "pageSize": 25}}},
                "suggestedDimensions": list(dimensions)[:2],
                "suggestedMetrics": list(metrics)[:3],
                "defaultFilters": [],
                "sortConfiguration": [],
                "limit": 1000,
            },
            "usageGuidelines": {
                "bestUseCases": [
                    "Large dataset analysis",
                    "Real-time dashboard components",
                    "Frequently accessed reports",
                ],
            },
            "metadata": {
                "basedOnCharts": math.floor(analyzed * 0.3),
                "confidenceScore": 88,
                "lastUpdated": _timestamp(),
                "organizationSpecific": False,
            },
        })

    logger.info(
        f"smart templates | project:{source_project} | charts:{len(charts)} | "
        f"analyzed:{analyzed} | templates:{len(templates)}"
    )

    return format_results({
        "organizationContext": args.organization_context,
        "projectUuid": source_project,
        "patternAnalysis": {
            "totalCharts": len(charts),
            "analyzedCharts": analyzed,
            "chartTypes": dict(chart_types),
            "commonDimensions": dict(dimensions),
            "commonMetrics": dict(metrics),
            "popularExplores": dict(explores),
        },
        "templates": templates,
        "metadata": {
            "generatedAt": _timestamp(),
            "analysisVersion": ANALYSIS_VERSION,
            "processingTime": _processing_ms(started),
            "patternConfidence": (
                sum(t["metadata"]["confidenceScore"] for t in templates) / len(templates) if templates else 0
            ),
        },
    })
