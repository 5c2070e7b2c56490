"""
Cross-chart analysis

Pattern extraction groups saved charts by explore and reports the fields a
group has in common. Relationship discovery scores every other chart of the
source chart's project by shared explore, metrics and dimensions.
"""

import math
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lightdash_mcp.logging import get_logger

from .client import LightdashAPIError, LightdashClient, get_lightdash_client, format_results
from .intelligence import ANALYSIS_VERSION, fetch_chart
from .optimization import calculate_configuration_similarity
from .performance import round_half_up
from .schemas import ExtractChartPatternsRequest, DiscoverChartRelationshipsRequest, parse_arguments

logger = get_logger('INTELLIGENCE')

MIN_PATTERN_CHARTS = 2
COMMON_FIELD_SHARE = 0.5
MAX_PATTERN_EXAMPLES = 3

SHARED_EXPLORE_WEIGHT = 0.3
SHARED_METRICS_WEIGHT = 0.4
SHARED_DIMENSIONS_WEIGHT = 0.3


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _chart_type(chart: Dict[str, Any]) -> str:
    return (chart.get("chartConfig") or {}).get("type") or "table"


def chart_configuration(chart: Dict[str, Any]) -> Dict[str, Any]:
    """Metric query of a saved chart merged with its chart type."""
    return {**(chart.get("metricQuery") or {}), "chartType": _chart_type(chart)}


def classify_pattern(common_metrics: List[str], common_dimensions: List[str]) -> str:
    if any("date" in d or "time" in d for d in common_dimensions):
        return "time_series"
    if len(common_metrics) == 1 and common_dimensions:
        return "metric_breakdown"
    if len(common_metrics) > 1:
        return "comparison"
    return "custom"


def _common_fields(charts: List[Dict[str, Any]], key: str) -> List[str]:
    counts: Counter = Counter()
    for chart in charts:
        counts.update((chart["config"].get("metricQuery") or {}).get(key) or [])
    threshold = math.ceil(len(charts) * COMMON_FIELD_SHARE)
    return [field for field, count in counts.items() if count >= threshold]


async def extract_chart_patterns(
    chart_uuids: List[str],
    pattern_type: Optional[str] = None,
    min_confidence: Optional[float] = None,
    include_examples: Optional[bool] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Find configuration patterns shared by saved charts.

    Charts are grouped by explore. A group of at least two charts yields a
    pattern from the metrics and dimensions used by at least half of its
    charts. Confidence is the group's share of the requested charts. Charts
    that fail to load are logged and skipped.

    Args:
        chart_uuids: Saved charts to analyze
        pattern_type: time_series, metric_breakdown, comparison or custom
        min_confidence: Lowest confidence to report, 0.7 by default
        include_examples: Attach up to three example charts per pattern
    """
    args = parse_arguments(
        ExtractChartPatternsRequest,
        chart_uuids=chart_uuids,
        pattern_type=pattern_type,
        min_confidence=min_confidence,
        include_examples=include_examples
    )
    client = client or get_lightdash_client()

    charts = []
    for chart_uuid in map(str, args.chart_uuids):
        try:
            chart = await fetch_chart(client, chart_uuid)
        except LightdashAPIError as e:
            logger.warning(f"failed to fetch chart | chart:{chart_uuid} | error:{e}")
            continue
        charts.append({"uuid": chart_uuid, "name": chart.get("name"), "config": chart})

    explore_groups: Dict[Any, List[Dict[str, Any]]] = {}
    for chart in charts:
        explore_groups.setdefault(chart["config"].get("tableName"), []).append(chart)

    patterns = []
    for explore_id, group in explore_groups.items():
        if len(group) < MIN_PATTERN_CHARTS:
            continue

        common_metrics = _common_fields(group, "metrics")
        common_dimensions = _common_fields(group, "dimensions")
        if not common_metrics and not common_dimensions:
            continue

        kind = classify_pattern(common_metrics, common_dimensions)
        if args.pattern_type and kind != args.pattern_type:
            continue

        confidence = len(group) / len(args.chart_uuids)
        if confidence < args.min_confidence:
            continue

        most_common_type = Counter(_chart_type(c["config"]) for c in group).most_common(1)[0][0]
        examples = [
            {"chartUuid": c["uuid"], "chartName": c["name"], "similarity": confidence}
            for c in group[:MAX_PATTERN_EXAMPLES]
        ] if args.include_examples else []

        patterns.append({
            "patternId": f"pattern_{len(patterns) + 1}",
            "patternType": kind,
            "name": f"{explore_id} {kind.replace('_', ' ')} pattern",
            "description": (
                f"Common pattern using {len(common_metrics)} metrics and "
                f"{len(common_dimensions)} dimensions from {explore_id}"
            ),
            "frequency": len(group),
            "confidence": confidence,
            "template": {
                "exploreId": explore_id,
                "dimensions": common_dimensions,
                "metrics": common_metrics,
                "filters": [],
                "sorts": [],
                "chartConfig": {"type": most_common_type, "options": {}},
            },
            "examples": examples,
            "metadata": {
                "extractedAt": _timestamp(),
                "sourceChartCount": len(group),
                "extractionVersion": ANALYSIS_VERSION,
            },
        })

    logger.info(
        f"chart patterns | requested:{len(args.chart_uuids)} | analyzed:{len(charts)} | patterns:{len(patterns)}"
    )

    return format_results({
        "patterns": patterns,
        "summary": {
            "totalChartsAnalyzed": len(charts),
            "patternsFound": len(patterns),
            "exploresAnalyzed": len(explore_groups),
            "averageConfidence": sum(p["confidence"] for p in patterns) / len(patterns) if patterns else 0,
        },
        "metadata": {"analyzedAt": _timestamp(), "analysisVersion": ANALYSIS_VERSION},
    })


def _shared(source: List[str], related: List[str]) -> List[str]:
    return [field for field in source if field in related]


def score_relationship(source: Dict[str, Any], related: Dict[str, Any]):
    """
    Relationship strength between two saved charts, with the relationship
    types found and the elements they share.

    A shared explore adds 0.3. Shared metrics add up to 0.4 and shared
    dimensions up to 0.3, each scaled by the overlap relative to the larger
    of the two field lists.
    """
    source_query = source.get("metricQuery") or {}
    related_query = related.get("metricQuery") or {}
    source_metrics = source_query.get("metrics") or []
    related_metrics = related_query.get("metrics") or []
    source_dimensions = source_query.get("dimensions") or []
    related_dimensions = related_query.get("dimensions") or []

    strength = 0.0
    types: List[str] = []
    common: Dict[str, Any] = {"sharedMetrics": [], "sharedDimensions": [], "sharedFilters": [], "dashboards": []}

    if source.get("tableName") == related.get("tableName"):
        strength += SHARED_EXPLORE_WEIGHT
        types.append("shared_explore")
        common["exploreId"] = source.get("tableName")

    shared_metrics = _shared(source_metrics, related_metrics)
    if shared_metrics:
        strength += len(shared_metrics) / max(len(source_metrics), len(related_metrics)) * SHARED_METRICS_WEIGHT
        types.append("shared_metrics")
        common["sharedMetrics"] = shared_metrics

    shared_dimensions = _shared(source_dimensions, related_dimensions)
    if shared_dimensions:
        strength += (
            len(shared_dimensions) / max(len(source_dimensions), len(related_dimensions)) * SHARED_DIMENSIONS_WEIGHT
        )
        types.append("shared_dimensions")
        common["sharedDimensions"] = shared_dimensions

    return strength, types, common


def change_risk(strength: float) -> str:
    if strength > 0.7:
        return "high"
    if strength > 0.4:
        return "medium"
    return "low"


async def discover_chart_relationships(
    chart_uuid: str,
    relationship_type: Optional[str] = None,
    min_strength: Optional[float] = None,
    max_results: Optional[int] = None,
    include_impact_analysis: Optional[bool] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Rank the other charts of a chart's project by how closely they relate to it.

    Args:
        chart_uuid: Source chart
        relationship_type: all, shared_explore, shared_metrics or shared_dimensions
        min_strength: Weakest relationship to keep, 0.3 by default
        max_results: Maximum related charts, 25 by default
        include_impact_analysis: Attach change risk per relationship

    Returns:
        JSON text with relationships strongest first. Each one carries a
        ``configurationSimilarity`` from calculate_configuration_similarity.
    """
    args = parse_arguments(
        DiscoverChartRelationshipsRequest,
        chart_uuid=chart_uuid,
        relationship_type=relationship_type,
        min_strength=min_strength,
        max_results=max_results,
        include_impact_analysis=include_impact_analysis
    )
    chart_uuid = str(args.chart_uuid)
    client = client or get_lightdash_client()

    source = await fetch_chart(client, chart_uuid)
    project_charts = await client.get_results(f"/api/v1/projects/{source.get('projectUuid')}/charts") or []
    source_configuration = chart_configuration(source)

    relationships = []
    for summary in project_charts:
        related_uuid = summary.get("uuid")
        if related_uuid == chart_uuid:
            continue
        try:
            related = await fetch_chart(client, related_uuid)
        except LightdashAPIError as e:
            logger.warning(f"failed to analyze chart | chart:{related_uuid} | error:{e}")
            continue

        strength, types, common = score_relationship(source, related)
        if args.relationship_type != "all" and args.relationship_type not in types:
            continue
        if strength < args.min_strength:
            continue

        relationship = {
            "relatedChartUuid": related_uuid,
            "relatedChartName": summary.get("name"),
            "relationshipType": types[0] if types else "shared_explore",
            "strength": round_half_up(strength * 100) / 100,
            "configurationSimilarity": round_half_up(
                calculate_configuration_similarity(source_configuration, chart_configuration(related)) * 100
            ) / 100,
            "commonElements": common,
        }
        if args.include_impact_analysis:
            relationship["impactAnalysis"] = {
                "changeRisk": change_risk(strength),
                "affectedDashboards": [],
                "dependentCharts": len(types),
            }
        relationships.append(relationship)

    relationships.sort(key=lambda r: r["strength"], reverse=True)
    relationships = relationships[:args.max_results]

    logger.info(
        f"chart relationships | chart:{chart_uuid} | candidates:{len(project_charts)} | related:{len(relationships)}"
    )

    return format_results({
        "sourceChartUuid": chart_uuid,
        "relationships": relationships,
        "summary": {
            "totalRelatedCharts": len(relationships),
            "strongRelationships": sum(1 for r in relationships if r["strength"] > 0.6),
            "weakRelationships": sum(1 for r in relationships if r["strength"] <= 0.4),
            "criticalDependencies": sum(1 for r in relationships if change_risk(r["strength"]) == "high"),
        },
        "metadata": {"analyzedAt": _timestamp(), "analysisVersion": ANALYSIS_VERSION},
    })
