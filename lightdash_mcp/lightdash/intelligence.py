"""
Chart intelligence operations

Performance analysis, query optimization and variation benchmarking for
saved charts. Execution times are measured around the chart results call.
"""

import asyncio
import copy
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from lightdash_mcp.logging import get_logger

from .client import LightdashAPIError, LightdashClient, get_lightdash_client, format_results
from .optimization import generate_optimization_suggestions
from .performance import (
    calculate_query_complexity_score,
    calculate_statistical_metrics,
    count_filters,
    predict_query_performance,
    round_half_up
)
from .schemas import (
    ChartRequest,
    OptimizeChartQueryRequest,
    BenchmarkChartVariationsRequest,
    parse_arguments
)

logger = get_logger('INTELLIGENCE')

ANALYSIS_VERSION = "1.0"
OPTIMIZATION_VERSION = "2.0"
MAX_BENCHMARK_RUNS = 5
BENCHMARK_PAUSE_MS = 500
TOP_SUGGESTIONS = 3


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


async def _pause(delay_ms: float) -> None:
    await asyncio.sleep(delay_ms / 1000.0)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def fetch_chart(client: LightdashClient, chart_uuid: str) -> Dict[str, Any]:
    """
    Saved chart definition.

    Raises:
        LightdashAPIError: ``Chart not found`` for a 404, the API error otherwise
    """
    try:
        chart = await client.get_results(f"/api/v1/saved/{chart_uuid}")
    except LightdashAPIError as e:
        if e.status_code == 404:
            raise LightdashAPIError(
                f"Chart not found: {chart_uuid}. Please check the chart UUID and ensure you have access to it.",
                status_code=404,
                error=e.error
            ) from e
        raise
    return chart or {}


async def time_chart_results(
    client: LightdashClient,
    chart_uuid: str,
    invalidate_cache: bool = False
) -> Tuple[int, int, bool]:
    """
    Time one results call for a saved chart.

    Returns:
        (elapsed ms, row count, whether the call succeeded). A failed call
        still reports its elapsed time with zero rows.
    """
    started = _now_ms()
    try:
        body = await client.post(f"/api/v1/saved/{chart_uuid}/results", json_data={"invalidateCache": invalidate_cache})
    except LightdashAPIError as e:
        elapsed = round_half_up(_now_ms() - started)
        logger.warning(f"chart results failed | chart:{chart_uuid} | elapsed_ms:{elapsed} | error:{e}")
        return elapsed, 0, False

    elapsed = round_half_up(_now_ms() - started)
    results = body.get("results") or {}
    rows = results.get("rows") if isinstance(results, dict) else None
    return elapsed, len(rows or []), True


def describe_configuration(metric_query: Dict[str, Any]) -> Dict[str, Any]:
    """Field, filter and sort counts of a metric query."""
    return {
        "dimensionCount": len(metric_query.get("dimensions") or []),
        "metricCount": len(metric_query.get("metrics") or []),
        "filterCount": count_filters(metric_query),
        "sortCount": len(metric_query.get("sorts") or []),
        "hasTableCalculations": len(metric_query.get("tableCalculations") or []) > 0,
        "hasCustomMetrics": len(metric_query.get("customMetrics") or []) > 0,
    }


def performance_threshold(execution_time: float) -> str:
    if execution_time < 1000:
        return "fast"
    if execution_time < 5000:
        return "moderate"
    if execution_time < 15000:
        return "slow"
    return "very_slow"


def score_chart_performance(execution_time: float, row_count: int, configuration: Dict[str, Any]) -> int:
    """
    Performance score from 100 down to 0.

    Deductions: execution over 15 s 40, over 5 s 25, over 1 s 10; over
    10000 rows 20, over 1000 rows 10; more than 5 dimensions 10; more than 10
    metrics 10; no filters 15.
    """
    score = 100
    if execution_time > 15000:
        score -= 40
    elif execution_time > 5000:
        score -= 25
    elif execution_time > 1000:
        score -= 10

    if row_count > 10000:
        score -= 20
    elif row_count > 1000:
        score -= 10

    if configuration["dimensionCount"] > 5:
        score -= 10
    if configuration["metricCount"] > 10:
        score -= 10
    if configuration["filterCount"] == 0:
        score -= 15

    return max(0, score)


def _bottlenecks(execution_time: float, row_count: int, configuration: Dict[str, Any]):
    bottlenecks: List[str] = []
    recommendations: List[Dict[str, str]] = []

    if execution_time > 5000:
        bottlenecks.append("Query execution time exceeds 5 seconds")
        recommendations.append({
            "type": "limit",
            "priority": "high",
            "description": "Add row limit to reduce query execution time",
            "estimatedImprovement": "30-50% faster execution",
        })

    if configuration["filterCount"] == 0:
        bottlenecks.append("No filters applied - querying entire dataset")
        recommendations.append({
            "type": "filter",
            "priority": "high",
            "description": "Add date range or categorical filters to limit data scope",
            "estimatedImprovement": "50-80% faster execution",
        })

    if configuration["dimensionCount"] > 5:
        bottlenecks.append("High number of dimensions may impact performance")
        recommendations.append({
            "type": "dimension",
            "priority": "medium",
            "description": "Consider reducing dimensions or using drill-down approach",
            "estimatedImprovement": "20-30% faster execution",
        })

    if row_count > 5000:
        bottlenecks.append("Large result set may impact rendering performance")
        recommendations.append({
            "type": "limit",
            "priority": "medium",
            "description": "Consider adding pagination or limiting results",
            "estimatedImprovement": "40-60% better user experience",
        })

    return bottlenecks, recommendations


def _quality_issues(score: int, bottlenecks: List[str], recommendations: List[Dict[str, str]]):
    if score < 50:
        severity = "critical"
    elif score < 75:
        severity = "warning"
    else:
        severity = "info"

    issues = []
    for bottleneck in bottlenecks:
        issue = {"type": "performance", "severity": severity, "message": bottleneck}
        keyword = bottleneck.lower().split(" ")[0]
        match = next((r for r in recommendations if keyword in r["description"].lower()), None)
        if match:
            issue["suggestion"] = match["description"]
        issues.append(issue)
    return issues


async def analyze_chart_performance(chart_uuid: str, client: Optional[LightdashClient] = None) -> str:
    """
    Measure a saved chart's results call and score its performance.

    Args:
        chart_uuid: UUID of the saved chart

    Returns:
        JSON text with performance, configuration, usage and quality sections
    """
    args = parse_arguments(ChartRequest, chart_uuid=chart_uuid)
    chart_uuid = str(args.chart_uuid)
    client = client or get_lightdash_client()

    chart = await fetch_chart(client, chart_uuid)
    execution_time, row_count, _ = await time_chart_results(client, chart_uuid)

    metric_query = chart.get("metricQuery") or {}
    configuration = describe_configuration(metric_query)
    score = score_chart_performance(execution_time, row_count, configuration)
    bottlenecks, recommendations = _bottlenecks(execution_time, row_count, configuration)
    analyzed_at = _timestamp()

    logger.info(
        f"chart analyzed | chart:{chart_uuid} | execution_ms:{execution_time}"
        f" | rows:{row_count} | score:{score}"
    )

    return format_results({
        "chartUuid": chart_uuid,
        "chartName": chart.get("name"),
        "chartType": (chart.get("chartConfig") or {}).get("type") or "table",
        "exploreId": chart.get("tableName"),
        "performance": {
            "chartUuid": chart_uuid,
            "queryExecutionTime": execution_time,
            "dataFreshness": 0,
            "rowCount": row_count,
            "columnCount": (
                configuration["dimensionCount"]
                + configuration["metricCount"]
                + len(metric_query.get("tableCalculations") or [])
            ),
            "performanceScore": score,
            "threshold": performance_threshold(execution_time),
            "bottlenecks": bottlenecks,
            "recommendations": recommendations,
            "metadata": {"analyzedAt": analyzed_at, "analysisVersion": ANALYSIS_VERSION},
        },
        "configuration": configuration,
        "usage": {
            "lastViewed": chart.get("updatedAt"),
            "viewCount": chart.get("views") or 0,
            "dashboardCount": chart.get("dashboardCount") or 0,
        },
        "quality": {
            "score": score,
            "issues": _quality_issues(score, bottlenecks, recommendations),
        },
        "metadata": {"analyzedAt": analyzed_at, "analysisVersion": ANALYSIS_VERSION},
    })


def apply_suggestion(metric_query: Dict[str, Any], suggestion: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``metric_query`` with one optimization suggestion applied."""
    optimized = copy.deepcopy(metric_query)
    kind = suggestion["type"]

    if kind == "filter":
        filters = optimized.get("filters") or {}
        optimized["filters"] = filters
        dimension_filters = filters.get("dimensions") or {"id": "filter_group", "and": []}
        filters["dimensions"] = dimension_filters
        dimension_filters.setdefault("and", [])
        # No explore schema here, so the date field is a placeholder
        dimension_filters["and"].append({
            "id": "date_filter",
            "target": {"fieldId": "date_field"},
            "operator": "inThePast",
            "values": [90, "days"],
        })
    elif kind == "limit":
        changes = (suggestion.get("implementation") or {}).get("changes") or [{}]
        optimized["limit"] = changes[0].get("suggestedValue") or 1000
    elif kind == "dimension":
        if len(optimized.get("dimensions") or []) > 3:
            optimized["dimensions"] = optimized["dimensions"][:3]
    elif kind == "metric":
        if len(optimized.get("metrics") or []) > 5:
            optimized["metrics"] = optimized["metrics"][:5]

    return optimized


def _improvement(current: float, estimated: float) -> int:
    if current <= 0:
        return 0
    return round_half_up((current - estimated) / current * 100)


async def optimize_chart_query(
    chart_uuid: str,
    optimization_type: Optional[str] = None,
    aggressiveness: Optional[str] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Suggest optimized versions of a chart's metric query.

    The top three suggestions are each applied to a copy of the query and
    scored with a predicted execution time relative to the measured one.

    Args:
        chart_uuid: UUID of the saved chart
        optimization_type: performance, accuracy, user_experience or comprehensive
        aggressiveness: conservative, moderate or aggressive
    """
    args = parse_arguments(
        OptimizeChartQueryRequest,
        chart_uuid=chart_uuid,
        optimization_type=optimization_type,
        aggressiveness=aggressiveness
    )
    chart_uuid = str(args.chart_uuid)
    client = client or get_lightdash_client()

    chart = await fetch_chart(client, chart_uuid)
    original = chart.get("metricQuery") or {}
    execution_time, row_count, _ = await time_chart_results(client, chart_uuid)
    complexity = calculate_query_complexity_score(original)

    suggestions = generate_optimization_suggestions(
        original,
        {"executionTime": execution_time, "rowCount": row_count},
        args.optimization_type,
        args.aggressiveness
    )

    optimized_configs = []
    for suggestion in suggestions[:TOP_SUGGESTIONS]:
        configuration = apply_suggestion(original, suggestion)
        prediction = predict_query_performance(configuration, execution_time)
        optimized_complexity = calculate_query_complexity_score(configuration)
        optimized_configs.append({
            "optimizationId": suggestion["id"],
            "optimizationType": suggestion["type"],
            "description": suggestion["description"],
            "configuration": configuration,
            "predictions": {
                "estimatedExecutionTime": prediction["estimatedTime"],
                "confidence": prediction["confidence"],
                "complexityScore": optimized_complexity,
                "performanceImprovement": _improvement(execution_time, prediction["estimatedTime"]),
                "factors": prediction["factors"],
            },
            "implementation": suggestion.get("implementation"),
            "impact": suggestion.get("impact"),
        })

    current = {
        "executionTime": execution_time,
        "rowCount": row_count,
        "complexityScore": complexity,
        "performanceScore": max(0, 100 - complexity),
    }
    comparison = {
        "current": current,
        "optimized": [
            {
                "optimizationId": c["optimizationId"],
                "estimatedExecutionTime": c["predictions"]["estimatedExecutionTime"],
                "estimatedComplexityScore": c["predictions"]["complexityScore"],
                "estimatedPerformanceScore": max(0, 100 - c["predictions"]["complexityScore"]),
                "improvementPercentage": c["predictions"]["performanceImprovement"],
            }
            for c in optimized_configs
        ],
    }

    if optimized_configs:
        improvements = [c["predictions"]["performanceImprovement"] for c in optimized_configs]
        improvement_range = f"{min(improvements)}%-{max(improvements)}%"
        primary = optimized_configs[0]
        primary_id = primary["optimizationId"]
        complexity_label = (primary["implementation"] or {}).get("complexity") or "unknown"
    else:
        improvement_range = "No optimizations available"
        primary_id = None
        complexity_label = "unknown"

    logger.info(
        f"chart optimization | chart:{chart_uuid} | execution_ms:{execution_time}"
        f" | suggestions:{len(suggestions)}"
    )

    return format_results({
        "chartUuid": chart_uuid,
        "chartName": chart.get("name"),
        "optimizationType": args.optimization_type,
        "aggressiveness": args.aggressiveness,
        "currentPerformance": current,
        "optimizedConfigurations": optimized_configs,
        "performanceComparison": comparison,
        "recommendations": {
            "primaryOptimization": primary_id,
            "estimatedImprovementRange": improvement_range,
            "implementationComplexity": complexity_label,
        },
        "metadata": {"analyzedAt": _timestamp(), "analysisVersion": OPTIMIZATION_VERSION},
    })


def build_variation_configs(variation_type: str, base: Dict[str, Any]) -> List[Tuple[str, Dict[str, Any]]]:
    """Labelled metric query variants for one variation type; the first is always the original."""
    dimensions = base.get("dimensions") or []
    metrics = base.get("metrics") or []

    if variation_type == "filter_combinations":
        return [
            ("original", dict(base)),
            ("limit 1000", {**base, "limit": 1000}),
            ("first 3 dimensions", {**base, "dimensions": dimensions[:3]}),
        ]
    if variation_type == "field_selections":
        return [
            ("original", dict(base)),
            ("half dimensions", {**base, "dimensions": dimensions[:max(1, len(dimensions) // 2)]}),
            ("half metrics", {**base, "metrics": metrics[:max(1, len(metrics) // 2)]}),
        ]
    if variation_type == "aggregation_levels":
        return [
            ("original", dict(base)),
            ("no dimensions", {**base, "dimensions": []}),
            ("single dimension", {**base, "dimensions": dimensions[:1]}),
        ]
    if variation_type == "time_ranges":
        return [
            ("original", dict(base)),
            ("limit 500", {**base, "limit": 500}),
            ("limit 2000", {**base, "limit": 2000}),
        ]
    if variation_type == "limit_variations":
        return [
            ("original", dict(base)),
            ("limit 100", {**base, "limit": 100}),
            ("limit 1000", {**base, "limit": 1000}),
            ("limit 5000", {**base, "limit": 5000}),
        ]
    return [("original", dict(base))]


async def _benchmark_runs(client: LightdashClient, chart_uuid: str, runs: int) -> Tuple[List[int], List[int]]:
    execution_times: List[int] = []
    row_counts: List[int] = []
    for run in range(runs):
        elapsed, rows, ok = await time_chart_results(client, chart_uuid, invalidate_cache=True)
        if ok:
            execution_times.append(elapsed)
            row_counts.append(rows)
        else:
            logger.warning(f"benchmark run {run + 1} failed | chart:{chart_uuid}")
        if run < runs - 1:
            await _pause(BENCHMARK_PAUSE_MS)
    return execution_times, row_counts


async def benchmark_chart_variations(
    chart_uuid: str,
    variations: Optional[List[str]] = None,
    test_duration: Optional[int] = None,
    significance_level: Optional[str] = None,
    client: Optional[LightdashClient] = None
) -> str:
    """
    Time a saved chart under query variations and compare them.

    Each variation configuration gets ``min(test_duration, 5)`` timed
    results calls, 500 ms apart, run with ``invalidateCache``. Results are
    sorted fastest first and compared against the original configuration.

    Args:
        chart_uuid: UUID of the saved chart
        variations: Variation types to generate
        test_duration: Timed runs per configuration
        significance_level: low, medium, high or very_high
    """
    args = parse_arguments(
        BenchmarkChartVariationsRequest,
        chart_uuid=chart_uuid,
        variations=variations,
        test_duration=test_duration,
        significance_level=significance_level
    )
    chart_uuid = str(args.chart_uuid)
    client = client or get_lightdash_client()

    chart = await fetch_chart(client, chart_uuid)
    base = chart.get("metricQuery") or {}
    runs = min(args.test_duration, MAX_BENCHMARK_RUNS)

    results: List[Dict[str, Any]] = []
    baseline: Optional[Dict[str, Any]] = None
    for variation_type in args.variations:
        for label, configuration in build_variation_configs(variation_type, base):
            execution_times, row_counts = await _benchmark_runs(client, chart_uuid, runs)
            if not execution_times:
                continue

            stats = calculate_statistical_metrics(execution_times, args.significance_level)
            average_rows = sum(row_counts) / len(row_counts) if row_counts else 0
            variation = {
                "variationId": f"var_{len(results) + 1}",
                "variationType": variation_type,
                "description": f"{variation_type.replace('_', ' ')} variation ({label})",
                "configuration": configuration,
                "performance": {
                    "executionTimes": execution_times,
                    "averageExecutionTime": stats["mean"],
                    "medianExecutionTime": stats["median"],
                    "standardDeviation": stats["standardDeviation"],
                    "confidenceInterval": stats["confidenceInterval"],
                    "averageRowCount": round_half_up(average_rows),
                    "complexityScore": calculate_query_complexity_score(configuration),
                },
                "statistics": {
                    "sampleSize": len(execution_times),
                    "reliability": "good" if len(execution_times) >= 3 else "limited",
                    "variability": stats["standardDeviation"] / stats["mean"] if stats["mean"] else 0,
                },
            }
            if baseline is None and label == "original":
                baseline = variation
            results.append(variation)

    if len(results) > 1:
        results.sort(key=lambda v: v["performance"]["averageExecutionTime"])
        baseline = baseline or results[-1]
        baseline_time = baseline["performance"]["averageExecutionTime"]
        for variation in results:
            average = variation["performance"]["averageExecutionTime"]
            variation["comparison"] = {
                "improvementPercentage": _improvement(baseline_time, average),
                "isStatisticallySignificant": abs(average - baseline_time) > (
                    variation["performance"]["standardDeviation"] + baseline["performance"]["standardDeviation"]
                ),
                "confidenceLevel": variation["performance"]["confidenceInterval"]["level"],
            }

    best = results[0] if results else None
    worst = results[-1] if results else None

    insights = [f"Tested {len(results)} variations across {len(args.variations)} variation types"]
    if len(results) > 1:
        insights.append(
            f"Performance range: {round_half_up(best['performance']['averageExecutionTime'])}ms"
            f" - {round_half_up(worst['performance']['averageExecutionTime'])}ms"
        )
    else:
        insights.append("Single variation tested")
    if results:
        average_level = sum(v["performance"]["confidenceInterval"]["level"] for v in results) / len(results)
        insights.append(f"Average confidence level: {round_half_up(average_level * 100)}%")

    logger.info(f"benchmark complete | chart:{chart_uuid} | variations:{len(results)} | runs:{runs}")

    return format_results({
        "chartUuid": chart_uuid,
        "chartName": chart.get("name"),
        "testConfiguration": {
            "variations": args.variations,
            "testDuration": args.test_duration,
            "significanceLevel": args.significance_level,
        },
        "variations": results,
        "recommendations": {
            "bestPerforming": {
                "variationId": best["variationId"],
                "description": best["description"],
                "improvementPercentage": best.get("comparison", {}).get("improvementPercentage", 0),
                "averageExecutionTime": best["performance"]["averageExecutionTime"],
            } if best else None,
            "worstPerforming": {
                "variationId": worst["variationId"],
                "description": worst["description"],
                "performancePenalty": worst.get("comparison", {}).get("improvementPercentage", 0),
                "averageExecutionTime": worst["performance"]["averageExecutionTime"],
            } if worst and len(results) > 1 else None,
            "statisticalInsights": insights,
        },
        "summary": {
            "totalVariationsTested": len(results),
            "bestPerformanceImprovement": best.get("comparison", {}).get("improvementPercentage", 0) if best else 0,
            "averageExecutionTime": (
                round_half_up(sum(v["performance"]["averageExecutionTime"] for v in results) / len(results))
                if results else 0
            ),
            "statisticalReliability": (
                sum(1 for v in results if v["statistics"]["reliability"] == "good") / len(results)
                if results else 0
            ),
        },
        "metadata": {"analyzedAt": _timestamp(), "analysisVersion": OPTIMIZATION_VERSION},
    })
