"""
Query performance heuristics

Complexity scoring, execution time prediction and the summary statistics
used when benchmarking chart variations.
"""

import math
import statistics
from typing import Any, Dict, List, Mapping, Sequence

CONFIDENCE_LEVELS = {
    "low": 0.90,
    "medium": 0.95,
    "high": 0.99,
    "very_high": 0.999,
}

DEFAULT_BASELINE_MS = 2000

# Abridged t-table keyed by "{alpha/2 to 3 places}_{degrees of freedom bucket}"
T_TABLE = {
    "0.05_1": 12.706, "0.05_2": 4.303, "0.05_3": 3.182, "0.05_5": 2.571,
    "0.05_10": 2.228, "0.05_20": 2.086, "0.05_30": 2.042, "0.05_inf": 1.96,
    "0.025_1": 25.452, "0.025_2": 6.205, "0.025_3": 4.177, "0.025_5": 3.163,
    "0.025_10": 2.634, "0.025_20": 2.423, "0.025_30": 2.390, "0.025_inf": 2.326,
    "0.005_1": 127.32, "0.005_2": 14.089, "0.005_3": 7.453, "0.005_5": 5.208,
    "0.005_10": 4.144, "0.005_20": 3.552, "0.005_30": 3.385, "0.005_inf": 3.291,
}
T_VALUE_FALLBACK = 2.0


def _count(config: Mapping[str, Any], key: str) -> int:
    return len(config.get(key) or [])


def count_filters(config: Mapping[str, Any], include_metric_filters: bool = True) -> int:
    """Number of filter rules directly under the and/or lists of a metric query."""
    filters = config.get("filters") or {}
    groups = ("dimensions", "metrics") if include_metric_filters else ("dimensions",)
    total = 0
    for group_name in groups:
        group = filters.get(group_name) or {}
        total += len(group.get("and") or []) + len(group.get("or") or [])
    return total


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_query_complexity_score(config: Mapping[str, Any]) -> float:
    """
    Score a metric query from 0 (trivial) to 100 (very complex).

    Dimensions contribute up to 30 points, metrics 25, filters 20, table
    calculations 15 and custom metrics 10.
    """
    score = 0.0
    score += min(_count(config, "dimensions") * 3, 30)
    score += min(_count(config, "metrics") * 2.5, 25)
    score += min(count_filters(config) * 4, 20)
    score += min(_count(config, "tableCalculations") * 7.5, 15)
    score += min(_count(config, "customMetrics") * 5, 10)
    return min(score, 100)


def predict_query_performance(config: Mapping[str, Any], baseline_time: float = 0) -> Dict[str, Any]:
    """
    Estimate execution time for a metric query.

    Args:
        config: Metric query (dimensions, metrics, filters, ...)
        baseline_time: Measured time in ms to scale from, 2000 when not given

    Returns:
        Dict with estimatedTime (ms), confidence (0.3 to 1.0) and the factors
        that moved the estimate
    """
    factors: List[str] = []
    multiplier = 1.0
    confidence = 0.8

    dimension_count = _count(config, "dimensions")
    metric_count = _count(config, "metrics")
    filter_count = count_filters(config, include_metric_filters=False)

    if dimension_count > 5:
        multiplier *= 1.3
        factors.append("High dimension count increases complexity")
    elif dimension_count > 2:
        multiplier *= 1.1
        factors.append("Moderate dimension count")

    if metric_count > 10:
        multiplier *= 1.4
        factors.append("High metric count increases processing time")
    elif metric_count > 5:
        multiplier *= 1.2
        factors.append("Moderate metric count")

    if filter_count == 0:
        multiplier *= 1.8
        confidence -= 0.1
        factors.append("No filters - querying entire dataset")
    elif filter_count > 5:
        multiplier *= 1.1
        factors.append("Complex filtering logic")
    else:
        multiplier *= 0.8
        factors.append("Good filtering reduces data scope")

    if _count(config, "tableCalculations") > 0:
        multiplier *= 1.5
        confidence -= 0.1
        factors.append("Table calculations add processing overhead")

    if _count(config, "customMetrics") > 0:
        multiplier *= 1.3
        confidence -= 0.05
        factors.append("Custom metrics require additional computation")

    base_time = baseline_time or DEFAULT_BASELINE_MS
    return {
        "estimatedTime": round_half_up(base_time * multiplier),
        "confidence": max(0.3, min(1.0, confidence)),
        "factors": factors,
    }


def _degrees_of_freedom_bucket(degrees_of_freedom: int) -> str:
    if degrees_of_freedom > 30:
        return "inf"
    if degrees_of_freedom > 20:
        return "30"
    if degrees_of_freedom > 10:
        return "20"
    if degrees_of_freedom > 5:
        return "10"
    if degrees_of_freedom > 3:
        return "5"
    return str(degrees_of_freedom)


def t_value(alpha: float, degrees_of_freedom: int) -> float:
    """Approximate two-sided t critical value, 2.0 when the table has no entry."""
    key = f"{alpha:.3f}_{_degrees_of_freedom_bucket(degrees_of_freedom)}"
    return T_TABLE.get(key, T_VALUE_FALLBACK)


def calculate_statistical_metrics(values: Sequence[float], significance_level: str = "medium") -> Dict[str, Any]:
    """
    Mean, median, sample standard deviation and a t-based confidence
    interval for a set of timings.

    A single sample has a standard deviation of 0.

    Raises:
        ValueError: If ``values`` is empty
    """
    if not values:
        raise ValueError("at least one value is required")

    n = len(values)
    mean = statistics.fmean(values)
    median = statistics.median(values)
    standard_deviation = statistics.stdev(values) if n > 1 else 0.0

    level = CONFIDENCE_LEVELS.get(significance_level, CONFIDENCE_LEVELS["medium"])
    margin = t_value((1 - level) / 2, n - 1) * (standard_deviation / math.sqrt(n))

    return {
        "mean": mean,
        "median": median,
        "standardDeviation": standard_deviation,
        "confidenceInterval": {
            "lower": mean - margin,
            "upper": mean + margin,
            "level": level,
        },
    }
