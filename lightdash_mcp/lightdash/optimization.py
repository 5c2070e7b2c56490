"""
Chart query optimization suggestions
"""

from typing import Any, Dict, List, Mapping

from .performance import calculate_query_complexity_score, count_filters

MAX_SUGGESTIONS = 10


def _change(field: str, current_value: Any, suggested_value: Any, reason: str) -> Dict[str, Any]:
    return {
        "field": field,
        "currentValue": current_value,
        "suggestedValue": suggested_value,
        "reason": reason,
    }


def generate_optimization_suggestions(
    config: Mapping[str, Any],
    current_performance: Mapping[str, Any],
    optimization_type: str,
    aggressiveness: str
) -> List[Dict[str, Any]]:
    """
    Suggest changes to a chart's metric query, most impactful first.

    Args:
        config: The chart's metric query
        current_performance: Dict with executionTime (ms) and rowCount
        optimization_type: performance, accuracy, user_experience or comprehensive
        aggressiveness: conservative, moderate or aggressive

    Returns:
        Up to 10 suggestions with ids ``opt_1``, ``opt_2``, ...
    """
    suggestions: List[Dict[str, Any]] = []

    dimension_count = len(config.get("dimensions") or [])
    metric_count = len(config.get("metrics") or [])
    filter_count = count_filters(config, include_metric_filters=False)
    execution_time = current_performance.get("executionTime") or 0
    row_count = current_performance.get("rowCount") or 0

    def add(suggestion: Dict[str, Any]) -> None:
        suggestions.append({"id": f"opt_{len(suggestions) + 1}", **suggestion})

    if execution_time > 5000:
        if filter_count == 0:
            add({
                "type": "filter",
                "priority": "critical",
                "title": "Add Date Range Filter",
                "description": "Query is scanning entire dataset. Add date range filter to limit data scope.",
                "implementation": {
                    "changes": [_change(
                        "filters.dimensions", None, "Add date filter (e.g., last 90 days)",
                        "Reduces data volume and improves performance"
                    )],
                    "complexity": "simple",
                    "estimatedEffort": "5 minutes",
                },
                "impact": {
                    "performanceGain": "60-80% faster execution",
                    "accuracyImpact": "minimal",
                    "userExperienceImprovement": "Significantly faster loading",
                    "resourceSavings": "Reduced database load",
                },
                "confidence": 0.9,
            })

        if row_count > 10000:
            add({
                "type": "limit",
                "priority": "high",
                "title": "Add Row Limit",
                "description": "Large result set impacts performance. Consider adding row limit or pagination.",
                "implementation": {
                    "changes": [_change("limit", None, 1000, "Reduces data transfer and rendering time")],
                    "complexity": "simple",
                    "estimatedEffort": "2 minutes",
                },
                "impact": {
                    "performanceGain": "40-60% faster rendering",
                    "accuracyImpact": "moderate",
                    "userExperienceImprovement": "Faster page load, better responsiveness",
                },
                "tradeoffs": ["May not show complete dataset", "Requires pagination for full data"],
                "confidence": 0.85,
            })

    if dimension_count > 5 and aggressiveness != "conservative":
        add({
            "type": "dimension",
            "priority": "medium",
            "title": "Reduce Dimension Count",
            "description": (
                "High number of dimensions increases query complexity. Consider using drill-down approach."
            ),
            "implementation": {
                "changes": [_change(
                    "dimensions", f"{dimension_count} dimensions", "Focus on 3-4 key dimensions",
                    "Reduces query complexity and improves performance"
                )],
                "complexity": "moderate",
                "estimatedEffort": "15 minutes",
            },
            "impact": {
                "performanceGain": "20-30% faster execution",
                "accuracyImpact": "none",
                "userExperienceImprovement": "Cleaner, more focused analysis",
            },
            "tradeoffs": ["Less detailed breakdown", "May require multiple charts for full analysis"],
            "confidence": 0.7,
        })

    if metric_count > 8 and optimization_type == "performance":
        add({
            "type": "metric",
            "priority": "medium",
            "title": "Optimize Metric Selection",
            "description": "Large number of metrics increases processing time. Focus on key metrics.",
            "implementation": {
                "changes": [_change(
                    "metrics", f"{metric_count} metrics", "Select 4-6 most important metrics",
                    "Reduces computation overhead"
                )],
                "complexity": "moderate",
                "estimatedEffort": "10 minutes",
            },
            "impact": {
                "performanceGain": "15-25% faster execution",
                "accuracyImpact": "minimal",
                "userExperienceImprovement": "Faster loading, cleaner visualization",
            },
            "confidence": 0.75,
        })

    if optimization_type in ("user_experience", "comprehensive"):
        add({
            "type": "cache",
            "priority": "low",
            "title": "Enable Result Caching",
            "description": "Cache results for frequently accessed charts to improve user experience.",
            "implementation": {
                "changes": [_change(
                    "caching", "disabled", "enabled with 1-hour TTL", "Reduces repeated query execution"
                )],
                "complexity": "simple",
                "estimatedEffort": "5 minutes",
            },
            "impact": {
                "performanceGain": "Near-instant loading for cached results",
                "accuracyImpact": "minimal",
                "userExperienceImprovement": "Much faster subsequent loads",
            },
            "tradeoffs": ["Slightly stale data possible", "Requires cache management"],
            "confidence": 0.8,
        })

    return suggestions[:MAX_SUGGESTIONS]


def calculate_configuration_similarity(config1: Mapping[str, Any], config2: Mapping[str, Any]) -> float:
    """
    Similarity of two chart configurations from 0 to 1.

    Weighted 0.3 for a matching ``chartType``, 0.4 for the share of
    dimensions and metrics they have in common and 0.3 for how close their
    complexity scores are.
    """
    similarity = 0.3 if config1.get("chartType") == config2.get("chartType") else 0.0

    fields1 = list(config1.get("dimensions") or []) + list(config1.get("metrics") or [])
    fields2 = list(config2.get("dimensions") or []) + list(config2.get("metrics") or [])
    common = [field for field in fields1 if field in fields2]
    similarity += len(common) / max(len(fields1), len(fields2), 1) * 0.4

    complexity_gap = abs(calculate_query_complexity_score(config1) - calculate_query_complexity_score(config2))
    similarity += (1 - complexity_gap / 100) * 0.3

    return similarity
