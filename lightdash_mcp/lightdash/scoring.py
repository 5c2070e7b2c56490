"""
Chart recommendation heuristics

Rule-based profiling of an explore's fields, a weighted score for candidate
chart configurations and keyword matching of business questions to
analytical goals.
"""

from typing import Any, Dict, List, Mapping, Optional

RECOMMENDATION_WEIGHTS = {
    "dataFit": 0.25,
    "goalAlignment": 0.25,
    "complexity": 0.15,
    "performance": 0.15,
    "usability": 0.15,
    "bestPractice": 0.05,
}

PREDICTED_PERFORMANCE_CONFIDENCE = 0.8

CONFIDENCE_LABELS = [
    (0.8, "very_high"),
    (0.65, "high"),
    (0.5, "medium"),
    (0.35, "low"),
]

GOAL_KEYWORDS = [
    (
        "trend_analysis", 0.9,
        ("trend", "over time", "growth", "decline", "change", "evolution"),
        "Question indicates interest in temporal patterns and changes",
        [
            "Use line charts with time dimensions",
            "Include moving averages for smoother trends",
            "Consider year-over-year comparisons",
        ],
    ),
    (
        "comparison", 0.85,
        ("compare", "versus", "vs", "difference", "better", "worse"),
        "Question focuses on comparing different segments or categories",
        [
            "Use bar charts for categorical comparisons",
            "Consider side-by-side visualizations",
            "Include percentage differences",
        ],
    ),
    (
        "performance_tracking", 0.8,
        ("performance", "kpi", "metric", "target", "goal", "benchmark"),
        "Question relates to monitoring and measuring performance",
        [
            "Create KPI dashboards with key metrics",
            "Include target lines or benchmarks",
            "Use color coding for performance indicators",
        ],
    ),
]

ROLE_CONFIDENCE_ADJUSTMENTS = {
    "analyst": 0.05,
    "data_scientist": 0.1,
    "business_user": -0.05,
    "executive": 0.0,
}


def _estimated_cardinality(field_name: str) -> int:
    name = field_name.lower()
    if "id" in name or "uuid" in name:
        return 10000
    if "status" in name or "type" in name:
        return 5
    return 50


def _metric_note(field_id: str, field_name: str) -> Optional[str]:
    name = field_name.lower()
    if "count" in name:
        return f"{field_id} is suitable for trend analysis and comparisons"
    if "revenue" in name or "amount" in name:
        return f"{field_id} works well with time-series and breakdown analysis"
    if "rate" in name or "percent" in name:
        return f"{field_id} is ideal for performance tracking and benchmarking"
    return None


def analyze_data_characteristics(explore: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Classify the fields of an explore schema.

    Dimensions typed ``timestamp`` or ``date``, or named like a date or
    time, are temporal; other ``string`` and ``boolean`` dimensions are
    categorical with a cardinality guessed from their name. Every metric is
    numeric. Field ids are ``{table}_{field}``.
    """
    analysis: Dict[str, Any] = {
        "dataTypes": {},
        "cardinality": {},
        "distributions": {},
        "relationships": [],
        "temporalFields": [],
        "categoricalFields": [],
        "numericFields": [],
        "recommendations": [],
    }

    for table_name, table in ((explore or {}).get("tables") or {}).items():
        for field_name, field in (table.get("dimensions") or {}).items():
            field_id = f"{table_name}_{field_name}"
            field_type = field.get("type") or "string"
            analysis["dataTypes"][field_id] = field_type
            lowered = field_name.lower()

            if field_type in ("timestamp", "date") or "date" in lowered or "time" in lowered:
                analysis["temporalFields"].append(field_id)
                analysis["recommendations"].append(f"Consider time-series analysis with {field_id}")
            elif field_type in ("string", "boolean"):
                analysis["categoricalFields"].append(field_id)
                analysis["cardinality"][field_id] = _estimated_cardinality(field_name)

        for field_name in (table.get("metrics") or {}):
            field_id = f"{table_name}_{field_name}"
            analysis["dataTypes"][field_id] = "number"
            analysis["numericFields"].append(field_id)
            note = _metric_note(field_id, field_name)
            if note:
                analysis["recommendations"].append(note)

    temporal = analysis["temporalFields"]
    categorical = analysis["categoricalFields"]
    numeric = analysis["numericFields"]

    if temporal and numeric:
        analysis["relationships"].append(
            {"field1": temporal[0], "field2": numeric[0], "strength": 0.9, "type": "temporal_trend"}
        )
        analysis["recommendations"].append("Strong potential for time-series analysis")

    if categorical and numeric:
        analysis["relationships"].append(
            {"field1": categorical[0], "field2": numeric[0], "strength": 0.8, "type": "categorical_breakdown"}
        )
        analysis["recommendations"].append("Excellent for metric breakdown by categories")

    return analysis


def _field_complexity(config: Mapping[str, Any]) -> float:
    dimensions = len(config.get("dimensions") or [])
    metrics = len(config.get("metrics") or [])
    return min(min(dimensions * 3, 30) + min(metrics * 2.5, 25), 100)


def _goal_alignment(goal: str, chart_type: str, dimension_count: int, metric_count: int,
                    has_temporal_fields: bool) -> float:
    if goal == "trend_analysis":
        if chart_type == "line":
            return 0.9
        return 0.8 if has_temporal_fields else 0.4
    if goal == "comparison":
        if chart_type == "bar":
            return 0.9
        return 0.8 if dimension_count > 1 else 0.5
    if goal == "distribution":
        if chart_type == "histogram":
            return 0.9
        return 0.8 if chart_type == "scatter" else 0.4
    if goal == "performance_tracking":
        return 0.8 if metric_count > 0 else 0.3
    if goal == "custom":
        return 0.6
    return 0.5


def confidence_label(score: float) -> str:
    for threshold, label in CONFIDENCE_LABELS:
        if score >= threshold:
            return label
    return "very_low"


def calculate_recommendation_score(
    chart_config: Mapping[str, Any],
    data_characteristics: Mapping[str, Any],
    analytical_goal: str
) -> Dict[str, Any]:
    """
    Weighted 0-1 score for a candidate chart configuration.

    Factors are data fit, goal alignment, complexity (field count only),
    predicted performance, usability and best practice, combined with
    RECOMMENDATION_WEIGHTS.

    Returns:
        Dict with score, confidence label and the individual factors
    """
    dimension_count = len(chart_config.get("dimensions") or [])
    metric_count = len(chart_config.get("metrics") or [])

    factors = dict.fromkeys(RECOMMENDATION_WEIGHTS, 0.0)
    if dimension_count > 0 and metric_count > 0:
        factors["dataFit"] = min(1.0, (dimension_count + metric_count) / 5)

    factors["goalAlignment"] = _goal_alignment(
        analytical_goal,
        chart_config.get("chartType"),
        dimension_count,
        metric_count,
        bool(data_characteristics.get("temporalFields"))
    )
    factors["complexity"] = max(0.0, 1 - _field_complexity(chart_config) / 100)
    factors["performance"] = PREDICTED_PERFORMANCE_CONFIDENCE

    if dimension_count <= 3 and metric_count <= 5:
        factors["usability"] = 0.9
    elif dimension_count <= 5 and metric_count <= 8:
        factors["usability"] = 0.7
    else:
        factors["usability"] = 0.4

    best_practice = 0.5
    if chart_config.get("filters"):
        best_practice += 0.2
    if chart_config.get("sorts"):
        best_practice += 0.1
    limit = chart_config.get("limit")
    if limit and limit <= 1000:
        best_practice += 0.2
    factors["bestPractice"] = min(1.0, best_practice)

    score = sum(factors[name] * weight for name, weight in RECOMMENDATION_WEIGHTS.items())
    return {"score": score, "confidence": confidence_label(score), "factors": factors}


def interpret_analytical_goal(
    business_question: Optional[str] = None,
    data_context: Optional[Mapping[str, Any]] = None,
    user_role: Optional[str] = None
) -> Dict[str, Any]:
    """
    Match a business question to an analytical goal by keyword.

    Trend keywords win over comparison keywords, which win over performance
    keywords. A ``timeRange`` or ``keyMetrics`` entry in the data context
    and the user's role nudge the confidence, which stays within 0.1-0.95.
    """
    interpretation = {
        "goal": "custom",
        "confidence": 0.5,
        "reasoning": "No specific business question provided",
        "suggestedApproaches": ["Explore data with basic visualizations"],
    }
    if not business_question:
        return interpretation

    question = business_question.lower()
    for goal, confidence, keywords, reasoning, approaches in GOAL_KEYWORDS:
        if any(keyword in question for keyword in keywords):
            interpretation.update(
                goal=goal, confidence=confidence, reasoning=reasoning, suggestedApproaches=list(approaches)
            )
            break

    data_context = data_context or {}
    if data_context.get("timeRange") and interpretation["goal"] == "trend_analysis":
        interpretation["confidence"] = min(0.95, interpretation["confidence"] + 0.1)
    if data_context.get("keyMetrics") and interpretation["goal"] == "performance_tracking":
        interpretation["confidence"] = min(0.95, interpretation["confidence"] + 0.1)

    if user_role:
        adjustment = ROLE_CONFIDENCE_ADJUSTMENTS.get(user_role, 0)
        interpretation["confidence"] = max(0.1, min(0.95, interpretation["confidence"] + adjustment))

    return interpretation


def candidate_configuration(chart_type: str, explore_id: str, profile: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Chart configuration of ``chart_type`` built from the profiled fields, or
    None when the explore lacks the fields that chart type needs.
    """
    temporal: List[str] = profile["temporalFields"]
    categorical: List[str] = profile["categoricalFields"]
    numeric: List[str] = profile["numericFields"]

    if chart_type == "line" and temporal:
        dimensions, metrics = temporal[:1], numeric[:2]
    elif chart_type == "bar" and categorical:
        dimensions, metrics = categorical[:2], numeric[:1]
    elif chart_type == "table":
        dimensions, metrics = categorical[:3], numeric[:3]
    elif chart_type == "pie" and categorical:
        dimensions, metrics = categorical[:1], numeric[:1]
    elif chart_type == "scatter" and len(numeric) >= 2:
        dimensions, metrics = categorical[:1], numeric[:2]
    else:
        return None

    return {
        "chartType": chart_type,
        "exploreId": explore_id,
        "dimensions": dimensions,
        "metrics": metrics,
        "filters": [],
        "sorts": [],
    }
