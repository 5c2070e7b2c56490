import math

import pytest

from lightdash_mcp.lightdash.performance import (
    calculate_query_complexity_score,
    calculate_statistical_metrics,
    count_filters,
    predict_query_performance,
    round_half_up,
    t_value
)


def rules(n):
    return [{"id": f"f{i}", "target": {"fieldId": f"orders_f{i}"}} for i in range(n)]


def test_complexity_of_typical_query():
    config = {
        "dimensions": ["a", "b", "c", "d"],
        "metrics": ["m1", "m2", "m3"],
        "filters": {"dimensions": {"and": rules(2)}},
        "tableCalculations": [{"name": "tc"}],
        "customMetrics": [{"name": "cm"}],
    }
    assert calculate_query_complexity_score(config) == 40


def test_complexity_components_are_capped():
    config = {
        "dimensions": list("abcdefghijklmnopqrst"),
        "metrics": [f"m{i}" for i in range(20)],
        "filters": {"dimensions": {"and": rules(6)}, "metrics": {"or": rules(4)}},
        "tableCalculations": [{}] * 5,
        "customMetrics": [{}] * 5,
    }
    assert calculate_query_complexity_score(config) == 100


def test_empty_query_has_zero_complexity():
    assert calculate_query_complexity_score({}) == 0


def test_filter_count_covers_both_groups_and_operators():
    config = {"filters": {"dimensions": {"and": rules(2), "or": rules(1)}, "metrics": {"and": rules(3)}}}
    assert count_filters(config) == 6
    assert count_filters(config, include_metric_filters=False) == 3
    assert count_filters({}) == 0


def test_prediction_without_filters():
    prediction = predict_query_performance({"dimensions": ["a"], "metrics": ["m"]})

    assert prediction["estimatedTime"] == 3600
    assert prediction["confidence"] == pytest.approx(0.7)
    assert prediction["factors"] == ["No filters - querying entire dataset"]


def test_prediction_scales_the_baseline():
    config = {
        "dimensions": ["a", "b", "c"],
        "metrics": [f"m{i}" for i in range(6)],
        "filters": {"dimensions": {"and": rules(1)}},
    }

    prediction = predict_query_performance(config, baseline_time=1000)

    assert prediction["estimatedTime"] == 1056
    assert prediction["confidence"] == pytest.approx(0.8)
    assert prediction["factors"] == [
        "Moderate dimension count",
        "Moderate metric count",
        "Good filtering reduces data scope",
    ]


def test_prediction_ignores_metric_filters():
    config = {"filters": {"metrics": {"and": rules(2)}}}
    assert predict_query_performance(config)["estimatedTime"] == 3600


def test_prediction_confidence_penalties():
    config = {"tableCalculations": [{}], "customMetrics": [{}]}

    prediction = predict_query_performance(config, baseline_time=1000)

    assert prediction["confidence"] == pytest.approx(0.55)
    assert prediction["estimatedTime"] == 3510


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(-2.5) == -2
    assert round_half_up(1056.0000000000002) == 1056


def test_t_values_from_table():
    assert t_value(0.025, 2) == 6.205
    assert t_value(0.025, 8) == 2.634
    assert t_value(0.005, 40) == 3.291


def test_t_value_fallback_for_unlisted_alpha():
    # 0.05 formats as "0.050", which has no table entry
    assert t_value(0.05, 4) == 2.0


def test_statistics_for_three_runs():
    stats = calculate_statistical_metrics([100, 200, 300])

    margin = 6.205 * 100 / math.sqrt(3)
    assert stats["mean"] == 200
    assert stats["median"] == 200
    assert stats["standardDeviation"] == pytest.approx(100)
    assert stats["confidenceInterval"]["lower"] == pytest.approx(200 - margin)
    assert stats["confidenceInterval"]["upper"] == pytest.approx(200 + margin)
    assert stats["confidenceInterval"]["level"] == 0.95


def test_statistics_for_single_run():
    stats = calculate_statistical_metrics([850], significance_level="high")

    assert stats["standardDeviation"] == 0
    assert stats["confidenceInterval"] == {"lower": 850, "upper": 850, "level": 0.99}


def test_unknown_significance_level_uses_medium():
    assert calculate_statistical_metrics([1, 2], "extreme")["confidenceInterval"]["level"] == 0.95


def test_statistics_require_values():
    with pytest.raises(ValueError):
        calculate_statistical_metrics([])
