import copy

from lightdash_mcp.lightdash.fields import (
    normalize_field_name,
    normalize_field_list,
    normalize_filters,
    normalize_sorts
)


def test_short_name_is_qualified():
    assert normalize_field_name("status", "orders") == "orders_status"


def test_qualified_name_is_unchanged():
    assert normalize_field_name("orders_status", "orders") == "orders_status"


def test_normalization_is_idempotent():
    once = normalize_field_name("total_revenue", "orders")
    assert normalize_field_name(once, "orders") == once


def test_local_name_sharing_the_prefix_is_left_alone():
    # Known limitation: a local field literally named "orders_count" in the
    # orders explore is taken as already qualified.
    assert normalize_field_name("orders_count", "orders") == "orders_count"


def test_field_list_keeps_order():
    assert normalize_field_list(["status", "orders_created_at", "customer_id"], "orders") == [
        "orders_status",
        "orders_created_at",
        "orders_customer_id",
    ]
    assert normalize_field_list(None, "orders") == []


def test_filters_and_sorts_for_orders_query():
    filters = {
        "dimensions": {
            "id": "root",
            "and": [
                {"id": "f1", "target": {"fieldId": "status"}, "operator": "equals", "values": ["completed"]},
                {"id": "f2", "target": {"fieldId": "orders_amount"}, "operator": "greaterThan", "values": [10]},
            ],
        },
        "metrics": {
            "id": "m",
            "or": [{"id": "f3", "target": {"fieldId": "total_revenue"}, "operator": "greaterThan", "values": [0]}],
        },
    }
    sorts = [{"fieldId": "created_at", "descending": True}]

    normalized = normalize_filters(filters, "orders")

    dimension_rules = normalized["dimensions"]["and"]
    assert [rule["target"]["fieldId"] for rule in dimension_rules] == ["orders_status", "orders_amount"]
    assert dimension_rules[0]["operator"] == "equals"
    assert dimension_rules[0]["values"] == ["completed"]
    assert normalized["dimensions"]["id"] == "root"
    assert normalized["metrics"]["or"][0]["target"]["fieldId"] == "orders_total_revenue"

    assert normalize_sorts(sorts, "orders") == [{"fieldId": "orders_created_at", "descending": True}]


def test_inputs_are_not_mutated():
    filters = {"dimensions": {"id": "g", "and": [{"id": "f", "target": {"fieldId": "status"}}]}}
    sorts = [{"fieldId": "status", "descending": False}]
    filters_before = copy.deepcopy(filters)
    sorts_before = copy.deepcopy(sorts)

    normalize_filters(filters, "orders")
    normalize_sorts(sorts, "orders")

    assert filters == filters_before
    assert sorts == sorts_before


def test_rules_without_target_pass_through():
    filters = {"dimensions": {"id": "g", "and": [{"id": "f", "operator": "isNull"}]}}
    assert normalize_filters(filters, "orders") == filters


def test_unknown_keys_are_preserved():
    filters = {"tableCalculations": {"id": "t", "and": []}, "dimensions": {"id": "g"}}
    assert normalize_filters(filters, "orders") == filters


def test_missing_filters_and_sorts_become_empty():
    assert normalize_filters(None, "orders") == {}
    assert normalize_sorts(None, "orders") == []
    assert normalize_sorts([], "orders") == []


def test_second_filter_pass_leaves_qualified_tree_unchanged():
    filters = {
        "dimensions": {
            "and": [{"id": "f1", "target": {"fieldId": "status"}, "operator": "equals", "values": ["done"]}],
        },
    }

    once = normalize_filters(filters, "orders")
    twice = normalize_filters(once, "orders")

    assert once == {
        "dimensions": {
            "and": [{"id": "f1", "target": {"fieldId": "orders_status"}, "operator": "equals", "values": ["done"]}],
        },
    }
    assert twice == once
