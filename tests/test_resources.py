import json

import httpx
import pytest

from lightdash_mcp.lightdash import intelligence
from lightdash_mcp.lightdash.cache import ResultCache
from lightdash_mcp.lightdash.resources import (
    RESOURCE_DEFINITIONS,
    parse_resource_uri,
    read_resource
)

BASE_URL = "https://lightdash.test"
PROJECT_UUID = "3675b69e-8324-4110-bdca-059031aa8da3"
DASHBOARD_UUID = "5e0d9a1b-2c3f-4a6b-9d8e-7f1a2b3c4d5e"
SLOW_CHART = "9c1f3a52-6b7e-4d1a-8f2e-2b8c4a7d5e61"
FAST_CHART = "0b6e2f7c-1d4a-4e3b-a5c6-8d9e0f1a2b3c"
BROKEN_CHART = "7a8b9c0d-1e2f-4a3b-8c4d-5e6f7a8b9c0d"


def ok(results):
    return httpx.Response(200, json={"status": "ok", "results": results})


@pytest.fixture
def clock(monkeypatch):
    def set_readings(readings):
        readings = iter(readings)
        monkeypatch.setattr(intelligence, "_now_ms", lambda: next(readings))
    return set_readings


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


def test_resource_definitions_cover_every_path():
    assert [d["name"] for d in RESOURCE_DEFINITIONS] == [
        "Project Catalog",
        "Explore Schema",
        "Dashboard Structure",
        "Chart Configuration",
        "Project Chart Analytics",
        "Explore Optimization Suggestions",
    ]
    assert all(d["uri"].startswith("lightdash://") for d in RESOURCE_DEFINITIONS)


def test_parse_uri_with_query():
    parts, query = parse_resource_uri(f"lightdash://projects/{PROJECT_UUID}/chart-analytics?depth=deep&optimizations=true")

    assert parts == ["projects", PROJECT_UUID, "chart-analytics"]
    assert query == {"depth": "deep", "optimizations": "true"}


@pytest.mark.parametrize("uri,message", [
    ("https://lightdash.test/projects/p1/catalog", "Only lightdash:// URIs are supported"),
    ("lightdash://projects", "Invalid resource path"),
])
def test_parse_rejects_bad_uris(uri, message):
    with pytest.raises(ValueError, match=message):
        parse_resource_uri(uri)


@pytest.mark.asyncio
async def test_catalog_forwards_query_parameters(client, respx_mock):
    route = respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/dataCatalog").mock(
        return_value=ok([{"name": "orders"}])
    )

    text = await read_resource(f"lightdash://projects/{PROJECT_UUID}/catalog?search=orders&type=table", client=client)

    assert json.loads(text) == [{"name": "orders"}]
    assert dict(route.calls.last.request.url.params) == {"search": "orders", "type": "table"}


@pytest.mark.asyncio
async def test_explore_schema_and_dashboard(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/explores/orders").mock(
        return_value=ok({"name": "orders"})
    )
    respx_mock.get(f"{BASE_URL}/api/v1/dashboards/{DASHBOARD_UUID}").mock(return_value=ok({"name": "Sales"}))

    schema = await read_resource(f"lightdash://projects/{PROJECT_UUID}/explores/orders/schema", client=client)
    dashboard = await read_resource(f"lightdash://dashboards/{DASHBOARD_UUID}", client=client)

    assert json.loads(schema) == {"name": "orders"}
    assert json.loads(dashboard) == {"name": "Sales"}


@pytest.mark.asyncio
async def test_chart_without_analysis(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}").mock(return_value=ok({"name": "Revenue"}))

    chart = json.loads(await read_resource(f"lightdash://charts/{SLOW_CHART}", client=client))

    assert chart == {"name": "Revenue"}


@pytest.mark.asyncio
@pytest.mark.parametrize("suffix", ["?analysis=true", "/analysis"])
async def test_chart_with_analysis(client, respx_mock, clock, suffix):
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}").mock(return_value=ok({
        "name": "Revenue",
        "metricQuery": {"dimensions": ["orders_status"], "metrics": ["orders_total_revenue"]},
    }))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}/results").mock(return_value=ok({"rows": [{}]}))
    clock([0, 1200])

    chart = json.loads(await read_resource(f"lightdash://charts/{SLOW_CHART}{suffix}", client=client))

    assert chart["name"] == "Revenue"
    assert chart["_analysis"]["performance"] == {
        "executionTime": 1200,
        "rowCount": 1,
        "performanceScore": 75,
        "threshold": "moderate",
    }
    assert chart["_analysis"]["configuration"]["dimensionCount"] == 1


@pytest.mark.asyncio
async def test_unsupported_path(client):
    with pytest.raises(ValueError, match="Unsupported resource path: users/u1"):
        await read_resource("lightdash://users/u1", client=client)


def mock_project_charts(respx_mock, clock):
    charts_route = respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/charts").mock(return_value=ok([
        {"uuid": SLOW_CHART, "name": "Revenue by status"},
        {"uuid": FAST_CHART, "name": "Orders over time"},
        {"uuid": BROKEN_CHART, "name": "Broken"},
    ]))
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}").mock(return_value=ok({
        "tableName": "orders",
        "chartConfig": {"type": "cartesian"},
        "metricQuery": {"dimensions": ["orders_status"], "metrics": ["orders_total_revenue"], "filters": {}},
    }))
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{FAST_CHART}").mock(return_value=ok({
        "tableName": "orders",
        "metricQuery": {
            "dimensions": ["orders_created_at"],
            "metrics": ["orders_total_revenue", "orders_count"],
        },
    }))
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{BROKEN_CHART}").mock(return_value=httpx.Response(404))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}/results").mock(return_value=ok({"rows": []}))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{FAST_CHART}/results").mock(return_value=ok({"rows": []}))
    clock([0, 6000, 0, 500])
    return charts_route


@pytest.mark.asyncio
async def test_project_chart_analytics(client, respx_mock, clock):
    mock_project_charts(respx_mock, clock)

    analytics = json.loads(await read_resource(
        f"lightdash://projects/{PROJECT_UUID}/chart-analytics?depth=deep&optimizations=true",
        client=client
    ))

    assert analytics["totalCharts"] == 3
    performance = analytics["performanceMetrics"]
    assert performance["averageExecutionTime"] == 3250
    assert [c["chartUuid"] for c in performance["slowCharts"]] == [SLOW_CHART]
    assert performance["slowCharts"][0]["complexityScore"] == 5.5
    assert performance["fastCharts"] == [{"chartUuid": FAST_CHART, "chartName": "Orders over time", "executionTime": 500}]
    assert performance["performanceDistribution"] == {"fast": 1, "moderate": 0, "slow": 1, "very_slow": 0}

    usage = analytics["usagePatterns"]
    assert usage["mostUsedExplores"] == {"orders": 2}
    assert usage["commonMetrics"] == {"orders_total_revenue": 2, "orders_count": 1}
    assert usage["chartTypeDistribution"] == {"cartesian": 1, "table": 1}

    opportunities = analytics["optimizationOpportunities"]
    assert [o["chartUuid"] for o in opportunities] == [SLOW_CHART]
    assert [s["type"] for s in opportunities[0]["suggestions"]] == ["filter"]
    assert analytics["metadata"]["analysisDepth"] == "deep"
    assert analytics["metadata"]["includeOptimizations"] is True


@pytest.mark.asyncio
async def test_project_chart_analytics_is_cached(client, respx_mock, clock):
    charts_route = mock_project_charts(respx_mock, clock)
    cache = ResultCache(clock=FakeClock())
    uri = f"lightdash://projects/{PROJECT_UUID}/chart-analytics"

    first = await read_resource(uri, client=client, cache=cache)
    second = await read_resource(uri, client=client, cache=cache)

    assert first == second
    assert charts_route.call_count == 1
    assert cache.get(f"chart-analytics-{PROJECT_UUID}-standard-false") is not None
    assert json.loads(first)["optimizationOpportunities"] == []


@pytest.mark.asyncio
async def test_standard_depth_analyzes_first_fifty_charts(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/charts").mock(
        return_value=ok([{"uuid": f"chart-{i}", "name": f"Chart {i}"} for i in range(55)])
    )
    saved_route = respx_mock.get(url__regex=rf"{BASE_URL}/api/v1/saved/chart-\d+$").mock(
        return_value=httpx.Response(404)
    )

    analytics = json.loads(await read_resource(f"lightdash://projects/{PROJECT_UUID}/chart-analytics", client=client))

    assert saved_route.call_count == 50
    assert analytics["totalCharts"] == 55
    assert analytics["performanceMetrics"]["averageExecutionTime"] == 0


@pytest.mark.parametrize("uri, field", [
    ("lightdash://charts/chart-1", "chartUuid"),
    ("lightdash://projects/p1/catalog", "projectUuid"),
    ("lightdash://dashboards/d1", "dashboardUuid"),
])
@pytest.mark.asyncio
async def test_malformed_uuid_segments_are_rejected(client, respx_mock, uri, field):
    with pytest.raises(ValueError, match=f"Invalid UUID format for {field}"):
        await read_resource(uri, client=client)
    assert not respx_mock.calls


ORDERS_EXPLORE = {
    "tables": {
        "orders": {
            "dimensions": {
                "status": {"name": "status", "type": "string"},
                "created_date": {"name": "created_date", "type": "date"},
            },
            "metrics": {
                "count": {"name": "count", "type": "count"},
                "revenue": {"name": "revenue", "type": "sum", "description": "Total revenue"},
            },
        }
    }
}


def mock_explore(respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/org/projects").mock(return_value=ok([{"projectUuid": PROJECT_UUID}]))
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/explores/orders").mock(return_value=ok(ORDERS_EXPLORE))
    return respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/charts").mock(return_value=ok([
        {"uuid": SLOW_CHART, "tableName": "orders"},
        {"uuid": FAST_CHART, "tableName": "orders"},
        {"uuid": BROKEN_CHART, "tableName": "customers"},
    ]))


@pytest.mark.asyncio
async def test_explore_suggestions_with_field_analysis(client, respx_mock):
    mock_explore(respx_mock)
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{SLOW_CHART}").mock(return_value=ok({
        "metricQuery": {"dimensions": ["orders_status"], "metrics": ["orders_count"]},
    }))
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{FAST_CHART}").mock(return_value=ok({
        "metricQuery": {"dimensions": ["orders_created_date"], "metrics": ["orders_count"]},
    }))

    suggestions = json.loads(await read_resource(
        "lightdash://explores/orders/optimization-suggestions?fields=true&type=comprehensive", client=client
    ))

    assert suggestions["projectUuid"] == PROJECT_UUID
    assert suggestions["totalChartsUsingExplore"] == 2
    fields = suggestions["fieldAnalysis"]
    assert fields["totalFields"] == 4
    assert fields["metrics"][1] == {
        "fieldId": "orders_revenue", "name": "revenue", "type": "sum", "description": "Total revenue"
    }
    assert fields["overusedFields"] == [{"fieldName": "orders_count", "usageCount": 2, "usagePercentage": 100}]
    assert fields["unusedFields"] == [{"fieldName": "orders_revenue"}]

    optimizations = suggestions["performanceOptimizations"]
    assert [o["type"] for o in optimizations] == ["indexing", "caching", "aggregation"]
    assert optimizations[0]["implementation"]["fields"] == ["orders_count"]
    assert suggestions["metadata"]["optimizationType"] == "comprehensive"


@pytest.mark.asyncio
async def test_explore_suggestions_without_field_analysis(client, respx_mock):
    mock_explore(respx_mock)

    default = json.loads(await read_resource("lightdash://explores/orders/optimization-suggestions", client=client))
    experience = json.loads(await read_resource(
        "lightdash://explores/orders/optimization-suggestions?type=user_experience", client=client
    ))

    assert default["fieldAnalysis"]["overusedFields"] == []
    assert default["fieldAnalysis"]["unusedFields"] == []
    assert default["performanceOptimizations"][2]["implementation"]["suggestedAggregations"] == []
    assert default["metadata"]["includeFieldAnalysis"] is False
    assert experience["performanceOptimizations"] == []
    assert len(experience["bestPractices"]) == 3


@pytest.mark.asyncio
async def test_explore_suggestions_are_cached_and_expired_entries_swept(client, respx_mock):
    charts_route = mock_explore(respx_mock)
    cache = ResultCache(clock=FakeClock())
    cache.set("chart-analytics-stale-standard-false", {}, ttl_ms=0)
    uri = "lightdash://explores/orders/optimization-suggestions"

    first = await read_resource(uri, client=client, cache=cache)
    second = await read_resource(uri, client=client, cache=cache)

    assert first == second
    assert charts_route.call_count == 1
    assert [e["key"] for e in cache.stats()["entries"]] == ["explore-optimization-orders-false-performance"]
