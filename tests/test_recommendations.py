import json

import httpx
import pytest
from fastmcp.exceptions import ToolError

from lightdash_mcp.lightdash import intelligence, recommendations
from lightdash_mcp.lightdash.client import LightdashAPIError

BASE_URL = "https://lightdash.test"
PROJECTS_URL = f"{BASE_URL}/api/v1/org/projects"
PROJECT_UUID = "3675b69e-8324-4110-bdca-059031aa8da3"
OTHER_PROJECT = "5e0d9a1b-2c3f-4a6b-9d8e-7f1a2b3c4d5e"
DASHBOARD_UUID = "0b6e2f7c-1d4a-4e3b-a5c6-8d9e0f1a2b3c"
CHART_1, CHART_2, CHART_3, CHART_4 = [f"00000000-0000-4000-8000-00000000000{i}" for i in range(1, 5)]

ORDERS_EXPLORE = {
    "name": "orders",
    "tables": {
        "orders": {
            "dimensions": {"created_date": {"type": "date"}, "status": {"type": "string"}},
            "metrics": {"count": {"type": "count"}, "total_revenue": {"type": "sum"}},
        }
    },
}


def ok(results):
    return httpx.Response(200, json={"status": "ok", "results": results})


@pytest.fixture
def clock(monkeypatch):
    def set_readings(readings):
        readings = iter(readings)
        monkeypatch.setattr(intelligence, "_now_ms", lambda: next(readings))
    return set_readings


def explore_url(project_uuid, explore_id="orders"):
    return f"{BASE_URL}/api/v1/projects/{project_uuid}/explores/{explore_id}"


@pytest.mark.asyncio
async def test_recommendations_are_ranked(client, respx_mock):
    respx_mock.get(explore_url(PROJECT_UUID)).mock(return_value=ok(ORDERS_EXPLORE))

    result = json.loads(await recommendations.generate_chart_recommendations(
        "orders", "trend_analysis", project_uuid=PROJECT_UUID, client=client
    ))

    assert result["projectUuid"] == PROJECT_UUID
    ranked = [(r["recommendationId"], r["chartConfiguration"]["chartType"]) for r in result["recommendations"]]
    assert ranked == [
        ("rec_1", "line"),
        ("rec_3", "table"),
        ("rec_5", "scatter"),
        ("rec_2", "bar"),
        ("rec_4", "pie"),
    ]
    best = result["recommendations"][0]
    assert best["title"] == "Line Chart Analysis"
    assert best["confidenceScore"] == pytest.approx(0.793)
    assert best["confidence"] == "high"
    assert best["chartConfiguration"]["dimensions"] == ["orders_created_date"]
    assert "implementationGuidance" not in best

    assert result["summary"]["totalRecommendations"] == 5
    assert result["summary"]["recommendationTypes"] == {"line": 1, "bar": 1, "table": 1, "pie": 1, "scatter": 1}
    assert result["summary"]["estimatedImplementationTime"] == "25 minutes"
    assert result["goalInterpretation"]["goal"] == "custom"


@pytest.mark.asyncio
async def test_recommendation_limit_and_guidance(client, respx_mock):
    respx_mock.get(explore_url(PROJECT_UUID)).mock(return_value=ok(ORDERS_EXPLORE))

    result = json.loads(await recommendations.generate_chart_recommendations(
        "orders",
        "comparison",
        project_uuid=PROJECT_UUID,
        data_context={"businessContext": "Compare order status volumes", "userRole": "analyst"},
        max_recommendations=2,
        include_implementation_guidance=True,
        client=client
    ))

    assert [r["chartConfiguration"]["chartType"] for r in result["recommendations"]] == ["bar", "line"]
    guidance = result["recommendations"][0]["implementationGuidance"]
    assert guidance["complexity"] == "simple"
    assert guidance["steps"][2]["description"] == "Select bar as your visualization type"
    assert result["goalInterpretation"]["goal"] == "comparison"
    assert result["goalInterpretation"]["confidence"] == pytest.approx(0.9)


@pytest.mark.asyncio
async def test_explore_is_searched_across_projects(client, respx_mock):
    respx_mock.get(PROJECTS_URL).mock(return_value=ok([{"projectUuid": OTHER_PROJECT}, {"projectUuid": PROJECT_UUID}]))
    missing = respx_mock.get(explore_url(OTHER_PROJECT)).mock(return_value=httpx.Response(404))
    respx_mock.get(explore_url(PROJECT_UUID)).mock(return_value=ok(ORDERS_EXPLORE))

    result = json.loads(await recommendations.generate_chart_recommendations("orders", "custom", client=client))

    assert missing.call_count == 1
    assert result["projectUuid"] == PROJECT_UUID


@pytest.mark.asyncio
async def test_unknown_explore(client, respx_mock):
    respx_mock.get(PROJECTS_URL).mock(return_value=ok([{"projectUuid": PROJECT_UUID}]))
    respx_mock.get(explore_url(PROJECT_UUID, "ghost")).mock(return_value=httpx.Response(404))

    with pytest.raises(LightdashAPIError, match="Explore ghost not found in any accessible project") as info:
        await recommendations.generate_chart_recommendations("ghost", "custom", client=client)
    assert info.value.status_code == 404


@pytest.mark.asyncio
async def test_recommendations_validate_goal(client, respx_mock):
    with pytest.raises(ToolError, match="Validation error: analytical_goal"):
        await recommendations.generate_chart_recommendations("orders", "forecast", client=client)
    assert not respx_mock.calls


def dashboard(tiles):
    return ok({"uuid": DASHBOARD_UUID, "name": "Sales", "tiles": tiles})


def chart_tile(tile_id, chart_uuid, title=None):
    properties = {"savedChartUuid": chart_uuid}
    if title:
        properties["title"] = title
    return {"uuid": tile_id, "type": "saved_chart", "properties": properties}


@pytest.mark.asyncio
async def test_dashboard_with_a_slow_tile(client, respx_mock, clock):
    respx_mock.get(f"{BASE_URL}/api/v1/dashboards/{DASHBOARD_UUID}").mock(return_value=dashboard([
        chart_tile("t1", CHART_1, "Revenue"),
        chart_tile("t2", CHART_2),
        {"uuid": "t3", "type": "markdown", "properties": {"title": "Notes"}},
        chart_tile("t4", CHART_3, "Broken"),
    ]))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{CHART_1}/results").mock(return_value=ok({"rows": []}))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{CHART_2}/results").mock(return_value=ok({"rows": []}))
    respx_mock.post(f"{BASE_URL}/api/v1/saved/{CHART_3}/results").mock(return_value=httpx.Response(404))
    clock([0, 6000, 0, 1000, 0, 50])

    result = json.loads(await recommendations.auto_optimize_dashboard(DASHBOARD_UUID, client=client))

    state = result["currentState"]
    assert state["tileCount"] == 4
    assert state["analyzedTiles"] == 2
    assert state["averageLoadTime"] == 3500
    assert state["performanceScore"] == 70
    assert state["usabilityScore"] == 70
    assert [i["description"] for i in state["identifiedIssues"]] == ['Tile "Revenue" has slow load time (6000ms)']

    plan = result["optimizationPlan"]
    assert plan["priority"] == "high"
    assert [(o["optimizationId"], o["type"]) for o in plan["optimizations"]] == [("opt_1", "performance")]
    assert plan["optimizations"][0]["implementation"]["changes"][0]["target"] == "t1"
    assert plan["estimatedImpact"] == {"performanceImprovement": "36%", "usabilityImprovement": "29%"}

    assert result["projectedOutcome"] == {"performanceScore": 95, "usabilityScore": 90, "expectedLoadTime": 2100}
    assert "implementationPlan" not in result


@pytest.mark.asyncio
async def test_only_the_first_ten_chart_tiles_are_timed(client, respx_mock, clock):
    respx_mock.get(f"{BASE_URL}/api/v1/dashboards/{DASHBOARD_UUID}").mock(return_value=dashboard(
        [chart_tile(f"t{i}", CHART_1) for i in range(12)]
    ))
    results_route = respx_mock.post(f"{BASE_URL}/api/v1/saved/{CHART_1}/results").mock(return_value=ok({"rows": []}))
    clock([0, 100] * 10)

    result = json.loads(await recommendations.auto_optimize_dashboard(DASHBOARD_UUID, client=client))

    assert results_route.call_count == 10
    assert result["currentState"]["performanceScore"] == 75
    assert result["currentState"]["identifiedIssues"] == []
    assert [o["type"] for o in result["optimizationPlan"]["optimizations"]] == ["layout"]
    assert result["optimizationPlan"]["priority"] == "medium"


@pytest.mark.asyncio
async def test_crowded_dashboard_plan(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/dashboards/{DASHBOARD_UUID}").mock(return_value=dashboard(
        [{"uuid": f"t{i}", "type": "markdown"} for i in range(13)]
    ))

    result = json.loads(await recommendations.auto_optimize_dashboard(
        DASHBOARD_UUID, optimization_goals=["data_accuracy"], include_implementation_plan=True, client=client
    ))

    state = result["currentState"]
    assert state["averageLoadTime"] == 2000
    assert state["performanceScore"] == 75
    assert state["usabilityScore"] == 50
    assert state["identifiedIssues"][0]["type"] == "usability"
    assert [o["type"] for o in result["optimizationPlan"]["optimizations"]] == ["content"]

    phases = result["implementationPlan"]["phases"]
    assert [p["optimizations"] for p in phases] == [[], [], ["opt_1"]]
    assert result["implementationPlan"]["successMetrics"][0]["currentValue"] == "2000ms"
    assert result["projectedOutcome"]["expectedLoadTime"] == 1200


@pytest.mark.asyncio
async def test_missing_dashboard(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/dashboards/{DASHBOARD_UUID}").mock(return_value=httpx.Response(404))

    with pytest.raises(LightdashAPIError, match=f"Dashboard not found: {DASHBOARD_UUID}"):
        await recommendations.auto_optimize_dashboard(DASHBOARD_UUID, client=client)


@pytest.mark.asyncio
async def test_dashboard_goals_are_validated(client, respx_mock):
    with pytest.raises(ToolError, match="Validation error: optimization_goals"):
        await recommendations.auto_optimize_dashboard(DASHBOARD_UUID, optimization_goals=[], client=client)
    assert not respx_mock.calls


def saved(respx_mock, chart_uuid, table_name, chart_type, dimensions, metrics):
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{chart_uuid}").mock(return_value=ok({
        "uuid": chart_uuid,
        "tableName": table_name,
        "chartConfig": {"type": chart_type},
        "metricQuery": {"dimensions": dimensions, "metrics": metrics},
    }))


@pytest.fixture
def learning_charts(respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/charts").mock(return_value=ok([
        {"uuid": c} for c in (CHART_1, CHART_2, CHART_3, CHART_4)
    ]))
    saved(respx_mock, CHART_1, "orders", "cartesian", ["orders_status"], ["orders_count"])
    saved(respx_mock, CHART_2, "orders", "cartesian", ["orders_status", "orders_created_date"],
          ["orders_count", "orders_revenue"])
    saved(respx_mock, CHART_3, "customers", "table", ["customers_region"], ["customers_count"])
    respx_mock.get(f"{BASE_URL}/api/v1/saved/{CHART_4}").mock(return_value=httpx.Response(404))


@pytest.mark.asyncio
async def test_templates_learn_from_project_charts(client, learning_charts):
    result = json.loads(await recommendations.create_smart_templates(
        organization_context={"industry": "retail"}, project_uuid=PROJECT_UUID, client=client
    ))

    assert result["organizationContext"] == {"industry": "retail"}
    analysis = result["patternAnalysis"]
    assert analysis["totalCharts"] == 4
    assert analysis["analyzedCharts"] == 3
    assert analysis["chartTypes"] == {"cartesian": 2, "table": 1}
    assert analysis["popularExplores"] == {"orders": 2, "customers": 1}

    standard, fast = result["templates"]
    assert standard["name"] == "Cartesian Dashboard Standard"
    assert standard["configuration"]["suggestedDimensions"] == [
        "orders_status", "orders_created_date", "customers_region"
    ]
    assert standard["configuration"]["suggestedMetrics"] == ["orders_count", "orders_revenue", "customers_count"]
    assert standard["configuration"]["sortConfiguration"] == [{"fieldId": "orders_status", "descending": False}]
    assert standard["metadata"]["confidenceScore"] == 95

    assert fast["templateId"] == "template_2"
    assert fast["configuration"]["suggestedDimensions"] == ["orders_status", "orders_created_date"]
    assert fast["metadata"]["confidenceScore"] == 88
    assert result["metadata"]["patternConfidence"] == 91.5


@pytest.mark.asyncio
async def test_templates_restricted_to_explores(client, respx_mock, learning_charts):
    respx_mock.get(PROJECTS_URL).mock(return_value=ok([{"projectUuid": PROJECT_UUID}]))

    result = json.loads(await recommendations.create_smart_templates(
        template_type="kpi_tracking", learning_dataset={"exploreIds": ["customers"]}, client=client
    ))

    assert result["projectUuid"] == PROJECT_UUID
    assert result["patternAnalysis"]["analyzedCharts"] == 1
    assert [t["chartType"] for t in result["templates"]] == ["table"]
    assert result["templates"][0]["metadata"]["confidenceScore"] == 95


@pytest.mark.asyncio
async def test_templates_need_a_project(client, respx_mock):
    respx_mock.get(PROJECTS_URL).mock(return_value=ok([]))

    with pytest.raises(LightdashAPIError, match="No accessible projects found for template generation"):
        await recommendations.create_smart_templates(client=client)
