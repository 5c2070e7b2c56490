import json

import httpx
import pytest
from fastmcp.exceptions import ToolError

from lightdash_mcp.lightdash import projects

BASE_URL = "https://lightdash.test"
PROJECT_UUID = "3675b69e-8324-4110-bdca-059031aa8da3"


def ok(results):
    return httpx.Response(200, json={"status": "ok", "results": results})


@pytest.mark.asyncio
async def test_list_projects(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/org/projects").mock(
        return_value=ok([{"projectUuid": PROJECT_UUID, "name": "Jaffle shop"}])
    )

    text = await projects.list_projects(client=client)

    assert json.loads(text) == [{"projectUuid": PROJECT_UUID, "name": "Jaffle shop"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("operation,path", [
    (projects.get_project, ""),
    (projects.list_spaces, "/spaces"),
    (projects.list_charts, "/charts"),
    (projects.list_dashboards, "/dashboards"),
    (projects.get_custom_metrics, "/custom-metrics"),
    (projects.get_catalog, "/dataCatalog"),
    (projects.get_metrics_catalog, "/dataCatalog/metrics"),
    (projects.get_charts_as_code, "/charts/code"),
    (projects.get_dashboards_as_code, "/dashboards/code"),
])
async def test_project_scoped_operations(client, respx_mock, operation, path):
    route = respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}{path}").mock(
        return_value=ok({"path": path})
    )

    text = await operation(PROJECT_UUID, client=client)

    assert json.loads(text) == {"path": path}
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_table_metadata_and_analytics(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/dataCatalog/orders/metadata").mock(
        return_value=ok({"name": "orders", "fields": []})
    )
    respx_mock.get(f"{BASE_URL}/api/v1/projects/{PROJECT_UUID}/dataCatalog/orders/analytics").mock(
        return_value=ok({"charts": []})
    )

    assert json.loads(await projects.get_metadata(PROJECT_UUID, "orders", client=client))["name"] == "orders"
    assert json.loads(await projects.get_analytics(PROJECT_UUID, "orders", client=client)) == {"charts": []}


@pytest.mark.asyncio
async def test_user_attributes(client, respx_mock):
    respx_mock.get(f"{BASE_URL}/api/v1/org/attributes").mock(return_value=ok([{"name": "region"}]))

    assert json.loads(await projects.get_user_attributes(client=client)) == [{"name": "region"}]


@pytest.mark.asyncio
async def test_malformed_project_uuid_fails_before_any_request(client, respx_mock):
    with pytest.raises(ToolError, match="Validation error: project_uuid"):
        await projects.list_spaces("not-a-uuid", client=client)
    assert len(respx_mock.calls) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", [projects.get_metadata, projects.get_analytics])
async def test_empty_table_name_is_rejected(client, respx_mock, operation):
    with pytest.raises(ToolError, match="Validation error: table"):
        await operation(PROJECT_UUID, "", client=client)
    assert len(respx_mock.calls) == 0


@pytest.mark.asyncio
async def test_uses_environment_client_when_none_given(respx_mock):
    route = respx_mock.get(f"{BASE_URL}/api/v1/org/projects").mock(return_value=ok([]))

    assert json.loads(await projects.list_projects()) == []
    assert route.calls.last.request.headers["Authorization"] == "ApiKey test-api-key"
