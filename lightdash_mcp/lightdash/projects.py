"""
Lightdash project and catalog operations

One function per read-only endpoint: projects, spaces, charts, dashboards,
custom metrics, the data catalog and organization user attributes. Each
returns the endpoint's ``results`` as JSON text.
"""

from typing import Optional

from lightdash_mcp.logging import get_logger

from .client import LightdashClient, get_lightdash_client, format_results
from .schemas import (
    ProjectRequest,
    CatalogTableRequest,
    parse_arguments
)

logger = get_logger('PROJECTS')


async def _project_resource(project_uuid: str, path: str, client: Optional[LightdashClient]) -> str:
    args = parse_arguments(ProjectRequest, project_uuid=project_uuid)
    client = client or get_lightdash_client()
    endpoint = f"/api/v1/projects/{args.project_uuid}{path}"
    logger.debug(f"requesting project resource | endpoint:{endpoint}")
    return format_results(await client.get_results(endpoint))


async def list_projects(client: Optional[LightdashClient] = None) -> str:
    """List all projects in the Lightdash organization."""
    client = client or get_lightdash_client()
    logger.debug("requesting organization projects")
    return format_results(await client.get_results("/api/v1/org/projects"))


async def get_project(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    """Get details of a specific project."""
    return await _project_resource(project_uuid, "", client)


async def list_spaces(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/spaces", client)


async def list_charts(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/charts", client)


async def list_dashboards(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/dashboards", client)


async def get_custom_metrics(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/custom-metrics", client)


async def get_catalog(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/dataCatalog", client)


async def get_metrics_catalog(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    return await _project_resource(project_uuid, "/dataCatalog/metrics", client)


async def get_charts_as_code(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    """Charts of a project in their as-code (YAML-equivalent) representation."""
    return await _project_resource(project_uuid, "/charts/code", client)


async def get_dashboards_as_code(project_uuid: str, client: Optional[LightdashClient] = None) -> str:
    """Dashboards of a project in their as-code representation."""
    return await _project_resource(project_uuid, "/dashboards/code", client)


async def get_metadata(project_uuid: str, table: str, client: Optional[LightdashClient] = None) -> str:
    """
    Get catalog metadata for one table.

    Args:
        project_uuid: Project UUID
        table: Table name, must not be empty
    """
    args = parse_arguments(CatalogTableRequest, project_uuid=project_uuid, table=table)
    client = client or get_lightdash_client()
    return format_results(
        await client.get_results(f"/api/v1/projects/{args.project_uuid}/dataCatalog/{args.table}/metadata")
    )


async def get_analytics(project_uuid: str, table: str, client: Optional[LightdashClient] = None) -> str:
    """Get usage analytics for one catalog table."""
    args = parse_arguments(CatalogTableRequest, project_uuid=project_uuid, table=table)
    client = client or get_lightdash_client()
    return format_results(
        await client.get_results(f"/api/v1/projects/{args.project_uuid}/dataCatalog/{args.table}/analytics")
    )


async def get_user_attributes(client: Optional[LightdashClient] = None) -> str:
    """Get organization user attributes."""
    client = client or get_lightdash_client()
    return format_results(await client.get_results("/api/v1/org/attributes"))
