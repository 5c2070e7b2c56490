"""
Lightdash API package

Client, retry policy, field normalization and the tool, resource and prompt
operations served over MCP.
"""

from .client import LightdashClient, LightdashAPIError, get_lightdash_client, format_results
from .config import (
    get_lightdash_config,
    validate_lightdash_config,
    get_lightdash_headers,
    get_retry_config,
    get_server_identity,
    RetryConfig,
    PROTOCOL_VERSION
)
from .cache import ResultCache
from .error_enhancement import create_enhanced_error_message, enrich_error, validate_required_params
from .fields import normalize_field_name, normalize_field_list, normalize_filters, normalize_sorts
from .health import ErrorRateTracker, check_health
from .retry import with_retry, is_retryable_error
from .rows import flatten_result_rows, flatten_query_results
from .projects import (
    list_projects,
    get_project,
    list_spaces,
    list_charts,
    list_dashboards,
    get_custom_metrics,
    get_catalog,
    get_metrics_catalog,
    get_charts_as_code,
    get_dashboards_as_code,
    get_metadata,
    get_analytics,
    get_user_attributes
)
from .queries import (
    run_underlying_data_query,
    get_catalog_search,
    get_explore_with_full_schema,
    get_explores_summary,
    get_saved_chart_results,
    get_dashboard_by_uuid
)
from .intelligence import analyze_chart_performance, optimize_chart_query, benchmark_chart_variations
from .patterns import extract_chart_patterns, discover_chart_relationships
from .recommendations import generate_chart_recommendations, auto_optimize_dashboard, create_smart_templates
from .resources import read_resource, RESOURCE_DEFINITIONS
from .prompts import (
    analyze_metric_prompt,
    find_and_explore_prompt,
    dashboard_deep_dive_prompt,
    chart_performance_optimizer_prompt,
    intelligent_chart_advisor_prompt,
    PROMPT_DEFINITIONS
)

__all__ = [
    # Client
    'LightdashClient',
    'LightdashAPIError',
    'get_lightdash_client',
    'format_results',

    # Configuration
    'get_lightdash_config',
    'validate_lightdash_config',
    'get_lightdash_headers',
    'get_retry_config',
    'get_server_identity',
    'RetryConfig',
    'PROTOCOL_VERSION',

    # Core services
    'ResultCache',
    'create_enhanced_error_message',
    'enrich_error',
    'validate_required_params',
    'normalize_field_name',
    'normalize_field_list',
    'normalize_filters',
    'normalize_sorts',
    'ErrorRateTracker',
    'check_health',
    'with_retry',
    'is_retryable_error',
    'flatten_result_rows',
    'flatten_query_results',

    # Project operations
    'list_projects',
    'get_project',
    'list_spaces',
    'list_charts',
    'list_dashboards',
    'get_custom_metrics',
    'get_catalog',
    'get_metrics_catalog',
    'get_charts_as_code',
    'get_dashboards_as_code',
    'get_metadata',
    'get_analytics',
    'get_user_attributes',

    # Query operations
    'run_underlying_data_query',
    'get_catalog_search',
    'get_explore_with_full_schema',
    'get_explores_summary',
    'get_saved_chart_results',
    'get_dashboard_by_uuid',

    # Chart intelligence
    'analyze_chart_performance',
    'optimize_chart_query',
    'benchmark_chart_variations',
    'extract_chart_patterns',
    'discover_chart_relationships',

    # Recommendations
    'generate_chart_recommendations',
    'auto_optimize_dashboard',
    'create_smart_templates',

    # Resources and prompts
    'read_resource',
    'RESOURCE_DEFINITIONS',
    'analyze_metric_prompt',
    'find_and_explore_prompt',
    'dashboard_deep_dive_prompt',
    'chart_performance_optimizer_prompt',
    'intelligent_chart_advisor_prompt',
    'PROMPT_DEFINITIONS'
]
