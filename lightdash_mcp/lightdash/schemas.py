"""
Pydantic models for Lightdash tool arguments
"""

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar
from uuid import UUID

from fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field, ValidationError

from .error_enhancement import format_validation_error

PROJECT_UUID_HELP = "The UUID of the project. You can obtain it from the project list."

OptimizationType = Literal["performance", "accuracy", "user_experience", "comprehensive"]
Aggressiveness = Literal["conservative", "moderate", "aggressive"]
VariationType = Literal[
    "filter_combinations", "field_selections", "aggregation_levels", "time_ranges", "limit_variations"
]
SignificanceLevel = Literal["low", "medium", "high", "very_high"]
PatternType = Literal["time_series", "metric_breakdown", "comparison", "custom"]
RelationshipType = Literal["all", "shared_explore", "shared_metrics", "shared_dimensions"]
AnalyticalGoal = Literal["trend_analysis", "comparison", "distribution", "performance_tracking", "custom"]
OptimizationGoal = Literal["performance", "user_experience", "data_accuracy"]
TemplateType = Literal["chart", "kpi_tracking", "analysis_workflow", "custom"]


class LightdashRequest(BaseModel):
    """Base model for tool arguments"""

    class Config:
        extra = "forbid"


class ProjectRequest(LightdashRequest):
    project_uuid: UUID = Field(..., description=PROJECT_UUID_HELP)


class CatalogTableRequest(ProjectRequest):
    table: str = Field(..., min_length=1, description="Name of the table in the data catalog")


class ExploreRequest(ProjectRequest):
    explore_id: str = Field(..., min_length=1, description="Explore (table) name")


class RunUnderlyingDataQueryRequest(ExploreRequest):
    dimensions: List[str] = Field(default_factory=list, description="Dimension field ids, short or fully qualified")
    metrics: List[str] = Field(default_factory=list, description="Metric field ids, short or fully qualified")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Lightdash filter groups")
    sorts: List[Dict[str, Any]] = Field(default_factory=list, description="Sort entries with fieldId and descending")
    table_calculations: List[Dict[str, Any]] = Field(default_factory=list, description="Table calculations")
    limit: Optional[int] = Field(None, ge=1, description="Maximum number of rows")


class CatalogSearchRequest(ProjectRequest):
    search: Optional[str] = Field(None, description="Search term")
    type: Optional[str] = Field(None, description="Catalog item type, e.g. 'table' or 'field'")
    limit: Optional[int] = Field(None, ge=1, description="Page size")
    page: Optional[int] = Field(None, ge=1, description="Page number")


class SavedChartResultsRequest(LightdashRequest):
    chart_uuid: UUID = Field(..., description="UUID of the saved chart")
    invalidate_cache: Optional[bool] = Field(None, description="Bypass Lightdash's results cache")
    dashboard_filters: Optional[Dict[str, Any]] = Field(None, description="Dashboard filters to apply")
    date_zoom_granularity: Optional[str] = Field(None, description="Date zoom granularity, e.g. 'Month'")


class DashboardRequest(LightdashRequest):
    dashboard_uuid: UUID = Field(..., description="UUID of the dashboard")


class ChartRequest(LightdashRequest):
    chart_uuid: UUID = Field(..., description="UUID of the saved chart")


class OptimizeChartQueryRequest(ChartRequest):
    optimization_type: OptimizationType = Field("performance", description="What to optimize for")
    aggressiveness: Aggressiveness = Field("moderate", description="How far suggestions may go")


class BenchmarkChartVariationsRequest(ChartRequest):
    variations: List[VariationType] = Field(..., min_length=1, description="Variation types to benchmark")
    test_duration: int = Field(3, ge=1, description="Timed runs per variation (at most 5 are run)")
    significance_level: SignificanceLevel = Field("medium", description="Confidence level for intervals")


class ExtractChartPatternsRequest(LightdashRequest):
    chart_uuids: List[UUID] = Field(..., min_length=1, description="Saved charts to mine for shared patterns")
    pattern_type: Optional[PatternType] = Field(None, description="Only report patterns of this type")
    min_confidence: float = Field(0.7, ge=0, le=1, description="Share of the requested charts a pattern must cover")
    include_examples: bool = Field(False, description="List up to three example charts per pattern")


class DiscoverChartRelationshipsRequest(ChartRequest):
    relationship_type: RelationshipType = Field("all", description="Only report relationships of this type")
    min_strength: float = Field(0.3, ge=0, le=1, description="Weakest relationship to report")
    max_results: int = Field(25, ge=1, description="Maximum number of related charts")
    include_impact_analysis: bool = Field(True, description="Attach change risk to each relationship")


class GenerateChartRecommendationsRequest(LightdashRequest):
    explore_id: str = Field(..., min_length=1, description="Explore (table) name")
    analytical_goal: AnalyticalGoal = Field(..., description="What the chart should help answer")
    project_uuid: Optional[UUID] = Field(None, description="Project of the explore; every project is searched if omitted")
    data_context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Optional businessContext, userRole, timeRange and keyMetrics"
    )
    max_recommendations: int = Field(10, ge=1, description="Maximum recommendations (at most 15)")
    include_implementation_guidance: bool = Field(False, description="Add step-by-step guidance")


class AutoOptimizeDashboardRequest(DashboardRequest):
    optimization_goals: List[OptimizationGoal] = Field(
        default_factory=lambda: ["performance", "user_experience"],
        min_length=1,
        description="Goals the optimization plan addresses"
    )
    include_implementation_plan: bool = Field(False, description="Add a phased implementation plan")


class CreateSmartTemplatesRequest(LightdashRequest):
    organization_context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Industry, team size, analytics maturity and similar context"
    )
    template_type: TemplateType = Field("chart", description="Kind of template to build")
    project_uuid: Optional[UUID] = Field(None, description="Project to learn from; the first project if omitted")
    learning_dataset: Dict[str, Any] = Field(
        default_factory=dict,
        description="Optional exploreIds restricting which charts are learned from"
    )


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_arguments(model: Type[ModelT], **arguments: Any) -> ModelT:
    """
    Validate tool arguments against ``model``. Arguments passed as None take
    the model default.

    Raises:
        ToolError: With a ``Validation error: ...`` message, before any API call
    """
    try:
        return model(**{name: value for name, value in arguments.items() if value is not None})
    except ValidationError as e:
        raise ToolError(format_validation_error(e)) from e
