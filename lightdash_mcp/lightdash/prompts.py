"""
Guided workflow prompts

Each prompt renders a single user message. Arguments that are not supplied
are left in the text as ``{name}`` placeholders.
"""

from typing import Optional

from lightdash_mcp.logging import get_logger

logger = get_logger('PROMPT')

PROMPT_DEFINITIONS = {
    "analyze-metric": "Guided metric analysis workflow - analyze a specific metric with dimensions and filters",
    "find-and-explore": "Discover and analyze data workflow - find relevant data and suggest analysis approach",
    "dashboard-deep-dive": "Comprehensive dashboard analysis workflow - analyze all tiles in a dashboard",
    "chart-performance-optimizer": (
        "Interactive workflow for chart performance optimization with guided analysis "
        "and step-by-step recommendations"
    ),
    "intelligent-chart-advisor": (
        "Conversational chart creation guidance with clarifying questions "
        "and recommendations tailored to the business question"
    ),
}


def _or_placeholder(value: Optional[str], name: str) -> str:
    return value if value else f"{{{name}}}"


def analyze_metric_prompt(
    metric_name: Optional[str] = None,
    explore_name: Optional[str] = None,
    dimensions: Optional[str] = None,
    filters: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_field: Optional[str] = None,
    sort_direction: Optional[str] = None
) -> str:
    metric_name = _or_placeholder(metric_name, "metric_name")
    explore_name = _or_placeholder(explore_name, "explore_name")
    return f"""Analyze the metric "{metric_name}" from the "{explore_name}" explore.

1. First, search for the metric in the catalog to get its exact field ID
2. Search for relevant dimensions to break down the analysis
3. Build and execute a query with:
   - Metric: {metric_name}
   - Dimensions: {_or_placeholder(dimensions, "dimensions")}
   - Filters: {_or_placeholder(filters, "filters")}
   - Date range: {_or_placeholder(date_range, "date_range")}
   - Sort by: {_or_placeholder(sort_field, "sort_field")} {_or_placeholder(sort_direction, "sort_direction")}
4. Interpret the results and provide insights"""


def find_and_explore_prompt(business_question: Optional[str] = None, search_terms: Optional[str] = None) -> str:
    return f"""I want to analyze "{_or_placeholder(business_question, "business_question")}".

1. Search the catalog for relevant fields related to: {_or_placeholder(search_terms, "search_terms")}
2. Identify the best explore (table) to use
3. Find relevant metrics and dimensions
4. Suggest a query structure to answer the question
5. Execute the query if confirmed"""


def dashboard_deep_dive_prompt(dashboard_name: Optional[str] = None) -> str:
    return f"""Analyze the dashboard: {_or_placeholder(dashboard_name, "dashboard_name")}

1. Find the dashboard in the catalog
2. Get the full dashboard structure
3. For each tile:
   - Get the tile results
   - Summarize key findings
4. Provide an executive summary of all insights"""


def chart_performance_optimizer_prompt(
    chart_uuid: Optional[str] = None,
    performance_goal: Optional[str] = None,
    user_experience: Optional[str] = None
) -> str:
    """Five-phase optimization workflow for one chart, driven by the chart intelligence tools."""
    chart_uuid = _or_placeholder(chart_uuid, "chartUuid")
    performance_goal = performance_goal or "under 3 seconds"
    user_experience = user_experience or "balanced"
    logger.debug(f"rendering optimizer prompt | chart:{chart_uuid} | goal:{performance_goal}")
    return f"""I need to optimize the performance of chart {chart_uuid} with the goal of achieving {performance_goal} execution time, prioritizing {user_experience} user experience.

Please follow this step-by-step optimization workflow:

**Phase 1: Performance Analysis**
1. Use lightdash_analyze_chart_performance to get current performance metrics
2. Identify the main performance bottlenecks and current execution time
3. Assess the complexity score and configuration issues

**Phase 2: Optimization Strategy**
4. Use lightdash_optimize_chart_query with optimization type based on user experience priority:
   - "speed" → use "performance" optimization type with "aggressive" aggressiveness
   - "accuracy" → use "accuracy" optimization type with "conservative" aggressiveness
   - "balanced" → use "comprehensive" optimization type with "moderate" aggressiveness
5. Review the suggested optimizations and their predicted performance improvements
6. Explain the trade-offs of each optimization approach

**Phase 3: Benchmarking (if needed)**
7. If multiple optimization approaches are viable, use lightdash_benchmark_chart_variations to test:
   - filter_combinations for charts with no/few filters
   - field_selections for charts with many dimensions/metrics
   - aggregation_levels for charts with complex grouping
8. Compare statistical results and identify the best performing variation

**Phase 4: Implementation Guidance**
9. Provide specific, actionable recommendations with:
   - Exact configuration changes needed
   - Expected performance improvement range
   - Implementation complexity and effort required
   - Potential risks and mitigation strategies

**Phase 5: Validation Plan**
10. Suggest a testing approach to validate the optimizations
11. Recommend monitoring metrics to track ongoing performance

Please start with Phase 1 and guide me through each step, asking for confirmation before proceeding to the next phase."""


def intelligent_chart_advisor_prompt(
    business_question: Optional[str] = None,
    data_exploration: Optional[str] = None,
    user_experience: Optional[str] = None,
    organizational_context: Optional[str] = None
) -> str:
    """Five-phase chart design conversation built on catalog search and chart recommendations."""
    business_question = _or_placeholder(business_question, "businessQuestion")
    user_experience = user_experience or "intermediate"
    logger.debug(f"rendering advisor prompt | experience:{user_experience}")
    return f"""I need guidance to create the right chart for my analytical needs. Here's my context:

**Business Question:** {business_question}

**Data Context:** {_or_placeholder(data_exploration, "dataExploration")}

**My Experience Level:** {user_experience}

**Organizational Context:** {_or_placeholder(organizational_context, "organizationalContext")}

Please act as my chart advisor and guide me through this process:

**Phase 1: Understanding & Goal Interpretation**
1. Analyze my business question to understand the analytical goal
2. Ask clarifying questions if needed to better understand my requirements
3. Suggest the most appropriate analytical approach based on the question

**Phase 2: Data Exploration & Recommendations**
4. Help me identify the right explore/table for my analysis
5. Use lightdash_get_catalog_search to find relevant data sources if needed
6. Use lightdash_generate_chart_recommendations to get chart suggestions
7. Explain why each recommendation fits my business question and goals

**Phase 3: Interactive Chart Design**
8. Walk me through the recommended chart configurations
9. Explain the reasoning behind field selections, chart types, and filters
10. Adapt recommendations to my experience level ({user_experience})

**Phase 4: Optimization & Best Practices**
11. Suggest performance optimizations if needed
12. Recommend best practices based on organizational context

**Phase 5: Implementation Support**
13. Give me specific configuration details I can use
14. Suggest follow-up analyses or related charts that might be valuable

Please start by analyzing my business question and providing your initial assessment. Ask me any clarifying questions you need, and adapt your guidance to my experience level."""
