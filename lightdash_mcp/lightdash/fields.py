"""
Field reference normalization

Lightdash's query engine addresses dimensions and metrics by their fully
qualified id, ``{explore}_{field}``. Tool callers may pass short names; these
helpers qualify them right before the query body is built. Inputs are never
mutated.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

from lightdash_mcp.logging import get_logger

logger = get_logger('FIELDS')

FILTER_GROUPS = ("dimensions", "metrics")
FILTER_OPERATORS = ("and", "or")


def normalize_field_name(name: str, explore_id: str) -> str:
    """
    Qualify ``name`` with ``explore_id`` unless it already carries the prefix.

    The check is a plain prefix test: a local name that itself begins with
    ``{explore_id}_`` is treated as already qualified.
    """
    prefix = f"{explore_id}_"
    if name.startswith(prefix):
        return name
    return f"{prefix}{name}"


def normalize_field_list(names: Optional[Sequence[str]], explore_id: str) -> List[str]:
    if not names:
        return []
    return [normalize_field_name(name, explore_id) for name in names]


def _normalize_filter(rule: Any, explore_id: str) -> Any:
    if not isinstance(rule, dict):
        return rule
    target = rule.get("target")
    if isinstance(target, dict) and isinstance(target.get("fieldId"), str):
        target["fieldId"] = normalize_field_name(target["fieldId"], explore_id)
    return rule


def normalize_filters(filters: Optional[Mapping[str, Any]], explore_id: str) -> Dict[str, Any]:
    """
    Return a copy of a filter tree with every ``target.fieldId`` qualified.

    Only rules directly under ``dimensions``/``metrics`` ``and``/``or`` lists
    are rewritten; other keys and rule properties pass through unchanged.
    Missing or non-mapping input yields ``{}``.
    """
    if not isinstance(filters, Mapping):
        return {}

    normalized = copy.deepcopy(dict(filters))
    for group_name in FILTER_GROUPS:
        group = normalized.get(group_name)
        if not isinstance(group, dict):
            continue
        for operator in FILTER_OPERATORS:
            rules = group.get(operator)
            if isinstance(rules, list):
                group[operator] = [_normalize_filter(rule, explore_id) for rule in rules]

    logger.debug(f"normalized filters | explore:{explore_id}")
    return normalized


def normalize_sorts(sorts: Optional[Sequence[Mapping[str, Any]]], explore_id: str) -> List[Any]:
    """Copy of ``sorts`` with each entry's ``fieldId`` qualified, order kept."""
    if not sorts:
        return []

    normalized = []
    for sort in sorts:
        if isinstance(sort, Mapping) and isinstance(sort.get("fieldId"), str):
            normalized.append({**sort, "fieldId": normalize_field_name(sort["fieldId"], explore_id)})
        else:
            normalized.append(copy.deepcopy(sort))
    return normalized
