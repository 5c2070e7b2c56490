"""
Result row flattening for query and saved-chart responses.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence


def _flatten_cell(cell: Any) -> Any:
    # {"value": {"raw": ..., "formatted": ...}} -> {"raw": ..., "formatted": ...}
    if isinstance(cell, Mapping) and "value" in cell:
        value = cell["value"]
        if isinstance(value, Mapping):
            return {"raw": value.get("raw"), "formatted": value.get("formatted")}
        return {"raw": None, "formatted": None}
    return cell


def flatten_result_rows(rows: Optional[Sequence[Mapping[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Flatten Lightdash result rows into ``{field_id: {raw, formatted}}``.

    Cells that are not in the nested ``value`` shape are passed through
    untouched. Row order is preserved; ``None`` yields ``[]``.
    """
    if not rows:
        return []
    return [
        {field_id: _flatten_cell(cell) for field_id, cell in row.items()}
        if isinstance(row, Mapping) else row
        for row in rows
    ]


def flatten_query_results(results: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of a results object with its ``rows`` flattened."""
    results = dict(results or {})
    results["rows"] = flatten_result_rows(results.get("rows"))
    return results
