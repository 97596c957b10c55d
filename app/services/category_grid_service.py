# app/services/category_grid_service.py
from typing import Any, Dict, List
import logging
import time

from app.db.repositories.category_repository import CategoryRepository
from app.schemas.category import (
    CategoryGridRequest,
    CategoryGridResponse,
    CategoryInDB,
    GridFilter,
    GridSort,
)
from app.utils.category_helpers import flatten_tree

logger = logging.getLogger(__name__)


def match_text_filter(value: Any, grid_filter: GridFilter) -> bool:
    expected = str(grid_filter.filter or "").lower()
    actual = str(value if value is not None else "").lower()

    if grid_filter.type == "contains":
        return expected in actual
    if grid_filter.type == "notContains":
        return expected not in actual
    if grid_filter.type == "equals":
        return actual == expected
    if grid_filter.type == "notEqual":
        return actual != expected
    if grid_filter.type == "startsWith":
        return actual.startswith(expected)
    if grid_filter.type == "endsWith":
        return actual.endswith(expected)
    return True


def match_number_filter(value: Any, grid_filter: GridFilter) -> bool:
    try:
        number = float(value)
        target = float(grid_filter.filter)
    except (TypeError, ValueError):
        return False

    if grid_filter.type == "equals":
        return number == target
    if grid_filter.type == "notEqual":
        return number != target
    if grid_filter.type == "greaterThan":
        return number > target
    if grid_filter.type == "greaterThanOrEqual":
        return number >= target
    if grid_filter.type == "lessThan":
        return number < target
    if grid_filter.type == "lessThanOrEqual":
        return number <= target
    if grid_filter.type == "inRange":
        try:
            return target <= number <= float(grid_filter.filter_to)
        except (TypeError, ValueError):
            return False
    return True


def match_set_filter(value: Any, grid_filter: GridFilter) -> bool:
    if not grid_filter.values:
        return True
    return str(value).lower() in {v.lower() for v in grid_filter.values}


_MATCHERS = {
    "text": match_text_filter,
    "number": match_number_filter,
    "set": match_set_filter,
}


def apply_filters(rows: List[Dict[str, Any]], filter_model: Dict[str, GridFilter]) -> List[Dict[str, Any]]:
    """Keep the rows matching every column filter"""
    if not filter_model:
        return rows
    return [
        row
        for row in rows
        if all(_MATCHERS[f.filter_type](row.get(field), f) for field, f in filter_model.items())
    ]


def _sort_key(value: Any):
    # Missing values sort after present ones
    return (value is None, value)


def sort_rows(rows: List[Dict[str, Any]], sort_model: List[GridSort]) -> List[Dict[str, Any]]:
    """Sort by every column of ``sort_model``, the first column taking precedence"""
    rows = list(rows)
    for sort in reversed(sort_model):
        rows.sort(key=lambda row: _sort_key(row.get(sort.col_id)), reverse=sort.sort == "desc")
    return rows


class CategoryGridService:
    """Server-side grid over the flattened category trees"""

    def __init__(self, db_session):
        self.category_repo = CategoryRepository(db_session)

    def grid(self, request: CategoryGridRequest) -> CategoryGridResponse:
        """
        Flatten every tree into rows with breadcrumbs and depth, then filter,
        sort and cut the ``start_row:end_row`` window.

        ``last_row`` is the number of rows before windowing.
        """
        start_time = time.time()

        roots = [CategoryInDB.model_validate(c).model_dump() for c in self.category_repo.list_filtered()]
        rows = flatten_tree(roots)
        rows = apply_filters(rows, request.filter_model)
        rows = sort_rows(rows, request.sort_model)

        window = rows[request.start_row:request.end_row]
        logger.info(
            f"Grid: {len(window)} of {len(rows)} rows in {time.time() - start_time:.4f}s"
        )
        return CategoryGridResponse(rows=window, last_row=len(rows))
