"""
DataTables server-side processing adapter.

Request shape (DataTables 1.10+):

    {
        "draw": 3,
        "columns": [{"data": "id"}, {"data": "name"}, ...],
        "order": [{"column": 1, "dir": "asc"}],
        "start": 0,
        "length": 10,
        "search": {"value": "ann"}
    }

Response: the request echoed back, plus recordsTotal, recordsFiltered and data.
"""

from typing import Any, Dict, Mapping

from ..exceptions import ErrorManager, ValidationError
from ..utils import logger, unique

REQUIRED_FIELDS = ["columns", "order", "start", "length"]


def _as_int(request: Mapping, key: str) -> int:
    try:
        return int(request[key])
    except (TypeError, ValueError):
        raise ValidationError(f"DataTables field '{key}' must be an integer", repr(request[key])) from None


def build_datatable(repository, request: Mapping) -> Dict[str, Any]:
    """
    Run one DataTables request against repository's table

    ALGORITHM:
    1. Validate the request and collect the distinct data columns
    2. Case-insensitive LIKE on every column, OR-ed together, when searching
    3. Count the whole table and the filtered set
    4. Order, window and select the page
    5. Merge the counts and rows over the request

    Relations are not resolved here; rows carry only the requested columns.

    Raises:
        ValidationError: missing field, bad or data-less order column, or bad integers
    """
    # Step 1: Validation
    ErrorManager.validate_required_fields(request, REQUIRED_FIELDS, "datatable")

    requested = list(request["columns"])
    columns = unique(column.get("data") for column in requested if column.get("data"))

    orders = list(request["order"])
    if not orders:
        raise ValidationError("DataTables request has no order entry")
    order = orders[0]
    try:
        order_column = requested[int(order.get("column", 0))]["data"]
    except (IndexError, KeyError, TypeError, ValueError):
        raise ValidationError("DataTables order column is out of range", repr(order.get("column"))) from None
    if not order_column:
        raise ValidationError("DataTables order column has no data field", repr(order.get("column")))
    direction = (order.get("dir") or "asc").lower()

    start = _as_int(request, "start")
    length = _as_int(request, "length")

    # Step 2: Search
    search = (request.get("search") or {}).get("value") or ""
    query = repository.new_query()
    if search:
        for column in columns:
            query.or_where(column, "ilike", f"%{search}%")

    # Step 3: Counts
    total = repository.new_query().count()
    filtered = query.count() if search else total

    # Step 4: Page
    query.order_by(order_column, direction).offset(max(start, 0))
    if length >= 0:
        query.limit(length)
    data = query.select(columns or ["*"])

    logger.debug(f"DataTable {repository.table}: {len(data)}/{filtered}/{total} (page/filtered/total)")

    # Step 5: Merge, computed keys win
    return {**dict(request), "recordsTotal": total, "recordsFiltered": filtered, "data": data}
