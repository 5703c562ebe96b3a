"""
QUERY BUILDER MODULE
====================

Fluent, table-scoped SQL builder on top of SQLAlchemy Core. This is the only
place in minirepo that turns intent into SQL; repositories talk to it and
nothing else.

QUERY BUILDER OPERATIONS:
========================
┌─────────────────────────────────────────────────────────┐
│                  QueryBuilder(table)                    │
├─────────────────────────────────────────────────────────┤
│  CLAUSES (mutate the pending query, return self):       │
│  • where(column, [operator], value)                     │
│  • or_where(column, [operator], value)                  │
│  • where_all(conditions)                                │
│  • where_in / where_not_in(column, values)              │
│  • order_by(column, direction) / limit(n) / offset(n)   │
├─────────────────────────────────────────────────────────┤
│  READS:                                                 │
│  • select(columns) → RecordBatch                        │
│  • first(columns) → Record | None                       │
│  • count() → int / exists() → bool                      │
│  • paginate(per_page, columns, page)                    │
│        → (RecordBatch, total, current_page)             │
├─────────────────────────────────────────────────────────┤
│  WRITES:                                                │
│  • insert(records) → bool                               │
│  • insert_get_id(record) → primary key                  │
│  • update(changes) → affected rows                      │
│  • delete() → affected rows                             │
│  • update_or_insert(attributes, values) → bool          │
└─────────────────────────────────────────────────────────┘

WHERE CLAUSE SHORTHAND:
======================
• where("status", "active")            → status = 'active'
• where("age", ">=", 18)               → age >= 18
• where_all({"status": "active"})      → equality per key
• where_all([("age", ">", 3), ("name", "bob")]) → triples and pairs mixed

Consecutive where() calls are AND-ed; or_where() starts a new OR branch, so
a.where(x).where(y).or_where(z) reads (x AND y) OR z, as SQL would.

RECORDS:
========
Rows come back as plain dicts (column → value), in the order the database
returned them. Nothing is cached; each read is one statement.

ERRORS:
=======
Unknown columns, unknown operators and every SQLAlchemyError surface as
ExecutionError.
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_, select as sa_select, insert as sa_insert
from sqlalchemy import update as sa_update, delete as sa_delete, func, literal
from sqlalchemy.sql.elements import ColumnElement

from ..exceptions import ErrorManager, ExecutionError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
RecordBatch = List[Record]

_MISSING = object()

# =============================================================================
# OPERATOR TABLE
# =============================================================================

_OPERATORS = {
    "=": lambda column, value: column == value,
    "==": lambda column, value: column == value,
    "!=": lambda column, value: column != value,
    "<>": lambda column, value: column != value,
    "<": lambda column, value: column < value,
    "<=": lambda column, value: column <= value,
    ">": lambda column, value: column > value,
    ">=": lambda column, value: column >= value,
    "like": lambda column, value: column.like(value),
    "not like": lambda column, value: column.not_like(value),
    "ilike": lambda column, value: column.ilike(value),
    "in": lambda column, value: column.in_(list(value)),
    "not in": lambda column, value: column.not_in(list(value)),
    "is": lambda column, value: column.is_(value),
    "is not": lambda column, value: column.is_not(value),
}


class QueryBuilder:
    """
    Pending query against a single table

    The Table object is reflected lazily through the engine on first use,
    so building clauses never touches the database by itself.
    """

    def __init__(self, engine, table_name: str):
        self.engine = engine
        self.table_name = table_name
        # list of OR branches, each a list of (column, operator, value)
        self._branches: List[List[Tuple[str, str, Any]]] = [[]]
        self._orders: List[Tuple[str, str]] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    @property
    def table(self):
        return self.engine.get_table(self.table_name)

    def clone(self) -> "QueryBuilder":
        cloned = copy.copy(self)
        cloned._branches = [list(branch) for branch in self._branches]
        cloned._orders = list(self._orders)
        return cloned

    # ==========================================================================
    # CLAUSES
    # ==========================================================================

    def where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "QueryBuilder":
        """
        Add an AND condition

        where("name", "bob") is equality; where("age", ">", 3) uses the
        operator. where("deleted_at", None) becomes IS NULL.
        """
        operator, value = self._normalize(operator, value)
        self._branches[-1].append((column, operator, value))
        return self

    def or_where(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> "QueryBuilder":
        """Start a new OR branch with this condition"""
        operator, value = self._normalize(operator, value)
        if self._branches[-1]:
            self._branches.append([])
        self._branches[-1].append((column, operator, value))
        return self

    def where_all(self, conditions) -> "QueryBuilder":
        """
        AND together a batch of conditions

        Accepts a mapping of column → value (equality), or an iterable whose
        items are (column, operator, value) triples, (column, value) pairs or
        mappings. The forms can be mixed within one iterable.
        """
        if isinstance(conditions, Mapping):
            for column, value in conditions.items():
                self.where(column, value)
            return self

        for condition in conditions:
            if isinstance(condition, Mapping):
                self.where_all(condition)
            elif isinstance(condition, (list, tuple)) and len(condition) == 3:
                self.where(condition[0], condition[1], condition[2])
            elif isinstance(condition, (list, tuple)) and len(condition) == 2:
                self.where(condition[0], condition[1])
            else:
                raise ExecutionError(
                    "Malformed where condition",
                    f"Expected a mapping, (column, value) or (column, operator, value), got {condition!r}"
                )
        return self

    def where_in(self, column: str, values: Iterable) -> "QueryBuilder":
        return self.where(column, "in", list(values))

    def where_not_in(self, column: str, values: Iterable) -> "QueryBuilder":
        return self.where(column, "not in", list(values))

    def order_by(self, column: str, direction: str = "asc") -> "QueryBuilder":
        direction = (direction or "asc").lower()
        if direction not in ("asc", "desc"):
            raise ExecutionError(f"Invalid order direction: {direction}", "Use 'asc' or 'desc'")
        self._orders.append((column, direction))
        return self

    def limit(self, value: Optional[int]) -> "QueryBuilder":
        self._limit = value
        return self

    def offset(self, value: Optional[int]) -> "QueryBuilder":
        self._offset = value
        return self

    # ==========================================================================
    # READS
    # ==========================================================================

    @ErrorManager.operation_context("db_select")
    def select(self, columns: Sequence[str] = ("*",)) -> RecordBatch:
        """
        Execute the pending query

        Args:
            columns: physical column names, or ["*"] for every column

        Returns:
            RecordBatch: list of dicts in database order
        """
        stmt = self._apply_window(self._apply_where(self._select_statement(columns)))

        with self.engine.get_connection_context() as conn:
            rows = conn.execute(stmt).mappings().all()

        logger.debug(f"SELECT {self.table_name}: {len(rows)} rows")
        return [dict(row) for row in rows]

    def first(self, columns: Sequence[str] = ("*",)) -> Optional[Record]:
        records = self.clone().limit(1).select(columns)
        return records[0] if records else None

    @ErrorManager.operation_context("db_count")
    def count(self) -> int:
        """Row count for the pending conditions (limit/offset ignored)"""
        stmt = self._apply_where(sa_select(func.count()).select_from(self.table))

        with self.engine.get_connection_context() as conn:
            return conn.execute(stmt).scalar_one()

    @ErrorManager.operation_context("db_exists")
    def exists(self) -> bool:
        stmt = self._apply_where(sa_select(literal(1)).select_from(self.table)).limit(1)

        with self.engine.get_connection_context() as conn:
            return conn.execute(stmt).first() is not None

    def paginate(self, per_page: int = 15, columns: Sequence[str] = ("*",),
                 page: Optional[int] = None) -> Tuple[RecordBatch, int, int]:
        """
        One page of results plus the total row count

        Returns:
            (records, total, current_page) - current_page is at least 1
        """
        if per_page <= 0:
            raise ExecutionError(f"Invalid page size: {per_page}", "per_page must be positive")

        current_page = page if page and page > 0 else 1
        total = self.count()
        records = self.clone().offset((current_page - 1) * per_page).limit(per_page).select(columns)
        return records, total, current_page

    # ==========================================================================
    # WRITES
    # ==========================================================================

    @ErrorManager.operation_context("db_insert")
    def insert(self, records: Sequence[Mapping]) -> bool:
        """Insert all records with a single executemany statement"""
        records = [dict(record) for record in records]
        if not records:
            return True

        with self.engine.get_connection_context() as conn:
            conn.execute(sa_insert(self.table), records)

        logger.debug(f"INSERT {self.table_name}: {len(records)} rows")
        return True

    @ErrorManager.operation_context("db_insert_get_id")
    def insert_get_id(self, record: Mapping) -> Any:
        """Insert one record and return the primary key the database assigned"""
        with self.engine.get_connection_context() as conn:
            result = conn.execute(sa_insert(self.table).values(**dict(record)))
            inserted = result.inserted_primary_key

        return inserted[0] if inserted else None

    @ErrorManager.operation_context("db_update")
    def update(self, changes: Mapping) -> int:
        """Apply changes to every row matching the pending conditions"""
        if not changes:
            return 0

        stmt = self._apply_where(sa_update(self.table)).values(**self._checked_values(changes))

        with self.engine.get_connection_context() as conn:
            affected = conn.execute(stmt).rowcount

        logger.debug(f"UPDATE {self.table_name}: {affected} rows")
        return affected

    @ErrorManager.operation_context("db_delete")
    def delete(self) -> int:
        stmt = self._apply_where(sa_delete(self.table))

        with self.engine.get_connection_context() as conn:
            affected = conn.execute(stmt).rowcount

        logger.debug(f"DELETE {self.table_name}: {affected} rows")
        return affected

    def update_or_insert(self, attributes: Mapping, values: Optional[Mapping] = None) -> bool:
        """
        Update rows matching attributes with values, or insert attributes + values

        ALGORITHM:
        1. No row matches attributes → insert the merged record
        2. Nothing to change → done
        3. Otherwise update the matching rows
        """
        if not attributes:
            raise ExecutionError("update_or_insert needs at least one match condition")

        values = dict(values or {})
        matching = self.clone().where_all(attributes)

        # Step 1: Insert branch
        if not matching.exists():
            return self.insert([{**dict(attributes), **values}])

        # Step 2: Nothing to update
        if not values:
            return True

        # Step 3: Update branch
        return matching.update(values) > 0

    # ==========================================================================
    # STATEMENT HELPERS
    # ==========================================================================

    @staticmethod
    def _normalize(operator: Any, value: Any) -> Tuple[str, Any]:
        if value is _MISSING:
            if operator is _MISSING:
                raise ExecutionError("where() needs a value")
            return "=", operator

        if not isinstance(operator, str) or operator.lower() not in _OPERATORS:
            raise ExecutionError(f"Unsupported operator: {operator!r}",
                                 f"Supported operators: {', '.join(_OPERATORS)}")
        return operator.lower(), value

    def _column(self, name: str):
        table = self.table
        if name not in table.c:
            raise ExecutionError(f"Unknown column '{name}' on table '{self.table_name}'")
        return table.c[name]

    def _checked_values(self, changes: Mapping) -> Dict[str, Any]:
        return {self._column(name).key: value for name, value in changes.items()}

    def _select_statement(self, columns: Sequence[str]):
        columns = list(columns) or ["*"]
        if "*" in columns:
            return sa_select(self.table)
        return sa_select(*[self._column(name) for name in columns])

    def _condition(self) -> Optional[ColumnElement]:
        branches = []
        for branch in self._branches:
            if not branch:
                continue
            clauses = [_OPERATORS[operator](self._column(column), value)
                       for column, operator, value in branch]
            branches.append(clauses[0] if len(clauses) == 1 else and_(*clauses))

        if not branches:
            return None
        return branches[0] if len(branches) == 1 else or_(*branches)

    def _apply_where(self, stmt):
        condition = self._condition()
        return stmt.where(condition) if condition is not None else stmt

    def _apply_window(self, stmt):
        for column, direction in self._orders:
            order_column = self._column(column)
            stmt = stmt.order_by(order_column.desc() if direction == "desc" else order_column.asc())
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        return stmt

    def __repr__(self) -> str:
        return f"QueryBuilder(table={self.table_name}, branches={self._branches})"
