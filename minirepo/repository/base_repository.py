"""
BASE REPOSITORY MODULE
======================

QueryBuilderRepository: the façade every table repository subclasses.

MODULE RESPONSIBILITIES:
=======================
1. Finders - all, first, paginate, find, find_by_field, find_where, ...
2. Writes - create, update, update_or_create, delete (fillable filtered)
3. Relations - declared in define_relations(), resolved in batches
4. Column planning - allow-lists from a view or an explicit list
5. DataTables - server-side processing endpoint

DEFINITION PATTERN:
==================
```python
class PostRepository(QueryBuilderRepository):
    table = "posts"
    fillable = ("title", "body", "status", "user_id")

    def define_relations(self):
        self.belongs_to("author", UserRepository, foreign_key="user_id")
        self.has_many("comments", CommentRepository)
        self.belongs_to_many("tags", TagRepository, pivot_table="post_tag")

    @scope
    def published(self, query):
        query.where("status", "published")


posts = PostRepository(engine)
posts.all(["title", "author"])        # title, id, user_id + author attached
posts.find(3, scopes=["published"])
```

CONSTRUCTION:
============
Related repositories declared by class are built with the owner's engine and
share one construction cache per repository tree, keyed by class. A class that
is already being built (for example Post -> User -> Post) is handed back from
the cache instead of being built again.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ..database_manager.query_builder import QueryBuilder, Record, RecordBatch
from ..exceptions import ConfigurationError, ValidationError
from ..utils import fields_mentioned_in, logger
from .columns import ColumnPlanner, ColumnSpec
from .datatable import build_datatable
from .pagination import Paginator
from .relations import RelationDeclaration, RelationRegistry
from .resolver import RelationResolver

DEFAULT_COLUMNS = ("*",)


def scope(method):
    """
    Mark a repository method as a named query scope

    The method receives the pending QueryBuilder and may return a builder to
    use instead; returning None keeps the one it was given.
    """
    method.__minirepo_scope__ = True
    return method


class QueryBuilderRepository:
    """
    Base class for table repositories

    CLASS ATTRIBUTES:
    ================
    • table: table name (required)
    • primary_key: primary key column, "id" by default
    • fillable: columns create/update may write; empty means unrestricted
    • query_columns: default allow-list for reads; empty means every column
    • views_path / view_suffix: where from_view() looks for templates
    """

    table: str = ""
    primary_key: str = "id"
    fillable: Sequence[str] = ()
    query_columns: Sequence[str] = ()
    views_path: str = "views"
    view_suffix: str = ".html"

    def __init__(self, engine, max_workers: int = 1, _shared: Optional[Dict[type, Any]] = None):
        """
        Args:
            engine: DatabaseEngine the repository reads and writes through
            max_workers: thread pool size for concurrent relation loads
            _shared: construction cache, only passed between related repositories

        Raises:
            ConfigurationError: no table, or an invalid relation declaration
        """
        # Step 1: Identity
        if not self.table:
            raise ConfigurationError(f"{type(self).__name__} does not name a table")
        self.engine = engine
        self.max_workers = max_workers
        self.query_columns = tuple(self.query_columns)

        # Step 2: Register before declaring relations so cycles find us
        shared = {} if _shared is None else _shared
        shared.setdefault(type(self), self)
        self.__shared = shared

        # Step 3: Collaborators
        self.scope_names = self.declared_scopes()
        self.relations = RelationRegistry(self.table, self.primary_key, self._related_repository,
                                          reserved_names=self.scope_names)
        self.planner = ColumnPlanner(self.primary_key, self.scope_names)
        self.resolver = RelationResolver(max_workers)

        # Step 4: Relations
        self.define_relations()
        logger.debug(f"{type(self).__name__} ready: {self.relations!r}")

    # ==========================================================================
    # DECLARATION HOOKS
    # ==========================================================================

    def define_relations(self) -> None:
        """Override to declare relations with belongs_to / has_many / belongs_to_many"""

    @classmethod
    def declared_scopes(cls) -> frozenset:
        return frozenset(
            name for name in dir(cls)
            if getattr(getattr(cls, name, None), "__minirepo_scope__", False)
        )

    def belongs_to(self, name: str, target, foreign_key: Optional[str] = None) -> RelationDeclaration:
        return self.relations.belongs_to(name, target, foreign_key)

    def has_many(self, name: str, target, foreign_key: Optional[str] = None) -> RelationDeclaration:
        return self.relations.has_many(name, target, foreign_key)

    def belongs_to_many(self, name: str, target, pivot_table: str, foreign_key: Optional[str] = None,
                        other_foreign_key: Optional[str] = None) -> RelationDeclaration:
        return self.relations.belongs_to_many(name, target, pivot_table, foreign_key, other_foreign_key)

    def _related_repository(self, target):
        if isinstance(target, QueryBuilderRepository):
            return target
        if not (isinstance(target, type) and issubclass(target, QueryBuilderRepository)):
            raise ConfigurationError(f"Relation target must be a repository class or instance, got {target!r}")

        existing = self.__shared.get(target)
        if existing is not None:
            return existing
        return target(self.engine, max_workers=self.max_workers, _shared=self.__shared)

    # ==========================================================================
    # COLUMN SELECTION
    # ==========================================================================

    def from_view(self, view: str) -> "QueryBuilderRepository":
        """
        Copy of this repository whose reads are limited to the fillable fields
        mentioned in <views_path>/<view><view_suffix>

        Raises:
            ConfigurationError: the view file does not exist
        """
        path = Path(self.views_path) / f"{view}{self.view_suffix}"
        if not path.is_file():
            raise ConfigurationError(f"View '{view}' not found", str(path))

        return self.use_columns(fields_mentioned_in(path, self.fillable))

    def use_columns(self, columns: Iterable[str]) -> "QueryBuilderRepository":
        """Copy of this repository with `columns` as its read allow-list"""
        repository = copy.copy(self)
        repository.query_columns = tuple(columns)
        return repository

    def plan(self, columns: Sequence[str] = DEFAULT_COLUMNS, scopes: Sequence[str] = (),
             required: Sequence[str] = ()) -> ColumnSpec:
        return self.planner.plan(columns, self.relations, scopes, self.query_columns, required)

    # ==========================================================================
    # FINDERS
    # ==========================================================================

    def new_query(self) -> QueryBuilder:
        return self.engine.table(self.table)

    def all(self, columns: Sequence[str] = DEFAULT_COLUMNS, scopes: Sequence[str] = ()) -> RecordBatch:
        return self._get(self.new_query(), columns, scopes)

    def first(self, columns: Sequence[str] = DEFAULT_COLUMNS, scopes: Sequence[str] = ()) -> Optional[Record]:
        records = self._get(self.new_query().limit(1), columns, scopes)
        return records[0] if records else None

    def paginate(self, limit: int = 15, columns: Sequence[str] = DEFAULT_COLUMNS, page_name: str = "page",
                 page: Optional[int] = None, scopes: Sequence[str] = ()) -> Paginator:
        """
        One page of records with relations attached

        Raises:
            ValidationError: limit is not a positive integer
        """
        if not isinstance(limit, int) or limit <= 0:
            raise ValidationError(f"Invalid page size: {limit!r}", "limit must be a positive integer")

        spec = self.plan(columns, scopes)
        query = self._scoped(self.new_query(), spec)
        records, total, current_page = query.paginate(limit, spec.columns, page)
        self._resolve(records, spec)

        return Paginator(items=records, total=total, per_page=limit,
                         current_page=current_page, page_name=page_name)

    def find(self, record_id: Any, columns: Sequence[str] = DEFAULT_COLUMNS,
             scopes: Sequence[str] = ()) -> Optional[Record]:
        records = self._get(self.new_query().where(self.primary_key, record_id).limit(1), columns, scopes)
        return records[0] if records else None

    def find_by_field(self, field: str, value: Any, columns: Sequence[str] = DEFAULT_COLUMNS,
                      scopes: Sequence[str] = ()) -> RecordBatch:
        return self._get(self.new_query().where(field, value), columns, scopes)

    def find_where(self, conditions, columns: Sequence[str] = DEFAULT_COLUMNS,
                   scopes: Sequence[str] = ()) -> RecordBatch:
        """
        Records matching every condition

        conditions: {column: value} or a list of (column, value) /
        (column, operator, value) entries
        """
        return self._get(self.new_query().where_all(conditions), columns, scopes)

    def find_where_in(self, field: str, values: Iterable, columns: Sequence[str] = DEFAULT_COLUMNS,
                      scopes: Sequence[str] = ()) -> RecordBatch:
        return self._get(self.new_query().where_in(field, values), columns, scopes)

    def find_where_not_in(self, field: str, values: Iterable, columns: Sequence[str] = DEFAULT_COLUMNS,
                          scopes: Sequence[str] = ()) -> RecordBatch:
        return self._get(self.new_query().where_not_in(field, values), columns, scopes)

    def fetch_related(self, field: str, values: Sequence, path: Tuple = ()) -> RecordBatch:
        """
        Records whose `field` is one of `values`, for the relation resolver

        `field` is always selected so the caller can group by it. Relations of
        this repository are resolved too unless it is already on `path`.
        """
        spec = self.plan(DEFAULT_COLUMNS, required=(field,))
        records = self.new_query().where_in(field, values).select(spec.columns)

        if any(type(repository) is type(self) for repository in path):
            return records
        return self.resolver.resolve(records, self.relations, spec.relations, path + (self,))

    def count(self, conditions=None) -> int:
        query = self.new_query()
        if conditions:
            query.where_all(conditions)
        return query.count()

    def exists(self, record_id: Any) -> bool:
        return self.new_query().where(self.primary_key, record_id).exists()

    def coerce_key(self, value: Any) -> Any:
        """Convert a raw (e.g. URL) key to the primary key column's Python type when possible"""
        column = self.new_query().table.c.get(self.primary_key)
        if column is None:
            return value
        try:
            return column.type.python_type(value)
        except (NotImplementedError, TypeError, ValueError):
            return value

    # ==========================================================================
    # WRITES
    # ==========================================================================

    def create(self, attributes):
        """
        Insert one record (mapping) or a batch (sequence of mappings)

        Returns:
            The new primary key for a single record, True for a batch

        Raises:
            ValidationError: empty input, a batch whose items are not mappings,
                or a record with no fillable field left
        """
        if isinstance(attributes, Mapping):
            return self.new_query().insert_get_id(self._writable(attributes))

        records = list(attributes or [])
        if not records or not all(isinstance(record, Mapping) for record in records):
            raise ValidationError(f"Batch insert into '{self.table}' needs a non-empty list of mappings")

        return self.new_query().insert([self._writable(record) for record in records])

    def update(self, record_id: Any, attributes: Mapping) -> int:
        """Update one record by primary key; returns the affected row count"""
        return self.new_query().where(self.primary_key, record_id).update(self.fillable_from(attributes))

    def update_or_create(self, attributes: Mapping, values: Optional[Mapping] = None) -> bool:
        """
        Update the first record matching `attributes` with `values`, or insert both

        ALGORITHM:
        1. Look up the lowest-keyed record matching `attributes` as given (no fillable filter)
        2. No match → insert attributes + values, fillable filtered
        3. Match → update that one record by primary key with the fillable values

        Raises:
            ValidationError: no match attributes, or nothing fillable to insert
        """
        if not attributes:
            raise ValidationError(f"update_or_create on '{self.table}' needs match attributes")
        values = dict(values or {})

        # Step 1: Lookup
        existing = self.new_query().where_all(attributes).order_by(self.primary_key).first([self.primary_key])

        # Step 2: Insert branch
        if existing is None:
            return self.new_query().insert([self._writable({**dict(attributes), **values})])

        # Step 3: Update branch
        changes = self.fillable_from(values)
        if not changes:
            return True
        return self.new_query().where(self.primary_key, existing[self.primary_key]).update(changes) > 0

    def delete(self, record_ids) -> int:
        """Delete by one primary key or a list of them; returns the affected row count"""
        if isinstance(record_ids, (list, tuple, set, frozenset)):
            if not record_ids:
                return 0
            return self.new_query().where_in(self.primary_key, record_ids).delete()
        return self.new_query().where(self.primary_key, record_ids).delete()

    def fillable_from(self, attributes: Mapping) -> Dict[str, Any]:
        if not self.fillable:
            return dict(attributes)
        return {key: value for key, value in attributes.items() if key in self.fillable}

    def _writable(self, attributes: Mapping) -> Dict[str, Any]:
        record = self.fillable_from(attributes)
        if not record:
            raise ValidationError(f"Nothing fillable to insert into '{self.table}'", f"fillable: {list(self.fillable)}")
        return record

    # ==========================================================================
    # DATATABLE
    # ==========================================================================

    def datatable(self, request: Mapping) -> Dict[str, Any]:
        return build_datatable(self, request)

    # ==========================================================================
    # INTERNALS
    # ==========================================================================

    def _get(self, query: QueryBuilder, columns: Sequence[str], scopes: Sequence[str]) -> RecordBatch:
        spec = self.plan(columns, scopes)
        records = self._scoped(query, spec).select(spec.columns)
        return self._resolve(records, spec)

    def _scoped(self, query: QueryBuilder, spec: ColumnSpec) -> QueryBuilder:
        for name in spec.scopes:
            result = getattr(self, name)(query)
            if result is not None:
                query = result
        return query

    def _resolve(self, records: RecordBatch, spec: ColumnSpec) -> RecordBatch:
        return self.resolver.resolve(records, self.relations, spec.relations, (self,))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table}, relations={self.relations.names()})"
