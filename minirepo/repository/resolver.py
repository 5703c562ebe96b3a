"""
BATCHED RELATION RESOLVER
=========================

Attaches declared relations to a batch of records with a bounded number of
queries per relation, independent of the batch size:

    BelongsTo      1 query  (target WHERE pk IN distinct foreign keys)
    HasMany        1 query  (target WHERE fk IN distinct base keys)
    BelongsToMany  2 queries (pivot, then target WHERE pk IN linked ids)

RESOLUTION FLOW:
===============
┌──────────────┐    ┌──────────────┐    ┌──────────────┐
│  Plan loads  │───▶│  Load all    │───▶│  Attach all  │
│              │    │              │    │              │
│ • BelongsTo  │    │ • sequential │    │ • one field  │
│ • HasMany    │    │   or thread  │    │   per name   │
│ • BelongsTo- │    │   pool       │    │ • only after │
│   Many       │    │              │    │   every load │
└──────────────┘    └──────────────┘    └──────────────┘

Nothing is written into the batch until every load succeeded, so a failing
query leaves the caller's records untouched.

Nested relations: every target fetch goes through the target repository,
which resolves its own relations with the resolution path extended by
itself. A repository already on the path returns plain records, which is
what stops mutually referencing repositories from recursing forever.
"""

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..database_manager.query_builder import RecordBatch
from ..utils import logger, log_performance, unique
from .relations import RelationDeclaration, RelationKind, RelationRegistry


def _present(values: Iterable) -> List:
    """Distinct non-null values, first-seen order"""
    return unique(value for value in values if value is not None)


class RelationResolver:
    """
    Two-phase (load, then attach) relation resolution for record batches

    Args:
        max_workers: relation loads run concurrently on a thread pool of this
            size when it is above 1 and more than one relation is requested
    """

    def __init__(self, max_workers: int = 1):
        self.max_workers = max(1, int(max_workers or 1))
        self._loaders: Dict[RelationKind, Callable] = {
            RelationKind.BELONGS_TO: self._load_belongs_to,
            RelationKind.HAS_MANY: self._load_has_many,
            RelationKind.BELONGS_TO_MANY: self._load_belongs_to_many,
        }

    @log_performance("relation_resolve")
    def resolve(self, batch: RecordBatch, registry: RelationRegistry,
                relations: Optional[Sequence[str]] = None, path: Tuple = ()) -> RecordBatch:
        """
        Attach relations to every record of batch, in place

        Args:
            batch: records of the registry's repository
            registry: declared relations
            relations: names to resolve; None means all of them
            path: repositories already resolving further up the chain

        Returns:
            The same batch, for chaining

        Raises:
            Whatever the loads raise; the batch is left untouched in that case
        """
        declarations = registry.in_resolution_order(relations)
        if not batch or not declarations:
            return batch

        # Phase 1: load everything
        results = self._load_all(declarations, batch, path)

        # Phase 2: attach
        for declaration, values in zip(declarations, results):
            for record, value in zip(batch, values):
                record[declaration.name] = value

        logger.debug(f"Resolved {len(declarations)} relation(s) on {registry.table} for {len(batch)} record(s)")
        return batch

    def _load_all(self, declarations: List[RelationDeclaration], batch: RecordBatch, path: Tuple) -> List[List]:
        if self.max_workers == 1 or len(declarations) == 1:
            return [self._loaders[d.kind](d, batch, path) for d in declarations]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(declarations))) as pool:
            futures = [pool.submit(self._loaders[d.kind], d, batch, path) for d in declarations]
            # Executor exit waits for every load; result() re-raises in declaration order
        return [future.result() for future in futures]

    # ==========================================================================
    # LOADERS - each returns one value per base record, aligned with the batch
    # ==========================================================================

    def _load_belongs_to(self, declaration: RelationDeclaration, batch: RecordBatch, path: Tuple) -> List[Any]:
        target = declaration.target
        keys = _present(record.get(declaration.local_key) for record in batch)
        if not keys:
            return [None] * len(batch)

        related = target.fetch_related(target.primary_key, keys, path)

        by_key: Dict[Any, Dict] = {}
        for record in related:
            by_key.setdefault(record.get(target.primary_key), record)

        return [by_key.get(record.get(declaration.local_key)) for record in batch]

    def _load_has_many(self, declaration: RelationDeclaration, batch: RecordBatch, path: Tuple) -> List[List]:
        keys = _present(record.get(declaration.local_key) for record in batch)
        if not keys:
            return [[] for _ in batch]

        related = declaration.target.fetch_related(declaration.foreign_key, keys, path)

        grouped = defaultdict(list)
        for record in related:
            grouped[record.get(declaration.foreign_key)].append(record)

        return [list(grouped.get(record.get(declaration.local_key), ())) for record in batch]

    def _load_belongs_to_many(self, declaration: RelationDeclaration, batch: RecordBatch,
                              path: Tuple) -> List[List]:
        """
        ALGORITHM:
        1. Pivot rows for the distinct base keys
        2. Target records for the distinct linked ids
        3. Per base record: linked targets, deduplicated, in target query order
        """
        target = declaration.target
        keys = _present(record.get(declaration.local_key) for record in batch)
        if not keys:
            return [[] for _ in batch]

        # Step 1: Pivot
        pivot_rows = (target.engine.table(declaration.pivot_table)
                      .where_in(declaration.foreign_key, keys)
                      .select([declaration.foreign_key, declaration.other_foreign_key]))

        links = defaultdict(list)
        for row in pivot_rows:
            if row[declaration.other_foreign_key] is not None:
                links[row[declaration.foreign_key]].append(row[declaration.other_foreign_key])

        linked_ids = _present(i for ids in links.values() for i in ids)
        if not linked_ids:
            return [[] for _ in batch]

        # Step 2: Targets
        related = target.fetch_related(target.primary_key, linked_ids, path)

        position: Dict[Any, int] = {}
        for index, record in enumerate(related):
            position.setdefault(record.get(target.primary_key), index)

        # Step 3: Group
        grouped = []
        for record in batch:
            found = sorted(position[i] for i in unique(links.get(record.get(declaration.local_key), ()))
                           if i in position)
            grouped.append([related[index] for index in found])
        return grouped
