"""
Column planning: from what the caller asked for to what is actually selected.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from ..exceptions import ConfigurationError
from ..utils import unique
from .relations import RelationRegistry

ALL_COLUMNS = "*"


@dataclass(frozen=True)
class ColumnSpec:
    """Physical columns to select, scopes to apply and relations to resolve afterwards"""
    columns: Tuple[str, ...]
    scopes: Tuple[str, ...] = ()
    relations: Tuple[str, ...] = ()

    @property
    def selects_all(self) -> bool:
        return self.columns == (ALL_COLUMNS,)


class ColumnPlanner:
    """
    Rules, in order:

    1. an active allow-list replaces "*" and is unioned into explicit lists
    2. scope and relation names leave the column list (scopes get applied,
       relation names pick what to resolve; no names means every relation)
    3. nothing left means "*"
    4. an explicit list always gains the primary key and every BelongsTo
       foreign key, plus any `required` columns
    """

    def __init__(self, primary_key: str, scope_names: Iterable[str] = ()):
        self.primary_key = primary_key
        self.scope_names = frozenset(scope_names)

    def plan(self, requested: Sequence[str], registry: RelationRegistry, scopes: Sequence[str] = (),
             query_columns: Sequence[str] = (), required: Sequence[str] = ()) -> ColumnSpec:
        if isinstance(requested, str):
            requested = [requested]
        if isinstance(scopes, str):
            scopes = [scopes]

        # Rule 2 first splits names off, so an allow-list never swallows them
        physical, column_scopes, relations = [], [], []
        for name in requested:
            if name in self.scope_names:
                column_scopes.append(name)
            elif name in registry:
                relations.append(name)
            else:
                physical.append(name)

        for name in scopes:
            if name not in self.scope_names:
                raise ConfigurationError(f"Unknown scope '{name}'", f"Declared scopes: {sorted(self.scope_names)}")

        # Rule 1
        if query_columns:
            if not physical or ALL_COLUMNS in physical:
                physical = list(query_columns)
            else:
                physical = physical + list(query_columns)

        # Rule 3
        physical = unique(physical)
        if not physical or ALL_COLUMNS in physical:
            columns = (ALL_COLUMNS,)
        else:
            # Rule 4
            columns = tuple(unique(
                physical + [self.primary_key] + registry.belongs_to_foreign_keys() + list(required)
            ))

        return ColumnSpec(
            columns=columns,
            scopes=tuple(unique(column_scopes + list(scopes))),
            relations=tuple(unique(relations)) if relations else tuple(registry.names()),
        )
