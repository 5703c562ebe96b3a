"""
MINIREPO REPOSITORY MODULE
==========================

Table repositories with batched relation resolution.

ARCHITECTURE OVERVIEW:
=====================
┌─────────────────┐    ┌─────────────────┐    ┌─────────────────┐
│   Repository    │    │ ColumnPlanner   │    │  QueryBuilder   │
│                 │    │                 │    │                 │
│ • finders       │────│ • allow-lists   │────│ • one table     │
│ • writes        │    │ • scopes        │    │ • one statement │
│ • datatable     │    │ • forced keys   │    │   per call      │
└─────────────────┘    └─────────────────┘    └─────────────────┘
         │
┌─────────────────┐    ┌─────────────────┐
│ RelationRegistry│────│RelationResolver │
│                 │    │                 │
│ • BelongsTo     │    │ • load, then    │
│ • HasMany       │    │   attach        │
│ • BelongsToMany │    │ • 1/1/2 queries │
└─────────────────┘    └─────────────────┘
"""

from .base_repository import QueryBuilderRepository, scope
from .columns import ColumnPlanner, ColumnSpec
from .datatable import build_datatable
from .pagination import Paginator
from .relations import RelationDeclaration, RelationKind, RelationRegistry
from .resolver import RelationResolver

__all__ = [
    "QueryBuilderRepository",
    "scope",
    "ColumnPlanner",
    "ColumnSpec",
    "build_datatable",
    "Paginator",
    "RelationDeclaration",
    "RelationKind",
    "RelationRegistry",
    "RelationResolver",
]
