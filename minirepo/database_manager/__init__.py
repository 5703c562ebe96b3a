"""
MINIREPO DATABASE MANAGER MODULE
================================

Everything between a repository and the database: configuration, the engine
wrapper and the single-table query builder.

ARCHITECTURE OVERVIEW:
=====================
┌─────────────────┐    ┌─────────────────┐    ┌─────────────────┐
│   Config        │    │    Engine       │    │  QueryBuilder   │
│                 │    │                 │    │                 │
│ • DatabaseType  │    │ • Engine Pool   │    │ • where / order │
│ • Connection    │────│ • Transactions  │────│ • select / page │
│ • Env loading   │    │ • Reflection    │    │ • insert / upd  │
└─────────────────┘    └─────────────────┘    └─────────────────┘

USAGE EXAMPLE:
=============
```python
from minirepo.database_manager import get_sqlite_config, create_database_engine

engine = create_database_engine(get_sqlite_config("catalog"))
rows = engine.table("users").where("active", True).order_by("name").select(["id", "name"])
```
"""

from .config import (
    DatabaseType,
    EngineConfig,
    DatabaseConfig,
    DB_ENGINE_CONFIGS,
    get_sqlite_config,
    get_postgresql_config,
    get_mysql_config,
    get_database_config,
    get_config_from_env,
)
from .engine import DatabaseEngine, create_database_engine
from .query_builder import QueryBuilder, Record, RecordBatch

__all__ = [
    "DatabaseType",
    "EngineConfig",
    "DatabaseConfig",
    "DB_ENGINE_CONFIGS",
    "get_sqlite_config",
    "get_postgresql_config",
    "get_mysql_config",
    "get_database_config",
    "get_config_from_env",
    "DatabaseEngine",
    "create_database_engine",
    "QueryBuilder",
    "Record",
    "RecordBatch",
]
