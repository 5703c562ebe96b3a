"""
minirepo - Query-builder repositories with batched relation resolution

Table repositories over SQLAlchemy Core that attach BelongsTo, HasMany and
BelongsToMany relations to whole result batches with a fixed number of
queries per relation.

Main modules:
- database_manager: configuration, engine wrapper and query builder
- repository: QueryBuilderRepository, relation registry and resolver
- api: FastAPI router and pydantic models (imported on demand)
"""

from .database_manager import (
    DatabaseEngine,
    DatabaseConfig,
    DatabaseType,
    EngineConfig,
    QueryBuilder,
    create_database_engine,
    get_config_from_env,
    get_sqlite_config,
    get_postgresql_config,
    get_mysql_config,
)
from .exceptions import (
    MinirepoException,
    ConfigurationError,
    NotFoundError,
    ExecutionError,
    ValidationError,
)
from .logger_config import setup_logging
from .repository import QueryBuilderRepository, Paginator, RelationKind, scope

# Version
__version__ = "1.0.0"

__all__ = [
    "DatabaseEngine",
    "DatabaseConfig",
    "DatabaseType",
    "EngineConfig",
    "QueryBuilder",
    "create_database_engine",
    "get_config_from_env",
    "get_sqlite_config",
    "get_postgresql_config",
    "get_mysql_config",
    "MinirepoException",
    "ConfigurationError",
    "NotFoundError",
    "ExecutionError",
    "ValidationError",
    "setup_logging",
    "QueryBuilderRepository",
    "Paginator",
    "RelationKind",
    "scope",
]
