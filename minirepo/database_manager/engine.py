"""
DATABASE ENGINE MODULE
======================

Wraps the SQLAlchemy Engine used by every repository: lifecycle, connection
contexts, table reflection and a couple of maintenance helpers.

MODULE RESPONSIBILITIES:
=======================
1. SQLAlchemy Engine Management - create, start, stop
2. Connection Management - transactional connection context
3. Table Reflection - reflected Table objects cached per name
4. Query Builder Access - engine.table("users") -> QueryBuilder
5. Raw SQL Execution - direct text() execution

ENGINE LIFECYCLE:
================
┌─────────────┐    ┌─────────────┐    ┌─────────────┐    ┌─────────────┐
│   Created   │───▶│   Started   │───▶│   Running   │───▶│   Stopped   │
│             │    │             │    │             │    │             │
│ • Config    │    │ • Engine    │    │ • Queries   │    │ • Disposed  │
│   loaded    │    │ • MetaData  │    │ • Pooling   │    │ • Cleaned   │
└─────────────┘    └─────────────┘    └─────────────┘    └─────────────┘

CONNECTION PATTERN:
==================
```python
engine = create_database_engine(config)

with engine.get_connection_context() as conn:
    conn.execute(...)          # committed on exit, rolled back on error

rows = engine.table("users").where("active", True).select(["id", "name"])
```

Every QueryBuilder statement borrows a pooled connection for exactly one
statement and gives it back before returning, so no connection is held while
relations are being resolved.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional, Dict, Any

from sqlalchemy import create_engine, Engine, MetaData, Table, text
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from .config import DatabaseConfig
from ..exceptions import ErrorManager, ExecutionError

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE CONNECTION TESTING UTILITIES
# =============================================================================

def test_database_connection(engine: Engine, db_type: str = "sqlite") -> bool:
    """
    Run a trivial query appropriate for the backend

    - SQLite: SELECT 1
    - PostgreSQL: SELECT version()
    - MySQL: SELECT VERSION()

    Returns:
        bool: True when the query ran, False on any database error
    """
    logger.debug("Database connection test starting")

    try:
        with engine.connect() as conn:
            if db_type.lower() == 'postgresql':
                conn.execute(text("SELECT version()"))
            elif db_type.lower() == 'mysql':
                conn.execute(text("SELECT VERSION()"))
            else:
                conn.execute(text("SELECT 1"))

        logger.debug("Database connection test successful")
        return True

    except SQLAlchemyError as e:
        logger.warning(f"Database connection test failed: {e}")
        return False

# =============================================================================
# DATABASE ENGINE CLASS
# =============================================================================

class DatabaseEngine:
    """
    SQLAlchemy Engine holder shared by all repositories of an application

    INSTANCE ATTRIBUTES:
    ===================
    • __config: DatabaseConfig instance (private)
    • __engine: SQLAlchemy Engine instance (private)
    • __metadata: MetaData used for reflection (private)
    • __tables: reflected Table cache, name -> Table (private)
    • is_alive: engine state (public readonly)

    LIFECYCLE METHODS:
    ==================
    • start(): create the SQLAlchemy engine
    • stop(): dispose the pool, drop reflected tables

    QUERY METHODS:
    ==============
    • get_connection_context(): transactional connection
    • get_table(name): reflected sqlalchemy Table
    • table(name): QueryBuilder bound to one table
    • execute_raw_sql(): text() execution
    """

    def __init__(self, config: DatabaseConfig) -> None:
        """
        Only stores configuration; nothing connects until start()

        Args:
            config (DatabaseConfig): database configuration
        """
        # Step 1: Core configuration assignment
        self.__config: DatabaseConfig = config
        self.__engine: Optional[Engine] = None
        self.__metadata: MetaData = MetaData()
        self.__tables: Dict[str, Table] = {}
        self.__reflect_lock = threading.Lock()

        # Step 2: Derived configuration
        self.__connection_string: str = config.get_connection_string()
        self.__engine_config: dict = config.engine_config.to_dict()

        # Step 3: Engine state tracking
        self.is_alive: bool = False

    def start(self) -> None:
        """
        Create the SQLAlchemy engine

        Raises:
            SQLAlchemyError / TypeError: engine creation failed (invalid URL or arguments)
        """
        logger.info("Starting database engine")

        try:
            self.__engine = create_engine(self.__connection_string, **self.__engine_config)
            self.is_alive = True
            logger.info(f"Database engine started ({self.__config.db_type.value})")

        except Exception as e:
            logger.error(f"Engine startup failed: {e}")
            self.is_alive = False
            raise

    def stop(self) -> None:
        """Dispose the connection pool and forget reflected tables"""
        logger.info("Stopping database engine")

        if self.__engine:
            self.__engine.dispose()

        self.__engine = None
        self.__metadata = MetaData()
        self.__tables = {}

        self.is_alive = False
        logger.info("Database engine stopped")

    @property
    def get_engine(self) -> Engine:
        """
        Underlying SQLAlchemy Engine

        Raises:
            ExecutionError: engine has not been started
        """
        ErrorManager.validate_engine_state(self.__engine)
        return self.__engine

    @contextmanager
    def get_connection_context(self):
        """
        Connection inside a transaction: commit on success, rollback on error

        Yields:
            Connection: SQLAlchemy connection
        """
        with self.get_engine.begin() as conn:
            yield conn

    # ==========================================================================
    # TABLE REFLECTION
    # ==========================================================================

    def get_table(self, table_name: str) -> Table:
        """
        Reflected Table for table_name, cached for the lifetime of the engine

        ALGORITHM:
        1. Return cached Table when present
        2. Otherwise reflect under a lock (relation loads may run on threads)
        3. Cache and return

        Raises:
            ExecutionError: table does not exist
        """
        # Step 1: Cache hit
        table = self.__tables.get(table_name)
        if table is not None:
            return table

        # Step 2: Reflection
        with self.__reflect_lock:
            table = self.__tables.get(table_name)
            if table is None:
                try:
                    table = Table(table_name, self.__metadata, autoload_with=self.get_engine)
                except NoSuchTableError:
                    raise ExecutionError(f"Table '{table_name}' does not exist") from None

                # Step 3: Cache
                self.__tables[table_name] = table
                logger.debug(f"Reflected table {table_name} ({len(table.columns)} columns)")

        return table

    def table(self, table_name: str):
        """
        Fresh QueryBuilder for table_name

        Example:
            >>> engine.table("users").where("id", 5).first()
        """
        from .query_builder import QueryBuilder
        return QueryBuilder(self, table_name)

    # ==========================================================================
    # UTILITIES
    # ==========================================================================

    def create_tables(self, base_metadata: MetaData) -> None:
        """
        Create every table of base_metadata (existing tables are left alone)

        Args:
            base_metadata: SQLAlchemy MetaData instance
        """
        if not self.is_alive:
            logger.debug("Engine not started, starting now")
            self.start()

        base_metadata.create_all(bind=self.__engine)
        logger.info("Database tables created successfully")

    def test_connection(self) -> bool:
        if not self.is_alive:
            logger.debug("Engine not started, starting now")
            self.start()

        return test_database_connection(self.__engine, self.__config.db_type.value)

    @ErrorManager.operation_context("execute_raw_sql")
    def execute_raw_sql(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run a raw SQL statement inside a transaction

        Args:
            sql (str): SQL text, bind parameters as :name
            params (Optional[Dict[str, Any]]): bind values

        Returns:
            list of Row for statements returning rows, otherwise the rowcount

        Example:
            >>> engine.execute_raw_sql(
            ...     "SELECT COUNT(*) FROM users WHERE status = :status",
            ...     {"status": "active"}
            ... )
        """
        with self.get_connection_context() as conn:
            result = conn.execute(text(sql), params or {})
            if result.returns_rows:
                return result.fetchall()
            return result.rowcount

    def get_connection_info(self) -> Dict[str, Any]:
        """Engine state and configuration, password masked"""
        return {
            'connection_string': self.__masked_connection_string(),
            'database_type': self.__config.db_type.value,
            'database_name': self.__config.db_name,
            'is_alive': self.is_alive,
            'reflected_tables': sorted(self.__tables),
            'engine_config': self.__engine_config
        }

    def __masked_connection_string(self) -> str:
        if self.__config.password:
            return self.__connection_string.replace(f":{self.__config.password}@", ":***@")
        return self.__connection_string

    def __repr__(self) -> str:
        return (f"DatabaseEngine("
                f"db_type={self.__config.db_type.value}, "
                f"db_name={self.__config.db_name}, "
                f"is_alive={self.is_alive})")

# =============================================================================
# ENGINE FACTORY FUNCTIONS
# =============================================================================

def create_database_engine(config: DatabaseConfig) -> DatabaseEngine:
    """
    Build and start a DatabaseEngine in one call

    Example:
        >>> engine = create_database_engine(get_sqlite_config("catalog"))
    """
    db_engine = DatabaseEngine(config)
    db_engine.start()
    return db_engine
