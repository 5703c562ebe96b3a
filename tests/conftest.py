"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, event

from minirepo.database_manager import create_database_engine, get_sqlite_config

metadata = MetaData()

Table(
    "countries", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
)
Table(
    "users", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(200)),
    Column("country_id", Integer, ForeignKey("countries.id")),
)
Table(
    "posts", metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String(200), nullable=False),
    Column("body", Text),
    Column("status", String(20), default="draft"),
    Column("user_id", Integer, ForeignKey("users.id")),
)
Table(
    "comments", metadata,
    Column("id", Integer, primary_key=True),
    Column("post_id", Integer, ForeignKey("posts.id")),
    Column("body", Text),
)
Table(
    "tags", metadata,
    Column("id", Integer, primary_key=True),
    Column("label", String(50), nullable=False),
)
Table(
    "post_tag", metadata,
    Column("post_id", Integer, ForeignKey("posts.id")),
    Column("tag_id", Integer, ForeignKey("tags.id")),
)
Table(
    "categories", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("parent_id", Integer, ForeignKey("categories.id")),
)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database with the sample schema, empty."""
    db = create_database_engine(get_sqlite_config(str(tmp_path / "minirepo_test")))
    db.create_tables(metadata)
    yield db
    db.stop()


@pytest.fixture
def seeded(engine):
    """
    Sample data:

    users   1 Ann (Norway), 2 Bob (Chile), 3 Cy (no country)
    posts   1 Hello (Ann, published)   2 Draft (Ann, draft)
            3 Bob's post (Bob, published)   4 Orphan (no author, published)
    comments on post 1 (two) and post 3 (one)
    tags    python, sql, unused; post 1 -> python + sql, post 3 -> sql
    """
    engine.table("countries").insert([
        {"id": 1, "name": "Norway"},
        {"id": 2, "name": "Chile"},
    ])
    engine.table("users").insert([
        {"id": 1, "name": "Ann", "email": "ann@example.com", "country_id": 1},
        {"id": 2, "name": "Bob", "email": "bob@example.com", "country_id": 2},
        {"id": 3, "name": "Cy", "email": None, "country_id": None},
    ])
    engine.table("posts").insert([
        {"id": 1, "title": "Hello", "body": "first post", "status": "published", "user_id": 1},
        {"id": 2, "title": "Draft", "body": "not yet", "status": "draft", "user_id": 1},
        {"id": 3, "title": "Bob's post", "body": "hi", "status": "published", "user_id": 2},
        {"id": 4, "title": "Orphan", "body": None, "status": "published", "user_id": None},
    ])
    engine.table("comments").insert([
        {"id": 1, "post_id": 1, "body": "first"},
        {"id": 2, "post_id": 1, "body": "second"},
        {"id": 3, "post_id": 3, "body": "nice"},
    ])
    engine.table("tags").insert([
        {"id": 1, "label": "python"},
        {"id": 2, "label": "sql"},
        {"id": 3, "label": "unused"},
    ])
    engine.table("post_tag").insert([
        {"post_id": 1, "tag_id": 1},
        {"post_id": 1, "tag_id": 2},
        {"post_id": 3, "tag_id": 2},
    ])
    engine.table("categories").insert([
        {"id": 1, "name": "root", "parent_id": None},
        {"id": 2, "name": "child", "parent_id": 1},
    ])
    return engine


@pytest.fixture
def query_log(engine):
    """SELECT statements sent to the database (reflection queries excluded)."""
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT") and "sqlite_" not in statement:
            statements.append(statement)

    event.listen(engine.get_engine, "before_cursor_execute", record)
    yield statements
    event.remove(engine.get_engine, "before_cursor_execute", record)
