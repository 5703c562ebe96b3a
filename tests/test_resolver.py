"""Tests for batched relation resolution."""

import pytest

from minirepo import ExecutionError, QueryBuilderRepository
from minirepo.repository import RelationResolver
from sample_repositories import CategoryRepository, PostRepository, UserRepository


# Single-relation repositories keep query counts easy to reason about
class PlainUserRepository(QueryBuilderRepository):
    table = "users"


class PlainCommentRepository(QueryBuilderRepository):
    table = "comments"


class PlainTagRepository(QueryBuilderRepository):
    table = "tags"


class PostAuthorRepository(QueryBuilderRepository):
    table = "posts"

    def define_relations(self):
        self.belongs_to("author", PlainUserRepository, foreign_key="user_id")


class PostCommentsRepository(QueryBuilderRepository):
    table = "posts"

    def define_relations(self):
        self.has_many("comments", PlainCommentRepository, foreign_key="post_id")


class PostTagsRepository(QueryBuilderRepository):
    table = "posts"

    def define_relations(self):
        self.belongs_to_many("tags", PlainTagRepository, pivot_table="post_tag",
                             foreign_key="post_id", other_foreign_key="tag_id")


class GhostRepository(QueryBuilderRepository):
    table = "ghosts"


class HauntedPostRepository(QueryBuilderRepository):
    table = "posts"

    def define_relations(self):
        self.belongs_to("author", PlainUserRepository, foreign_key="user_id")
        self.has_many("ghosts", GhostRepository, foreign_key="post_id")


def _seed_posts(engine, batch_size):
    engine.table("users").insert([
        {"id": i, "name": f"user {i}", "email": None, "country_id": None} for i in range(1, 11)
    ])
    engine.table("tags").insert([{"id": i, "label": f"tag {i}"} for i in range(1, 4)])
    engine.table("posts").insert([
        {"id": i, "title": f"post {i}", "body": None, "status": "draft", "user_id": (i % 10) + 1}
        for i in range(1, batch_size + 1)
    ])
    engine.table("comments").insert([
        {"post_id": i, "body": f"comment {n} on {i}"} for i in range(1, batch_size + 1) for n in range(2)
    ])
    engine.table("post_tag").insert([
        {"post_id": i, "tag_id": tag} for i in range(1, batch_size + 1) for tag in (1, 2)
    ])


# =============================================================================
# QUERY COUNTS
# =============================================================================

@pytest.mark.parametrize("batch_size", [1, 10, 1000])
def test_belongs_to_uses_one_query(engine, query_log, batch_size):
    _seed_posts(engine, batch_size)
    repository = PostAuthorRepository(engine)
    query_log.clear()

    posts = repository.all()

    assert len(posts) == batch_size
    assert len(query_log) == 1 + 1
    assert all(post["author"]["id"] == post["user_id"] for post in posts)


@pytest.mark.parametrize("batch_size", [1, 10, 1000])
def test_has_many_uses_one_query(engine, query_log, batch_size):
    _seed_posts(engine, batch_size)
    repository = PostCommentsRepository(engine)
    query_log.clear()

    posts = repository.all()

    assert len(query_log) == 1 + 1
    assert all(len(post["comments"]) == 2 for post in posts)
    assert all(c["post_id"] == post["id"] for post in posts for c in post["comments"])


@pytest.mark.parametrize("batch_size", [1, 10, 1000])
def test_belongs_to_many_uses_two_queries(engine, query_log, batch_size):
    _seed_posts(engine, batch_size)
    repository = PostTagsRepository(engine)
    query_log.clear()

    posts = repository.all()

    assert len(query_log) == 1 + 2
    assert all(sorted(t["id"] for t in post["tags"]) == [1, 2] for post in posts)


def test_null_foreign_keys_skip_the_query(seeded, query_log):
    repository = PostAuthorRepository(seeded)
    query_log.clear()

    posts = repository.find_where_in("id", [4])

    assert posts[0]["author"] is None
    assert len(query_log) == 1


def test_empty_pivot_skips_the_target_query(seeded, query_log):
    repository = PostTagsRepository(seeded)
    query_log.clear()

    posts = repository.find_where_in("id", [2, 4])

    assert [post["tags"] for post in posts] == [[], []]
    assert len(query_log) == 1 + 1


# =============================================================================
# ATTACHMENT SEMANTICS
# =============================================================================

def test_belongs_to_attaches_matching_record_or_none(seeded):
    seeded.table("posts").insert([
        {"id": 5, "title": "Lost", "body": None, "status": "draft", "user_id": 99},
    ])
    posts = {post["id"]: post for post in PostRepository(seeded).all()}

    assert posts[1]["author"]["name"] == "Ann"
    assert posts[2]["author"]["id"] == posts[1]["author"]["id"]
    assert posts[3]["author"]["name"] == "Bob"
    assert posts[4]["author"] is None
    assert posts[5]["author"] is None


def test_has_many_attaches_lists_never_none(seeded):
    posts = {post["id"]: post for post in PostRepository(seeded).all()}

    assert [c["body"] for c in posts[1]["comments"]] == ["first", "second"]
    assert posts[2]["comments"] == []
    assert [c["id"] for c in posts[3]["comments"]] == [3]
    assert posts[4]["comments"] == []


def test_belongs_to_many_attaches_records_one_pivot_hop_away(seeded):
    posts = {post["id"]: post for post in PostRepository(seeded).all()}

    assert sorted(t["label"] for t in posts[1]["tags"]) == ["python", "sql"]
    assert posts[2]["tags"] == []
    assert [t["label"] for t in posts[3]["tags"]] == ["sql"]


def test_pivot_changes_only_change_attachments(seeded):
    repository = PostRepository(seeded)
    before = repository.find(1, ["id", "title", "body", "status", "tags"])

    seeded.table("post_tag").where("post_id", 1).where("tag_id", 2).delete()
    after = repository.find(1, ["id", "title", "body", "status", "tags"])

    assert [t["label"] for t in after["tags"]] == ["python"]
    assert {k: v for k, v in before.items() if k != "tags"} == {k: v for k, v in after.items() if k != "tags"}


def test_duplicate_pivot_rows_attach_once(seeded):
    seeded.table("post_tag").insert([{"post_id": 3, "tag_id": 2}])

    post = PostRepository(seeded).find(3, ["id", "tags"])

    assert [t["id"] for t in post["tags"]] == [2]


def test_only_requested_relations_are_resolved(seeded):
    post = PostRepository(seeded).find(1, ["title", "comments"])

    assert "comments" in post
    assert "author" not in post
    assert "tags" not in post


def test_nested_relations_resolve_through_target_repositories(seeded):
    post = PostRepository(seeded).find(1)

    assert post["author"]["country"]["name"] == "Norway"
    # posts is on the resolution path, so the author's posts come back plain
    assert sorted(p["id"] for p in post["author"]["posts"]) == [1, 2]
    assert all("author" not in p for p in post["author"]["posts"])


def test_mutual_relations_terminate(seeded):
    users = {user["id"]: user for user in UserRepository(seeded).all()}

    ann_posts = {p["id"]: p for p in users[1]["posts"]}
    assert set(ann_posts) == {1, 2}
    assert ann_posts[1]["author"]["name"] == "Ann"
    assert "posts" not in ann_posts[1]["author"]
    assert users[3]["country"] is None
    assert users[3]["posts"] == []


def test_self_referencing_relations(seeded):
    categories = {c["id"]: c for c in CategoryRepository(seeded).all()}

    assert categories[1]["parent"] is None
    assert [c["name"] for c in categories[1]["children"]] == ["child"]
    assert categories[2]["parent"]["name"] == "root"
    assert categories[2]["children"] == []


# =============================================================================
# FAILURE AND CONCURRENCY
# =============================================================================

def test_failed_load_leaves_batch_untouched(seeded):
    repository = HauntedPostRepository(seeded)
    batch = seeded.table("posts").select()

    with pytest.raises(ExecutionError, match="ghosts"):
        RelationResolver().resolve(batch, repository.relations)

    assert all("author" not in record and "ghosts" not in record for record in batch)


def test_empty_batch_issues_no_queries(seeded, query_log):
    repository = PostRepository(seeded)
    query_log.clear()

    assert RelationResolver().resolve([], repository.relations) == []
    assert query_log == []


def test_concurrent_loads_match_sequential(seeded):
    sequential = PostRepository(seeded).all()
    concurrent = PostRepository(seeded, max_workers=4).all()

    assert concurrent == sequential


def test_concurrent_failure_leaves_batch_untouched(seeded):
    repository = HauntedPostRepository(seeded, max_workers=4)
    batch = seeded.table("posts").select()

    with pytest.raises(ExecutionError, match="ghosts"):
        repository.resolver.resolve(batch, repository.relations)

    assert all("author" not in record for record in batch)
