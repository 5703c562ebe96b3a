"""Tests for relation declarations and the construction cache."""

import pytest

from minirepo import ConfigurationError, QueryBuilderRepository, RelationKind, scope
from sample_repositories import CategoryRepository, PostRepository, TagRepository, UserRepository


class UserProfileRepository(QueryBuilderRepository):
    table = "UserProfile"


class AccountRepository(QueryBuilderRepository):
    table = "account"

    def define_relations(self):
        self.belongs_to("profile", UserProfileRepository)
        self.has_many("sessions", SessionRepository)
        self.belongs_to_many("roles", RoleRepository, pivot_table="account_role")


class SessionRepository(QueryBuilderRepository):
    table = "session"


class RoleRepository(QueryBuilderRepository):
    table = "role"


def test_default_keys_follow_table_names(engine):
    relations = AccountRepository(engine).relations

    assert relations.get("profile").foreign_key == "user_profile_id"
    assert relations.get("sessions").foreign_key == "account_id"
    assert relations.get("sessions").local_key == "id"

    roles = relations.get("roles")
    assert roles.foreign_key == "account_id"
    assert roles.other_foreign_key == "role_id"
    assert roles.pivot_table == "account_role"


def test_declarations_keep_order_and_resolve_by_kind(engine):
    class MixedRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.belongs_to_many("roles", RoleRepository, pivot_table="account_role")
            self.has_many("sessions", SessionRepository)
            self.belongs_to("profile", UserProfileRepository)

    relations = MixedRepository(engine).relations

    assert relations.names() == ["roles", "sessions", "profile"]
    assert [r.name for r in relations.in_resolution_order()] == ["profile", "sessions", "roles"]
    assert [r.name for r in relations.in_resolution_order(["roles", "profile"])] == ["profile", "roles"]
    assert relations.belongs_to_foreign_keys() == ["user_profile_id"]


def test_duplicate_name_is_rejected(engine):
    class DuplicateRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.has_many("sessions", SessionRepository)
            self.belongs_to("sessions", UserProfileRepository)

    with pytest.raises(ConfigurationError, match="already declared"):
        DuplicateRepository(engine)


@pytest.mark.parametrize("name", ["", "   ", None])
def test_empty_name_is_rejected(engine, name):
    class NamelessRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.has_many(name, SessionRepository)

    with pytest.raises(ConfigurationError):
        NamelessRepository(engine)


def test_name_shadowing_a_scope_is_rejected(engine):
    class ShadowRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.has_many("active", SessionRepository)

        @scope
        def active(self, query):
            query.where("active", True)

    with pytest.raises(ConfigurationError, match="shadows a scope"):
        ShadowRepository(engine)


def test_missing_pivot_table_is_rejected(engine):
    class NoPivotRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.belongs_to_many("roles", RoleRepository, pivot_table="")

    with pytest.raises(ConfigurationError, match="pivot table"):
        NoPivotRepository(engine)


def test_target_must_be_a_repository(engine):
    class BadTargetRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.has_many("things", dict)

    with pytest.raises(ConfigurationError, match="repository class or instance"):
        BadTargetRepository(engine)


def test_repository_without_table_fails(engine):
    class NoTableRepository(QueryBuilderRepository):
        pass

    with pytest.raises(ConfigurationError, match="does not name a table"):
        NoTableRepository(engine)


def test_target_instance_is_reused(engine):
    sessions = SessionRepository(engine)

    class InstanceTargetRepository(QueryBuilderRepository):
        table = "account"

        def define_relations(self):
            self.has_many("sessions", sessions)

    assert InstanceTargetRepository(engine).relations.get("sessions").target is sessions


def test_mutual_repositories_share_instances(engine):
    posts = PostRepository(engine)

    users = posts.relations.get("author").target
    assert isinstance(users, UserRepository)
    assert users.relations.get("posts").target is posts

    tags = posts.relations.get("tags").target
    assert isinstance(tags, TagRepository)
    assert tags.relations.get("posts").target is posts
    assert tags.engine is posts.engine


def test_self_referencing_repository_targets_itself(engine):
    categories = CategoryRepository(engine)

    assert categories.relations.get("parent").target is categories
    assert categories.relations.get("children").target is categories
    assert categories.relations.get("parent").kind == RelationKind.BELONGS_TO
