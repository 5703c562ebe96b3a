"""
Relation declarations attached to a repository instance.

A registry is filled once, while its repository is being constructed, and is
read-only afterwards. Declarations keep their order; the resolver walks them
kind by kind (BelongsTo, HasMany, BelongsToMany) in that order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from ..exceptions import ConfigurationError
from ..utils import default_foreign_key


class RelationKind(Enum):
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    BELONGS_TO_MANY = "belongs_to_many"


RESOLUTION_ORDER = (RelationKind.BELONGS_TO, RelationKind.HAS_MANY, RelationKind.BELONGS_TO_MANY)


@dataclass(frozen=True)
class RelationDeclaration:
    """
    One declared relation

    local_key / foreign_key meaning per kind:
        BELONGS_TO       local_key = foreign_key = column on the base record,
                         matched against target.primary_key
        HAS_MANY         local_key = base primary key,
                         foreign_key = column on the target records
        BELONGS_TO_MANY  local_key = base primary key,
                         foreign_key / other_foreign_key = pivot columns pointing
                         at the base and the target respectively
    """
    name: str
    kind: RelationKind
    target: Any
    local_key: str
    foreign_key: str
    pivot_table: Optional[str] = None
    other_foreign_key: Optional[str] = None


class RelationRegistry:
    """
    Ordered, append-only set of relations for one repository

    target_factory turns the `target` argument of a declaration (repository
    class or instance) into the repository instance the relation will use.
    """

    def __init__(self, table: str, primary_key: str, target_factory: Callable[[Any], Any],
                 reserved_names: Iterable[str] = ()):
        self.table = table
        self.primary_key = primary_key
        self._target_factory = target_factory
        self._reserved = frozenset(reserved_names)
        self._relations: Dict[str, RelationDeclaration] = {}

    # ==========================================================================
    # DECLARATIONS
    # ==========================================================================

    def belongs_to(self, name: str, target, foreign_key: Optional[str] = None) -> RelationDeclaration:
        """Base record holds foreign_key (default: <target table>_id) pointing at one target record"""
        self._check_name(name)
        repository = self._target_factory(target)
        foreign_key = foreign_key or default_foreign_key(repository.table)

        return self._add(RelationDeclaration(
            name=name,
            kind=RelationKind.BELONGS_TO,
            target=repository,
            local_key=foreign_key,
            foreign_key=foreign_key,
        ))

    def has_many(self, name: str, target, foreign_key: Optional[str] = None) -> RelationDeclaration:
        """Target records hold foreign_key (default: <this table>_id) pointing back at the base record"""
        self._check_name(name)
        repository = self._target_factory(target)

        return self._add(RelationDeclaration(
            name=name,
            kind=RelationKind.HAS_MANY,
            target=repository,
            local_key=self.primary_key,
            foreign_key=foreign_key or default_foreign_key(self.table),
        ))

    def belongs_to_many(self, name: str, target, pivot_table: str, foreign_key: Optional[str] = None,
                        other_foreign_key: Optional[str] = None) -> RelationDeclaration:
        """Many-to-many through pivot_table(foreign_key → base, other_foreign_key → target)"""
        self._check_name(name)
        if not pivot_table:
            raise ConfigurationError(f"Relation '{name}' on '{self.table}' needs a pivot table")
        repository = self._target_factory(target)

        return self._add(RelationDeclaration(
            name=name,
            kind=RelationKind.BELONGS_TO_MANY,
            target=repository,
            local_key=self.primary_key,
            foreign_key=foreign_key or default_foreign_key(self.table),
            pivot_table=pivot_table,
            other_foreign_key=other_foreign_key or default_foreign_key(repository.table),
        ))

    # ==========================================================================
    # LOOKUPS
    # ==========================================================================

    def get(self, name: str) -> RelationDeclaration:
        return self._relations[name]

    def names(self) -> List[str]:
        return list(self._relations)

    def of_kind(self, kind: RelationKind) -> List[RelationDeclaration]:
        return [relation for relation in self._relations.values() if relation.kind == kind]

    def belongs_to_foreign_keys(self) -> List[str]:
        return [relation.foreign_key for relation in self.of_kind(RelationKind.BELONGS_TO)]

    def in_resolution_order(self, names: Optional[Iterable[str]] = None) -> List[RelationDeclaration]:
        """Declarations to resolve, BelongsTo first, then HasMany, then BelongsToMany"""
        wanted = None if names is None else set(names)
        return [
            relation
            for kind in RESOLUTION_ORDER
            for relation in self.of_kind(kind)
            if wanted is None or relation.name in wanted
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._relations

    def __iter__(self) -> Iterator[RelationDeclaration]:
        return iter(self._relations.values())

    def __len__(self) -> int:
        return len(self._relations)

    # ==========================================================================
    # VALIDATION
    # ==========================================================================

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Relation on '{self.table}' needs a non-empty name", repr(name))
        if name in self._relations:
            raise ConfigurationError(
                f"Relation '{name}' is already declared on '{self.table}'",
                f"Existing kind: {self._relations[name].kind.value}"
            )
        if name in self._reserved:
            raise ConfigurationError(f"Relation '{name}' on '{self.table}' shadows a scope of the same name")

    def _add(self, relation: RelationDeclaration) -> RelationDeclaration:
        self._relations[relation.name] = relation
        return relation

    def __repr__(self) -> str:
        declared = ", ".join(f"{r.name}:{r.kind.value}" for r in self._relations.values())
        return f"RelationRegistry(table={self.table}, relations=[{declared}])"
