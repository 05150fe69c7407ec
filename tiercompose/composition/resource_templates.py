"""
Generic collection template plumbing for resource materialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from tiercompose.composition.kinds import ResourceKind
from tiercompose.composition.naming import NameDeriver
from tiercompose.composition.policy import PolicyOrderer, PrioritySpace
from tiercompose.composition.projections import ProjectionRegistry
from tiercompose.composition.yaml_config import EngineSettings
from tiercompose.errors import ConfigurationError
from tiercompose.models import NameFragmentSet, ResourceDescriptor

TOPOLOGY_SCOPE = "topology"
TIER_SCOPE = "tier"
FINALIZE_SCOPE = "finalize"
SCOPES = (TOPOLOGY_SCOPE, TIER_SCOPE, FINALIZE_SCOPE)

SINGLETON_KEY = "default"


@dataclass(frozen=True)
class NamingContext:
    """Naming fragments shared by every resource of one topology."""

    prefix: str = ""
    workload: str = ""
    environment: str = ""
    disambiguator: str = ""


@dataclass(frozen=True)
class Row:
    """
    One configuration row handed to a builder.

    - key: the row name when supplied, otherwise its index; used for keyed lookup.
    - named: False when the key came from the index.
    """

    value: Any
    key: str
    index: int
    named: bool

    @classmethod
    def of(cls, value: Any, index: int) -> Row:
        if isinstance(value, Row):
            return value
        name = getattr(value, "name", None)
        if name:
            return cls(value=value, key=str(name), index=index, named=True)
        return cls(value=value, key=str(index), index=index, named=False)


@dataclass
class CollectionContext:
    """
    Shared state passed to each collection template builder.

    - topology / tier: validated input; `tier` is None outside tier scope.
    - shared: descriptors produced earlier, keyed by collection then row key.
      Tier descriptors appear under "<tier>.<collection>" once the tier is merged.
    - projections: closed registries keyed by registry name.
    """

    deriver: NameDeriver
    naming: NamingContext
    settings: EngineSettings
    topology: Any = None
    tier: Any = None
    location: str = ""
    projections: Mapping[str, ProjectionRegistry] = field(default_factory=dict)
    shared: Dict[str, Dict[str, ResourceDescriptor]] = field(default_factory=dict)

    def for_tier(self, tier: Any) -> CollectionContext:
        """Copy with a private shared table so tiers can expand independently."""
        shared = {collection: dict(rows) for collection, rows in self.shared.items()}
        return replace(self, tier=tier, shared=shared)

    @property
    def tier_name(self) -> str:
        return getattr(self.tier, "name", "") if self.tier is not None else ""

    @property
    def collection_prefix(self) -> str:
        parts = [self.naming.workload, self.tier_name]
        return "-".join(part for part in parts if part)

    # ------------------------------------------------------------------ #
    # Naming
    # ------------------------------------------------------------------ #

    def kind(self, key: str) -> ResourceKind:
        return self.deriver.registry.get(key)

    def resource_name(self, kind_key: str, *purpose: str) -> str:
        """Full fragment name for a standalone resource, e.g. ct-contoso-prod-web-lb."""
        kind = self.kind(kind_key)
        fragments = NameFragmentSet(
            abbreviation=kind.abbreviation,
            prefix=self.naming.prefix,
            workload=self.naming.workload,
            environment=self.naming.environment,
            purpose=tuple(part for part in (self.tier_name, *purpose) if part),
            disambiguator=self.naming.disambiguator if kind.globally_unique else "",
        )
        return self.deriver.derive(kind, fragments)

    def child_name(self, kind_key: str, row: Optional[Row] = None) -> str:
        """
        Short name for a collection member.

        Named rows become `{collection_prefix}-{row}-{abbreviation}`; unnamed
        rows fall back to `{collection_prefix}-{abbreviation}-{index}`.
        """
        kind = self.kind(kind_key)
        if row is not None and row.named:
            fragments = NameFragmentSet(
                abbreviation=kind.abbreviation,
                prefix=self.collection_prefix,
                purpose=(row.key,),
            )
        else:
            fragments = NameFragmentSet(
                abbreviation=kind.abbreviation,
                prefix=self.collection_prefix,
                suffix=str(row.index) if row is not None else "",
            )
        return self.deriver.derive(kind, fragments)

    # ------------------------------------------------------------------ #
    # Keyed lookup
    # ------------------------------------------------------------------ #

    def find(self, collection: str, key: Optional[str] = None) -> Optional[ResourceDescriptor]:
        rows = self.shared.get(collection) or {}
        if key is None:
            return next(iter(rows.values())) if len(rows) == 1 else None
        return rows.get(key)

    def lookup(self, collection: str, key: Optional[str] = None) -> ResourceDescriptor:
        rows = self.shared.get(collection)
        if not rows:
            raise ConfigurationError(f"{collection} capability missing for {self._where()}.")
        if key is None:
            if len(rows) == 1:
                return next(iter(rows.values()))
            raise ConfigurationError(
                f"{collection} holds {len(rows)} rows in {self._where()}; name one of: "
                f"{', '.join(rows)}."
            )
        descriptor = rows.get(key)
        if descriptor is None:
            raise ConfigurationError(
                f"Unknown {collection} '{key}' in {self._where()}; known: {', '.join(rows)}."
            )
        return descriptor

    def projection(self, name: str) -> ProjectionRegistry:
        registry = self.projections.get(name)
        if registry is None:
            raise ConfigurationError(f"No projection registry named '{name}' was injected.")
        return registry

    def orderer(self, space: PrioritySpace) -> PolicyOrderer:
        policy = self.settings.policy
        return PolicyOrderer(replace(space, gap=policy.gap, terminal=policy.terminal_priority))

    def _where(self) -> str:
        return f"tier '{self.tier_name}'" if self.tier_name else "topology"


RowsFn = Callable[[CollectionContext], Iterable[Any]]
BuilderFn = Callable[[CollectionContext, Row], ResourceDescriptor]
GateFn = Callable[[CollectionContext], bool]


@dataclass(frozen=True)
class CollectionTemplate:
    """
    Declarative description of one materializable collection.

    - key: unique identifier; also the shared-table name of its descriptors.
    - kind: resource kind every produced descriptor carries.
    - rows: returns the configuration rows; one descriptor per row.
    - builder: turns a row into exactly one descriptor.
    - scope: topology, tier or finalize phase.
    - requires: template keys (same scope) that must be materialized first.
    - gate: when it returns False the whole collection is dropped.
    - singleton: rows are keyed "default" regardless of their fields.
    """

    key: str
    kind: str
    rows: RowsFn
    builder: BuilderFn
    scope: str = TIER_SCOPE
    requires: Tuple[str, ...] = ()
    gate: Optional[GateFn] = None
    singleton: bool = False
    description: str = ""

    def is_enabled(self, ctx: CollectionContext) -> bool:
        return True if self.gate is None else bool(self.gate(ctx))

    def make_rows(self, ctx: CollectionContext, index_base: int = 1) -> Sequence[Row]:
        values = list(self.rows(ctx) or ())
        if self.singleton:
            return [Row(value=value, key=SINGLETON_KEY, index=index_base, named=False) for value in values]
        return [Row.of(value, index) for index, value in enumerate(values, start=index_base)]
