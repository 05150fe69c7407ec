"""
Shared composition dataclasses for tiercompose.

These models intentionally remain lightweight so that the naming, resolution,
materialization and policy layers can share them without importing each other.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from tiercompose.errors import PriorityConflict

INBOUND = "Inbound"
OUTBOUND = "Outbound"
DIRECTIONS = (INBOUND, OUTBOUND)

ALLOW = "Allow"
DENY = "Deny"
ALWAYS_ALLOW = "AlwaysAllow"
ACCESS_VALUES = (ALLOW, DENY, ALWAYS_ALLOW)

ANY = "*"


@dataclass(frozen=True)
class ParentLink:
    """One ancestor in a parent chain."""

    kind: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "name": self.name}


@dataclass(frozen=True)
class Reference:
    """
    Lazy pointer to a resource that may not exist yet.

    Resolves to a deterministic address string only; never to a live object.
    `external` marks resources that live outside the graph being built.
    """

    kind: str
    name: str
    parent_chain: Tuple[ParentLink, ...] = ()
    external: bool = False

    @property
    def link(self) -> ParentLink:
        return ParentLink(self.kind, self.name)

    @property
    def chain(self) -> Tuple[ParentLink, ...]:
        """Parent chain for a direct child of this reference."""
        return self.parent_chain + (self.link,)

    def child(self, kind: str, name: str) -> Reference:
        return Reference(kind=kind, name=name, parent_chain=self.chain)

    def describe(self) -> str:
        path = "/".join(f"{link.kind}:{link.name}" for link in self.chain)
        return path


@dataclass(frozen=True)
class NameFragmentSet:
    """
    Ordered name fragments handed to the name deriver.

    Join order: prefix, workload, environment, purpose..., abbreviation,
    suffix, disambiguator. `workload` is the compressible fragment.
    """

    abbreviation: str
    prefix: str = ""
    workload: str = ""
    environment: str = ""
    purpose: Tuple[str, ...] = ()
    suffix: str = ""
    disambiguator: str = ""

    @classmethod
    def from_sequence(cls, values: Sequence[str]) -> NameFragmentSet:
        """
        Map a positional list `[prefix, workload, environment, *purpose, abbreviation]`.

        Shorter lists fill from the left: two values are prefix + abbreviation,
        three are prefix + workload + abbreviation.
        """
        items = [str(value) for value in values]
        if not items:
            return cls(abbreviation="")
        abbreviation = items[-1]
        head = items[:-1]
        return cls(
            abbreviation=abbreviation,
            prefix=head[0] if len(head) > 0 else "",
            workload=head[1] if len(head) > 1 else "",
            environment=head[2] if len(head) > 2 else "",
            purpose=tuple(head[3:]),
        )

    def ordered(self) -> List[Tuple[str, str]]:
        parts: List[Tuple[str, str]] = [
            ("prefix", self.prefix),
            ("workload", self.workload),
            ("environment", self.environment),
        ]
        parts.extend(("purpose", value) for value in self.purpose)
        parts.extend(
            [
                ("abbreviation", self.abbreviation),
                ("suffix", self.suffix),
                ("disambiguator", self.disambiguator),
            ]
        )
        return parts


def freeze(value: Any) -> Any:
    """Read-only deep copy of a resource body: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    A to-be-created resource prior to any deployment call.

    `properties` is the opaque resource body and may hold `Reference` values
    that the graph resolves in its second pass. Descriptors are never mutated;
    use `with_properties` to produce a corrected copy. The graph stores a
    `frozen()` copy whose body is read-only all the way down.
    """

    kind: str
    name: str
    parent_chain: Tuple[ParentLink, ...] = ()
    properties: Mapping[str, Any] = field(default_factory=dict, hash=False)
    depends_on: FrozenSet[Reference] = frozenset()
    collection: str = ""
    key: str = ""

    @property
    def reference(self) -> Reference:
        return Reference(kind=self.kind, name=self.name, parent_chain=self.parent_chain)

    @property
    def chain(self) -> Tuple[ParentLink, ...]:
        return self.reference.chain

    @property
    def origin(self) -> str:
        if self.collection:
            return f"{self.collection}[{self.key}]"
        return self.kind

    def with_properties(self, properties: Mapping[str, Any]) -> ResourceDescriptor:
        return replace(self, properties=properties)

    def with_origin(self, collection: str, key: str) -> ResourceDescriptor:
        return replace(self, collection=collection, key=key)

    def frozen(self) -> ResourceDescriptor:
        return replace(self, properties=freeze(self.properties))


@dataclass(frozen=True)
class Rule:
    """A single prioritized traffic rule (NSG security rule or security admin rule)."""

    name: str
    direction: str = INBOUND
    access: str = ALLOW
    priority: Optional[int] = None
    protocol: str = ANY
    source: str = ANY
    destination: str = ANY
    source_ports: str = ANY
    ports: Tuple[str, ...] = (ANY,)
    description: str = ""

    def is_deny_all(self) -> bool:
        return (
            self.access == DENY
            and self.protocol == ANY
            and self.source == ANY
            and self.destination == ANY
            and tuple(self.ports) == (ANY,)
        )

    def with_priority(self, priority: int) -> Rule:
        return replace(self, priority=priority)


@dataclass(frozen=True)
class Conflict:
    """Two or more rules sharing one (direction, priority) slot."""

    direction: str
    priority: int
    rule_names: Tuple[str, ...]

    def describe(self) -> str:
        names = ", ".join(self.rule_names)
        return f"{self.direction} priority {self.priority} used by {names}"


@dataclass(frozen=True)
class RuleSet:
    """Rules ordered by direction then priority, plus any detected conflicts."""

    rules: Tuple[Rule, ...]
    conflicts: Tuple[Conflict, ...] = ()

    def by_direction(self, direction: str) -> List[Rule]:
        return [rule for rule in self.rules if rule.direction == direction]

    def names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def get(self, name: str) -> Rule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise KeyError(name)

    def raise_for_conflicts(self) -> RuleSet:
        if self.conflicts:
            raise PriorityConflict(self.conflicts)
        return self


@dataclass(frozen=True)
class ResolvedResource:
    """One output record handed to the deployment engine."""

    kind: str
    type: str
    name: str
    id: str
    parent_chain: Tuple[ParentLink, ...]
    properties: Mapping[str, Any] = field(hash=False)
    depends_on: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "type": self.type,
            "name": self.name,
            "id": self.id,
            "parentChain": [link.to_dict() for link in self.parent_chain],
            "properties": dict(self.properties),
            "dependsOn": list(self.depends_on),
        }

    def to_json(self, **json_kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **json_kwargs)
