"""
Resource graph: name table, second-pass reference resolution and ordering.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from tiercompose.composition.kinds import KindRegistry
from tiercompose.composition.references import ReferenceResolver
from tiercompose.errors import ConfigurationError, NameCollision
from tiercompose.models import ParentLink, Reference, ResolvedResource, ResourceDescriptor

logger = logging.getLogger(__name__)

Identity = Tuple[str, Tuple[ParentLink, ...], str]


class ResourceGraph:
    """
    Nodes are descriptors; edges are explicit `depends_on` plus implied ones
    (a child depends on its parent, a descriptor depends on every in-graph
    resource its properties reference).
    """

    def __init__(self, registry: KindRegistry, resolver: ReferenceResolver) -> None:
        self.registry = registry
        self.resolver = resolver
        self._nodes: Dict[Identity, ResourceDescriptor] = {}

    # ------------------------------------------------------------------ #
    # Name table
    # ------------------------------------------------------------------ #

    def add(self, descriptor: ResourceDescriptor) -> ResourceDescriptor:
        identity = self._identity(descriptor.kind, descriptor.parent_chain, descriptor.name)
        existing = self._nodes.get(identity)
        if existing is not None:
            raise NameCollision(descriptor.kind, descriptor.name, existing.origin, descriptor.origin)
        # Accepted descriptors keep a read-only copy of their body.
        descriptor = descriptor.frozen()
        self._nodes[identity] = descriptor
        return descriptor

    def extend(self, descriptors: Iterable[ResourceDescriptor]) -> None:
        for descriptor in descriptors:
            self.add(descriptor)

    def get(self, ref: Reference) -> Optional[ResourceDescriptor]:
        return self._nodes.get(self._identity(ref.kind, ref.parent_chain, ref.name))

    def descriptors(self) -> List[ResourceDescriptor]:
        return list(self._nodes.values())

    def of_kind(self, kind: str) -> List[ResourceDescriptor]:
        return [descriptor for descriptor in self._nodes.values() if descriptor.kind == kind]

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, Reference) and self.get(ref) is not None

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #

    def address(self, item: Reference | ResourceDescriptor) -> str:
        if isinstance(item, ResourceDescriptor):
            return self.resolver.resolve_descriptor(item)
        return self.resolver.resolve(item)

    def resolve(self) -> List[ResolvedResource]:
        """
        Second pass: every name is known, so every reference can be resolved.

        Dangling references are collected and reported together.
        """
        dangling: List[str] = []
        edges: Dict[Identity, Set[Identity]] = {}
        for identity, descriptor in self._nodes.items():
            targets: Set[Identity] = set()
            references = list(descriptor.depends_on) + list(_collect_references(descriptor.properties))
            if descriptor.parent_chain:
                parent = descriptor.parent_chain[-1]
                parent_ref = Reference(parent.kind, parent.name, descriptor.parent_chain[:-1])
                if parent_ref in self:
                    references.append(parent_ref)
            for ref in references:
                target = self._identity(ref.kind, ref.parent_chain, ref.name)
                if target in self._nodes:
                    if target != identity:
                        targets.add(target)
                elif not ref.external:
                    dangling.append(f"{descriptor.origin} -> {ref.kind} '{ref.name}'")
            edges[identity] = targets
        if dangling:
            raise ConfigurationError(
                f"{len(dangling)} reference(s) point outside the graph: {'; '.join(sorted(set(dangling)))}"
            )

        resolved: List[ResolvedResource] = []
        for identity in self._topological_order(edges):
            descriptor = self._nodes[identity]
            kind = self.registry.get(descriptor.kind)
            depends_on = sorted(
                self.address(self._nodes[target].reference) for target in edges[identity]
            )
            resolved.append(
                ResolvedResource(
                    kind=descriptor.kind,
                    type=kind.provider_type,
                    name=descriptor.name,
                    id=self.address(descriptor),
                    parent_chain=descriptor.parent_chain,
                    properties=self._resolve_value(descriptor.properties),
                    depends_on=tuple(depends_on),
                )
            )
        logger.info("Resolved resource graph with %d resources", len(resolved))
        return resolved

    def to_records(self) -> List[Dict[str, Any]]:
        return [resource.to_dict() for resource in self.resolve()]

    def to_json(self, **json_kwargs: Any) -> str:
        return json.dumps(self.to_records(), **json_kwargs)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _identity(self, kind_key: str, chain: Tuple[ParentLink, ...], name: str) -> Identity:
        kind = self.registry.get(kind_key)
        folded = tuple(
            ParentLink(link.kind, link.name if self.registry.get(link.kind).case_sensitive else link.name.lower())
            for link in chain
        )
        return (kind.key, folded, name if kind.case_sensitive else name.lower())

    def _resolve_value(self, value: Any) -> Any:
        if isinstance(value, Reference):
            return self.address(value)
        if isinstance(value, Mapping):
            return {key: self._resolve_value(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve_value(item) for item in value]
        return value

    def _topological_order(self, edges: Dict[Identity, Set[Identity]]) -> List[Identity]:
        dependents: Dict[Identity, List[Identity]] = {identity: [] for identity in self._nodes}
        indegree: Dict[Identity, int] = {identity: 0 for identity in self._nodes}
        for identity, targets in edges.items():
            for target in targets:
                dependents[target].append(identity)
                indegree[identity] += 1
        ready = [identity for identity in self._nodes if indegree[identity] == 0]
        order: List[Identity] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for neighbor in dependents[node]:
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    ready.append(neighbor)
        if len(order) != len(self._nodes):
            stuck = [self._nodes[identity].origin for identity in self._nodes if indegree[identity] > 0]
            raise ConfigurationError(f"Cycle detected while ordering resources: {', '.join(stuck)}")
        return order


def _collect_references(value: Any) -> Iterator[Reference]:
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _collect_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _collect_references(item)
