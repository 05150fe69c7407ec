"""
Deterministic address construction for resources that may not exist yet.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from tiercompose.composition.kinds import KindRegistry
from tiercompose.errors import ConfigurationError
from tiercompose.models import ParentLink, Reference, ResourceDescriptor


@dataclass(frozen=True)
class ResolverScope:
    """Subscription and resource group every root-scoped address lives under."""

    subscription_id: str
    resource_group: str

    @property
    def prefix(self) -> str:
        return f"/subscriptions/{self.subscription_id}/resourceGroups/{self.resource_group}"


class ReferenceResolver:
    """
    Turns a `Reference` into its eventual resource id.

    Pure string construction over the parent chain and per-kind path segments;
    no I/O, no runtime state beyond a memo of already built addresses.
    """

    def __init__(self, registry: KindRegistry, scope: ResolverScope) -> None:
        self.registry = registry
        self.scope = scope
        self._cache: Dict[Tuple[str, Tuple[ParentLink, ...], str], str] = {}

    def resolve(self, ref: Reference) -> str:
        return self._address(ref.kind, ref.parent_chain, ref.name)

    def resolve_descriptor(self, descriptor: ResourceDescriptor) -> str:
        return self.resolve(descriptor.reference)

    def _address(self, kind_key: str, chain: Tuple[ParentLink, ...], name: str) -> str:
        cache_key = (kind_key, chain, name)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        kind = self.registry.get(kind_key)
        if kind.is_root:
            if chain:
                raise ConfigurationError(
                    f"{kind.key} '{name}' is root-scoped but was given a parent chain."
                )
            address = f"{self.scope.prefix}/providers/{kind.provider_type}/{name}"
        else:
            if not chain:
                raise ConfigurationError(f"{kind.key} '{name}' requires a parent resource.")
            parent = chain[-1]
            if kind.parent is not None and parent.kind != kind.parent:
                raise ConfigurationError(
                    f"{kind.key} '{name}' must be nested under {kind.parent}, not {parent.kind}."
                )
            parent_address = self._address(parent.kind, chain[:-1], parent.name)
            if kind.extension:
                address = f"{parent_address}/providers/{kind.provider_type}/{name}"
            else:
                address = f"{parent_address}/{kind.path_segment}/{name}"

        self._cache[cache_key] = address
        return address
