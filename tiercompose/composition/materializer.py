"""
Expansion of compact configuration rows into resource descriptors.

Templates are discovered from a package the same way for every provider: each
module exposing `get_templates()` contributes `CollectionTemplate`s.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Any, Dict, Iterable, List, Optional, Set

from tiercompose.composition.resource_templates import (
    SCOPES,
    TIER_SCOPE,
    CollectionContext,
    CollectionTemplate,
)
from tiercompose.composition.yaml_config import EngineSettings, get_engine_settings
from tiercompose.errors import ConfigurationError
from tiercompose.models import ResourceDescriptor

logger = logging.getLogger(__name__)

# Module-level cache to avoid repeated package scans
_TEMPLATE_CACHE: Dict[str, List[CollectionTemplate]] = {}


def discover_templates(package_name: str) -> List[CollectionTemplate]:
    """Load every `CollectionTemplate` exposed by modules under `package_name`."""
    cached = _TEMPLATE_CACHE.get(package_name)
    if cached is not None:
        return list(cached)

    templates: List[CollectionTemplate] = []
    seen: Set[str] = set()
    package = importlib.import_module(package_name)
    for _, name, ispkg in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        if ispkg:
            continue
        module = importlib.import_module(name)
        if not hasattr(module, "get_templates"):
            continue
        for template in module.get_templates() or []:
            if template.key in seen:
                raise RuntimeError(f"Duplicate template key detected: {template.key}")
            seen.add(template.key)
            templates.append(template)

    _TEMPLATE_CACHE[package_name] = templates
    return list(templates)


class CollectionMaterializer:
    """
    Stateless mapping from configuration rows to descriptors.

    Exactly one descriptor per row. Templates within a scope run in dependency
    order so dependent siblings always follow what they depend on.
    """

    def __init__(
        self,
        templates: Iterable[CollectionTemplate],
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.settings = settings or get_engine_settings()
        self.templates: Dict[str, CollectionTemplate] = {}
        for template in templates:
            if template.key in self.templates:
                raise ValueError(f"Duplicate template key detected: {template.key}")
            if template.scope not in SCOPES:
                raise ValueError(f"Template {template.key} has unknown scope '{template.scope}'.")
            self.templates[template.key] = template
        for template in self.templates.values():
            for required in template.requires:
                if required not in self.templates:
                    raise ValueError(f"Template {template.key} requires unknown template '{required}'.")
        self._orders: Dict[str, List[str]] = {
            scope: self._topological_order(scope) for scope in SCOPES
        }

    def ordered(self, scope: str) -> List[CollectionTemplate]:
        return [self.templates[key] for key in self._orders[scope]]

    def materialize(self, tier_config: Any, context: CollectionContext) -> List[ResourceDescriptor]:
        """Expand every tier-scoped collection of one tier."""
        return self.materialize_scope(context.for_tier(tier_config), TIER_SCOPE)

    def materialize_scope(self, ctx: CollectionContext, scope: str) -> List[ResourceDescriptor]:
        descriptors: List[ResourceDescriptor] = []
        for template in self.ordered(scope):
            descriptors.extend(self.materialize_template(ctx, template))
        logger.debug(
            "Materialized %d descriptors in %s scope%s",
            len(descriptors),
            scope,
            f" for tier {ctx.tier_name}" if ctx.tier_name else "",
        )
        return descriptors

    def materialize_template(
        self, ctx: CollectionContext, template: CollectionTemplate
    ) -> List[ResourceDescriptor]:
        if not template.is_enabled(ctx):
            logger.info(
                "Collection %s suppressed for %s: gate closed",
                template.key,
                ctx.tier_name or "topology",
            )
            return []

        table = ctx.shared.setdefault(template.key, {})
        descriptors: List[ResourceDescriptor] = []
        for row in template.make_rows(ctx, self.settings.naming.index_base):
            if row.key in table:
                raise ConfigurationError(
                    f"Duplicate {template.key} row '{row.key}' in "
                    f"{('tier ' + ctx.tier_name) if ctx.tier_name else 'topology'}."
                )
            descriptor = template.builder(ctx, row)
            if descriptor.kind != template.kind:
                raise RuntimeError(
                    f"Template {template.key} produced {descriptor.kind}, expected {template.kind}."
                )
            descriptor = descriptor.with_origin(template.key, row.key)
            table[row.key] = descriptor
            descriptors.append(descriptor)
            logger.debug("Row %s[%s] -> %s %s", template.key, row.key, descriptor.kind, descriptor.name)
        return descriptors

    # ------------------------------------------------------------------ #
    # Ordering
    # ------------------------------------------------------------------ #

    def _topological_order(self, scope: str) -> List[str]:
        selected = [key for key, template in self.templates.items() if template.scope == scope]
        adjacency: Dict[str, List[str]] = {key: [] for key in selected}
        indegree: Dict[str, int] = {key: 0 for key in selected}
        for key in selected:
            for required in self.templates[key].requires:
                if required not in adjacency:
                    # Earlier phases always run first.
                    continue
                adjacency[required].append(key)
                indegree[key] += 1
        ready = [key for key in selected if indegree[key] == 0]
        order: List[str] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for neighbor in adjacency[node]:
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    ready.append(neighbor)
        if len(order) != len(selected):
            raise RuntimeError(f"Cycle detected while ordering {scope} collection templates.")
        return order
