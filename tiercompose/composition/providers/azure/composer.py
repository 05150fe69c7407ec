"""
Topology composer: drives the three materialization phases for Azure.

1. topology scope: resources shared by every tier (VNet, DNS zones, services);
2. tier scope: once per tier, optionally in parallel, each into a private table;
3. finalize scope: resources that reference tier output (role assignments).

Every name is fixed by the end of phase 3; `ResourceGraph.resolve()` then
resolves references in a second pass.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional

from tiercompose.composition.graph import ResourceGraph
from tiercompose.composition.materializer import CollectionMaterializer, discover_templates
from tiercompose.composition.naming import NameDeriver, unique_suffix
from tiercompose.composition.projections import ProjectionRegistry
from tiercompose.composition.providers.azure.inputs import TierConfig, TopologyConfig, parse_topology
from tiercompose.composition.providers.azure.kinds import build_kind_registry
from tiercompose.composition.providers.azure.projections import default_projections
from tiercompose.composition.references import ReferenceResolver, ResolverScope
from tiercompose.composition.resource_templates import (
    FINALIZE_SCOPE,
    TOPOLOGY_SCOPE,
    CollectionContext,
    NamingContext,
)
from tiercompose.composition.yaml_config import EngineSettings, get_engine_settings
from tiercompose.models import ResourceDescriptor

logger = logging.getLogger(__name__)

COLLECTIONS_PACKAGE = "tiercompose.composition.providers.azure.collections"


class TopologyComposer:
    """
    Turns a topology configuration into a resource graph.

    The composer holds no per-build state, so one instance can compose many
    topologies.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        projections: Optional[Mapping[str, ProjectionRegistry]] = None,
    ) -> None:
        self.settings = settings or get_engine_settings()
        self.registry = build_kind_registry()
        self.deriver = NameDeriver(self.registry)
        self.projections = dict(projections) if projections is not None else default_projections()
        self.materializer = CollectionMaterializer(discover_templates(COLLECTIONS_PACKAGE), self.settings)

    def compose(self, config: TopologyConfig | Mapping[str, Any], max_workers: Optional[int] = None) -> ResourceGraph:
        topology = parse_topology(config)
        workers = max_workers if max_workers is not None else self.settings.materializer.max_workers
        context = self.context(topology)

        graph = ResourceGraph(
            self.registry,
            ReferenceResolver(
                self.registry,
                ResolverScope(topology.scope.subscription_id, topology.scope.resource_group),
            ),
        )

        graph.extend(self.materializer.materialize_scope(context, TOPOLOGY_SCOPE))

        for tier, descriptors in zip(topology.tiers, self._materialize_tiers(topology.tiers, context, workers)):
            graph.extend(descriptors)
            for descriptor in descriptors:
                namespace = f"{tier.name}.{descriptor.collection}"
                context.shared.setdefault(namespace, {})[descriptor.key] = descriptor

        graph.extend(self.materializer.materialize_scope(context, FINALIZE_SCOPE))

        logger.info(
            "Composed %d descriptors for %s (%d tier(s), %d worker(s))",
            len(graph),
            topology.naming.workload,
            len(topology.tiers),
            workers,
        )
        return graph

    def context(self, topology: TopologyConfig) -> CollectionContext:
        """Topology-scoped context with an empty shared table."""
        naming = topology.naming
        disambiguator = naming.unique_suffix or unique_suffix(
            topology.scope.subscription_id,
            topology.scope.resource_group,
            naming.workload,
            length=self.settings.naming.unique_suffix_length,
        )
        return CollectionContext(
            deriver=self.deriver,
            naming=NamingContext(
                prefix=naming.prefix,
                workload=naming.workload,
                environment=naming.environment,
                disambiguator=disambiguator,
            ),
            settings=self.settings,
            topology=topology,
            location=topology.location or self.settings.default_location,
            projections=self.projections,
        )

    def materialize_tier(self, tier: TierConfig, context: CollectionContext) -> List[ResourceDescriptor]:
        return self.materializer.materialize(tier, context)

    def _materialize_tiers(
        self, tiers: List[TierConfig], context: CollectionContext, workers: int
    ) -> List[List[ResourceDescriptor]]:
        # Tiers write to private tables; results are returned in declaration order.
        if workers <= 1 or len(tiers) <= 1:
            return [self.materialize_tier(tier, context) for tier in tiers]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self.materialize_tier, tier, context) for tier in tiers]
            return [future.result() for future in futures]


def compose_topology(
    config: TopologyConfig | Mapping[str, Any], max_workers: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Compose and resolve in one call; returns the ordered output records."""
    return TopologyComposer().compose(config, max_workers=max_workers).to_records()
