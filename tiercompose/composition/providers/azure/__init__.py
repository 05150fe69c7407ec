"""Azure provider for tiercompose."""

from tiercompose.composition.providers.azure.composer import TopologyComposer, compose_topology
from tiercompose.composition.providers.azure.inputs import TopologyConfig, parse_topology
from tiercompose.composition.providers.azure.kinds import AZURE_KINDS, build_kind_registry
from tiercompose.composition.providers.azure.projections import (
    PRIVATE_DNS_ZONES,
    ROLE_DEFINITIONS,
    default_projections,
)

__all__ = [
    "AZURE_KINDS",
    "PRIVATE_DNS_ZONES",
    "ROLE_DEFINITIONS",
    "TopologyComposer",
    "TopologyConfig",
    "build_kind_registry",
    "compose_topology",
    "default_projections",
    "parse_topology",
]
