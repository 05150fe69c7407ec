"""Provider-neutral composition engine: naming, references, materialization, policy."""

from tiercompose.composition.graph import ResourceGraph
from tiercompose.composition.kinds import KindRegistry, ResourceKind
from tiercompose.composition.materializer import CollectionMaterializer, discover_templates
from tiercompose.composition.naming import NameDeriver, unique_suffix
from tiercompose.composition.policy import PolicyOrderer, PrioritySpace
from tiercompose.composition.projections import ProjectionRegistry
from tiercompose.composition.references import ReferenceResolver, ResolverScope

__all__ = [
    "CollectionMaterializer",
    "KindRegistry",
    "NameDeriver",
    "PolicyOrderer",
    "PrioritySpace",
    "ProjectionRegistry",
    "ReferenceResolver",
    "ResolverScope",
    "ResourceGraph",
    "ResourceKind",
    "discover_templates",
    "unique_suffix",
]
