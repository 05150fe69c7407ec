"""
tiercompose: declarative resource composition for n-tier network topologies.

Derives provider-compliant names, materializes dependent sub-resource
collections from compact configuration rows, orders prioritized rule sets and
resolves references to resources that do not exist yet.
"""

from tiercompose.errors import (
    ConfigurationError,
    NameCollision,
    PriorityConflict,
    TierComposeError,
    UnknownKind,
    UnsupportedProjection,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "NameCollision",
    "PriorityConflict",
    "TierComposeError",
    "UnknownKind",
    "UnsupportedProjection",
]
