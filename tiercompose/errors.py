"""
Error taxonomy for graph construction.

Every error here is raised while the resource graph is being built, before any
descriptor reaches the deployment engine. None of them is retryable.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple


class TierComposeError(Exception):
    """Base class for all composition failures."""


class ConfigurationError(TierComposeError):
    """Malformed or incomplete input; fails the whole build."""


class NameCollision(ConfigurationError):
    """Two descriptors derived the same name inside one (kind, parent chain) scope."""

    def __init__(self, kind: str, name: str, first: str, second: str) -> None:
        self.kind = kind
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"Name collision for {kind} '{name}': produced by {first} and {second}."
        )


class UnsupportedProjection(TierComposeError):
    """A (kind, feature) combination has no entry in a projection registry."""

    def __init__(self, registry: str, kind: str, feature: str, known: Iterable[str] = ()) -> None:
        self.registry = registry
        self.kind = kind
        self.feature = feature
        self.known: Tuple[str, ...] = tuple(sorted(known))
        message = f"No {registry} projection for {kind} '{feature}'."
        if self.known:
            message += f" Known: {', '.join(self.known)}."
        super().__init__(message)


class PriorityConflict(TierComposeError):
    """One or more rules share a (direction, priority) slot."""

    def __init__(self, conflicts: Sequence) -> None:
        self.conflicts = tuple(conflicts)
        details = "; ".join(conflict.describe() for conflict in self.conflicts)
        super().__init__(f"{len(self.conflicts)} priority conflict(s): {details}")


class UnknownKind(TierComposeError):
    """A kind has no registered constraints or path template."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown resource kind '{kind}'.")


__all__ = [
    "ConfigurationError",
    "NameCollision",
    "PriorityConflict",
    "TierComposeError",
    "UnknownKind",
    "UnsupportedProjection",
]
