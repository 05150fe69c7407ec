"""
Resource kinds and their immutable naming/addressing constraints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from tiercompose.errors import UnknownKind

ALPHANUMERIC = "alphanumeric"
ALPHANUMERIC_HYPHEN = "alphanumeric_hyphen"
ALPHANUMERIC_HYPHEN_UNDERSCORE_PERIOD = "alphanumeric_hyphen_underscore_period"
CHARSETS = (ALPHANUMERIC, ALPHANUMERIC_HYPHEN, ALPHANUMERIC_HYPHEN_UNDERSCORE_PERIOD)


@dataclass(frozen=True)
class ResourceKind:
    """
    Declarative description of a resource kind.

    - key: registry identifier used by descriptors and references.
    - provider_type: full provider type, e.g. Microsoft.Network/virtualNetworks.
    - abbreviation: type fragment that must survive name truncation.
    - path_segment: address segment for child kinds (e.g. "subnets").
    - parent: kind key of the required direct parent; None for root kinds.
    - extension: addressed as `{scope}/providers/{provider_type}/{name}` under
      any parent (role assignments, locks, diagnostic settings).
    - globally_unique: callers must supply a disambiguator fragment.
    """

    key: str
    provider_type: str
    abbreviation: str
    max_name_length: int
    charset: str = ALPHANUMERIC_HYPHEN
    case_sensitive: bool = False
    path_segment: str = ""
    parent: Optional[str] = None
    extension: bool = False
    globally_unique: bool = False

    @property
    def allows_hyphen(self) -> bool:
        return self.charset != ALPHANUMERIC

    @property
    def separator(self) -> str:
        return "-" if self.allows_hyphen else ""

    @property
    def is_root(self) -> bool:
        return self.parent is None and not self.extension


class KindRegistry:
    """Closed registry of resource kinds keyed by `ResourceKind.key`."""

    def __init__(self, kinds: Iterable[ResourceKind] = ()) -> None:
        self._kinds: Dict[str, ResourceKind] = {}
        for kind in kinds:
            self.register(kind)

    def register(self, kind: ResourceKind) -> ResourceKind:
        if kind.key in self._kinds:
            raise ValueError(f"Duplicate kind key detected: {kind.key}")
        if kind.charset not in CHARSETS:
            raise ValueError(f"Kind {kind.key} uses unknown charset '{kind.charset}'.")
        if len(kind.abbreviation) > kind.max_name_length:
            raise ValueError(
                f"Kind {kind.key} abbreviation '{kind.abbreviation}' exceeds "
                f"max name length {kind.max_name_length}."
            )
        if kind.parent is not None and not kind.path_segment and not kind.extension:
            raise ValueError(f"Child kind {kind.key} needs a path segment.")
        self._kinds[kind.key] = kind
        return kind

    def get(self, key: str) -> ResourceKind:
        kind = self._kinds.get(key)
        if kind is None:
            raise UnknownKind(key)
        return kind

    def keys(self) -> List[str]:
        return list(self._kinds.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._kinds

    def __iter__(self) -> Iterator[ResourceKind]:
        return iter(self._kinds.values())

    def __len__(self) -> int:
        return len(self._kinds)
