"""
Closed lookup tables from an abstract feature request to a concrete value.

An unknown (kind, feature) pair raises `UnsupportedProjection` instead of
quietly yielding an empty value.
"""

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, Mapping, Tuple, TypeVar

from tiercompose.errors import UnsupportedProjection

T = TypeVar("T")


class ProjectionRegistry(Generic[T]):
    def __init__(self, name: str, entries: Mapping[Tuple[str, str], T]) -> None:
        self.name = name
        self._entries: Dict[Tuple[str, str], T] = dict(entries)

    def project(self, kind: str, feature: str) -> T:
        try:
            return self._entries[(kind, feature)]
        except KeyError:
            raise UnsupportedProjection(self.name, kind, feature, known=self.features(kind)) from None

    def features(self, kind: str) -> List[str]:
        return [feature for (candidate, feature) in self._entries if candidate == kind]

    def kinds(self) -> List[str]:
        return sorted({kind for kind, _ in self._entries})

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
