"""
Deterministic, provider-compliant name derivation.

`NameDeriver.derive` is total: an over-long name is truncated, never rejected.
Truncation order:

1. cut the workload fragment from the right by the minimum amount needed;
2. drop the workload and cut the remaining trimmable fragments right to left
   (suffix, purpose, prefix, environment last);
3. cut the disambiguator.

The kind abbreviation is never cut.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from typing import List, Sequence, Union

from tiercompose.composition.kinds import (
    ALPHANUMERIC,
    ALPHANUMERIC_HYPHEN,
    ALPHANUMERIC_HYPHEN_UNDERSCORE_PERIOD,
    KindRegistry,
    ResourceKind,
)
from tiercompose.models import NameFragmentSet

logger = logging.getLogger(__name__)

_DISALLOWED = {
    ALPHANUMERIC: re.compile(r"[^A-Za-z0-9]+"),
    ALPHANUMERIC_HYPHEN: re.compile(r"[^A-Za-z0-9-]+"),
    ALPHANUMERIC_HYPHEN_UNDERSCORE_PERIOD: re.compile(r"[^A-Za-z0-9._-]+"),
}
_HYPHEN_RUNS = re.compile(r"-{2,}")
_EDGE_CHARS = "-._"

# Fragments cut in the last-resort pass, in order.
_TRIM_ORDER = ("suffix", "purpose", "prefix", "environment")

KindLike = Union[ResourceKind, str]
FragmentsLike = Union[NameFragmentSet, Sequence[str]]


def unique_suffix(*seeds: str, length: int = 13) -> str:
    """Stable lowercase base32 hash of the seeds, for globally unique kinds."""
    digest = hashlib.sha256("|".join(seeds).encode("utf-8")).digest()
    encoded = base64.b32encode(digest).decode("ascii").rstrip("=").lower()
    return encoded[: max(1, length)]


class NameDeriver:
    """Builds names from fragment sets under per-kind constraints."""

    def __init__(self, registry: KindRegistry) -> None:
        self.registry = registry

    def normalize(self, kind: KindLike, value: str) -> str:
        """Apply the kind's charset and case folding to a single value."""
        kind = self._kind(kind)
        text = str(value)
        if kind.charset == ALPHANUMERIC:
            cleaned = _DISALLOWED[ALPHANUMERIC].sub("", text)
        else:
            cleaned = _DISALLOWED[kind.charset].sub("-", text)
            cleaned = _HYPHEN_RUNS.sub("-", cleaned).strip(_EDGE_CHARS)
        if not kind.case_sensitive:
            cleaned = cleaned.lower()
        return cleaned

    def derive(self, kind: KindLike, fragments: FragmentsLike) -> str:
        kind = self._kind(kind)
        if not isinstance(fragments, NameFragmentSet):
            fragments = NameFragmentSet.from_sequence(fragments)

        parts: List[List[str]] = []
        for role, value in fragments.ordered():
            normalized = self.normalize(kind, value)
            if normalized:
                parts.append([role, normalized])

        if self._overflow(kind, parts) <= 0:
            return self._join(kind, parts)

        original = self._join(kind, parts)
        for index in self._trim_order(parts):
            if self._overflow(kind, parts) <= 0:
                break
            self._cut(kind, parts, index)

        name = self._join(kind, parts)
        if len(name) > kind.max_name_length:
            # Only reachable when a registered abbreviation fills the whole budget.
            name = name[: kind.max_name_length].rstrip(_EDGE_CHARS)
        logger.debug("Truncated %s name %r to %r", kind.key, original, name)
        return name

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _kind(self, kind: KindLike) -> ResourceKind:
        if isinstance(kind, ResourceKind):
            return kind
        return self.registry.get(kind)

    @staticmethod
    def _join(kind: ResourceKind, parts: List[List[str]]) -> str:
        return kind.separator.join(value for _, value in parts if value)

    def _overflow(self, kind: ResourceKind, parts: List[List[str]]) -> int:
        return len(self._join(kind, parts)) - kind.max_name_length

    def _cut(self, kind: ResourceKind, parts: List[List[str]], index: int) -> None:
        overflow = self._overflow(kind, parts)
        value = parts[index][1]
        keep = len(value) - overflow
        parts[index][1] = value[:keep].rstrip(_EDGE_CHARS) if keep > 0 else ""

    @staticmethod
    def _trim_order(parts: List[List[str]]) -> List[int]:
        order = [index for index, (role, _) in enumerate(parts) if role == "workload"]
        for role in _TRIM_ORDER:
            matches = [index for index, (candidate, _) in enumerate(parts) if candidate == role]
            order.extend(reversed(matches))
        order.extend(index for index, (role, _) in enumerate(parts) if role == "disambiguator")
        return order
