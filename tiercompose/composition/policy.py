"""
Ordering and validation of prioritized rule sets.

Priority spaces are per direction: Inbound 100 and Outbound 100 never collide.
Collisions are reported, never silently overwritten. The "leave gaps of 10"
convention is a lint, not a structural rule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tiercompose.errors import ConfigurationError
from tiercompose.models import (
    ACCESS_VALUES,
    DENY,
    DIRECTIONS,
    Conflict,
    Rule,
    RuleSet,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrioritySpace:
    """Allowed priority range for one rule-bearing resource kind."""

    minimum: int = 100
    maximum: int = 4096
    terminal: int = 4000
    gap: int = 10

    def contains(self, priority: int) -> bool:
        return self.minimum <= priority <= self.maximum


NSG_PRIORITIES = PrioritySpace(minimum=100, maximum=4096)
SECURITY_ADMIN_PRIORITIES = PrioritySpace(minimum=1, maximum=4096)


class PolicyOrderer:
    """Assigns missing priorities, appends terminal denies and reports conflicts."""

    def __init__(self, space: PrioritySpace = NSG_PRIORITIES) -> None:
        if space.gap < 1:
            raise ValueError("priority gap must be >= 1")
        self.space = space

    def order(self, rules: Iterable[Rule], terminal_deny: bool = True) -> RuleSet:
        submitted = list(rules)
        self._check_rules(submitted)
        assigned = self._assign_priorities(submitted)
        if terminal_deny:
            assigned.extend(self._terminal_rules(assigned))
            self._check_names(assigned)
        ordered = sorted(
            assigned,
            key=lambda rule: (DIRECTIONS.index(rule.direction), rule.priority, rule.name),
        )
        rule_set = RuleSet(rules=tuple(ordered))
        return replace(rule_set, conflicts=tuple(self.validate(rule_set)))

    def validate(self, rule_set: RuleSet) -> List[Conflict]:
        slots: Dict[Tuple[str, int], List[str]] = {}
        for rule in rule_set.rules:
            if rule.priority is None:
                continue
            slots.setdefault((rule.direction, rule.priority), []).append(rule.name)
        conflicts = [
            Conflict(direction=direction, priority=priority, rule_names=tuple(names))
            for (direction, priority), names in slots.items()
            if len(names) > 1
        ]
        conflicts.sort(key=lambda conflict: (DIRECTIONS.index(conflict.direction), conflict.priority))
        return conflicts

    def lint(self, rule_set: RuleSet) -> List[str]:
        """Warn about priorities that break the gap convention."""
        warnings: List[str] = []
        gap = self.space.gap
        for direction in DIRECTIONS:
            rules = [rule for rule in rule_set.by_direction(direction) if rule.priority is not None]
            previous: Optional[Rule] = None
            for rule in rules:
                if rule.priority % gap:
                    warnings.append(
                        f"{direction} rule {rule.name} priority {rule.priority} is not a multiple of {gap}"
                    )
                if previous is not None and 0 < rule.priority - previous.priority < gap:
                    warnings.append(
                        f"{direction} rules {previous.name} and {rule.name} leave no room "
                        f"for insertion ({previous.priority}, {rule.priority})"
                    )
                if rule.priority > self.space.terminal and not rule.is_deny_all():
                    warnings.append(
                        f"{direction} rule {rule.name} priority {rule.priority} sits behind "
                        f"the terminal deny at {self.space.terminal}"
                    )
                previous = rule
        for warning in warnings:
            logger.warning("Rule set lint: %s", warning)
        return warnings

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _check_rules(self, rules: List[Rule]) -> None:
        for rule in rules:
            if rule.direction not in DIRECTIONS:
                raise ConfigurationError(f"Rule {rule.name} has unknown direction '{rule.direction}'.")
            if rule.access not in ACCESS_VALUES:
                raise ConfigurationError(f"Rule {rule.name} has unknown access '{rule.access}'.")
            if rule.priority is not None and not self.space.contains(rule.priority):
                raise ConfigurationError(
                    f"Rule {rule.name} priority {rule.priority} is outside "
                    f"{self.space.minimum}-{self.space.maximum}."
                )
        self._check_names(rules)

    @staticmethod
    def _check_names(rules: List[Rule]) -> None:
        seen: Set[str] = set()
        for rule in rules:
            if rule.name in seen:
                raise ConfigurationError(f"Duplicate rule name '{rule.name}'.")
            seen.add(rule.name)

    def _assign_priorities(self, rules: List[Rule]) -> List[Rule]:
        space = self.space
        used: Dict[str, Set[int]] = {direction: set() for direction in DIRECTIONS}
        highest: Dict[str, Optional[int]] = {direction: None for direction in DIRECTIONS}
        for rule in rules:
            if rule.priority is None:
                continue
            used[rule.direction].add(rule.priority)
            current = highest[rule.direction]
            highest[rule.direction] = rule.priority if current is None else max(current, rule.priority)

        assigned: List[Rule] = []
        for rule in rules:
            if rule.priority is not None:
                assigned.append(rule)
                continue
            floor = highest[rule.direction]
            if floor is None:
                floor = space.minimum - 1
            candidate = (floor // space.gap + 1) * space.gap
            while candidate in used[rule.direction] or candidate == space.terminal:
                candidate += space.gap
            if candidate > space.maximum:
                raise ConfigurationError(
                    f"No free priority left for {rule.direction} rule {rule.name} "
                    f"(maximum {space.maximum})."
                )
            used[rule.direction].add(candidate)
            highest[rule.direction] = candidate
            assigned.append(rule.with_priority(candidate))
            logger.debug("Assigned priority %d to %s rule %s", candidate, rule.direction, rule.name)
        return assigned

    def _terminal_rules(self, rules: List[Rule]) -> List[Rule]:
        terminal: List[Rule] = []
        for direction in DIRECTIONS:
            if any(rule.direction == direction and rule.is_deny_all() for rule in rules):
                continue
            terminal.append(
                Rule(
                    name=f"deny-all-{direction.lower()}",
                    direction=direction,
                    access=DENY,
                    priority=self.space.terminal,
                    description=f"Deny all {direction.lower()} traffic not matched above.",
                )
            )
        return terminal
