"""
Test suite for rule set ordering.

Tests the PolicyOrderer:
- Conflict detection per direction
- Auto-assigned priorities and the reserved terminal slot
- Implicit deny-all terminal rules
- Range checks and gap linting
"""

import logging

import pytest

from tiercompose.composition.policy import (
    NSG_PRIORITIES,
    SECURITY_ADMIN_PRIORITIES,
    PolicyOrderer,
    PrioritySpace,
)
from tiercompose.errors import ConfigurationError, PriorityConflict
from tiercompose.models import DENY, INBOUND, OUTBOUND, Rule


@pytest.fixture
def orderer():
    return PolicyOrderer(NSG_PRIORITIES)


# ============================================================================
# 1. CONFLICT TESTS
# ============================================================================

class TestConflicts:
    """Test (direction, priority) collision reporting."""

    def test_two_inbound_rules_at_same_priority(self, orderer):
        """Test that a shared slot yields one conflict naming both rules."""
        rule_set = orderer.order(
            [Rule("allow-web", priority=100), Rule("allow-ssh", priority=100)],
            terminal_deny=False,
        )
        conflicts = orderer.validate(rule_set)
        assert len(conflicts) == 1
        assert conflicts[0].direction == INBOUND
        assert conflicts[0].priority == 100
        assert set(conflicts[0].rule_names) == {"allow-web", "allow-ssh"}
        assert rule_set.conflicts == tuple(conflicts)

    def test_raise_for_conflicts_reports_all(self, orderer):
        """Test that every colliding slot is surfaced in one error."""
        rule_set = orderer.order(
            [
                Rule("a", priority=100),
                Rule("b", priority=100),
                Rule("c", priority=200, direction=OUTBOUND),
                Rule("d", priority=200, direction=OUTBOUND),
            ]
        )
        with pytest.raises(PriorityConflict) as excinfo:
            rule_set.raise_for_conflicts()
        assert len(excinfo.value.conflicts) == 2
        assert "Inbound priority 100" in str(excinfo.value)
        assert "Outbound priority 200" in str(excinfo.value)

    def test_spaced_priorities_have_no_conflicts(self, orderer):
        """Test that validate is a no-op for distinct priorities."""
        rule_set = orderer.order([Rule("a", priority=100), Rule("b", priority=110)])
        assert orderer.validate(rule_set) == []
        assert rule_set.raise_for_conflicts() is rule_set

    def test_directions_are_independent(self, orderer):
        """Test that Inbound 100 and Outbound 100 never collide."""
        rule_set = orderer.order(
            [Rule("in", priority=100), Rule("out", priority=100, direction=OUTBOUND)]
        )
        assert rule_set.conflicts == ()


# ============================================================================
# 2. PRIORITY ASSIGNMENT TESTS
# ============================================================================

class TestPriorityAssignment:
    """Test auto-assignment for rules that omit a priority."""

    def test_first_rule_gets_range_minimum(self, orderer):
        """Test that the first NSG rule lands on 100."""
        rule_set = orderer.order([Rule("a")], terminal_deny=False)
        assert rule_set.get("a").priority == 100

    def test_assigns_above_highest_explicit(self, orderer):
        """Test smallest unused multiple of 10 above the highest explicit."""
        rule_set = orderer.order(
            [Rule("a", priority=100), Rule("b"), Rule("c", priority=135), Rule("d")],
            terminal_deny=False,
        )
        assert rule_set.get("b").priority == 140
        assert rule_set.get("d").priority == 150

    def test_assignment_is_per_direction(self, orderer):
        """Test that outbound assignment ignores inbound priorities."""
        rule_set = orderer.order(
            [Rule("in", priority=300), Rule("out", direction=OUTBOUND)],
            terminal_deny=False,
        )
        assert rule_set.get("out").priority == 100

    def test_terminal_slot_is_skipped(self, orderer):
        """Test that the reserved 4000 is never auto-assigned."""
        rule_set = orderer.order([Rule("a", priority=3990), Rule("b")])
        assert rule_set.get("b").priority == 4010
        assert rule_set.get("deny-all-inbound").priority == 4000

    def test_explicit_priority_behind_terminal_counts(self, orderer):
        """Test that an explicit priority above 4000 still raises the floor."""
        rule_set = orderer.order([Rule("late", priority=4050), Rule("auto")], terminal_deny=False)
        assert rule_set.get("auto").priority == 4060

    def test_highest_explicit_wins_across_terminal(self, orderer):
        """Test assignment after a late explicit rule with the deny-all present."""
        rule_set = orderer.order([Rule("early", priority=200), Rule("late", priority=4050), Rule("auto")])
        assert rule_set.get("auto").priority == 4060
        assert rule_set.get("deny-all-inbound").priority == 4000

    def test_admin_space_starts_at_one(self):
        """Test that security admin rules may use low priorities."""
        admin = PolicyOrderer(SECURITY_ADMIN_PRIORITIES)
        rule_set = admin.order([Rule("a"), Rule("b", priority=1)], terminal_deny=False)
        assert rule_set.get("b").priority == 1
        assert rule_set.get("a").priority == 10

    def test_exhausted_space_raises(self):
        """Test that assignment past the maximum is a configuration error."""
        tight = PolicyOrderer(PrioritySpace(minimum=100, maximum=120, terminal=4000))
        with pytest.raises(ConfigurationError, match="No free priority"):
            tight.order([Rule("a", priority=120), Rule("b")], terminal_deny=False)


# ============================================================================
# 3. TERMINAL DENY TESTS
# ============================================================================

class TestTerminalDeny:
    """Test the implicit deny-all rule."""

    def test_deny_all_appended_per_direction(self, orderer):
        """Test that both directions end in a deny-all at 4000."""
        rule_set = orderer.order([Rule("a")])
        inbound = rule_set.by_direction(INBOUND)
        outbound = rule_set.by_direction(OUTBOUND)
        assert inbound[-1].name == "deny-all-inbound"
        assert inbound[-1].priority == 4000
        assert inbound[-1].access == DENY
        assert [rule.name for rule in outbound] == ["deny-all-outbound"]

    def test_existing_deny_all_not_duplicated(self, orderer):
        """Test that a caller-supplied deny-all suppresses the implicit one."""
        rule_set = orderer.order([Rule("block", access=DENY, priority=4096)])
        assert "deny-all-inbound" not in rule_set.names()
        assert "deny-all-outbound" in rule_set.names()

    def test_opt_out(self, orderer):
        """Test that a permissive rule set gets no terminal rule."""
        rule_set = orderer.order([Rule("a")], terminal_deny=False)
        assert rule_set.names() == ["a"]

    def test_rules_sorted_by_direction_then_priority(self, orderer):
        """Test output ordering."""
        rule_set = orderer.order(
            [Rule("out", direction=OUTBOUND, priority=100), Rule("b", priority=200), Rule("a", priority=100)]
        )
        assert rule_set.names() == ["a", "b", "deny-all-inbound", "out", "deny-all-outbound"]


# ============================================================================
# 4. VALIDATION AND LINT TESTS
# ============================================================================

class TestValidationAndLint:
    """Test hard validation and the gap convention lint."""

    def test_out_of_range_priority(self, orderer):
        """Test that NSG priorities below 100 are rejected."""
        with pytest.raises(ConfigurationError, match="outside 100-4096"):
            orderer.order([Rule("a", priority=50)])

    def test_duplicate_names(self, orderer):
        """Test that rule names must be unique."""
        with pytest.raises(ConfigurationError, match="Duplicate rule name"):
            orderer.order([Rule("a", priority=100), Rule("a", priority=200)])

    def test_unknown_direction(self, orderer):
        """Test that directions are closed."""
        with pytest.raises(ConfigurationError, match="unknown direction"):
            orderer.order([Rule("a", direction="Sideways")])

    def test_lint_flags_gap_violations(self, orderer, caplog):
        """Test warnings for non-multiples and crowded neighbours."""
        rule_set = orderer.order([Rule("a", priority=100), Rule("b", priority=105)], terminal_deny=False)
        with caplog.at_level(logging.WARNING, logger="tiercompose.composition.policy"):
            warnings = orderer.lint(rule_set)
        assert any("not a multiple of 10" in warning for warning in warnings)
        assert any("leave no room" in warning for warning in warnings)
        assert "Rule set lint" in caplog.text

    def test_lint_flags_rules_behind_terminal(self, orderer):
        """Test that an allow rule after the deny-all is flagged."""
        rule_set = orderer.order([Rule("late", priority=4050)])
        warnings = orderer.lint(rule_set)
        assert any("behind the terminal deny" in warning for warning in warnings)

    def test_lint_clean_for_spaced_rules(self, orderer):
        """Test that the gap convention produces no warnings."""
        rule_set = orderer.order([Rule("a", priority=100), Rule("b", priority=110)])
        assert orderer.lint(rule_set) == []

    def test_gap_must_be_positive(self):
        """Test that a zero gap is refused."""
        with pytest.raises(ValueError):
            PolicyOrderer(PrioritySpace(gap=0))
