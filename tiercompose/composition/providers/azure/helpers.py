"""
Utility helpers shared by the Azure collection templates.

These functions centralise the small conventions every builder repeats
(location, `{"id": ...}` links, tier accessors) so individual templates stay
focused on their own resource body.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tiercompose.composition.policy import PrioritySpace
from tiercompose.composition.resource_templates import CollectionContext, Row
from tiercompose.models import Reference, ResourceDescriptor, Rule

GLOBAL_LOCATION = "global"

# Platform service defaults.
SERVICE_SKUS: Dict[str, str] = {
    "storage_account": "Standard_LRS",
    "key_vault": "standard",
    "container_registry": "Premium",
}

# Deterministic namespace for generated role assignment names.
ROLE_ASSIGNMENT_NAMESPACE = uuid.UUID("6f1c3b1e-5c55-4d8e-9f0e-7a1d5c2b9e41")


def location(ctx: CollectionContext) -> str:
    return ctx.location or ctx.settings.default_location


def link(target: ResourceDescriptor | Reference) -> Dict[str, Any]:
    """ARM-style `{"id": ...}` object pointing at a (possibly future) resource."""
    ref = target.reference if isinstance(target, ResourceDescriptor) else target
    return {"id": ref}


def load_balancer_config(ctx: CollectionContext) -> Any:
    return getattr(ctx.tier, "load_balancer", None) if ctx.tier is not None else None


def has_load_balancer(ctx: CollectionContext) -> bool:
    return load_balancer_config(ctx) is not None


def lb_rows(ctx: CollectionContext, field_name: str) -> list:
    config = load_balancer_config(ctx)
    return list(getattr(config, field_name)) if config is not None else []


def optional_lookup(
    ctx: CollectionContext, collection: str, key: Optional[str]
) -> Optional[ResourceDescriptor]:
    """Keyed lookup where an omitted key means "none" rather than "the only one"."""
    if key is None:
        return None
    return ctx.lookup(collection, key)


def role_assignment_name(scope: Reference, principal_id: str, role_definition_id: str) -> str:
    """Stable GUID name derived from scope, principal and role, like ARM guid()."""
    seed = f"{scope.describe()}|{principal_id}|{role_definition_id}"
    return str(uuid.uuid5(ROLE_ASSIGNMENT_NAMESPACE, seed))


def protocol_for_admin_rule(protocol: str) -> str:
    return "Any" if protocol == "*" else protocol


def address_item(value: str) -> Dict[str, str]:
    """Security admin address entry; bare words are treated as service tags."""
    if value == "*":
        return {"addressPrefixType": "IPPrefix", "addressPrefix": "*"}
    if any(char.isdigit() for char in value) and ("." in value or ":" in value):
        return {"addressPrefixType": "IPPrefix", "addressPrefix": value}
    return {"addressPrefixType": "ServiceTag", "addressPrefix": value}


def rule_rows(
    ctx: CollectionContext,
    specs: Sequence[Any],
    space: PrioritySpace,
    terminal_deny: bool,
) -> List[Row]:
    """
    Order rule rows and return one `Row` per rule, terminal denies included.

    Unnamed rows are named by their index so they stay addressable by key.
    Conflicting priorities raise `PriorityConflict` listing every collision.
    """
    index_base = ctx.settings.naming.index_base
    rules: List[Rule] = []
    origins: Dict[str, Tuple[bool, int]] = {}
    for index, spec in enumerate(specs, start=index_base):
        name = spec.name or str(index)
        origins[name] = (bool(spec.name), index)
        rules.append(
            Rule(
                name=name,
                direction=spec.direction,
                access=spec.access,
                priority=spec.priority,
                protocol=spec.protocol,
                source=spec.source,
                destination=spec.destination,
                source_ports=spec.source_port,
                ports=tuple(spec.destination_ports),
                description=spec.description,
            )
        )

    orderer = ctx.orderer(space)
    rule_set = orderer.order(rules, terminal_deny=terminal_deny).raise_for_conflicts()
    orderer.lint(rule_set)

    rows: List[Row] = []
    for position, rule in enumerate(rule_set.rules, start=index_base):
        named, index = origins.get(rule.name, (True, position))
        rows.append(Row(value=rule, key=rule.name, index=index, named=named))
    return rows
