from __future__ import annotations

from typing import List

from tiercompose.composition.policy import NSG_PRIORITIES
from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import ANY, ResourceDescriptor, Rule


def _build_nsg(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind="network_security_group",
        name=ctx.resource_name("network_security_group"),
        properties={"location": helpers.location(ctx), "properties": {}},
    )


def _security_rule_rows(ctx: CollectionContext) -> List[Row]:
    terminal_deny = ctx.tier.terminal_deny
    if terminal_deny is None:
        terminal_deny = ctx.settings.policy.security_rules_terminal_deny
    return helpers.rule_rows(ctx, ctx.tier.security_rules, NSG_PRIORITIES, terminal_deny)


def _build_security_rule(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    nsg = ctx.lookup("network_security_group")
    rule: Rule = row.value
    body = {
        "priority": rule.priority,
        "direction": rule.direction,
        "access": rule.access,
        "protocol": rule.protocol,
        "sourceAddressPrefix": rule.source,
        "sourcePortRange": rule.source_ports,
        "destinationAddressPrefix": rule.destination,
    }
    ports = list(rule.ports)
    if ANY in ports:
        body["destinationPortRange"] = ANY
    elif len(ports) == 1:
        body["destinationPortRange"] = ports[0]
    else:
        body["destinationPortRanges"] = ports
    if rule.description:
        body["description"] = rule.description
    return ResourceDescriptor(
        kind="security_rule",
        name=ctx.child_name("security_rule", row),
        parent_chain=nsg.chain,
        properties={"properties": body},
        depends_on=frozenset({nsg.reference}),
    )


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key="network_security_group",
            kind="network_security_group",
            scope=TIER_SCOPE,
            rows=lambda ctx: [ctx.tier],
            builder=_build_nsg,
            singleton=True,
            description="Per-tier network security group.",
        ),
        CollectionTemplate(
            key="security_rule",
            kind="security_rule",
            scope=TIER_SCOPE,
            rows=_security_rule_rows,
            builder=_build_security_rule,
            requires=("network_security_group",),
            description="Ordered NSG rules ending in the implicit deny-all.",
        ),
    ]
