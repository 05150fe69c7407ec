"""
Virtual network manager with a security admin configuration over the topology VNet.

Admin rules are evaluated before NSG rules, so by default no terminal deny is
appended here; opt in per topology with `network_manager.terminal_deny`.
"""

from __future__ import annotations

from typing import List

from tiercompose.composition.policy import SECURITY_ADMIN_PRIORITIES
from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TOPOLOGY_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import ResourceDescriptor, Rule


def _enabled(ctx: CollectionContext) -> bool:
    return ctx.topology.network_manager is not None


def _build_network_manager(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    config = ctx.topology.network_manager
    subscriptions = config.subscriptions or [ctx.topology.scope.subscription_id]
    return ResourceDescriptor(
        kind="network_manager",
        name=ctx.resource_name("network_manager"),
        properties={
            "location": helpers.location(ctx),
            "properties": {
                "networkManagerScopes": {
                    "subscriptions": [f"/subscriptions/{sub}" for sub in subscriptions],
                    "managementGroups": [],
                },
                "networkManagerScopeAccesses": ["SecurityAdmin"],
            },
        },
    )


def _build_network_group(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    manager = ctx.lookup("network_manager")
    return ResourceDescriptor(
        kind="network_group",
        name=ctx.child_name("network_group"),
        parent_chain=manager.chain,
        properties={"properties": {"description": "Virtual networks of the topology."}},
        depends_on=frozenset({manager.reference}),
    )


def _build_static_member(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    group = ctx.lookup("network_group")
    vnet = ctx.lookup("virtual_network")
    return ResourceDescriptor(
        kind="static_member",
        name=ctx.child_name("static_member"),
        parent_chain=group.chain,
        properties={"properties": {"resourceId": vnet.reference}},
        depends_on=frozenset({group.reference, vnet.reference}),
    )


def _build_configuration(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    manager = ctx.lookup("network_manager")
    config = ctx.topology.network_manager
    return ResourceDescriptor(
        kind="security_admin_configuration",
        name=ctx.child_name("security_admin_configuration"),
        parent_chain=manager.chain,
        properties={
            "properties": {
                "applyOnNetworkIntentPolicyBasedServices": list(
                    config.apply_on_network_intent_policy_based_services
                ),
            }
        },
        depends_on=frozenset({manager.reference}),
    )


def _build_rule_collection(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    configuration = ctx.lookup("security_admin_configuration")
    group = ctx.lookup("network_group")
    return ResourceDescriptor(
        kind="admin_rule_collection",
        name=ctx.child_name("admin_rule_collection"),
        parent_chain=configuration.chain,
        properties={"properties": {"appliesToGroups": [{"networkGroupId": group.reference}]}},
        depends_on=frozenset({configuration.reference, group.reference}),
    )


def _admin_rule_rows(ctx: CollectionContext) -> List[Row]:
    config = ctx.topology.network_manager
    terminal_deny = config.terminal_deny
    if terminal_deny is None:
        terminal_deny = ctx.settings.policy.admin_rules_terminal_deny
    return helpers.rule_rows(ctx, config.admin_rules, SECURITY_ADMIN_PRIORITIES, terminal_deny)


def _build_admin_rule(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    collection = ctx.lookup("admin_rule_collection")
    rule: Rule = row.value
    body = {
        "priority": rule.priority,
        "direction": rule.direction,
        "access": rule.access,
        "protocol": helpers.protocol_for_admin_rule(rule.protocol),
        "sources": [helpers.address_item(rule.source)],
        "destinations": [helpers.address_item(rule.destination)],
        "sourcePortRanges": [rule.source_ports],
        "destinationPortRanges": list(rule.ports),
    }
    if rule.description:
        body["description"] = rule.description
    return ResourceDescriptor(
        kind="admin_rule",
        name=ctx.child_name("admin_rule", row),
        parent_chain=collection.chain,
        properties={"kind": "Custom", "properties": body},
        depends_on=frozenset({collection.reference}),
    )


def get_templates() -> list[CollectionTemplate]:
    single = lambda ctx: [ctx.topology.network_manager]  # noqa: E731
    return [
        CollectionTemplate(
            key="network_manager",
            kind="network_manager",
            scope=TOPOLOGY_SCOPE,
            rows=single,
            builder=_build_network_manager,
            gate=_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="network_group",
            kind="network_group",
            scope=TOPOLOGY_SCOPE,
            rows=single,
            builder=_build_network_group,
            requires=("network_manager",),
            gate=_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="static_member",
            kind="static_member",
            scope=TOPOLOGY_SCOPE,
            rows=single,
            builder=_build_static_member,
            requires=("network_group", "virtual_network"),
            gate=_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="security_admin_configuration",
            kind="security_admin_configuration",
            scope=TOPOLOGY_SCOPE,
            rows=single,
            builder=_build_configuration,
            requires=("network_manager",),
            gate=_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="admin_rule_collection",
            kind="admin_rule_collection",
            scope=TOPOLOGY_SCOPE,
            rows=single,
            builder=_build_rule_collection,
            requires=("security_admin_configuration", "network_group"),
            gate=_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="admin_rule",
            kind="admin_rule",
            scope=TOPOLOGY_SCOPE,
            rows=_admin_rule_rows,
            builder=_build_admin_rule,
            requires=("admin_rule_collection",),
            gate=_enabled,
            description="Security admin rules ordered in the 1-4096 priority space.",
        ),
    ]
