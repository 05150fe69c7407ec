from __future__ import annotations

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    TOPOLOGY_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import NameFragmentSet, ResourceDescriptor


def _build_ddos_plan(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind="ddos_protection_plan",
        name=ctx.resource_name("ddos_protection_plan"),
        properties={"location": helpers.location(ctx), "properties": {}},
    )


def _build_virtual_network(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    topology = ctx.topology
    body = {
        "addressSpace": {"addressPrefixes": list(topology.address_space)},
    }
    if topology.dns_servers:
        body["dhcpOptions"] = {"dnsServers": list(topology.dns_servers)}
    depends_on = frozenset()
    plan = ctx.find("ddos_protection_plan")
    if plan is not None:
        body["enableDdosProtection"] = True
        body["ddosProtectionPlan"] = helpers.link(plan)
        depends_on = frozenset({plan.reference})
    return ResourceDescriptor(
        kind="virtual_network",
        name=ctx.resource_name("virtual_network"),
        properties={"location": helpers.location(ctx), "properties": body},
        depends_on=depends_on,
    )


def _build_subnet(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    vnet = ctx.lookup("virtual_network")
    nsg = ctx.lookup("network_security_group")
    tier = ctx.tier
    body = {
        "addressPrefix": tier.address_prefix,
        "networkSecurityGroup": helpers.link(nsg),
        "privateEndpointNetworkPolicies": "Disabled" if tier.private_endpoints else "Enabled",
    }
    if tier.service_endpoints:
        body["serviceEndpoints"] = [{"service": service} for service in tier.service_endpoints]
    name = ctx.deriver.derive(
        "subnet",
        NameFragmentSet(abbreviation=ctx.kind("subnet").abbreviation, prefix=ctx.collection_prefix),
    )
    return ResourceDescriptor(
        kind="subnet",
        name=name,
        parent_chain=vnet.chain,
        properties={"properties": body},
        depends_on=frozenset({nsg.reference}),
    )


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key="ddos_protection_plan",
            kind="ddos_protection_plan",
            scope=TOPOLOGY_SCOPE,
            rows=lambda ctx: [ctx.topology],
            builder=_build_ddos_plan,
            gate=lambda ctx: ctx.topology.ddos_enabled,
            singleton=True,
            description="DDoS protection plan shared by the virtual network.",
        ),
        CollectionTemplate(
            key="virtual_network",
            kind="virtual_network",
            scope=TOPOLOGY_SCOPE,
            rows=lambda ctx: [ctx.topology],
            builder=_build_virtual_network,
            requires=("ddos_protection_plan",),
            singleton=True,
            description="Virtual network spanning every tier.",
        ),
        CollectionTemplate(
            key="subnet",
            kind="subnet",
            scope=TIER_SCOPE,
            rows=lambda ctx: [ctx.tier],
            builder=_build_subnet,
            requires=("network_security_group",),
            singleton=True,
            description="Tier subnet guarded by the tier NSG.",
        ),
    ]
