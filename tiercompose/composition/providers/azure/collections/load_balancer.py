"""
Load balancer collections: public IPs, the balancer itself and its members.

Member rows refer to each other by key (frontend, backend pool, probe); an
omitted frontend or pool means "the only one", an omitted probe means none.
"""

from __future__ import annotations

from typing import Any, Dict, List

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import ResourceDescriptor


def _public_frontends(ctx: CollectionContext) -> List[Any]:
    config = helpers.load_balancer_config(ctx)
    if config is None:
        return []
    return [frontend for frontend in config.frontends if config.is_public(frontend)]


def _public_ip_rows(ctx: CollectionContext) -> List[Row]:
    config = helpers.load_balancer_config(ctx)
    index_base = ctx.settings.naming.index_base
    rows = []
    for index, frontend in enumerate(config.frontends if config else [], start=index_base):
        if config.is_public(frontend):
            rows.append(Row.of(frontend, index))
    return rows


def _build_public_ip(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    config = helpers.load_balancer_config(ctx)
    frontend = row.value
    standard = config.sku == "Standard"
    body: Dict[str, Any] = {
        "location": helpers.location(ctx),
        "sku": {"name": config.sku},
        "properties": {
            "publicIPAllocationMethod": "Static" if standard else "Dynamic",
            "publicIPAddressVersion": "IPv4",
        },
    }
    if frontend.zones:
        body["zones"] = list(frontend.zones)
    return ResourceDescriptor(
        kind="public_ip_address",
        name=ctx.child_name("public_ip_address", row),
        properties=body,
    )


def _build_load_balancer(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    config = helpers.load_balancer_config(ctx)
    return ResourceDescriptor(
        kind="load_balancer",
        name=ctx.resource_name("load_balancer"),
        properties={
            "location": helpers.location(ctx),
            "sku": {"name": config.sku},
            "properties": {},
        },
    )


def _build_frontend(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    config = helpers.load_balancer_config(ctx)
    frontend = row.value
    depends_on = {lb.reference}
    if config.is_public(frontend):
        pip = ctx.lookup("public_ip_address", row.key)
        body: Dict[str, Any] = {"publicIPAddress": helpers.link(pip)}
        depends_on.add(pip.reference)
    else:
        subnet = ctx.lookup("subnet")
        body = {
            "subnet": helpers.link(subnet),
            "privateIPAllocationMethod": "Static" if frontend.private_ip_address else "Dynamic",
        }
        if frontend.private_ip_address:
            body["privateIPAddress"] = frontend.private_ip_address
        depends_on.add(subnet.reference)
    properties: Dict[str, Any] = {"properties": body}
    if frontend.zones and not config.is_public(frontend):
        properties["zones"] = list(frontend.zones)
    return ResourceDescriptor(
        kind="frontend_ip_configuration",
        name=ctx.child_name("frontend_ip_configuration", row),
        parent_chain=lb.chain,
        properties=properties,
        depends_on=frozenset(depends_on),
    )


def _build_backend_pool(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    return ResourceDescriptor(
        kind="backend_address_pool",
        name=ctx.child_name("backend_address_pool", row),
        parent_chain=lb.chain,
        properties={"properties": {}},
        depends_on=frozenset({lb.reference}),
    )


def _build_probe(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    probe = row.value
    body: Dict[str, Any] = {
        "protocol": probe.protocol,
        "port": probe.port,
        "intervalInSeconds": probe.interval_in_seconds,
        "numberOfProbes": probe.number_of_probes,
    }
    if probe.request_path:
        body["requestPath"] = probe.request_path
    return ResourceDescriptor(
        kind="probe",
        name=ctx.child_name("probe", row),
        parent_chain=lb.chain,
        properties={"properties": body},
        depends_on=frozenset({lb.reference}),
    )


def _build_load_balancing_rule(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    spec = row.value
    frontend = ctx.lookup("frontend_ip_configuration", spec.frontend)
    pool = ctx.lookup("backend_address_pool", spec.backend_pool)
    probe = helpers.optional_lookup(ctx, "probe", spec.probe)
    body: Dict[str, Any] = {
        "frontendIPConfiguration": helpers.link(frontend),
        "backendAddressPool": helpers.link(pool),
        "protocol": spec.protocol,
        "frontendPort": spec.frontend_port,
        "backendPort": spec.frontend_port if spec.backend_port is None else spec.backend_port,
        "idleTimeoutInMinutes": spec.idle_timeout_in_minutes,
        "enableFloatingIP": spec.enable_floating_ip,
        "loadDistribution": spec.load_distribution,
        "disableOutboundSnat": spec.disable_outbound_snat,
    }
    depends_on = {lb.reference, frontend.reference, pool.reference}
    if probe is not None:
        body["probe"] = helpers.link(probe)
        depends_on.add(probe.reference)
    return ResourceDescriptor(
        kind="load_balancing_rule",
        name=ctx.child_name("load_balancing_rule", row),
        parent_chain=lb.chain,
        properties={"properties": body},
        depends_on=frozenset(depends_on),
    )


def _build_inbound_nat_rule(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    spec = row.value
    frontend = ctx.lookup("frontend_ip_configuration", spec.frontend)
    body = {
        "frontendIPConfiguration": helpers.link(frontend),
        "protocol": spec.protocol,
        "frontendPort": spec.frontend_port,
        "backendPort": spec.backend_port,
        "idleTimeoutInMinutes": spec.idle_timeout_in_minutes,
        "enableFloatingIP": spec.enable_floating_ip,
    }
    return ResourceDescriptor(
        kind="inbound_nat_rule",
        name=ctx.child_name("inbound_nat_rule", row),
        parent_chain=lb.chain,
        properties={"properties": body},
        depends_on=frozenset({lb.reference, frontend.reference}),
    )


def _build_outbound_rule(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    lb = ctx.lookup("load_balancer")
    spec = row.value
    if spec.frontends:
        frontends = [ctx.lookup("frontend_ip_configuration", key) for key in spec.frontends]
    else:
        frontends = [ctx.lookup("frontend_ip_configuration")]
    pool = ctx.lookup("backend_address_pool", spec.backend_pool)
    body = {
        "frontendIPConfigurations": [helpers.link(frontend) for frontend in frontends],
        "backendAddressPool": helpers.link(pool),
        "protocol": spec.protocol,
        "allocatedOutboundPorts": spec.allocated_outbound_ports,
        "idleTimeoutInMinutes": spec.idle_timeout_in_minutes,
        "enableTcpReset": spec.enable_tcp_reset,
    }
    depends_on = {lb.reference, pool.reference}
    depends_on.update(frontend.reference for frontend in frontends)
    return ResourceDescriptor(
        kind="outbound_rule",
        name=ctx.child_name("outbound_rule", row),
        parent_chain=lb.chain,
        properties={"properties": body},
        depends_on=frozenset(depends_on),
    )


def _supports_outbound_rules(ctx: CollectionContext) -> bool:
    config = helpers.load_balancer_config(ctx)
    return config is not None and config.sku == "Standard"


def get_templates() -> list[CollectionTemplate]:
    lb_members = ("load_balancer",)
    return [
        CollectionTemplate(
            key="public_ip_address",
            kind="public_ip_address",
            scope=TIER_SCOPE,
            rows=_public_ip_rows,
            builder=_build_public_ip,
            gate=lambda ctx: bool(_public_frontends(ctx)),
            description="One public IP per public load balancer frontend.",
        ),
        CollectionTemplate(
            key="load_balancer",
            kind="load_balancer",
            scope=TIER_SCOPE,
            rows=lambda ctx: [helpers.load_balancer_config(ctx)],
            builder=_build_load_balancer,
            gate=helpers.has_load_balancer,
            singleton=True,
        ),
        CollectionTemplate(
            key="frontend_ip_configuration",
            kind="frontend_ip_configuration",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "frontends"),
            builder=_build_frontend,
            requires=lb_members + ("public_ip_address", "subnet"),
            gate=helpers.has_load_balancer,
        ),
        CollectionTemplate(
            key="backend_address_pool",
            kind="backend_address_pool",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "backend_pools"),
            builder=_build_backend_pool,
            requires=lb_members,
            gate=helpers.has_load_balancer,
        ),
        CollectionTemplate(
            key="probe",
            kind="probe",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "probes"),
            builder=_build_probe,
            requires=lb_members,
            gate=helpers.has_load_balancer,
        ),
        CollectionTemplate(
            key="load_balancing_rule",
            kind="load_balancing_rule",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "rules"),
            builder=_build_load_balancing_rule,
            requires=lb_members + ("frontend_ip_configuration", "backend_address_pool", "probe"),
            gate=helpers.has_load_balancer,
        ),
        CollectionTemplate(
            key="inbound_nat_rule",
            kind="inbound_nat_rule",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "inbound_nat_rules"),
            builder=_build_inbound_nat_rule,
            requires=lb_members + ("frontend_ip_configuration",),
            gate=helpers.has_load_balancer,
        ),
        CollectionTemplate(
            key="outbound_rule",
            kind="outbound_rule",
            scope=TIER_SCOPE,
            rows=lambda ctx: helpers.lb_rows(ctx, "outbound_rules"),
            builder=_build_outbound_rule,
            requires=lb_members + ("frontend_ip_configuration", "backend_address_pool"),
            gate=_supports_outbound_rules,
            description="Outbound SNAT rules; only the Standard SKU supports them.",
        ),
    ]
