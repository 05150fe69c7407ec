"""
Private connectivity: DNS zones, their VNet links, private endpoints and zone groups.

Zone names come from the private DNS zone projection keyed by (target kind,
group id). A pair missing from the projection fails the build instead of
producing an endpoint with no resolvable DNS name.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.providers.azure.inputs import target_kind
from tiercompose.composition.providers.azure.projections import PRIVATE_DNS_ZONE_REGISTRY
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    TOPOLOGY_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import NameFragmentSet, Reference, ResourceDescriptor

logger = logging.getLogger(__name__)


def _zone_for(ctx: CollectionContext, endpoint) -> str:
    kind = target_kind(ctx.topology, endpoint)
    zone = ctx.projection(PRIVATE_DNS_ZONE_REGISTRY).project(kind, endpoint.group_id)
    return ctx.deriver.normalize("private_dns_zone", zone)


def _zone_rows(ctx: CollectionContext) -> List[Row]:
    zones: Dict[str, Row] = {}
    index_base = ctx.settings.naming.index_base
    for tier in ctx.topology.tiers:
        for endpoint in tier.private_endpoints:
            zone = _zone_for(ctx, endpoint)
            if zone not in zones:
                zones[zone] = Row(value=zone, key=zone, index=len(zones) + index_base, named=True)
    return list(zones.values())


def _build_zone(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind="private_dns_zone",
        name=row.key,
        properties={"location": helpers.GLOBAL_LOCATION, "properties": {}},
    )


def _build_vnet_link(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    zone = ctx.lookup("private_dns_zone", row.key)
    vnet = ctx.lookup("virtual_network")
    # One link per zone, so the name only has to be unique under its zone.
    name = ctx.deriver.derive(
        "virtual_network_link",
        NameFragmentSet(abbreviation=ctx.kind("virtual_network_link").abbreviation, prefix=vnet.name),
    )
    return ResourceDescriptor(
        kind="virtual_network_link",
        name=name,
        parent_chain=zone.chain,
        properties={
            "location": helpers.GLOBAL_LOCATION,
            "properties": {
                "virtualNetwork": helpers.link(vnet),
                "registrationEnabled": False,
            },
        },
        depends_on=frozenset({zone.reference, vnet.reference}),
    )


def _target(ctx: CollectionContext, endpoint):
    if endpoint.service:
        service = ctx.topology.service(endpoint.service)
        return ctx.lookup(service.kind, service.name).reference
    return endpoint.resource_id


def _build_private_endpoint(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    endpoint = row.value
    subnet = ctx.lookup("subnet")
    target = _target(ctx, endpoint)
    name = ctx.child_name("private_endpoint", row)
    depends_on = {subnet.reference}
    if isinstance(target, Reference):
        depends_on.add(target)
    else:
        logger.debug("Private endpoint %s targets external resource %s", name, target)
    return ResourceDescriptor(
        kind="private_endpoint",
        name=name,
        properties={
            "location": helpers.location(ctx),
            "properties": {
                "subnet": helpers.link(subnet),
                "privateLinkServiceConnections": [
                    {
                        "name": name,
                        "properties": {
                            "privateLinkServiceId": target,
                            "groupIds": [endpoint.group_id],
                        },
                    }
                ],
            },
        },
        depends_on=frozenset(depends_on),
    )


def _build_zone_group(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    endpoint = ctx.lookup("private_endpoint", row.key)
    zone = ctx.lookup("private_dns_zone", _zone_for(ctx, row.value))
    return ResourceDescriptor(
        kind="private_dns_zone_group",
        name=ctx.child_name("private_dns_zone_group", row),
        parent_chain=endpoint.chain,
        properties={
            "properties": {
                "privateDnsZoneConfigs": [
                    {
                        "name": zone.name.replace(".", "-"),
                        "properties": {"privateDnsZoneId": zone.reference},
                    }
                ]
            }
        },
        depends_on=frozenset({endpoint.reference, zone.reference}),
    )


def _has_endpoints(ctx: CollectionContext) -> bool:
    return bool(ctx.tier.private_endpoints)


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key="private_dns_zone",
            kind="private_dns_zone",
            scope=TOPOLOGY_SCOPE,
            rows=_zone_rows,
            builder=_build_zone,
            description="Distinct private DNS zones needed by every tier's endpoints.",
        ),
        CollectionTemplate(
            key="virtual_network_link",
            kind="virtual_network_link",
            scope=TOPOLOGY_SCOPE,
            rows=_zone_rows,
            builder=_build_vnet_link,
            requires=("private_dns_zone", "virtual_network"),
        ),
        CollectionTemplate(
            key="private_endpoint",
            kind="private_endpoint",
            scope=TIER_SCOPE,
            rows=lambda ctx: ctx.tier.private_endpoints,
            builder=_build_private_endpoint,
            requires=("subnet",),
            gate=_has_endpoints,
        ),
        CollectionTemplate(
            key="private_dns_zone_group",
            kind="private_dns_zone_group",
            scope=TIER_SCOPE,
            rows=lambda ctx: ctx.tier.private_endpoints,
            builder=_build_zone_group,
            requires=("private_endpoint",),
            gate=_has_endpoints,
            description="Binds each endpoint to its zone; always follows the endpoint.",
        ),
    ]
