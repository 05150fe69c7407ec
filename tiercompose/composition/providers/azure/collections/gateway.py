"""
WAF-enabled tiers get a dedicated gateway subnet, a public IP, a WAF policy and
an application gateway in front of the tier.
"""

from __future__ import annotations

from typing import Any, Dict

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import NameFragmentSet, Reference, ResourceDescriptor

FRONTEND_IP = "public-frontend"
FRONTEND_PORT = "http"
BACKEND_POOL = "backend"
HTTP_SETTINGS = "http-settings"
HTTP_LISTENER = "http-listener"


def _waf_enabled(ctx: CollectionContext) -> bool:
    return bool(ctx.tier.waf_enabled)


def _member(gateway: Reference, kind: str, name: str) -> Dict[str, Reference]:
    # Members live inside the gateway body, not in the graph.
    return {"id": Reference(kind=kind, name=name, parent_chain=gateway.chain, external=True)}


def _build_gateway_subnet(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    vnet = ctx.lookup("virtual_network")
    name = ctx.deriver.derive(
        "subnet",
        NameFragmentSet(
            abbreviation=ctx.kind("subnet").abbreviation,
            prefix=ctx.collection_prefix,
            purpose=(ctx.kind("application_gateway").abbreviation,),
        ),
    )
    return ResourceDescriptor(
        kind="subnet",
        name=name,
        parent_chain=vnet.chain,
        properties={"properties": {"addressPrefix": ctx.tier.waf.subnet_prefix}},
    )


def _build_gateway_public_ip(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind="public_ip_address",
        name=ctx.resource_name("public_ip_address", ctx.kind("application_gateway").abbreviation),
        properties={
            "location": helpers.location(ctx),
            "sku": {"name": "Standard"},
            "properties": {"publicIPAllocationMethod": "Static", "publicIPAddressVersion": "IPv4"},
        },
    )


def _build_waf_policy(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    waf = ctx.tier.waf
    return ResourceDescriptor(
        kind="web_application_firewall_policy",
        name=ctx.resource_name("web_application_firewall_policy"),
        properties={
            "location": helpers.location(ctx),
            "properties": {
                "policySettings": {
                    "state": "Enabled",
                    "mode": waf.mode,
                    "requestBodyCheck": True,
                },
                "managedRules": {
                    "managedRuleSets": [
                        {"ruleSetType": waf.rule_set_type, "ruleSetVersion": waf.rule_set_version}
                    ]
                },
            },
        },
    )


def _build_application_gateway(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    waf = ctx.tier.waf
    subnet = ctx.lookup("gateway_subnet")
    pip = ctx.lookup("gateway_public_ip")
    policy = ctx.lookup("web_application_firewall_policy")
    name = ctx.resource_name("application_gateway")
    gateway = Reference(kind="application_gateway", name=name)

    body: Dict[str, Any] = {
        "sku": {"name": "WAF_v2", "tier": "WAF_v2"},
        "autoscaleConfiguration": {"minCapacity": waf.min_capacity, "maxCapacity": waf.max_capacity},
        "firewallPolicy": helpers.link(policy),
        "gatewayIPConfigurations": [
            {"name": "gateway-ip", "properties": {"subnet": helpers.link(subnet)}}
        ],
        "frontendIPConfigurations": [
            {"name": FRONTEND_IP, "properties": {"publicIPAddress": helpers.link(pip)}}
        ],
        "frontendPorts": [{"name": FRONTEND_PORT, "properties": {"port": 80}}],
        "backendAddressPools": [{"name": BACKEND_POOL, "properties": {}}],
        "backendHttpSettingsCollection": [
            {
                "name": HTTP_SETTINGS,
                "properties": {
                    "port": waf.backend_port,
                    "protocol": "Http",
                    "cookieBasedAffinity": "Disabled",
                    "requestTimeout": 30,
                },
            }
        ],
        "httpListeners": [
            {
                "name": HTTP_LISTENER,
                "properties": {
                    "frontendIPConfiguration": _member(gateway, "gateway_frontend_ip", FRONTEND_IP),
                    "frontendPort": _member(gateway, "gateway_frontend_port", FRONTEND_PORT),
                    "protocol": "Http",
                },
            }
        ],
        "requestRoutingRules": [
            {
                "name": "route",
                "properties": {
                    "ruleType": "Basic",
                    "priority": 100,
                    "httpListener": _member(gateway, "gateway_http_listener", HTTP_LISTENER),
                    "backendAddressPool": _member(gateway, "gateway_backend_pool", BACKEND_POOL),
                    "backendHttpSettings": _member(gateway, "gateway_http_settings", HTTP_SETTINGS),
                },
            }
        ],
    }
    return ResourceDescriptor(
        kind="application_gateway",
        name=name,
        properties={"location": helpers.location(ctx), "properties": body},
        depends_on=frozenset({subnet.reference, pip.reference, policy.reference}),
    )


def get_templates() -> list[CollectionTemplate]:
    tier = lambda ctx: [ctx.tier]  # noqa: E731
    return [
        CollectionTemplate(
            key="gateway_subnet",
            kind="subnet",
            scope=TIER_SCOPE,
            rows=tier,
            builder=_build_gateway_subnet,
            gate=_waf_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="gateway_public_ip",
            kind="public_ip_address",
            scope=TIER_SCOPE,
            rows=tier,
            builder=_build_gateway_public_ip,
            gate=_waf_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="web_application_firewall_policy",
            kind="web_application_firewall_policy",
            scope=TIER_SCOPE,
            rows=tier,
            builder=_build_waf_policy,
            gate=_waf_enabled,
            singleton=True,
        ),
        CollectionTemplate(
            key="application_gateway",
            kind="application_gateway",
            scope=TIER_SCOPE,
            rows=tier,
            builder=_build_application_gateway,
            requires=("gateway_subnet", "gateway_public_ip", "web_application_firewall_policy"),
            gate=_waf_enabled,
            singleton=True,
            description="WAF_v2 application gateway fronting the tier.",
        ),
    ]
