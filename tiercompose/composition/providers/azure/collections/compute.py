from __future__ import annotations

from typing import Any, Dict, List

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.errors import ConfigurationError
from tiercompose.models import Reference, ResourceDescriptor

CPU_METRIC = "Percentage CPU"


def _has_compute(ctx: CollectionContext) -> bool:
    return ctx.tier.compute is not None


def _autoscaled(ctx: CollectionContext) -> bool:
    return _has_compute(ctx) and bool(ctx.tier.autoscaling_enabled)


def _backend_pools(ctx: CollectionContext) -> List[ResourceDescriptor]:
    """Pools named by the compute config; every tier pool when none are named."""
    compute = ctx.tier.compute
    if compute.backend_pools:
        return [ctx.lookup("backend_address_pool", key) for key in compute.backend_pools]
    return list((ctx.shared.get("backend_address_pool") or {}).values())


def _build_scale_set(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    compute = ctx.tier.compute
    if not compute.ssh_public_key:
        raise ConfigurationError(f"Compute in tier '{ctx.tier_name}' requires ssh_public_key.")
    subnet = ctx.lookup("subnet")
    pools = _backend_pools(ctx)
    name = ctx.resource_name("virtual_machine_scale_set")

    ip_configuration: Dict[str, Any] = {"subnet": helpers.link(subnet), "primary": True}
    if pools:
        ip_configuration["loadBalancerBackendAddressPools"] = [helpers.link(pool) for pool in pools]
    profile = {
        "storageProfile": {
            "imageReference": dict(compute.image),
            "osDisk": {"createOption": "FromImage", "managedDisk": {"storageAccountType": "Premium_LRS"}},
        },
        "osProfile": {
            "computerNamePrefix": ctx.tier_name[:9],
            "adminUsername": compute.admin_username,
            "linuxConfiguration": {
                "disablePasswordAuthentication": True,
                "ssh": {
                    "publicKeys": [
                        {
                            "path": f"/home/{compute.admin_username}/.ssh/authorized_keys",
                            "keyData": compute.ssh_public_key,
                        }
                    ]
                },
            },
        },
        "networkProfile": {
            "networkInterfaceConfigurations": [
                {
                    "name": f"{name}-nic",
                    "properties": {
                        "primary": True,
                        "ipConfigurations": [{"name": "ipconfig", "properties": ip_configuration}],
                    },
                }
            ]
        },
    }
    depends_on = {subnet.reference}
    depends_on.update(pool.reference for pool in pools)
    return ResourceDescriptor(
        kind="virtual_machine_scale_set",
        name=name,
        properties={
            "location": helpers.location(ctx),
            "sku": {"name": compute.sku, "tier": "Standard", "capacity": compute.instance_count},
            "properties": {
                "upgradePolicy": {"mode": "Manual"},
                "virtualMachineProfile": profile,
            },
        },
        depends_on=frozenset(depends_on),
    )


def _cpu_rule(target: Reference, operator: str, threshold: int, direction: str) -> Dict[str, Any]:
    return {
        "metricTrigger": {
            "metricName": CPU_METRIC,
            "metricResourceUri": target,
            "timeGrain": "PT1M",
            "statistic": "Average",
            "timeWindow": "PT5M",
            "timeAggregation": "Average",
            "operator": operator,
            "threshold": threshold,
        },
        "scaleAction": {"direction": direction, "type": "ChangeCount", "value": "1", "cooldown": "PT5M"},
    }


def _build_autoscale(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    scale_set = ctx.lookup("virtual_machine_scale_set")
    autoscale = ctx.tier.compute.autoscale
    target = scale_set.reference
    return ResourceDescriptor(
        kind="autoscale_setting",
        name=ctx.resource_name("autoscale_setting"),
        properties={
            "location": helpers.location(ctx),
            "properties": {
                "enabled": True,
                "targetResourceUri": target,
                "profiles": [
                    {
                        "name": "cpu",
                        "capacity": {
                            "minimum": str(autoscale.minimum),
                            "maximum": str(autoscale.maximum),
                            "default": str(autoscale.default),
                        },
                        "rules": [
                            _cpu_rule(target, "GreaterThan", autoscale.scale_out_cpu_percent, "Increase"),
                            _cpu_rule(target, "LessThan", autoscale.scale_in_cpu_percent, "Decrease"),
                        ],
                    }
                ],
            },
        },
        depends_on=frozenset({target}),
    )


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key="virtual_machine_scale_set",
            kind="virtual_machine_scale_set",
            scope=TIER_SCOPE,
            rows=lambda ctx: [ctx.tier.compute],
            builder=_build_scale_set,
            requires=("subnet", "backend_address_pool"),
            gate=_has_compute,
            singleton=True,
        ),
        CollectionTemplate(
            key="autoscale_setting",
            kind="autoscale_setting",
            scope=TIER_SCOPE,
            rows=lambda ctx: [ctx.tier.compute.autoscale],
            builder=_build_autoscale,
            requires=("virtual_machine_scale_set",),
            gate=_autoscaled,
            singleton=True,
            description="CPU-driven scale out/in for the tier scale set.",
        ),
    ]
