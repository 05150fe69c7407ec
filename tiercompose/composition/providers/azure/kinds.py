from __future__ import annotations

from tiercompose.composition.kinds import (
    ALPHANUMERIC,
    ALPHANUMERIC_HYPHEN,
    ALPHANUMERIC_HYPHEN_UNDERSCORE_PERIOD as ANY_NAME,
    KindRegistry,
    ResourceKind,
)

NETWORK = "Microsoft.Network"

AZURE_KINDS = (
    # Networking core
    ResourceKind("virtual_network", f"{NETWORK}/virtualNetworks", "vnet", 64, ANY_NAME),
    ResourceKind(
        "subnet", f"{NETWORK}/virtualNetworks/subnets", "snet", 80, ANY_NAME,
        path_segment="subnets", parent="virtual_network",
    ),
    ResourceKind("ddos_protection_plan", f"{NETWORK}/ddosProtectionPlans", "ddos", 80, ANY_NAME),
    ResourceKind("network_security_group", f"{NETWORK}/networkSecurityGroups", "nsg", 80, ANY_NAME),
    ResourceKind(
        "security_rule", f"{NETWORK}/networkSecurityGroups/securityRules", "rule", 80, ANY_NAME,
        path_segment="securityRules", parent="network_security_group",
    ),
    ResourceKind("public_ip_address", f"{NETWORK}/publicIPAddresses", "pip", 80, ANY_NAME),
    # Load balancing
    ResourceKind("load_balancer", f"{NETWORK}/loadBalancers", "lb", 80, ANY_NAME),
    ResourceKind(
        "frontend_ip_configuration", f"{NETWORK}/loadBalancers/frontendIPConfigurations", "fe", 80,
        ANY_NAME, path_segment="frontendIPConfigurations", parent="load_balancer",
    ),
    ResourceKind(
        "backend_address_pool", f"{NETWORK}/loadBalancers/backendAddressPools", "pool", 80,
        ANY_NAME, path_segment="backendAddressPools", parent="load_balancer",
    ),
    ResourceKind(
        "probe", f"{NETWORK}/loadBalancers/probes", "probe", 80, ANY_NAME,
        path_segment="probes", parent="load_balancer",
    ),
    ResourceKind(
        "load_balancing_rule", f"{NETWORK}/loadBalancers/loadBalancingRules", "rule", 80, ANY_NAME,
        path_segment="loadBalancingRules", parent="load_balancer",
    ),
    ResourceKind(
        "inbound_nat_rule", f"{NETWORK}/loadBalancers/inboundNatRules", "nat", 80, ANY_NAME,
        path_segment="inboundNatRules", parent="load_balancer",
    ),
    ResourceKind(
        "outbound_rule", f"{NETWORK}/loadBalancers/outboundRules", "outbound", 80, ANY_NAME,
        path_segment="outboundRules", parent="load_balancer",
    ),
    # Web application firewall
    ResourceKind(
        "web_application_firewall_policy",
        f"{NETWORK}/ApplicationGatewayWebApplicationFirewallPolicies", "waf", 80, ANY_NAME,
    ),
    ResourceKind("application_gateway", f"{NETWORK}/applicationGateways", "agw", 80, ANY_NAME),
    # Declared inline in the gateway body; referenced by id only.
    *(
        ResourceKind(
            f"gateway_{key}", f"{NETWORK}/applicationGateways/{segment}", key, 80, ANY_NAME,
            path_segment=segment, parent="application_gateway",
        )
        for key, segment in (
            ("ip_configuration", "gatewayIPConfigurations"),
            ("frontend_ip", "frontendIPConfigurations"),
            ("frontend_port", "frontendPorts"),
            ("backend_pool", "backendAddressPools"),
            ("http_settings", "backendHttpSettingsCollection"),
            ("http_listener", "httpListeners"),
        )
    ),
    # Private connectivity
    ResourceKind("private_endpoint", f"{NETWORK}/privateEndpoints", "pe", 64, ANY_NAME),
    ResourceKind(
        "private_dns_zone_group", f"{NETWORK}/privateEndpoints/privateDnsZoneGroups", "zg", 80,
        ANY_NAME, path_segment="privateDnsZoneGroups", parent="private_endpoint",
    ),
    ResourceKind("private_dns_zone", f"{NETWORK}/privateDnsZones", "pdnsz", 253, ANY_NAME),
    ResourceKind(
        "virtual_network_link", f"{NETWORK}/privateDnsZones/virtualNetworkLinks", "link", 80,
        ANY_NAME, path_segment="virtualNetworkLinks", parent="private_dns_zone",
    ),
    # Security admin rules
    ResourceKind("network_manager", f"{NETWORK}/networkManagers", "vnm", 64, ANY_NAME),
    ResourceKind(
        "network_group", f"{NETWORK}/networkManagers/networkGroups", "ng", 64, ANY_NAME,
        path_segment="networkGroups", parent="network_manager",
    ),
    ResourceKind(
        "static_member", f"{NETWORK}/networkManagers/networkGroups/staticMembers", "member", 64,
        ANY_NAME, path_segment="staticMembers", parent="network_group",
    ),
    ResourceKind(
        "security_admin_configuration", f"{NETWORK}/networkManagers/securityAdminConfigurations",
        "sac", 64, ANY_NAME, path_segment="securityAdminConfigurations", parent="network_manager",
    ),
    ResourceKind(
        "admin_rule_collection",
        f"{NETWORK}/networkManagers/securityAdminConfigurations/ruleCollections", "rc", 64, ANY_NAME,
        path_segment="ruleCollections", parent="security_admin_configuration",
    ),
    ResourceKind(
        "admin_rule",
        f"{NETWORK}/networkManagers/securityAdminConfigurations/ruleCollections/rules", "ar", 64,
        ANY_NAME, path_segment="rules", parent="admin_rule_collection",
    ),
    # Compute
    ResourceKind("virtual_machine_scale_set", "Microsoft.Compute/virtualMachineScaleSets", "vmss", 64),
    ResourceKind("autoscale_setting", "Microsoft.Insights/autoscalesettings", "autoscale", 260, ANY_NAME),
    # Globally unique platform services
    ResourceKind(
        "storage_account", "Microsoft.Storage/storageAccounts", "st", 24, ALPHANUMERIC,
        globally_unique=True,
    ),
    ResourceKind(
        "key_vault", "Microsoft.KeyVault/vaults", "kv", 24, ALPHANUMERIC_HYPHEN,
        globally_unique=True,
    ),
    ResourceKind(
        "sql_server", "Microsoft.Sql/servers", "sql", 63, ALPHANUMERIC_HYPHEN,
        globally_unique=True,
    ),
    ResourceKind(
        "container_registry", "Microsoft.ContainerRegistry/registries", "cr", 50, ALPHANUMERIC,
        globally_unique=True,
    ),
    # Access control
    ResourceKind(
        "role_assignment", "Microsoft.Authorization/roleAssignments", "ra", 36, ALPHANUMERIC_HYPHEN,
        extension=True,
    ),
)

SERVICE_KINDS = ("storage_account", "key_vault", "sql_server", "container_registry")


def build_kind_registry() -> KindRegistry:
    return KindRegistry(AZURE_KINDS)
