"""
Pydantic models for the topology configuration payload.

Every optional field carries its typed default here, so collection builders
never need to guess one.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from tiercompose.errors import ConfigurationError

Direction = Literal["Inbound", "Outbound"]


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class _Row(_Model):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _not_an_index(cls, value: Optional[str]) -> Optional[str]:
        # Unnamed rows are keyed by their index.
        if value is not None and value.isdigit():
            raise ValueError(f"row name '{value}' is reserved for index addressing; use a non-numeric name")
        return value


class NamingConfig(_Model):
    prefix: str = ""
    workload: str = Field(min_length=1)
    environment: str = ""
    unique_suffix: Optional[str] = None


class ScopeConfig(_Model):
    subscription_id: str = Field(min_length=1)
    resource_group: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Load balancer rows
# ---------------------------------------------------------------------------


class FrontendRow(_Row):
    public: Optional[bool] = None
    private_ip_address: Optional[str] = None
    zones: List[str] = Field(default_factory=list)

    @field_validator("private_ip_address")
    @classmethod
    def _check_ip(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            ipaddress.ip_address(value)
        return value


class BackendPoolRow(_Row):
    pass


class ProbeRow(_Row):
    protocol: Literal["Tcp", "Http", "Https"] = "Tcp"
    port: int = Field(ge=1, le=65535)
    interval_in_seconds: int = Field(default=15, ge=5)
    number_of_probes: int = Field(default=2, ge=1)
    request_path: Optional[str] = None

    @model_validator(mode="after")
    def _http_needs_path(self) -> ProbeRow:
        if self.protocol in ("Http", "Https") and not self.request_path:
            raise ValueError(f"{self.protocol} probe requires request_path")
        if self.protocol == "Tcp" and self.request_path:
            raise ValueError("Tcp probe does not take request_path")
        return self


class LoadBalancingRuleRow(_Row):
    frontend: Optional[str] = None
    backend_pool: Optional[str] = None
    probe: Optional[str] = None
    protocol: Literal["Tcp", "Udp", "All"] = "Tcp"
    frontend_port: int = Field(ge=0, le=65534)
    backend_port: Optional[int] = Field(default=None, ge=0, le=65535)
    idle_timeout_in_minutes: int = Field(default=4, ge=4, le=30)
    enable_floating_ip: bool = False
    load_distribution: Literal["Default", "SourceIP", "SourceIPProtocol"] = "Default"
    disable_outbound_snat: bool = False


class InboundNatRuleRow(_Row):
    frontend: Optional[str] = None
    protocol: Literal["Tcp", "Udp", "All"] = "Tcp"
    frontend_port: int = Field(ge=1, le=65534)
    backend_port: int = Field(ge=1, le=65535)
    idle_timeout_in_minutes: int = Field(default=4, ge=4, le=30)
    enable_floating_ip: bool = False


class OutboundRuleRow(_Row):
    frontends: List[str] = Field(default_factory=list)
    backend_pool: Optional[str] = None
    protocol: Literal["Tcp", "Udp", "All"] = "All"
    allocated_outbound_ports: int = Field(default=0, ge=0)
    idle_timeout_in_minutes: int = Field(default=4, ge=4, le=120)
    enable_tcp_reset: bool = True


class LoadBalancerConfig(_Model):
    sku: Literal["Basic", "Standard"] = "Standard"
    public: bool = False
    frontends: List[FrontendRow] = Field(default_factory=lambda: [FrontendRow()])
    backend_pools: List[BackendPoolRow] = Field(default_factory=lambda: [BackendPoolRow()])
    probes: List[ProbeRow] = Field(default_factory=list)
    rules: List[LoadBalancingRuleRow] = Field(default_factory=list)
    inbound_nat_rules: List[InboundNatRuleRow] = Field(default_factory=list)
    outbound_rules: List[OutboundRuleRow] = Field(default_factory=list)

    def is_public(self, frontend: FrontendRow) -> bool:
        return self.public if frontend.public is None else frontend.public


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


class _RuleRow(_Row):
    destination_ports: List[str] = Field(default_factory=lambda: ["*"], min_length=1)

    @field_validator("destination_ports")
    @classmethod
    def _check_ports(cls, value: List[str]) -> List[str]:
        if "*" in value and len(value) > 1:
            raise ValueError("destination_ports cannot mix '*' with specific ports")
        return value


class SecurityRuleRow(_RuleRow):
    priority: Optional[int] = None
    direction: Direction = "Inbound"
    access: Literal["Allow", "Deny"] = "Allow"
    protocol: Literal["Tcp", "Udp", "Icmp", "Esp", "Ah", "*"] = "Tcp"
    source: str = "*"
    destination: str = "*"
    source_port: str = "*"
    description: str = ""


class AdminRuleRow(_RuleRow):
    priority: Optional[int] = None
    direction: Direction = "Inbound"
    access: Literal["Allow", "Deny", "AlwaysAllow"] = "Allow"
    protocol: Literal["Tcp", "Udp", "Icmp", "Esp", "Ah", "*"] = "*"
    source: str = "*"
    destination: str = "*"
    source_port: str = "*"
    description: str = ""


class NetworkManagerConfig(_Model):
    subscriptions: List[str] = Field(default_factory=list)
    apply_on_network_intent_policy_based_services: List[Literal["None", "All", "AllowRulesOnly"]] = Field(
        default_factory=lambda: ["None"]
    )
    admin_rules: List[AdminRuleRow] = Field(default_factory=list)
    terminal_deny: Optional[bool] = None


# ---------------------------------------------------------------------------
# Private connectivity and services
# ---------------------------------------------------------------------------


class ServiceRow(_Model):
    name: str = Field(min_length=1)
    kind: Literal["storage_account", "key_vault", "sql_server", "container_registry"]
    sku: Optional[str] = None
    public_network_access: Literal["Enabled", "Disabled"] = "Disabled"
    tenant_id: Optional[str] = None
    administrator_login: Optional[str] = None

    @model_validator(mode="after")
    def _required_per_kind(self) -> ServiceRow:
        if self.kind == "key_vault" and not self.tenant_id:
            raise ValueError(f"key_vault service '{self.name}' requires tenant_id")
        if self.kind == "sql_server" and not self.administrator_login:
            raise ValueError(f"sql_server service '{self.name}' requires administrator_login")
        return self


class PrivateEndpointRow(_Row):
    group_id: str = Field(min_length=1)
    service: Optional[str] = None
    resource_id: Optional[str] = None
    target_kind: Optional[str] = None

    @model_validator(mode="after")
    def _one_target(self) -> PrivateEndpointRow:
        if bool(self.service) == bool(self.resource_id):
            raise ValueError("private endpoint needs exactly one of service or resource_id")
        if self.resource_id and not self.target_kind:
            raise ValueError("private endpoint with resource_id requires target_kind")
        return self


# ---------------------------------------------------------------------------
# Compute, WAF and tiers
# ---------------------------------------------------------------------------


class AutoscaleConfig(_Model):
    minimum: int = Field(default=2, ge=0)
    maximum: int = Field(default=10, ge=1)
    default: int = Field(default=2, ge=0)
    scale_out_cpu_percent: int = Field(default=75, ge=1, le=100)
    scale_in_cpu_percent: int = Field(default=25, ge=0, le=99)

    @model_validator(mode="after")
    def _bounds(self) -> AutoscaleConfig:
        if not self.minimum <= self.default <= self.maximum:
            raise ValueError("autoscale requires minimum <= default <= maximum")
        if self.scale_in_cpu_percent >= self.scale_out_cpu_percent:
            raise ValueError("scale_in_cpu_percent must be below scale_out_cpu_percent")
        return self


class ComputeConfig(_Model):
    sku: str = "Standard_D2s_v3"
    instance_count: int = Field(default=2, ge=0)
    admin_username: str = "azureuser"
    ssh_public_key: Optional[str] = None
    image: Dict[str, str] = Field(
        default_factory=lambda: {
            "publisher": "Canonical",
            "offer": "0001-com-ubuntu-server-jammy",
            "sku": "22_04-lts-gen2",
            "version": "latest",
        }
    )
    backend_pools: List[str] = Field(default_factory=list)
    autoscale: AutoscaleConfig = Field(default_factory=AutoscaleConfig)


class WafConfig(_Model):
    subnet_prefix: Optional[str] = None
    mode: Literal["Detection", "Prevention"] = "Prevention"
    rule_set_type: str = "OWASP"
    rule_set_version: str = "3.2"
    min_capacity: int = Field(default=2, ge=0)
    max_capacity: int = Field(default=10, ge=2)
    backend_port: int = Field(default=80, ge=1, le=65535)


class TierConfig(_Model):
    name: str = Field(pattern=r"^[a-z][a-z0-9-]*$")
    address_prefix: str
    waf_enabled: bool = False
    autoscaling_enabled: bool = False
    service_endpoints: List[str] = Field(default_factory=list)
    security_rules: List[SecurityRuleRow] = Field(default_factory=list)
    terminal_deny: Optional[bool] = None
    load_balancer: Optional[LoadBalancerConfig] = None
    private_endpoints: List[PrivateEndpointRow] = Field(default_factory=list)
    compute: Optional[ComputeConfig] = None
    waf: WafConfig = Field(default_factory=WafConfig)

    @field_validator("address_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        ipaddress.ip_network(value)
        return value

    @model_validator(mode="after")
    def _feature_requirements(self) -> TierConfig:
        if self.waf_enabled and not self.waf.subnet_prefix:
            raise ValueError(f"tier '{self.name}' enables WAF but sets no waf.subnet_prefix")
        if self.autoscaling_enabled and self.compute is None:
            raise ValueError(f"tier '{self.name}' enables autoscaling but has no compute block")
        if self.waf.subnet_prefix:
            ipaddress.ip_network(self.waf.subnet_prefix)
        return self


# ---------------------------------------------------------------------------
# Role assignments and topology
# ---------------------------------------------------------------------------


class RoleAssignmentRow(_Row):
    role: str = Field(min_length=1)
    principal_id: str = Field(min_length=1)
    principal_type: Literal["User", "Group", "ServicePrincipal", "ForeignGroup", "Device"] = "ServicePrincipal"
    collection: str = Field(min_length=1)
    key: Optional[str] = None
    tier: Optional[str] = None

    @property
    def namespace(self) -> str:
        return f"{self.tier}.{self.collection}" if self.tier else self.collection


class TopologyConfig(_Model):
    naming: NamingConfig
    scope: ScopeConfig
    location: Optional[str] = None
    address_space: List[str] = Field(min_length=1)
    dns_servers: List[str] = Field(default_factory=list)
    ddos_enabled: bool = False
    tiers: List[TierConfig] = Field(default_factory=list)
    services: List[ServiceRow] = Field(default_factory=list)
    network_manager: Optional[NetworkManagerConfig] = None
    role_assignments: List[RoleAssignmentRow] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_layout(self) -> TopologyConfig:
        spaces = [ipaddress.ip_network(space) for space in self.address_space]
        names = set()
        prefixes = []
        for tier in self.tiers:
            if tier.name in names:
                raise ValueError(f"duplicate tier name '{tier.name}'")
            names.add(tier.name)
            tier_prefixes = [tier.address_prefix]
            if tier.waf_enabled and tier.waf.subnet_prefix:
                tier_prefixes.append(tier.waf.subnet_prefix)
            for value in tier_prefixes:
                network = ipaddress.ip_network(value)
                if not any(
                    network.version == space.version and network.subnet_of(space) for space in spaces
                ):
                    raise ValueError(f"tier '{tier.name}' prefix {value} is outside the address space")
                for other_name, other in prefixes:
                    if network.version == other.version and network.overlaps(other):
                        raise ValueError(
                            f"tier '{tier.name}' prefix {value} overlaps tier '{other_name}' ({other})"
                        )
                prefixes.append((tier.name, network))
        services = [service.name for service in self.services]
        if len(services) != len(set(services)):
            raise ValueError("service names must be unique")
        return self

    def service(self, name: str) -> ServiceRow:
        for service in self.services:
            if service.name == name:
                return service
        raise ConfigurationError(f"Unknown service '{name}'; known: {', '.join(s.name for s in self.services)}.")

    def tier(self, name: str) -> TierConfig:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        raise ConfigurationError(f"Unknown tier '{name}'.")


def parse_topology(data: TopologyConfig | Mapping[str, Any]) -> TopologyConfig:
    """Validate a raw topology mapping; malformed input becomes ConfigurationError."""
    if isinstance(data, TopologyConfig):
        return data
    try:
        return TopologyConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid topology configuration: {exc}") from exc


def target_kind(topology: TopologyConfig, row: PrivateEndpointRow) -> str:
    """Kind key of a private endpoint's target, used for projection lookup."""
    if row.service:
        return topology.service(row.service).kind
    return row.target_kind or ""


__all__ = [
    "AdminRuleRow",
    "AutoscaleConfig",
    "BackendPoolRow",
    "ComputeConfig",
    "FrontendRow",
    "InboundNatRuleRow",
    "LoadBalancerConfig",
    "LoadBalancingRuleRow",
    "NamingConfig",
    "NetworkManagerConfig",
    "OutboundRuleRow",
    "PrivateEndpointRow",
    "ProbeRow",
    "RoleAssignmentRow",
    "ScopeConfig",
    "SecurityRuleRow",
    "ServiceRow",
    "TierConfig",
    "TopologyConfig",
    "WafConfig",
    "parse_topology",
    "target_kind",
]
