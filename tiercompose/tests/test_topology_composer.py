"""
Test suite for end-to-end topology composition.

Tests the TopologyComposer pipeline:
- Keyed probes referenced by load-balancing rules
- Dependency-ordered output records
- Parallel and sequential tier materialization
- Build-time failures (projections, priorities, collisions, input)
- Role assignments in the finalize phase
"""

import copy
import uuid

import pytest

from tiercompose.composition.naming import unique_suffix
from tiercompose.composition.providers.azure import TopologyComposer, compose_topology
from tiercompose.composition.yaml_config import EngineSettings, PolicySettings
from tiercompose.errors import (
    ConfigurationError,
    NameCollision,
    PriorityConflict,
    UnsupportedProjection,
)

SUB = "00000000-0000-0000-0000-000000000001"
PREFIX = f"/subscriptions/{SUB}/resourceGroups/rg-contoso"
NETWORK = f"{PREFIX}/providers/Microsoft.Network"


def compose(data, **kwargs):
    """Helper to compose a topology into output records."""
    settings = kwargs.pop("settings", None)
    return TopologyComposer(settings=settings).compose(data, **kwargs).to_records()


def find(records, kind, name=None):
    matches = [r for r in records if r["kind"] == kind and (name is None or r["name"] == name)]
    assert matches, f"no {kind} record named {name}"
    return matches[0] if name is not None else matches


# ============================================================================
# 1. KEYED PROBE TESTS
# ============================================================================

class TestKeyedProbes:
    """Test probes referenced by load-balancing rules through keyed lookup."""

    def test_probes_named_from_rows(self, topology_data):
        """Test that named probe rows become {prefix}-{name}-probe."""
        records = compose(topology_data)
        names = [r["name"] for r in find(records, "probe") if r["parentChain"][0]["name"] == "ct-contoso-prod-web-lb"]
        assert names == ["contoso-web-http-probe", "contoso-web-https-probe"]

    def test_rules_resolve_probe_addresses(self, topology_data):
        """Test that rules point at .../probes/{prefix}-{name}-probe."""
        records = compose(topology_data)
        lb_id = f"{NETWORK}/loadBalancers/ct-contoso-prod-web-lb"
        http = find(records, "load_balancing_rule", "contoso-web-http-rule")
        https = find(records, "load_balancing_rule", "contoso-web-https-rule")
        assert http["properties"]["properties"]["probe"]["id"] == f"{lb_id}/probes/contoso-web-http-probe"
        assert https["properties"]["properties"]["probe"]["id"] == f"{lb_id}/probes/contoso-web-https-probe"
        assert f"{lb_id}/probes/contoso-web-http-probe" in http["dependsOn"]

    def test_rule_defaults(self, topology_data):
        """Test typed defaults on load-balancing rules."""
        records = compose(topology_data)
        http = find(records, "load_balancing_rule", "contoso-web-http-rule")["properties"]["properties"]
        https = find(records, "load_balancing_rule", "contoso-web-https-rule")["properties"]["properties"]
        assert http["idleTimeoutInMinutes"] == 4
        assert http["backendPort"] == 80
        assert https["backendPort"] == 8443
        assert http["protocol"] == "Tcp"


# ============================================================================
# 2. PIPELINE TESTS
# ============================================================================

class TestPipeline:
    """Test ordering, determinism and parallelism."""

    def test_dependencies_precede_dependents(self, topology_data):
        """Test that every dependsOn id was emitted earlier."""
        records = compose(topology_data)
        seen = set()
        for record in records:
            for dependency in record["dependsOn"]:
                assert dependency in seen, f"{record['name']} emitted before {dependency}"
            seen.add(record["id"])

    def test_ids_are_unique(self, topology_data):
        """Test that no two records share an address."""
        records = compose(topology_data)
        ids = [r["id"] for r in records]
        assert len(ids) == len(set(ids))

    def test_parallel_matches_sequential(self, topology_data):
        """Test that concurrent tier expansion produces identical output."""
        assert compose(topology_data, max_workers=4) == compose(topology_data, max_workers=1)

    def test_compose_is_deterministic(self, topology_data):
        """Test that two runs yield identical records."""
        assert compose_topology(topology_data) == compose_topology(copy.deepcopy(topology_data))

    def test_settings_supply_default_workers(self, topology_data):
        """Test that max_workers falls back to settings."""
        settings = EngineSettings()
        settings.materializer.max_workers = 3
        assert compose(topology_data, settings=settings) == compose(topology_data)

    def test_disambiguator_derived_when_not_supplied(self, topology_data):
        """Test that globally unique names get a stable hash suffix."""
        del topology_data["naming"]["unique_suffix"]
        first = find(compose(topology_data), "storage_account")[0]["name"]
        second = find(compose(copy.deepcopy(topology_data)), "storage_account")[0]["name"]
        assert first == second
        assert first == "ctcontproddatast" + unique_suffix(SUB, "rg-contoso", "contoso", length=8)

    def test_location_defaults_from_settings(self, topology_data):
        """Test that a topology without location uses the settings default."""
        del topology_data["location"]
        vnet = find(compose(topology_data), "virtual_network")[0]
        assert vnet["properties"]["location"] == "eastus"


# ============================================================================
# 3. BUILD-TIME FAILURE TESTS
# ============================================================================

class TestBuildFailures:
    """Test that deployment-time failures surface at build time."""

    def test_unknown_group_id(self, topology_data):
        """Test that a private endpoint for an unknown subresource fails loudly."""
        topology_data["tiers"][2]["private_endpoints"][0]["group_id"] = "bogus"
        with pytest.raises(UnsupportedProjection) as excinfo:
            compose(topology_data)
        assert excinfo.value.kind == "storage_account"
        assert "blob" in excinfo.value.known

    def test_unknown_role(self, topology_data):
        """Test that an unknown role name is not silently dropped."""
        topology_data["role_assignments"][0]["role"] = "Chief Everything Officer"
        with pytest.raises(UnsupportedProjection, match="role_definition"):
            compose(topology_data)

    def test_priority_collision(self, topology_data):
        """Test that colliding NSG priorities fail the build with every conflict."""
        topology_data["tiers"][0]["security_rules"] = [
            {"name": "a", "priority": 100},
            {"name": "b", "priority": 100},
        ]
        with pytest.raises(PriorityConflict) as excinfo:
            compose(topology_data)
        assert excinfo.value.conflicts[0].rule_names == ("a", "b")

    def test_name_collision(self, topology_data):
        """Test that services whose names fold together collide."""
        topology_data["services"].append({"name": "Data", "kind": "storage_account"})
        with pytest.raises(NameCollision):
            compose(topology_data)

    def test_unknown_service(self, topology_data):
        """Test that an endpoint naming an unknown service is a configuration error."""
        topology_data["tiers"][2]["private_endpoints"][0]["service"] = "ghost"
        with pytest.raises(ConfigurationError, match="Unknown service 'ghost'"):
            compose(topology_data)

    def test_unknown_probe_key(self, topology_data):
        """Test that a rule naming a missing probe lists the known ones."""
        topology_data["tiers"][0]["load_balancer"]["rules"][0]["probe"] = "grpc"
        with pytest.raises(ConfigurationError, match="Unknown probe 'grpc'"):
            compose(topology_data)

    def test_overlapping_prefixes(self, topology_data):
        """Test that overlapping tier prefixes are rejected."""
        topology_data["tiers"][1]["address_prefix"] = "10.0.1.128/25"
        with pytest.raises(ConfigurationError, match="overlaps"):
            compose(topology_data)

    def test_unknown_field(self, topology_data):
        """Test that typos in input are refused."""
        topology_data["tiers"][0]["waf_enabeld"] = True
        with pytest.raises(ConfigurationError, match="Invalid topology"):
            compose(topology_data)

    def test_http_probe_requires_path(self, topology_data):
        """Test that an Http probe without a request path is refused."""
        del topology_data["tiers"][0]["load_balancer"]["probes"][0]["request_path"]
        with pytest.raises(ConfigurationError, match="request_path"):
            compose(topology_data)

    def test_any_port_mixed_with_specific_ports(self, topology_data):
        """Test that '*' next to specific ports is refused, not narrowed."""
        topology_data["tiers"][0]["security_rules"].append({"name": "mixed", "destination_ports": ["*", "443"]})
        with pytest.raises(ConfigurationError, match="cannot mix"):
            compose(topology_data)

    def test_admin_rule_any_port_mixed(self, topology_data):
        """Test the same port check on security admin rules."""
        topology_data["network_manager"]["admin_rules"][0]["destination_ports"] = ["23", "*"]
        with pytest.raises(ConfigurationError, match="cannot mix"):
            compose(topology_data)

    def test_empty_destination_ports(self, topology_data):
        """Test that an empty port list is refused."""
        topology_data["tiers"][0]["security_rules"][0]["destination_ports"] = []
        with pytest.raises(ConfigurationError, match="destination_ports"):
            compose(topology_data)

    def test_numeric_row_name_is_reserved(self, topology_data):
        """Test that explicit names cannot shadow index keys of unnamed rows."""
        topology_data["tiers"][1]["load_balancer"]["probes"] = [{"port": 8080}, {"name": "1", "port": 8081}]
        with pytest.raises(ConfigurationError, match="reserved for index addressing"):
            compose(topology_data)

    def test_numeric_rule_name_is_reserved(self, topology_data):
        """Test the reserved index keys for policy rule rows."""
        topology_data["tiers"][0]["security_rules"] = [{"destination_ports": ["22"]}, {"name": "1"}]
        with pytest.raises(ConfigurationError, match="reserved for index addressing"):
            compose(topology_data)

    def test_autoscaling_requires_compute(self, topology_data):
        """Test that autoscaling on a tier without compute is refused."""
        topology_data["tiers"][2]["autoscaling_enabled"] = True
        with pytest.raises(ConfigurationError, match="enables autoscaling but has no compute"):
            compose(topology_data)


# ============================================================================
# 4. ROLE ASSIGNMENT TESTS
# ============================================================================

class TestRoleAssignments:
    """Test finalize-scope role assignments."""

    def test_assignment_on_service(self, topology_data):
        """Test a role assignment scoped to a storage account."""
        records = compose(topology_data)
        storage = find(records, "storage_account")[0]
        assignment = next(r for r in find(records, "role_assignment") if r["parentChain"][0]["kind"] == "storage_account")
        assert assignment["id"] == f"{storage['id']}/providers/Microsoft.Authorization/roleAssignments/{assignment['name']}"
        assert str(uuid.UUID(assignment["name"])) == assignment["name"]
        assert assignment["properties"]["properties"]["roleDefinitionId"].endswith("2a2b9908-6ea1-4ae2-8e65-a410df84e7d1")
        assert storage["id"] in assignment["dependsOn"]

    def test_assignment_on_tier_collection(self, topology_data):
        """Test that `tier` selects a tier's collection by key."""
        records = compose(topology_data)
        assignment = next(r for r in find(records, "role_assignment") if r["parentChain"][-1]["kind"] == "subnet")
        assert assignment["parentChain"][-1]["name"] == "contoso-business-snet"
        assert assignment["properties"]["properties"]["principalType"] == "ServicePrincipal"

    def test_assignment_names_are_stable(self, topology_data):
        """Test that assignment names depend only on configuration."""
        first = [r["name"] for r in find(compose(topology_data), "role_assignment")]
        second = [r["name"] for r in find(compose(topology_data), "role_assignment")]
        assert first == second
        assert len(set(first)) == 2

    def test_unknown_scope_collection(self, topology_data):
        """Test that an assignment on a missing collection fails."""
        topology_data["role_assignments"][1]["tier"] = "web"
        topology_data["role_assignments"][1]["collection"] = "virtual_machine_scale_set"
        with pytest.raises(ConfigurationError, match="capability missing"):
            compose(topology_data)


# ============================================================================
# 5. SETTINGS TESTS
# ============================================================================

class TestPolicySettings:
    """Test settings that change rule set finalization."""

    def test_terminal_deny_disabled_by_settings(self, topology_data):
        """Test that NSGs can be left permissive through settings."""
        settings = EngineSettings(policy=PolicySettings(security_rules_terminal_deny=False))
        records = compose(topology_data, settings=settings)
        assert not [r for r in find(records, "security_rule") if "deny-all" in r["name"]]

    def test_tier_override_wins(self, topology_data):
        """Test that a tier can opt out while others keep the deny-all."""
        topology_data["tiers"][0]["terminal_deny"] = False
        records = compose(topology_data)
        names = [r["name"] for r in find(records, "security_rule")]
        assert "contoso-web-deny-all-inbound-rule" not in names
        assert "contoso-business-deny-all-inbound-rule" in names
