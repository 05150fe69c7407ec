"""
Test suite for collection materialization.

Tests the CollectionMaterializer and its template plumbing:
- One descriptor per row, typed defaults, index naming
- Gates that drop whole collections
- Dependency ordering between sibling collections
- Keyed lookup failures
- Template discovery
"""

from types import SimpleNamespace

import pytest

from tiercompose.composition.kinds import KindRegistry, ResourceKind
from tiercompose.composition.materializer import CollectionMaterializer, discover_templates
from tiercompose.composition.naming import NameDeriver
from tiercompose.composition.resource_templates import (
    TIER_SCOPE,
    TOPOLOGY_SCOPE,
    CollectionContext,
    CollectionTemplate,
    NamingContext,
    Row,
)
from tiercompose.composition.yaml_config import EngineSettings, NamingSettings
from tiercompose.errors import ConfigurationError
from tiercompose.models import ResourceDescriptor

REGISTRY = KindRegistry(
    [
        ResourceKind("balancer", "Test/balancers", "lb", 80),
        ResourceKind("probe", "Test/balancers/probes", "probe", 80, path_segment="probes", parent="balancer"),
        ResourceKind("widget", "Test/widgets", "wdg", 80),
    ]
)


def make_context(tier=None, settings: EngineSettings = None, shared: dict = None) -> CollectionContext:
    """Helper to create a collection context."""
    return CollectionContext(
        deriver=NameDeriver(REGISTRY),
        naming=NamingContext(prefix="ct", workload="app", environment="dev"),
        settings=settings or EngineSettings(),
        tier=tier,
        shared=shared or {},
    )


def make_tier(name: str = "web", probes=(), enabled: bool = True):
    return SimpleNamespace(name=name, probes=list(probes), enabled=enabled)


def build_balancer(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    return ResourceDescriptor(kind="balancer", name=ctx.resource_name("balancer"))


def build_probe(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    balancer = ctx.lookup("balancer")
    spec = row.value
    return ResourceDescriptor(
        kind="probe",
        name=ctx.child_name("probe", row),
        parent_chain=balancer.chain,
        properties={"port": spec.port, "intervalInSeconds": getattr(spec, "interval", 15)},
        depends_on=frozenset({balancer.reference}),
    )


def probe_templates(gate=None):
    return [
        CollectionTemplate(
            key="probe",
            kind="probe",
            rows=lambda ctx: ctx.tier.probes,
            builder=build_probe,
            requires=("balancer",),
            gate=gate,
        ),
        CollectionTemplate(
            key="balancer",
            kind="balancer",
            rows=lambda ctx: [ctx.tier],
            builder=build_balancer,
            singleton=True,
        ),
    ]


# ============================================================================
# 1. ROW EXPANSION TESTS
# ============================================================================

class TestRowExpansion:
    """Test the one-descriptor-per-row mapping."""

    def test_empty_collection_yields_nothing(self):
        """Test that zero rows produce zero probe descriptors."""
        materializer = CollectionMaterializer(probe_templates())
        descriptors = materializer.materialize(make_tier(), make_context())
        assert [d.kind for d in descriptors] == ["balancer"]

    def test_named_rows(self):
        """Test that named rows become {prefix}-{name}-{abbreviation}."""
        tier = make_tier(probes=[SimpleNamespace(name="http", port=80), SimpleNamespace(name="https", port=443)])
        descriptors = CollectionMaterializer(probe_templates()).materialize(tier, make_context())
        probes = [d for d in descriptors if d.kind == "probe"]
        assert [p.name for p in probes] == ["app-web-http-probe", "app-web-https-probe"]
        assert [p.key for p in probes] == ["http", "https"]

    def test_unnamed_rows_use_index(self):
        """Test 1-based index naming for rows without a name."""
        tier = make_tier(probes=[SimpleNamespace(port=80), SimpleNamespace(port=81)])
        descriptors = CollectionMaterializer(probe_templates()).materialize(tier, make_context())
        probes = [d for d in descriptors if d.kind == "probe"]
        assert [p.name for p in probes] == ["app-web-probe-1", "app-web-probe-2"]
        assert [p.key for p in probes] == ["1", "2"]

    def test_index_base_is_configurable(self):
        """Test that settings can switch to 0-based indices."""
        settings = EngineSettings(naming=NamingSettings(index_base=0))
        tier = make_tier(probes=[SimpleNamespace(port=80)])
        materializer = CollectionMaterializer(probe_templates(), settings)
        descriptors = materializer.materialize(tier, make_context(settings=settings))
        assert descriptors[-1].name == "app-web-probe-0"

    def test_defaults_and_dependencies_recorded(self):
        """Test defaulted fields, parent chain and depends_on."""
        tier = make_tier(probes=[SimpleNamespace(name="tcp", port=22)])
        balancer, probe = CollectionMaterializer(probe_templates()).materialize(tier, make_context())
        assert probe.properties == {"port": 22, "intervalInSeconds": 15}
        assert probe.parent_chain == balancer.chain
        assert balancer.reference in probe.depends_on
        assert probe.origin == "probe[tcp]"

    def test_duplicate_row_keys_rejected(self):
        """Test that two rows with the same name fail the build."""
        tier = make_tier(probes=[SimpleNamespace(name="http", port=80), SimpleNamespace(name="http", port=81)])
        with pytest.raises(ConfigurationError, match="Duplicate probe row 'http'"):
            CollectionMaterializer(probe_templates()).materialize(tier, make_context())

    def test_kind_mismatch_is_programming_error(self):
        """Test that a builder producing the wrong kind is refused."""
        template = CollectionTemplate(
            key="widget",
            kind="widget",
            rows=lambda ctx: [1],
            builder=lambda ctx, row: ResourceDescriptor(kind="balancer", name="x"),
        )
        with pytest.raises(RuntimeError, match="expected widget"):
            CollectionMaterializer([template]).materialize(make_tier(), make_context())


# ============================================================================
# 2. GATE TESTS
# ============================================================================

class TestGates:
    """Test conditional suppression of whole collections."""

    def test_gate_false_drops_collection(self):
        """Test a gated row with a closed gate yields zero descriptors."""
        tier = make_tier(probes=[SimpleNamespace(port=80)], enabled=False)
        materializer = CollectionMaterializer(probe_templates(gate=lambda ctx: ctx.tier.enabled))
        descriptors = materializer.materialize(tier, make_context())
        assert [d.kind for d in descriptors] == ["balancer"]

    def test_gate_true_keeps_row(self):
        """Test a gated row with an open gate yields exactly one descriptor."""
        tier = make_tier(probes=[SimpleNamespace(port=80)], enabled=True)
        materializer = CollectionMaterializer(probe_templates(gate=lambda ctx: ctx.tier.enabled))
        probes = [d for d in materializer.materialize(tier, make_context()) if d.kind == "probe"]
        assert len(probes) == 1
        assert probes[0].properties["intervalInSeconds"] == 15


# ============================================================================
# 3. ORDERING TESTS
# ============================================================================

class TestOrdering:
    """Test dependency ordering and template validation."""

    def test_required_sibling_runs_first(self):
        """Test that declaration order does not matter."""
        materializer = CollectionMaterializer(probe_templates())
        assert [t.key for t in materializer.ordered(TIER_SCOPE)] == ["balancer", "probe"]

    def test_scopes_are_ordered_separately(self):
        """Test that topology templates never appear in the tier order."""
        widget = CollectionTemplate(
            key="widget",
            kind="widget",
            rows=lambda ctx: [],
            builder=build_balancer,
            scope=TOPOLOGY_SCOPE,
        )
        materializer = CollectionMaterializer(probe_templates() + [widget])
        assert [t.key for t in materializer.ordered(TOPOLOGY_SCOPE)] == ["widget"]
        assert "widget" not in [t.key for t in materializer.ordered(TIER_SCOPE)]

    def test_unknown_requirement_rejected(self):
        """Test that requires must name a known template."""
        template = CollectionTemplate(
            key="probe", kind="probe", rows=lambda ctx: [], builder=build_probe, requires=("ghost",)
        )
        with pytest.raises(ValueError, match="unknown template 'ghost'"):
            CollectionMaterializer([template])

    def test_unknown_scope_rejected(self):
        """Test that scopes are closed."""
        template = CollectionTemplate(
            key="widget", kind="widget", rows=lambda ctx: [], builder=build_balancer, scope="later"
        )
        with pytest.raises(ValueError, match="unknown scope"):
            CollectionMaterializer([template])

    def test_cycle_rejected(self):
        """Test that mutually dependent templates are refused."""
        templates = [
            CollectionTemplate(key="a", kind="widget", rows=lambda ctx: [], builder=build_balancer, requires=("b",)),
            CollectionTemplate(key="b", kind="widget", rows=lambda ctx: [], builder=build_balancer, requires=("a",)),
        ]
        with pytest.raises(RuntimeError, match="Cycle detected"):
            CollectionMaterializer(templates)


# ============================================================================
# 4. KEYED LOOKUP TESTS
# ============================================================================

class TestKeyedLookup:
    """Test lookup by key instead of position."""

    def test_missing_capability(self):
        """Test that a probe without a balancer fails loudly."""
        ctx = make_context(tier=make_tier())
        with pytest.raises(ConfigurationError, match="balancer capability missing for tier 'web'"):
            build_probe(ctx, Row.of(SimpleNamespace(port=80), 1))

    def test_ambiguous_lookup(self):
        """Test that an omitted key needs exactly one row."""
        shared = {"probe": {"a": object(), "b": object()}}
        ctx = make_context(shared=shared)
        with pytest.raises(ConfigurationError, match="holds 2 rows"):
            ctx.lookup("probe")

    def test_unknown_key(self):
        """Test that an unknown key lists the known ones."""
        ctx = make_context(shared={"probe": {"http": object()}})
        with pytest.raises(ConfigurationError, match="known: http"):
            ctx.lookup("probe", "https")

    def test_find_is_optional(self):
        """Test that find returns None instead of raising."""
        ctx = make_context()
        assert ctx.find("probe") is None


# ============================================================================
# 5. DISCOVERY TESTS
# ============================================================================

class TestDiscovery:
    """Test template discovery over a provider package."""

    def test_azure_templates_discovered(self):
        """Test that every Azure collection module contributes templates."""
        keys = {t.key for t in discover_templates("tiercompose.composition.providers.azure.collections")}
        for key in (
            "virtual_network",
            "subnet",
            "security_rule",
            "probe",
            "outbound_rule",
            "private_dns_zone_group",
            "application_gateway",
            "autoscale_setting",
            "admin_rule",
            "role_assignment",
        ):
            assert key in keys

    def test_discovery_is_cached(self):
        """Test that repeated discovery returns equal template lists."""
        first = discover_templates("tiercompose.composition.providers.azure.collections")
        second = discover_templates("tiercompose.composition.providers.azure.collections")
        assert [t.key for t in first] == [t.key for t in second]
