"""
Pytest configuration and shared fixtures for all tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is on `sys.path` so top-level imports work.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from tiercompose.composition.yaml_config import reset_engine_settings


@pytest.fixture(autouse=True)
def cleanup_engine_settings(monkeypatch):
    """
    Reset the global settings cache around each test.

    Tests that load a YAML file or call `set_engine_settings` must not leak
    into the next test.
    """
    monkeypatch.delenv("TIERCOMPOSE_CONFIG", raising=False)
    reset_engine_settings()
    yield
    reset_engine_settings()


@pytest.fixture
def topology_data():
    """
    Three-tier topology exercising every collection family.

    Usage:
        def test_compose(topology_data):
            graph = TopologyComposer().compose(topology_data)
    """
    return {
        "naming": {"prefix": "ct", "workload": "contoso", "environment": "prod", "unique_suffix": "a1b2c3"},
        "scope": {"subscription_id": "00000000-0000-0000-0000-000000000001", "resource_group": "rg-contoso"},
        "location": "westeurope",
        "address_space": ["10.0.0.0/16"],
        "ddos_enabled": True,
        "services": [
            {"name": "data", "kind": "storage_account"},
            {"name": "secrets", "kind": "key_vault", "tenant_id": "11111111-1111-1111-1111-111111111111"},
        ],
        "tiers": [
            {
                "name": "web",
                "address_prefix": "10.0.1.0/24",
                "waf_enabled": True,
                "waf": {"subnet_prefix": "10.0.10.0/24"},
                "security_rules": [
                    {"name": "allow-https", "destination_ports": ["443"]},
                    {"name": "allow-http", "destination_ports": ["80"]},
                ],
                "load_balancer": {
                    "probes": [
                        {"name": "http", "protocol": "Http", "port": 80, "request_path": "/healthz"},
                        {"name": "https", "protocol": "Https", "port": 443, "request_path": "/healthz"},
                    ],
                    "rules": [
                        {"name": "http", "probe": "http", "frontend_port": 80},
                        {"name": "https", "probe": "https", "frontend_port": 443, "backend_port": 8443},
                    ],
                },
            },
            {
                "name": "business",
                "address_prefix": "10.0.2.0/24",
                "autoscaling_enabled": True,
                "security_rules": [
                    {"name": "from-web", "source": "10.0.1.0/24", "destination_ports": ["8080"], "priority": 200},
                ],
                "load_balancer": {"probes": [{"port": 8080}], "rules": [{"frontend_port": 8080}]},
                "compute": {"ssh_public_key": "ssh-rsa AAAAB3Nza test@example"},
            },
            {
                "name": "data",
                "address_prefix": "10.0.3.0/24",
                "private_endpoints": [
                    {"name": "blob", "service": "data", "group_id": "blob"},
                    {"name": "vault", "service": "secrets", "group_id": "vault"},
                ],
            },
        ],
        "network_manager": {
            "admin_rules": [
                {"name": "deny-telnet", "access": "Deny", "protocol": "Tcp", "destination_ports": ["23"]},
                {"name": "allow-monitoring", "access": "AlwaysAllow", "source": "AzureMonitor"},
            ]
        },
        "role_assignments": [
            {
                "role": "Storage Blob Data Reader",
                "principal_id": "22222222-2222-2222-2222-222222222222",
                "collection": "storage_account",
                "key": "data",
            },
            {
                "role": "Network Contributor",
                "principal_id": "33333333-3333-3333-3333-333333333333",
                "collection": "subnet",
                "tier": "business",
            },
        ],
    }
