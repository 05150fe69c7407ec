"""
Globally unique platform services that private endpoints and role assignments target.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.resource_templates import (
    TOPOLOGY_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import ResourceDescriptor


def _rows_of_kind(kind: str) -> Callable[[CollectionContext], List[Any]]:
    def rows(ctx: CollectionContext) -> List[Any]:
        return [service for service in ctx.topology.services if service.kind == kind]

    return rows


def _sku(service: Any) -> str:
    return service.sku or helpers.SERVICE_SKUS.get(service.kind, "")


def _storage_account(ctx: CollectionContext, service: Any) -> Dict[str, Any]:
    return {
        "kind": "StorageV2",
        "sku": {"name": _sku(service)},
        "properties": {
            "minimumTlsVersion": "TLS1_2",
            "supportsHttpsTrafficOnly": True,
            "allowBlobPublicAccess": False,
            "publicNetworkAccess": service.public_network_access,
        },
    }


def _key_vault(ctx: CollectionContext, service: Any) -> Dict[str, Any]:
    return {
        "properties": {
            "tenantId": service.tenant_id,
            "sku": {"family": "A", "name": _sku(service)},
            "enableRbacAuthorization": True,
            "enableSoftDelete": True,
            "publicNetworkAccess": service.public_network_access,
        },
    }


def _sql_server(ctx: CollectionContext, service: Any) -> Dict[str, Any]:
    return {
        "properties": {
            "administratorLogin": service.administrator_login,
            "minimalTlsVersion": "1.2",
            "publicNetworkAccess": service.public_network_access,
        },
    }


def _container_registry(ctx: CollectionContext, service: Any) -> Dict[str, Any]:
    return {
        "sku": {"name": _sku(service)},
        "properties": {
            "adminUserEnabled": False,
            "publicNetworkAccess": service.public_network_access,
        },
    }


_BODIES = {
    "storage_account": _storage_account,
    "key_vault": _key_vault,
    "sql_server": _sql_server,
    "container_registry": _container_registry,
}


def _builder(kind: str):
    def build(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
        service = row.value
        body = {"location": helpers.location(ctx)}
        body.update(_BODIES[kind](ctx, service))
        return ResourceDescriptor(
            kind=kind,
            name=ctx.resource_name(kind, service.name),
            properties=body,
        )

    return build


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key=kind,
            kind=kind,
            scope=TOPOLOGY_SCOPE,
            rows=_rows_of_kind(kind),
            builder=_builder(kind),
            description=f"{kind.replace('_', ' ')} services keyed by service name.",
        )
        for kind in _BODIES
    ]
