"""
Azure projection tables.

- PRIVATE_DNS_ZONES: (target kind, private link group id) -> private DNS zone name
  (public cloud zone names).
- ROLE_DEFINITIONS: ("role_assignment", built-in role name) -> role definition GUID.
"""

from __future__ import annotations

from typing import Dict

from tiercompose.composition.projections import ProjectionRegistry

PRIVATE_DNS_ZONE_REGISTRY = "private_dns_zone"
ROLE_DEFINITION_REGISTRY = "role_definition"

PRIVATE_DNS_ZONES = ProjectionRegistry(
    PRIVATE_DNS_ZONE_REGISTRY,
    {
        ("storage_account", "blob"): "privatelink.blob.core.windows.net",
        ("storage_account", "file"): "privatelink.file.core.windows.net",
        ("storage_account", "queue"): "privatelink.queue.core.windows.net",
        ("storage_account", "table"): "privatelink.table.core.windows.net",
        ("storage_account", "dfs"): "privatelink.dfs.core.windows.net",
        ("storage_account", "web"): "privatelink.web.core.windows.net",
        ("key_vault", "vault"): "privatelink.vaultcore.azure.net",
        ("sql_server", "sqlServer"): "privatelink.database.windows.net",
        ("container_registry", "registry"): "privatelink.azurecr.io",
        # Targets that are only ever referenced by resource id.
        ("web_app", "sites"): "privatelink.azurewebsites.net",
        ("cosmos_account", "Sql"): "privatelink.documents.azure.com",
        ("cosmos_account", "MongoDB"): "privatelink.mongo.cosmos.azure.com",
        ("service_bus_namespace", "namespace"): "privatelink.servicebus.windows.net",
        ("event_hub_namespace", "namespace"): "privatelink.servicebus.windows.net",
        ("redis_cache", "redisCache"): "privatelink.redis.cache.windows.net",
        ("app_configuration", "configurationStores"): "privatelink.azconfig.io",
        ("search_service", "searchService"): "privatelink.search.windows.net",
        ("cognitive_account", "account"): "privatelink.cognitiveservices.azure.com",
    },
)

ROLE_DEFINITIONS = ProjectionRegistry(
    ROLE_DEFINITION_REGISTRY,
    {
        ("role_assignment", "Owner"): "8e3af657-a8ff-443c-a75c-2fe8c4bcb635",
        ("role_assignment", "Contributor"): "b24988ac-6180-42a0-ab88-20f7382dd24c",
        ("role_assignment", "Reader"): "acdd72a7-3385-48ef-bd42-f606fba81ae7",
        ("role_assignment", "Network Contributor"): "4d97b98b-1d4f-4787-a291-c67834d212e7",
        ("role_assignment", "Storage Blob Data Reader"): "2a2b9908-6ea1-4ae2-8e65-a410df84e7d1",
        ("role_assignment", "Storage Blob Data Contributor"): "ba92f5b4-2d11-453d-a403-e96b0029c9fe",
        ("role_assignment", "Key Vault Secrets User"): "4633458b-17de-408a-b874-0445c86b69e6",
        ("role_assignment", "Key Vault Administrator"): "00482a5a-887f-4fb3-b363-3b7fe8e74483",
        ("role_assignment", "AcrPull"): "7f951dda-4ed3-4680-a7ca-43fe172d538d",
        ("role_assignment", "Monitoring Metrics Publisher"): "3913510d-42f4-4e42-8a64-420c390055eb",
    },
)


def default_projections() -> Dict[str, ProjectionRegistry]:
    return {
        PRIVATE_DNS_ZONE_REGISTRY: PRIVATE_DNS_ZONES,
        ROLE_DEFINITION_REGISTRY: ROLE_DEFINITIONS,
    }
