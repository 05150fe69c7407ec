"""
Role assignments on resources produced by earlier phases.

Each row names its scope by collection and key (`tier` selects a tier's
collections) and its role by built-in role name, never by list position.
"""

from __future__ import annotations

import logging

from tiercompose.composition.providers.azure import helpers
from tiercompose.composition.providers.azure.projections import ROLE_DEFINITION_REGISTRY
from tiercompose.composition.resource_templates import (
    FINALIZE_SCOPE,
    CollectionContext,
    CollectionTemplate,
    Row,
)
from tiercompose.models import ResourceDescriptor

logger = logging.getLogger(__name__)

ROLE_DEFINITION_PROVIDER = "Microsoft.Authorization/roleDefinitions"


def _build_role_assignment(ctx: CollectionContext, row: Row) -> ResourceDescriptor:
    spec = row.value
    role_id = ctx.projection(ROLE_DEFINITION_REGISTRY).project("role_assignment", spec.role)
    scope = ctx.lookup(spec.namespace, spec.key)
    subscription = ctx.topology.scope.subscription_id
    name = helpers.role_assignment_name(scope.reference, spec.principal_id, role_id)
    logger.debug("Role %s for %s on %s -> %s", spec.role, spec.principal_id, scope.origin, name)
    return ResourceDescriptor(
        kind="role_assignment",
        name=name,
        parent_chain=scope.chain,
        properties={
            "properties": {
                "roleDefinitionId": f"/subscriptions/{subscription}/providers/{ROLE_DEFINITION_PROVIDER}/{role_id}",
                "principalId": spec.principal_id,
                "principalType": spec.principal_type,
            }
        },
        depends_on=frozenset({scope.reference}),
    )


def get_templates() -> list[CollectionTemplate]:
    return [
        CollectionTemplate(
            key="role_assignment",
            kind="role_assignment",
            scope=FINALIZE_SCOPE,
            rows=lambda ctx: ctx.topology.role_assignments,
            builder=_build_role_assignment,
            description="RBAC grants resolved after every tier is merged.",
        ),
    ]
