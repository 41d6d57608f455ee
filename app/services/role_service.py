# app/services/role_service.py

from loguru import logger

from app.core.exceptions import Unauthorized
from app.core import rbac
from app.repositories.base import WorkflowRepository
from app.schemas.rbac import Actor, CapabilitySnapshot, RoleAssignment, RoleRead


async def resolve_actor(repository: WorkflowRepository, user_id: str) -> Actor:
    """Fresh role lookup for every request; nothing is cached between calls."""
    assignments = await repository.load_active_role_assignments(user_id)
    return Actor.from_assignments(user_id, assignments)


def _value(item) -> str:
    return getattr(item, "value", item)


def capabilities(actor: Actor) -> CapabilitySnapshot:
    top = rbac.highest_role(actor.roles)
    return CapabilitySnapshot(
        user_id=actor.user_id,
        roles=list(actor.roles),
        highest_role=_value(top) if top is not None else None,
        role_display_name=rbac.role_display_name(top) if top is not None else None,
        is_admin=rbac.is_admin(actor.roles),
        is_super_admin=rbac.is_super_admin(actor.roles),
        permissions=sorted(p.value for p in rbac.user_permissions(actor.roles)),
        modules=sorted(m.value for m in rbac.accessible_modules(actor.roles)),
    )


def role_catalog() -> list[RoleRead]:
    return [
        RoleRead(
            role=role.value,
            label=rbac.ROLE_LABELS[role],
            permissions=sorted(p.value for p in rbac.ROLE_PERMISSIONS[role]),
            modules=sorted(m.value for m in rbac.accessible_modules([role])),
        )
        for role in rbac.Role
    ]


# ----------------------------------------------------------
# GRANT / REVOKE
# ----------------------------------------------------------
async def grant_role(
    repository: WorkflowRepository, granter: Actor, user_id: str, role_id: str, scope: str = None
) -> RoleAssignment:
    if not rbac.has_permission(granter.roles, rbac.Permission.CREATE_DELETE_ADMINS):
        raise Unauthorized(f"Actor '{granter.user_id}' cannot assign roles")

    assignment = RoleAssignment(
        user_id=user_id,
        role_id=rbac.canonical_role_id(role_id),
        scope=scope,
        assigned_by=granter.user_id,
    )
    await repository.assign_role(assignment)
    logger.info(f"Role '{assignment.role_id}' granted to {user_id} by {granter.user_id}")
    return assignment


async def revoke_role(
    repository: WorkflowRepository, granter: Actor, user_id: str, role_id: str
) -> RoleAssignment:
    if not rbac.has_permission(granter.roles, rbac.Permission.CREATE_DELETE_ADMINS):
        raise Unauthorized(f"Actor '{granter.user_id}' cannot revoke roles")

    revoked = await repository.revoke_role(user_id, role_id)
    logger.info(f"Role '{role_id}' revoked from {user_id} by {granter.user_id}")
    return revoked
