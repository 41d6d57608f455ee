# app/api/endpoints/rbac.py

from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_actor, get_repository, require_role_admin
from app.repositories.base import WorkflowRepository
from app.schemas.rbac import (
    Actor,
    CapabilitySnapshot,
    RoleAssignment,
    RoleAssignmentCreate,
    RoleRead,
)
from app.services import role_service

router = APIRouter(prefix="/api/rbac", tags=["RBAC"])


# -------------------------------------------------------------------
# WHAT CAN I DO? (drives menus and buttons on the client)
# -------------------------------------------------------------------
@router.get("/me", response_model=CapabilitySnapshot)
async def my_capabilities(actor: Actor = Depends(get_current_actor)):
    return role_service.capabilities(actor)


@router.get("/roles", response_model=List[RoleRead])
async def list_roles(_: Actor = Depends(get_current_actor)):
    return role_service.role_catalog()


# -------------------------------------------------------------------
# ROLE ASSIGNMENTS (super-admin tooling)
# -------------------------------------------------------------------
@router.post("/assignments", response_model=RoleAssignment, status_code=status.HTTP_201_CREATED)
async def grant_role(
    body: RoleAssignmentCreate,
    granter: Actor = Depends(require_role_admin),
    repository: WorkflowRepository = Depends(get_repository),
):
    return await role_service.grant_role(repository, granter, body.user_id, body.role_id, body.scope)


@router.delete("/assignments/{user_id}/{role_id}", response_model=RoleAssignment)
async def revoke_role(
    user_id: str,
    role_id: str,
    granter: Actor = Depends(require_role_admin),
    repository: WorkflowRepository = Depends(get_repository),
):
    return await role_service.revoke_role(repository, granter, user_id, role_id)
