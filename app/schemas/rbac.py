# app/schemas/rbac.py

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field


# ============================================================
# ROLE ASSIGNMENT (persisted record, as the engine sees it)
# ============================================================
class RoleAssignment(BaseModel):
    user_id: str
    # Raw id from the store; may not be a catalog role
    role_id: str
    scope: Optional[str] = None        # e.g. department id
    is_active: bool = True
    assigned_by: Optional[str] = None
    assigned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True


class RoleAssignmentCreate(BaseModel):
    user_id: str
    role_id: str
    scope: Optional[str] = None


# ============================================================
# ACTOR → who is calling, with roles resolved for this request
# ============================================================
class Actor(BaseModel):
    user_id: str
    roles: List[str] = []

    @classmethod
    def from_assignments(cls, user_id: str, assignments: Iterable[RoleAssignment]) -> "Actor":
        roles = []
        for assignment in assignments:
            if assignment.is_active and assignment.user_id == user_id and assignment.role_id not in roles:
                roles.append(assignment.role_id)
        return cls(user_id=user_id, roles=roles)


# ============================================================
# READ MODELS
# ============================================================
class CapabilitySnapshot(BaseModel):
    user_id: str
    roles: List[str]
    highest_role: Optional[str]
    role_display_name: Optional[str]
    is_admin: bool
    is_super_admin: bool
    permissions: List[str]
    modules: List[str]


class RoleRead(BaseModel):
    role: str
    label: str
    permissions: List[str]
    modules: List[str]
