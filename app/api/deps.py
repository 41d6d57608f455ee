# app/api/deps.py

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.core.rbac import Permission, has_permission
from app.core.security import decode_token
from app.repositories.base import WorkflowRepository
from app.repositories.guarded import TimeoutGuardedRepository
from app.repositories.sql import SqlWorkflowRepository
from app.schemas.rbac import Actor
from app.services.role_service import resolve_actor


# ------------------------------------------------------------
# HTTP Bearer Authentication
# ------------------------------------------------------------
bearer_scheme = HTTPBearer(auto_error=True)


# ------------------------------------------------------------
# Repository (overridden in tests)
# ------------------------------------------------------------
_repository = TimeoutGuardedRepository(
    SqlWorkflowRepository(AsyncSessionLocal),
    timeout_seconds=settings.REPOSITORY_TIMEOUT_SECONDS,
)


def get_repository() -> WorkflowRepository:
    return _repository


# ------------------------------------------------------------
# Current actor: identity from the JWT, roles from the store
# ------------------------------------------------------------
async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    repository: WorkflowRepository = Depends(get_repository),
) -> Actor:

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token payload")

    return await resolve_actor(repository, str(user_id))


# ------------------------------------------------------------
# Permission gate (never compare role strings in routers)
# ------------------------------------------------------------
def require_permission(*permissions: Permission):
    """
    Passes when the actor holds ANY of `permissions`.
    super_admin always passes through has_permission.
    """

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not any(has_permission(actor.roles, p) for p in permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {', '.join(p.value for p in permissions)}"
            )
        return actor

    return checker


require_role_admin = require_permission(Permission.CREATE_DELETE_ADMINS)
