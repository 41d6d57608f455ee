# app/main.py

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

# Import your core modules
from app.core.config import settings
from app.core.database import test_connection, init_db
from app.core.exceptions import Conflict, Unavailable, WorkflowError
from app.core.logging import configure_logging
from app.core.rbac import SUPER_ROLE, is_super_admin
from app.api.deps import get_repository
from app.repositories.base import WorkflowRepository
from app.services.role_service import resolve_actor
from app.schemas.rbac import RoleAssignment

# Routers
from app.api.endpoints import (
    approvals as approvals_router,
    rbac as rbac_router,
)

# ------------------------------------------------------------
# LOGURU CONFIGURATION
# ------------------------------------------------------------
configure_logging()

# ------------------------------------------------------------
# FASTAPI APP INIT
# ------------------------------------------------------------
app = FastAPI(
    title="School Approval Workflow Backend",
    version="1.0.0",
    description="Role-based access control and approval workflows for planners, diaries, leave and substitutions.",
)

DB_STATUS = "Connecting..."  # Initial state


# ------------------------------------------------------------
# WORKFLOW ERRORS → JSON
# ------------------------------------------------------------
@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    content = {"detail": exc.message, "error": type(exc).__name__}

    if isinstance(exc, Unavailable):
        content["retryable"] = exc.retryable
        content["outcome_unknown"] = exc.outcome_unknown
    if isinstance(exc, Conflict):
        # Someone else decided first; the client should reload the document
        content["reload"] = True

    return JSONResponse(status_code=exc.status_code, content=content)


# ------------------------------------------------------------
# CORS CONFIGURATION
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "*"],
)

# ------------------------------------------------------------
# REGISTER ROUTERS
# ------------------------------------------------------------
app.include_router(rbac_router.router)
app.include_router(approvals_router.router)


# ------------------------------------------------------------
# APPLICATION STARTUP EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    global DB_STATUS
    logger.info("Starting School Approval Workflow Backend...")

    # 1) Database connection test
    try:
        await test_connection()
        DB_STATUS = "Connected"
        logger.success("Database connection established.")
    except Exception:
        DB_STATUS = "Error"
        logger.exception("Startup aborted: Database connection failed.")
        return

    # 2) Initialize database tables
    try:
        await init_db()
        logger.success("Database tables ready.")
    except Exception as e:
        logger.warning(f"Table initialization encountered an issue: {e}")

    # 3) Bootstrap the first super admin
    if settings.SEED_SUPER_ADMIN_USER_ID:
        try:
            await seed_super_admin(settings.SEED_SUPER_ADMIN_USER_ID)
        except WorkflowError:
            logger.exception("Super Admin seeding failed.")

    logger.success("Backend startup completed successfully.\n")


async def seed_super_admin(user_id: str, repository: WorkflowRepository = None):
    repository = repository or get_repository()
    actor = await resolve_actor(repository, user_id)

    if is_super_admin(actor.roles):
        logger.info("Super Admin already assigned. Skipping.")
        return

    logger.info(f"Seeding Super Admin role for user {user_id}")
    await repository.assign_role(
        RoleAssignment(user_id=user_id, role_id=SUPER_ROLE.value, assigned_by="system")
    )
    logger.success("Super Admin assigned successfully.")


# ------------------------------------------------------------
# ROOT HEALTH CHECK
# ------------------------------------------------------------
@app.get("/", tags=["System"])
async def root():
    return {
        "status": "ok",
        "service": "School Approval Workflow Backend",
        "version": app.version,
        "database": DB_STATUS,
    }
