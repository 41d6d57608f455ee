# app/core/database.py

import ssl

from loguru import logger
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from app.core.config import settings

# Table registration for SQLModel.metadata
from app.models.approval_subject import ApprovalSubjectRecord  # noqa: F401
from app.models.role_assignment import RoleAssignmentRecord  # noqa: F401


# ----------------------------------------------------
# SSL for hosted Postgres
# ----------------------------------------------------
def make_ssl():
    ctx = ssl.create_default_context()
    if not settings.DB_SSL_VERIFY:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql+asyncpg"):
        # AsyncPG SAFE Config (works behind pgbouncer-style poolers)
        return {
            "ssl": make_ssl(),
            "statement_cache_size": 0,            # disable prepared statements
            "prepared_statement_name_func": None  # prevent SQLAlchemy from naming statements
        }
    return {}


# ----------------------------------------------------
# Engine (NO POOLING → pooler / sqlite file handles it)
# ----------------------------------------------------
def build_engine(url: str) -> AsyncEngine:
    logger.info(f"Configuring database engine ({url.split(':', 1)[0]})")
    return create_async_engine(
        url,
        echo=False,
        future=True,
        connect_args=_connect_args(url),
        pool_pre_ping=True,
        poolclass=NullPool,
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False
    )


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = build_sessionmaker(engine)


# ----------------------------------------------------
# Create tables
# ----------------------------------------------------
async def init_db(bind: AsyncEngine = None):
    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# ----------------------------------------------------
# Test Connection (SAFE)
# ----------------------------------------------------
async def test_connection():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
        logger.success("DB Connection OK")
