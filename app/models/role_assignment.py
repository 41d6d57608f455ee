# app/models/role_assignment.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, Index, Integer, String, text
from datetime import datetime
from typing import Optional


class RoleAssignmentRecord(SQLModel, table=True):
    __tablename__ = "user_roles"
    # At most one active assignment per (user, role); revoked rows are history
    __table_args__ = (
        Index(
            "uq_user_roles_active",
            "user_id",
            "role_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    user_id: str = Field(
        sa_column=Column(String(64), nullable=False, index=True)
    )

    # Plain string, not an enum: rows written by older clients may hold ids
    # the catalog no longer knows and must still load
    role_id: str = Field(
        sa_column=Column(String(64), nullable=False)
    )

    scope: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True)
    )

    assigned_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )

    assigned_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
