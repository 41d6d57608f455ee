# app/models/approval_subject.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, String, Text, JSON
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional, Dict, Any

from app.models.enums import ApprovalStatus, SubjectType


def _enum_values(enum_cls):
    # Persist "hod_approved", not the member name "HodApproved"
    return [member.value for member in enum_cls]


class ApprovalSubjectRecord(SQLModel, table=True):
    __tablename__ = "approval_subjects"

    id: str = Field(
        sa_column=Column(String(64), primary_key=True)
    )

    subject_type: SubjectType = Field(
        sa_column=Column(
            SAEnum(SubjectType, name="subject_type", values_callable=_enum_values),
            nullable=False,
            index=True,
        )
    )

    owner_id: str = Field(
        sa_column=Column(String(64), nullable=False, index=True)
    )

    # Compared-and-set on every transition
    status: ApprovalStatus = Field(
        sa_column=Column(
            SAEnum(ApprovalStatus, name="approval_status", values_callable=_enum_values),
            nullable=False,
            index=True,
        )
    )

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    submitted_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    hod_approved_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    hod_approved_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )

    decided_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    decided_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )

    rejection_reason: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True)
    )

    payload: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False)
    )
