# app/schemas/approval.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, Field

from app.models.enums import ApprovalStatus, SubjectType


# ============================================================
# APPROVAL SUBJECT → any document moving through a chain
# ============================================================
class ApprovalSubject(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    subject_type: SubjectType
    owner_id: str
    status: ApprovalStatus
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    submitted_at: Optional[datetime] = None

    # First level of two-level chains
    hod_approved_at: Optional[datetime] = None
    hod_approved_by: Optional[str] = None

    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    rejection_reason: Optional[str] = None

    # Planner topics, diary entries, leave dates... opaque to the engine
    payload: Dict[str, Any] = {}

    class Config:
        from_attributes = True


# ============================================================
# REQUESTS
# ============================================================
class SubjectCreate(BaseModel):
    id: Optional[str] = None
    subject_type: SubjectType
    payload: Dict[str, Any] = {}


class PayloadUpdate(BaseModel):
    payload: Dict[str, Any]


class RejectRequest(BaseModel):
    reason: Optional[str] = None


# ============================================================
# RESPONSES
# ============================================================
class SubjectRead(ApprovalSubject):
    available_actions: List[str] = []
