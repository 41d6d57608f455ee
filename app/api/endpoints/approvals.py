from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_actor, get_repository
from app.models.enums import SubjectType
from app.repositories.base import WorkflowRepository
from app.schemas.approval import (
    ApprovalSubject,
    PayloadUpdate,
    RejectRequest,
    SubjectCreate,
    SubjectRead,
)
from app.schemas.rbac import Actor
from app.services import approval_service
from app.services.state_machine import available_actions

router = APIRouter(
    prefix="/api/approvals",
    tags=["Approvals"]
)


def _read(subject: ApprovalSubject, actor: Actor) -> SubjectRead:
    return SubjectRead(
        **subject.model_dump(),
        available_actions=available_actions(subject, actor),
    )


# ===================================================================
# CREATE / LIST / READ / EDIT
# ===================================================================
@router.post("/", response_model=SubjectRead, status_code=status.HTTP_201_CREATED)
async def create_subject(
    body: SubjectCreate,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.create_subject(
        repository, actor, body.subject_type, body.payload, subject_id=body.id
    )
    return _read(subject, actor)


@router.get("/mine", response_model=List[SubjectRead])
async def list_my_subjects(
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subjects = await approval_service.list_owned(repository, actor)
    return [_read(s, actor) for s in subjects]


@router.get("/queue/{subject_type}", response_model=List[SubjectRead])
async def approval_queue(
    subject_type: SubjectType,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    """Documents waiting at a level the caller is allowed to decide."""
    subjects = await approval_service.list_awaiting_decision(repository, actor, subject_type)
    return [_read(s, actor) for s in subjects]


@router.get("/{subject_id}", response_model=SubjectRead)
async def get_subject(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.get_subject(repository, subject_id)
    return _read(subject, actor)


@router.patch("/{subject_id}", response_model=SubjectRead)
async def update_payload(
    subject_id: str,
    body: PayloadUpdate,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.update_payload(repository, subject_id, actor, body.payload)
    return _read(subject, actor)


# ===================================================================
# TRANSITIONS
# ===================================================================
@router.post("/{subject_id}/submit", response_model=SubjectRead)
async def submit(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.submit(repository, subject_id, actor)
    return _read(subject, actor)


@router.post("/{subject_id}/resubmit", response_model=SubjectRead)
async def resubmit(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.resubmit(repository, subject_id, actor)
    return _read(subject, actor)


@router.post("/{subject_id}/approve-level-1", response_model=SubjectRead)
async def approve_level_1(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.approve_level_1(repository, subject_id, actor)
    return _read(subject, actor)


@router.post("/{subject_id}/approve", response_model=SubjectRead)
async def approve_final(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.approve_final(repository, subject_id, actor)
    return _read(subject, actor)


@router.post("/{subject_id}/reject", response_model=SubjectRead)
async def reject(
    subject_id: str,
    body: RejectRequest,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.reject(repository, subject_id, actor, body.reason)
    return _read(subject, actor)


@router.post("/{subject_id}/cancel", response_model=SubjectRead)
async def cancel(
    subject_id: str,
    actor: Actor = Depends(get_current_actor),
    repository: WorkflowRepository = Depends(get_repository),
):
    subject = await approval_service.cancel(repository, subject_id, actor)
    return _read(subject, actor)
