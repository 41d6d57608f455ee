# app/services/approval_service.py

from typing import Any, Dict, List, Optional

from loguru import logger

from app.core.chains import chain_for
from app.core.config import settings
from app.core.exceptions import Conflict, WorkflowError
from app.core.rbac import has_permission
from app.models.enums import SubjectType
from app.repositories.base import WorkflowRepository
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import Actor
from app.services import state_machine


async def _apply(repository: WorkflowRepository, subject_id: str, actor: Actor, action: str, transition, *args):
    """
    Load -> transition -> compare-and-set save.
    The save only lands if nobody moved the subject since we loaded it.
    """
    subject = await repository.load_subject(subject_id)
    prior_status = subject.status

    try:
        updated = transition(subject, actor, *args)
    except WorkflowError as e:
        logger.warning(f"Refused {action} on {subject_id} by {actor.user_id}: {e.message}")
        raise

    try:
        saved = await repository.save_subject(updated, expected_prior_status=prior_status)
    except Conflict:
        logger.warning(f"Lost race on {subject_id}: {action} by {actor.user_id} from '{prior_status.value}'")
        raise

    logger.info(
        f"{subject.subject_type.value} {subject_id}: {prior_status.value} -> {saved.status.value} "
        f"({action} by {actor.user_id})"
    )
    return saved


# ===================================================================
# CREATE / READ / EDIT
# ===================================================================
async def create_subject(
    repository: WorkflowRepository,
    owner: Actor,
    subject_type: SubjectType,
    payload: Optional[Dict[str, Any]] = None,
    subject_id: Optional[str] = None,
) -> ApprovalSubject:
    subject = state_machine.create(subject_type, owner, payload, subject_id=subject_id)
    await repository.add_subject(subject)
    logger.info(f"{subject.subject_type.value} {subject.id} created by {owner.user_id} as '{subject.status.value}'")
    return subject


async def get_subject(repository: WorkflowRepository, subject_id: str) -> ApprovalSubject:
    return await repository.load_subject(subject_id)


async def update_payload(
    repository: WorkflowRepository, subject_id: str, actor: Actor, payload: Dict[str, Any]
) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "edit", state_machine.update_payload, payload)


# ===================================================================
# TRANSITIONS (the only legal ways to change a subject's status)
# ===================================================================
async def submit(repository: WorkflowRepository, subject_id: str, actor: Actor) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "submit", state_machine.submit)


async def resubmit(repository: WorkflowRepository, subject_id: str, actor: Actor) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "resubmit", state_machine.resubmit)


async def approve_level_1(repository: WorkflowRepository, subject_id: str, actor: Actor) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "approve_level_1", state_machine.approve_level_1)


async def approve_final(repository: WorkflowRepository, subject_id: str, actor: Actor) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "approve_final", state_machine.approve_final)


async def reject(
    repository: WorkflowRepository, subject_id: str, actor: Actor, reason: Optional[str]
) -> ApprovalSubject:
    def _reject(subject, who):
        return state_machine.reject(
            subject, who, reason, min_reason_length=settings.MIN_REJECTION_REASON_LENGTH
        )

    return await _apply(repository, subject_id, actor, "reject", _reject)


async def cancel(repository: WorkflowRepository, subject_id: str, actor: Actor) -> ApprovalSubject:
    return await _apply(repository, subject_id, actor, "cancel", state_machine.cancel)


# ===================================================================
# QUEUES
# ===================================================================
async def list_awaiting_decision(
    repository: WorkflowRepository, actor: Actor, subject_type: SubjectType
) -> List[ApprovalSubject]:
    """
    Subjects of `subject_type` sitting at a level this actor may decide.
    A principal sees hod_approved diaries, an HOD sees submitted ones.
    """
    chain = chain_for(subject_type)
    statuses = [
        status for status in chain.undecided_statuses
        if has_permission(actor.roles, chain.permission_for(status))
    ]
    if not statuses:
        return []
    return await repository.list_subjects(subject_type=chain.subject_type, statuses=statuses)


async def list_owned(repository: WorkflowRepository, actor: Actor) -> List[ApprovalSubject]:
    return await repository.list_subjects(owner_id=actor.user_id)
