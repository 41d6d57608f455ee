# app/services/state_machine.py
"""
Pure approval transitions.

Every function takes the current subject and the acting user and returns a
NEW subject with status and metadata changed together. Nothing here touches
storage; a raised error means nothing changed.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.chains import chain_for
from app.core.exceptions import InvalidTransition, MissingReason, Unauthorized
from app.core.rbac import has_permission
from app.models.enums import ApprovalStatus, SubjectType
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import Actor

# Fields wiped whenever a subject goes (back) to the front of its chain
_CLEARED_ON_SUBMIT = {
    "hod_approved_at": None,
    "hod_approved_by": None,
    "decided_at": None,
    "decided_by": None,
    "rejection_reason": None,
}


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _label(status) -> str:
    return getattr(status, "value", status)


def _require_owner(subject: ApprovalSubject, actor: Actor, action: str):
    if actor.user_id != subject.owner_id:
        raise Unauthorized(f"Only the owner can {action} this {_label(subject.subject_type)}")


def _require_status(subject: ApprovalSubject, allowed, action: str):
    if subject.status not in allowed:
        raise InvalidTransition(
            f"Cannot {action} a {_label(subject.subject_type)} in status '{_label(subject.status)}'"
        )


def _require_permission(subject: ApprovalSubject, actor: Actor, permission, action: str):
    # Checked against the roles the actor holds right now, never a cached decision
    if permission is None or not has_permission(actor.roles, permission):
        raise Unauthorized(
            f"Actor '{actor.user_id}' is not allowed to {action} this {_label(subject.subject_type)}"
        )


# ----------------------------------------------------------
# CREATION / EDITING
# ----------------------------------------------------------
def create(
    subject_type: SubjectType,
    owner: Actor,
    payload: Optional[Dict[str, Any]] = None,
    subject_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ApprovalSubject:
    """New subject in its chain's first status. Leave-like subjects are born pending."""
    chain = chain_for(subject_type)
    now = _now(now)

    fields = {
        "subject_type": chain.subject_type,
        "owner_id": owner.user_id,
        "status": chain.initial_status,
        "created_at": now,
        "payload": dict(payload or {}),
    }
    if subject_id:
        fields["id"] = subject_id
    if not chain.has_draft:
        fields["submitted_at"] = now

    return ApprovalSubject(**fields)


def update_payload(subject: ApprovalSubject, actor: Actor, payload: Dict[str, Any]) -> ApprovalSubject:
    """Owner edits content while the document is still theirs (draft, or rejected and resubmittable)."""
    chain = chain_for(subject.subject_type)
    editable = (ApprovalStatus.Draft, ApprovalStatus.Rejected) if chain.allows_resubmission else (ApprovalStatus.Draft,)
    _require_status(subject, editable, "edit")
    _require_owner(subject, actor, "edit")
    return subject.model_copy(update={"payload": dict(payload)})


# ----------------------------------------------------------
# TRANSITIONS
# ----------------------------------------------------------
def submit(subject: ApprovalSubject, actor: Actor, now: Optional[datetime] = None) -> ApprovalSubject:
    chain = chain_for(subject.subject_type)
    _require_status(subject, (ApprovalStatus.Draft,), "submit")
    _require_owner(subject, actor, "submit")

    return subject.model_copy(update={
        **_CLEARED_ON_SUBMIT,
        "status": chain.pending_status,
        "submitted_at": _now(now),
    })


def resubmit(subject: ApprovalSubject, actor: Actor, now: Optional[datetime] = None) -> ApprovalSubject:
    chain = chain_for(subject.subject_type)
    if not chain.allows_resubmission:
        raise InvalidTransition(f"A rejected {_label(subject.subject_type)} cannot be resubmitted")
    _require_status(subject, (ApprovalStatus.Rejected,), "resubmit")
    _require_owner(subject, actor, "resubmit")

    return subject.model_copy(update={
        **_CLEARED_ON_SUBMIT,
        "status": chain.pending_status,
        "submitted_at": _now(now),
    })


def approve_level_1(subject: ApprovalSubject, actor: Actor, now: Optional[datetime] = None) -> ApprovalSubject:
    chain = chain_for(subject.subject_type)
    if not chain.is_two_level:
        raise InvalidTransition(f"A {_label(subject.subject_type)} has no first approval level")
    _require_status(subject, (chain.pending_status,), "approve (level 1)")
    _require_permission(subject, actor, chain.level_1_permission, "approve (level 1)")

    return subject.model_copy(update={
        "status": ApprovalStatus.HodApproved,
        "hod_approved_at": _now(now),
        "hod_approved_by": actor.user_id,
    })


def approve_final(subject: ApprovalSubject, actor: Actor, now: Optional[datetime] = None) -> ApprovalSubject:
    """Single-level: from pending. Two-level: only from hod_approved, no skipping."""
    chain = chain_for(subject.subject_type)
    _require_status(subject, (chain.awaiting_final_status,), "approve")
    _require_permission(subject, actor, chain.final_permission, "approve")

    return subject.model_copy(update={
        "status": chain.approved_status,
        "decided_at": _now(now),
        "decided_by": actor.user_id,
    })


def reject(
    subject: ApprovalSubject,
    actor: Actor,
    reason: Optional[str],
    now: Optional[datetime] = None,
    min_reason_length: int = 1,
) -> ApprovalSubject:
    chain = chain_for(subject.subject_type)
    _require_status(subject, chain.undecided_statuses, "reject")
    # Whoever would approve the level currently pending may reject it
    _require_permission(subject, actor, chain.permission_for(subject.status), "reject")

    reason = (reason or "").strip()
    if len(reason) < max(min_reason_length, 1):
        raise MissingReason("A rejection reason is required")

    return subject.model_copy(update={
        "status": ApprovalStatus.Rejected,
        "rejection_reason": reason,
        "decided_at": _now(now),
        "decided_by": actor.user_id,
    })


def cancel(subject: ApprovalSubject, actor: Actor, now: Optional[datetime] = None) -> ApprovalSubject:
    chain = chain_for(subject.subject_type)
    if not chain.cancellable:
        raise InvalidTransition(f"A {_label(subject.subject_type)} cannot be cancelled")
    _require_status(subject, (chain.pending_status,), "cancel")
    _require_owner(subject, actor, "cancel")

    return subject.model_copy(update={"status": ApprovalStatus.Cancelled})


TRANSITIONS = {
    "submit": submit,
    "resubmit": resubmit,
    "approve_level_1": approve_level_1,
    "approve_final": approve_final,
    "reject": reject,
    "cancel": cancel,
}


def available_actions(subject: ApprovalSubject, actor: Actor) -> list[str]:
    """Transitions `actor` could invoke on `subject` right now."""
    actions = []
    for name, transition in TRANSITIONS.items():
        try:
            if name == "reject":
                transition(subject, actor, "reason")
            else:
                transition(subject, actor)
        except (InvalidTransition, Unauthorized):
            continue
        actions.append(name)
    return actions
