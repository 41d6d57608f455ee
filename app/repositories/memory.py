# app/repositories/memory.py

import asyncio
from typing import Dict, List, Optional, Sequence

from app.core.exceptions import Conflict, NotFound
from app.core.rbac import canonical_role_id
from app.models.enums import ApprovalStatus, SubjectType
from app.repositories.base import WorkflowRepository
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import RoleAssignment


class InMemoryWorkflowRepository(WorkflowRepository):
    """
    Dict-backed store for tests and local tooling.
    Copies go in and out so callers never alias stored state.
    """

    def __init__(self):
        self._subjects: Dict[str, ApprovalSubject] = {}
        self._assignments: List[RoleAssignment] = []
        self._lock = asyncio.Lock()

    # --- Subjects ---
    async def load_subject(self, subject_id: str) -> ApprovalSubject:
        subject = self._subjects.get(subject_id)
        if subject is None:
            raise NotFound(f"Subject '{subject_id}' not found")
        return subject.model_copy(deep=True)

    async def save_subject(self, subject: ApprovalSubject, expected_prior_status: ApprovalStatus) -> ApprovalSubject:
        async with self._lock:
            stored = self._subjects.get(subject.id)
            if stored is None:
                raise NotFound(f"Subject '{subject.id}' not found")
            if stored.status != expected_prior_status:
                raise Conflict(
                    f"Subject '{subject.id}' changed concurrently "
                    f"(expected '{expected_prior_status.value}', found '{stored.status.value}')"
                )
            self._subjects[subject.id] = subject.model_copy(deep=True)
        return subject

    async def add_subject(self, subject: ApprovalSubject) -> ApprovalSubject:
        async with self._lock:
            if subject.id in self._subjects:
                raise Conflict(f"Subject '{subject.id}' already exists")
            self._subjects[subject.id] = subject.model_copy(deep=True)
        return subject

    async def list_subjects(
        self,
        subject_type: Optional[SubjectType] = None,
        statuses: Optional[Sequence[ApprovalStatus]] = None,
        owner_id: Optional[str] = None,
    ) -> List[ApprovalSubject]:
        found = []
        for subject in self._subjects.values():
            if subject_type is not None and subject.subject_type != subject_type:
                continue
            if statuses is not None and subject.status not in statuses:
                continue
            if owner_id is not None and subject.owner_id != owner_id:
                continue
            found.append(subject.model_copy(deep=True))
        return sorted(found, key=lambda s: s.created_at, reverse=True)

    # --- Role assignments ---
    async def load_active_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        return [
            a.model_copy() for a in self._assignments
            if a.user_id == user_id and a.is_active
        ]

    async def assign_role(self, assignment: RoleAssignment) -> RoleAssignment:
        role_id = canonical_role_id(assignment.role_id)
        async with self._lock:
            for existing in self._assignments:
                if (
                    existing.is_active
                    and existing.user_id == assignment.user_id
                    and canonical_role_id(existing.role_id) == role_id
                ):
                    raise Conflict(
                        f"User '{assignment.user_id}' already holds an active '{role_id}' assignment"
                    )
            stored = assignment.model_copy(update={"role_id": role_id})
            self._assignments.append(stored)
        return stored.model_copy()

    async def revoke_role(self, user_id: str, role_id: str) -> RoleAssignment:
        role_id = canonical_role_id(role_id)
        revoked = []
        async with self._lock:
            for index, existing in enumerate(self._assignments):
                if (
                    existing.is_active
                    and existing.user_id == user_id
                    and canonical_role_id(existing.role_id) == role_id
                ):
                    # Spelling variants written before ids were canonical go too
                    self._assignments[index] = existing.model_copy(update={"is_active": False})
                    revoked.append(self._assignments[index])

        if not revoked:
            raise NotFound(f"No active '{role_id}' assignment for user '{user_id}'")
        return revoked[0].model_copy()
