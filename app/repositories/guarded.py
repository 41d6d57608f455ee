# app/repositories/guarded.py

import asyncio
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import Unavailable
from app.models.enums import ApprovalStatus, SubjectType
from app.repositories.base import WorkflowRepository
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import RoleAssignment


class TimeoutGuardedRepository(WorkflowRepository):
    """
    Wraps another repository with a bounded timeout per call and turns
    outages into Unavailable.

    Reads fail as retryable. Writes fail as outcome_unknown: the row may or
    may not have changed, so the caller re-fetches instead of re-saving.
    """

    def __init__(self, inner: WorkflowRepository, timeout_seconds: float):
        self.inner = inner
        self.timeout_seconds = timeout_seconds

    async def _read(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Repository read '{operation}' timed out after {self.timeout_seconds}s")
            raise Unavailable(f"Storage did not answer '{operation}' in time", retryable=True)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository read '{operation}' failed: {e}")
            raise Unavailable(f"Storage unavailable during '{operation}'", retryable=True)

    async def _write(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Repository write '{operation}' timed out, outcome unknown")
            raise Unavailable(
                f"Storage did not confirm '{operation}'; reload and retry the change",
                outcome_unknown=True,
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository write '{operation}' failed: {e}")
            raise Unavailable(
                f"Storage failed during '{operation}'; reload and retry the change",
                outcome_unknown=True,
            )

    # --- Subjects ---
    async def load_subject(self, subject_id: str) -> ApprovalSubject:
        return await self._read("load_subject", self.inner.load_subject(subject_id))

    async def save_subject(self, subject: ApprovalSubject, expected_prior_status: ApprovalStatus) -> ApprovalSubject:
        return await self._write("save_subject", self.inner.save_subject(subject, expected_prior_status))

    async def add_subject(self, subject: ApprovalSubject) -> ApprovalSubject:
        return await self._write("add_subject", self.inner.add_subject(subject))

    async def list_subjects(
        self,
        subject_type: Optional[SubjectType] = None,
        statuses: Optional[Sequence[ApprovalStatus]] = None,
        owner_id: Optional[str] = None,
    ) -> List[ApprovalSubject]:
        return await self._read(
            "list_subjects",
            self.inner.list_subjects(subject_type=subject_type, statuses=statuses, owner_id=owner_id),
        )

    # --- Role assignments ---
    async def load_active_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        return await self._read("load_active_role_assignments", self.inner.load_active_role_assignments(user_id))

    async def assign_role(self, assignment: RoleAssignment) -> RoleAssignment:
        return await self._write("assign_role", self.inner.assign_role(assignment))

    async def revoke_role(self, user_id: str, role_id: str) -> RoleAssignment:
        return await self._write("revoke_role", self.inner.revoke_role(user_id, role_id))
