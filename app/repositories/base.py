# app/repositories/base.py

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from app.models.enums import ApprovalStatus, SubjectType
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import RoleAssignment


class WorkflowRepository(ABC):
    """
    Storage the workflow engine reads and writes through.

    save_subject is a compare-and-set: it only writes when the stored status
    still equals `expected_prior_status`, otherwise it raises Conflict. That
    single check is what serializes concurrent approve/reject calls.
    """

    # --- Subjects ---
    @abstractmethod
    async def load_subject(self, subject_id: str) -> ApprovalSubject:
        """Raises NotFound."""

    @abstractmethod
    async def save_subject(self, subject: ApprovalSubject, expected_prior_status: ApprovalStatus) -> ApprovalSubject:
        """Raises Conflict if the stored status moved, NotFound if the row is gone."""

    @abstractmethod
    async def add_subject(self, subject: ApprovalSubject) -> ApprovalSubject:
        """Raises Conflict on duplicate id."""

    @abstractmethod
    async def list_subjects(
        self,
        subject_type: Optional[SubjectType] = None,
        statuses: Optional[Sequence[ApprovalStatus]] = None,
        owner_id: Optional[str] = None,
    ) -> List[ApprovalSubject]:
        ...

    # --- Role assignments ---
    @abstractmethod
    async def load_active_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        ...

    @abstractmethod
    async def assign_role(self, assignment: RoleAssignment) -> RoleAssignment:
        """Raises Conflict if (user, role) already has an active assignment."""

    @abstractmethod
    async def revoke_role(self, user_id: str, role_id: str) -> RoleAssignment:
        """Deactivates the active assignment. Raises NotFound if there is none."""
