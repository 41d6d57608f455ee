# app/repositories/sql.py

from typing import List, Optional, Sequence

from sqlmodel import select
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import Conflict, NotFound
from app.core.rbac import canonical_role_id
from app.models.approval_subject import ApprovalSubjectRecord
from app.models.enums import ApprovalStatus, SubjectType
from app.models.role_assignment import RoleAssignmentRecord
from app.repositories.base import WorkflowRepository
from app.schemas.approval import ApprovalSubject
from app.schemas.rbac import RoleAssignment

# Columns rewritten by a transition (id / owner / type / created_at never change)
_MUTABLE_COLUMNS = (
    "status",
    "submitted_at",
    "hod_approved_at",
    "hod_approved_by",
    "decided_at",
    "decided_by",
    "rejection_reason",
    "payload",
)


def _to_subject(record: ApprovalSubjectRecord) -> ApprovalSubject:
    return ApprovalSubject.model_validate(record)


def _to_assignment(record: RoleAssignmentRecord) -> RoleAssignment:
    return RoleAssignment.model_validate(record)


class SqlWorkflowRepository(WorkflowRepository):
    """
    SQLModel-backed store. Each call runs in its own short session so a
    transition never holds a transaction open across the engine's logic.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # ----------------------------------------------------------
    # SUBJECTS
    # ----------------------------------------------------------
    async def load_subject(self, subject_id: str) -> ApprovalSubject:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ApprovalSubjectRecord).where(ApprovalSubjectRecord.id == subject_id)
            )
            record = result.scalar_one_or_none()

        if not record:
            raise NotFound(f"Subject '{subject_id}' not found")
        return _to_subject(record)

    async def save_subject(self, subject: ApprovalSubject, expected_prior_status: ApprovalStatus) -> ApprovalSubject:
        values = {column: getattr(subject, column) for column in _MUTABLE_COLUMNS}

        async with self.session_factory() as session:
            # Compare-and-set: only the writer that still sees the prior status wins
            result = await session.execute(
                update(ApprovalSubjectRecord)
                .where(
                    (ApprovalSubjectRecord.id == subject.id)
                    & (ApprovalSubjectRecord.status == expected_prior_status)
                )
                .values(**values)
            )

            if result.rowcount == 1:
                await session.commit()
                return subject

            await session.rollback()

            exists = await session.execute(
                select(ApprovalSubjectRecord.status).where(ApprovalSubjectRecord.id == subject.id)
            )
            current = exists.scalar_one_or_none()

        if current is None:
            raise NotFound(f"Subject '{subject.id}' not found")
        raise Conflict(
            f"Subject '{subject.id}' changed concurrently "
            f"(expected '{expected_prior_status.value}', found '{ApprovalStatus(current).value}')"
        )

    async def add_subject(self, subject: ApprovalSubject) -> ApprovalSubject:
        record = ApprovalSubjectRecord(**subject.model_dump())

        async with self.session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise Conflict(f"Subject '{subject.id}' already exists")

        return subject

    async def list_subjects(
        self,
        subject_type: Optional[SubjectType] = None,
        statuses: Optional[Sequence[ApprovalStatus]] = None,
        owner_id: Optional[str] = None,
    ) -> List[ApprovalSubject]:
        query = select(ApprovalSubjectRecord).order_by(ApprovalSubjectRecord.created_at.desc())

        if subject_type is not None:
            query = query.where(ApprovalSubjectRecord.subject_type == subject_type)
        if statuses is not None:
            query = query.where(ApprovalSubjectRecord.status.in_(list(statuses)))
        if owner_id is not None:
            query = query.where(ApprovalSubjectRecord.owner_id == owner_id)

        async with self.session_factory() as session:
            result = await session.execute(query)
            records = result.scalars().all()

        return [_to_subject(r) for r in records]

    # ----------------------------------------------------------
    # ROLE ASSIGNMENTS
    # ----------------------------------------------------------
    async def load_active_role_assignments(self, user_id: str) -> List[RoleAssignment]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RoleAssignmentRecord).where(
                    (RoleAssignmentRecord.user_id == user_id)
                    & (RoleAssignmentRecord.is_active == True)  # noqa: E712
                )
            )
            records = result.scalars().all()

        return [_to_assignment(r) for r in records]

    async def _active_assignments(self, session, user_id: str, role_id: str) -> List[RoleAssignmentRecord]:
        # Compared on canonical ids so "HOD" rows from older writers still match "hod"
        result = await session.execute(
            select(RoleAssignmentRecord).where(
                (RoleAssignmentRecord.user_id == user_id)
                & (RoleAssignmentRecord.is_active == True)  # noqa: E712
            )
        )
        return [r for r in result.scalars().all() if canonical_role_id(r.role_id) == role_id]

    async def assign_role(self, assignment: RoleAssignment) -> RoleAssignment:
        role_id = canonical_role_id(assignment.role_id)
        stored = assignment.model_copy(update={"role_id": role_id})

        async with self.session_factory() as session:
            if await self._active_assignments(session, assignment.user_id, role_id):
                raise Conflict(
                    f"User '{assignment.user_id}' already holds an active '{role_id}' assignment"
                )

            session.add(RoleAssignmentRecord(**stored.model_dump()))
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent grant won the partial unique index
                await session.rollback()
                raise Conflict(
                    f"User '{assignment.user_id}' already holds an active '{role_id}' assignment"
                )

        return stored

    async def revoke_role(self, user_id: str, role_id: str) -> RoleAssignment:
        role_id = canonical_role_id(role_id)

        async with self.session_factory() as session:
            records = await self._active_assignments(session, user_id, role_id)
            if not records:
                raise NotFound(f"No active '{role_id}' assignment for user '{user_id}'")

            for record in records:
                record.is_active = False
                session.add(record)
            await session.commit()

            return _to_assignment(records[0])
