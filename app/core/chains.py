# app/core/chains.py

from dataclasses import dataclass
from typing import Optional

from app.core.rbac import APPROVAL_PERMISSIONS, Permission
from app.models.enums import ApprovalStatus, SubjectType


@dataclass(frozen=True)
class ApprovalChainShape:
    """
    The fixed approval path a document type walks.

    Single-level: [draft ->] pending_status -> approved_status | rejected
    Two-level:    draft -> submitted -> hod_approved -> approved_status,
                  rejected possible at either level.
    """
    subject_type: SubjectType
    has_draft: bool
    pending_status: ApprovalStatus
    final_permission: Permission
    approved_status: ApprovalStatus
    level_1_permission: Optional[Permission] = None
    cancellable: bool = False
    allows_resubmission: bool = True

    @property
    def is_two_level(self) -> bool:
        return self.level_1_permission is not None

    @property
    def initial_status(self) -> ApprovalStatus:
        return ApprovalStatus.Draft if self.has_draft else self.pending_status

    @property
    def awaiting_final_status(self) -> ApprovalStatus:
        """Status from which approve_final is legal."""
        return ApprovalStatus.HodApproved if self.is_two_level else self.pending_status

    @property
    def undecided_statuses(self) -> tuple[ApprovalStatus, ...]:
        """Statuses where an approver still has to act."""
        if self.is_two_level:
            return (self.pending_status, ApprovalStatus.HodApproved)
        return (self.pending_status,)

    @property
    def terminal_statuses(self) -> tuple[ApprovalStatus, ...]:
        terminal = [self.approved_status, ApprovalStatus.Cancelled]
        if not self.allows_resubmission:
            terminal.append(ApprovalStatus.Rejected)
        return tuple(terminal)

    def permission_for(self, status: ApprovalStatus) -> Optional[Permission]:
        """Permission needed to decide (approve or reject) a subject in `status`."""
        if status == self.pending_status:
            return self.level_1_permission if self.is_two_level else self.final_permission
        if self.is_two_level and status == ApprovalStatus.HodApproved:
            return self.final_permission
        return None


def _two_level(subject_type: SubjectType, approved_status: ApprovalStatus) -> ApprovalChainShape:
    levels = APPROVAL_PERMISSIONS[subject_type]
    return ApprovalChainShape(
        subject_type=subject_type,
        has_draft=True,
        pending_status=ApprovalStatus.Submitted,
        level_1_permission=levels["hod"],
        final_permission=levels["final"],
        approved_status=approved_status,
    )


CHAIN_SHAPES = {
    # HOD then Principal. Planner rows end in "approved"
    SubjectType.LessonPlanner: _two_level(SubjectType.LessonPlanner, ApprovalStatus.Approved),
    SubjectType.WorkDiary: _two_level(SubjectType.WorkDiary, ApprovalStatus.PrincipalApproved),

    # Class teacher decides. No draft, the request is born pending
    SubjectType.LeaveApplication: ApprovalChainShape(
        subject_type=SubjectType.LeaveApplication,
        has_draft=False,
        pending_status=ApprovalStatus.Pending,
        final_permission=APPROVAL_PERMISSIONS[SubjectType.LeaveApplication]["final"],
        approved_status=ApprovalStatus.Approved,
        cancellable=True,
        allows_resubmission=False,
    ),

    # HOD decides on coordinator-raised requests
    SubjectType.SubstitutionRequest: ApprovalChainShape(
        subject_type=SubjectType.SubstitutionRequest,
        has_draft=False,
        pending_status=ApprovalStatus.Pending,
        final_permission=APPROVAL_PERMISSIONS[SubjectType.SubstitutionRequest]["final"],
        approved_status=ApprovalStatus.Approved,
        cancellable=True,
        allows_resubmission=False,
    ),
}


def chain_for(subject_type) -> ApprovalChainShape:
    return CHAIN_SHAPES[SubjectType(subject_type)]
