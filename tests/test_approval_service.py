import asyncio

import pytest

from app.core import rbac
from app.core.exceptions import Conflict, InvalidTransition, MissingReason, NotFound, Unauthorized
from app.models.enums import ApprovalStatus, SubjectType
from app.repositories.memory import InMemoryWorkflowRepository
from app.schemas.rbac import Actor, RoleAssignment
from app.services import approval_service, role_service, state_machine


class RacingRepository(InMemoryWorkflowRepository):
    """Holds every load until `parties` callers have loaded, forcing a read-read-write-write race."""

    def __init__(self, parties: int):
        super().__init__()
        self.parties = parties
        self.loaded = 0
        self.all_loaded = asyncio.Event()

    async def load_subject(self, subject_id):
        subject = await super().load_subject(subject_id)
        self.loaded += 1
        if self.loaded >= self.parties:
            self.all_loaded.set()
        await self.all_loaded.wait()
        return subject


@pytest.mark.asyncio
async def test_end_to_end_planner(repository, teacher, hod, principal):
    created = await approval_service.create_subject(
        repository, teacher, SubjectType.LessonPlanner, {"topics": ["Algebra"]}, subject_id="P1"
    )
    assert created.status == ApprovalStatus.Draft

    submitted = await approval_service.submit(repository, "P1", teacher)
    assert submitted.status == ApprovalStatus.Submitted

    level_1 = await approval_service.approve_level_1(repository, "P1", hod)
    assert level_1.status == ApprovalStatus.HodApproved

    approved = await approval_service.approve_final(repository, "P1", principal)
    assert approved.status == ApprovalStatus.Approved

    stored = await repository.load_subject("P1")
    assert stored.status == ApprovalStatus.Approved
    assert stored.decided_by == "principal1"

    with pytest.raises(InvalidTransition):
        await approval_service.approve_final(repository, "P1", principal)
    with pytest.raises(InvalidTransition):
        await approval_service.reject(repository, "P1", hod, "too late")
    with pytest.raises(InvalidTransition):
        await approval_service.submit(repository, "P1", teacher)


@pytest.mark.asyncio
async def test_refused_transition_leaves_store_untouched(repository, teacher, hod):
    await approval_service.create_subject(repository, teacher, SubjectType.WorkDiary, subject_id="D1")
    await approval_service.submit(repository, "D1", teacher)

    with pytest.raises(MissingReason):
        await approval_service.reject(repository, "D1", hod, "")

    stored = await repository.load_subject("D1")
    assert stored.status == ApprovalStatus.Submitted
    assert stored.decided_by is None
    assert stored.rejection_reason is None


@pytest.mark.asyncio
async def test_unauthorized_approval_is_not_saved(repository, student, librarian):
    await approval_service.create_subject(repository, student, SubjectType.LeaveApplication, subject_id="L1")

    with pytest.raises(Unauthorized):
        await approval_service.approve_final(repository, "L1", librarian)

    assert (await repository.load_subject("L1")).status == ApprovalStatus.Pending


@pytest.mark.asyncio
async def test_missing_subject(repository, hod):
    with pytest.raises(NotFound):
        await approval_service.approve_level_1(repository, "nope", hod)


@pytest.mark.asyncio
async def test_duplicate_subject_id(repository, teacher):
    await approval_service.create_subject(repository, teacher, SubjectType.WorkDiary, subject_id="D1")
    with pytest.raises(Conflict):
        await approval_service.create_subject(repository, teacher, SubjectType.WorkDiary, subject_id="D1")


@pytest.mark.asyncio
async def test_resubmit_round_trip(repository, teacher, hod):
    await approval_service.create_subject(repository, teacher, SubjectType.LessonPlanner, subject_id="P2")
    await approval_service.submit(repository, "P2", teacher)
    await approval_service.reject(repository, "P2", hod, "missing objectives")

    await approval_service.update_payload(repository, "P2", teacher, {"objectives": ["fix"]})
    again = await approval_service.resubmit(repository, "P2", teacher)

    assert again.status == ApprovalStatus.Submitted
    assert again.rejection_reason is None
    assert again.payload == {"objectives": ["fix"]}


# ------------------------------------------------------------------
# OPTIMISTIC CONCURRENCY
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_concurrent_final_approvals_one_wins(student):
    repository = RacingRepository(parties=2)
    await approval_service.create_subject(repository, student, SubjectType.LeaveApplication, subject_id="L9")

    first = Actor(user_id="ct1", roles=["class_teacher"])
    second = Actor(user_id="ct2", roles=["class_teacher"])

    results = await asyncio.gather(
        approval_service.approve_final(repository, "L9", first),
        approval_service.approve_final(repository, "L9", second),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, Conflict)]
    assert len(successes) == 1
    assert len(conflicts) == 1

    stored = await repository.load_subject("L9")
    assert stored.status == ApprovalStatus.Approved
    assert stored.decided_by == successes[0].decided_by


@pytest.mark.asyncio
async def test_concurrent_approve_and_reject_one_wins(student, class_teacher):
    repository = RacingRepository(parties=2)
    await approval_service.create_subject(repository, student, SubjectType.LeaveApplication, subject_id="L10")

    results = await asyncio.gather(
        approval_service.approve_final(repository, "L10", class_teacher),
        approval_service.reject(repository, "L10", class_teacher, "duplicate request"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, Conflict) for r in results) == 1
    winner = next(r for r in results if not isinstance(r, Exception))

    stored = await repository.load_subject("L10")
    assert stored.status == winner.status
    assert stored.rejection_reason == winner.rejection_reason


@pytest.mark.asyncio
async def test_stale_save_is_a_conflict(repository, student, class_teacher):
    created = await approval_service.create_subject(repository, student, SubjectType.LeaveApplication)
    await approval_service.cancel(repository, created.id, student)

    stale_decision = state_machine.approve_final(created, class_teacher)
    with pytest.raises(Conflict):
        await repository.save_subject(stale_decision, expected_prior_status=ApprovalStatus.Pending)
    assert (await repository.load_subject(created.id)).status == ApprovalStatus.Cancelled


# ------------------------------------------------------------------
# QUEUES
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_queues_follow_level_permissions(repository, teacher, hod, principal, class_teacher):
    for subject_id in ("D1", "D2"):
        await approval_service.create_subject(repository, teacher, SubjectType.WorkDiary, subject_id=subject_id)
        await approval_service.submit(repository, subject_id, teacher)
    await approval_service.approve_level_1(repository, "D2", hod)

    hod_queue = await approval_service.list_awaiting_decision(repository, hod, SubjectType.WorkDiary)
    principal_queue = await approval_service.list_awaiting_decision(repository, principal, SubjectType.WorkDiary)
    teacher_queue = await approval_service.list_awaiting_decision(repository, class_teacher, SubjectType.WorkDiary)

    assert [s.id for s in hod_queue] == ["D1"]
    assert [s.id for s in principal_queue] == ["D2"]
    assert teacher_queue == []


@pytest.mark.asyncio
async def test_list_owned(repository, teacher, student):
    await approval_service.create_subject(repository, teacher, SubjectType.WorkDiary, subject_id="D1")
    await approval_service.create_subject(repository, student, SubjectType.LeaveApplication, subject_id="L1")

    assert [s.id for s in await approval_service.list_owned(repository, teacher)] == ["D1"]


# ------------------------------------------------------------------
# ROLES
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_revoked_role_stops_approvals(seeded_repository, student, super_admin):
    await approval_service.create_subject(seeded_repository, student, SubjectType.LeaveApplication, subject_id="L1")

    await role_service.revoke_role(seeded_repository, super_admin, "ct1", "class_teacher")
    actor = await role_service.resolve_actor(seeded_repository, "ct1")

    assert actor.roles == []
    with pytest.raises(Unauthorized):
        await approval_service.approve_final(seeded_repository, "L1", actor)


@pytest.mark.asyncio
async def test_one_active_assignment_per_role(seeded_repository, super_admin):
    with pytest.raises(Conflict):
        await role_service.grant_role(seeded_repository, super_admin, "hod1", "hod")

    # A second, different role is fine
    await role_service.grant_role(seeded_repository, super_admin, "hod1", "mentor", scope="CSE")
    actor = await role_service.resolve_actor(seeded_repository, "hod1")
    assert actor.roles == ["hod", "mentor"]


@pytest.mark.asyncio
async def test_only_role_admins_grant(seeded_repository, principal):
    with pytest.raises(Unauthorized):
        await role_service.grant_role(seeded_repository, principal, "teacherA", "hod")


@pytest.mark.asyncio
async def test_unknown_stored_role_loads_without_error(repository, super_admin):
    await role_service.grant_role(repository, super_admin, "u9", "legacy_office")
    actor = await role_service.resolve_actor(repository, "u9")

    snapshot = role_service.capabilities(actor)
    assert snapshot.roles == ["legacy_office"]
    assert snapshot.permissions == []
    assert snapshot.modules == []
    assert snapshot.highest_role == "legacy_office"


@pytest.mark.asyncio
async def test_role_spelling_variants_are_one_role(repository, super_admin):
    granted = await role_service.grant_role(repository, super_admin, "u9", " HOD ")
    assert granted.role_id == "hod"

    for variant in ("hod", "Hod", "  hod"):
        with pytest.raises(Conflict):
            await role_service.grant_role(repository, super_admin, "u9", variant)

    await role_service.revoke_role(repository, super_admin, "u9", "HOD")
    actor = await role_service.resolve_actor(repository, "u9")
    assert actor.roles == []
    assert not rbac.has_permission(actor.roles, rbac.Permission.APPROVE_DIARY_LEVEL_1)


@pytest.mark.asyncio
async def test_revoke_clears_legacy_spellings(repository, super_admin):
    # Rows written before ids were canonical
    repository._assignments.extend([
        RoleAssignment(user_id="u8", role_id="hod"),
        RoleAssignment(user_id="u8", role_id=" Hod"),
    ])

    await role_service.revoke_role(repository, super_admin, "u8", "hod")

    actor = await role_service.resolve_actor(repository, "u8")
    assert actor.roles == []
    assert not rbac.has_permission(actor.roles, rbac.Permission.APPROVE_DIARY_LEVEL_1)
