import pytest

from app.main import seed_super_admin


@pytest.mark.asyncio
async def test_root(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_requires_bearer(client):
    res = await client.get("/api/rbac/me")
    assert res.status_code in (401, 403)


@pytest.mark.asyncio
async def test_rejects_garbage_token(client):
    res = await client.get("/api/rbac/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


# ------------------------------------------------------------------
# RBAC
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_my_capabilities(client, auth_headers):
    res = await client.get("/api/rbac/me", headers=auth_headers("hod1"))
    assert res.status_code == 200

    data = res.json()
    assert data["roles"] == ["hod"]
    assert data["highest_role"] == "hod"
    assert data["role_display_name"] == "Head of Department"
    assert data["is_admin"] is True
    assert data["is_super_admin"] is False
    assert "approve_diary_level_1" in data["permissions"]
    assert set(data["modules"]) == {"dashboard", "assignments", "notices", "attendance", "analytics"}


@pytest.mark.asyncio
async def test_user_without_roles_gets_empty_snapshot(client, auth_headers):
    res = await client.get("/api/rbac/me", headers=auth_headers("nobody"))
    assert res.status_code == 200
    assert res.json()["roles"] == []
    assert res.json()["highest_role"] is None


@pytest.mark.asyncio
async def test_role_catalog(client, auth_headers):
    res = await client.get("/api/rbac/roles", headers=auth_headers("teacherA"))
    assert res.status_code == 200
    roles = {r["role"]: r for r in res.json()}
    assert roles["class_teacher"]["permissions"] == sorted(["approve_student_leave", "manage_attendance", "view_attendance_reports"])
    assert "audit" in roles["super_admin"]["modules"]


@pytest.mark.asyncio
async def test_assign_and_revoke_roles(client, auth_headers):
    res = await client.post(
        "/api/rbac/assignments",
        json={"user_id": "teacherA", "role_id": "class_teacher", "scope": "7-B"},
        headers=auth_headers("root"),
    )
    assert res.status_code == 201
    assert res.json()["assigned_by"] == "root"

    me = await client.get("/api/rbac/me", headers=auth_headers("teacherA"))
    assert "class_teacher" in me.json()["roles"]

    dup = await client.post(
        "/api/rbac/assignments",
        json={"user_id": "teacherA", "role_id": "class_teacher"},
        headers=auth_headers("root"),
    )
    assert dup.status_code == 409
    assert dup.json()["error"] == "Conflict"

    res = await client.delete("/api/rbac/assignments/teacherA/class_teacher", headers=auth_headers("root"))
    assert res.status_code == 200
    assert res.json()["is_active"] is False


@pytest.mark.asyncio
async def test_only_role_admins_assign(client, auth_headers):
    res = await client.post(
        "/api/rbac/assignments",
        json={"user_id": "teacherA", "role_id": "hod"},
        headers=auth_headers("principal1"),
    )
    assert res.status_code == 403


# ------------------------------------------------------------------
# APPROVALS
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_planner_lifecycle_over_http(client, auth_headers):
    teacher, hod, principal = auth_headers("teacherA"), auth_headers("hod1"), auth_headers("principal1")

    res = await client.post(
        "/api/approvals/",
        json={"id": "P1", "subject_type": "lesson_planner", "payload": {"topics": ["Photosynthesis"]}},
        headers=teacher,
    )
    assert res.status_code == 201
    assert res.json()["status"] == "draft"
    assert res.json()["available_actions"] == ["submit"]

    res = await client.post("/api/approvals/P1/submit", headers=teacher)
    assert res.json()["status"] == "submitted"

    queue = await client.get("/api/approvals/queue/lesson_planner", headers=hod)
    assert [s["id"] for s in queue.json()] == ["P1"]

    skip = await client.post("/api/approvals/P1/approve", headers=principal)
    assert skip.status_code == 409
    assert skip.json()["error"] == "InvalidTransition"

    res = await client.post("/api/approvals/P1/approve-level-1", headers=hod)
    assert res.json()["status"] == "hod_approved"

    res = await client.post("/api/approvals/P1/approve", headers=principal)
    assert res.status_code == 200
    assert res.json()["status"] == "approved"
    assert res.json()["decided_by"] == "principal1"
    assert res.json()["available_actions"] == []


@pytest.mark.asyncio
async def test_reject_requires_reason_over_http(client, auth_headers):
    await client.post("/api/approvals/", json={"id": "D1", "subject_type": "work_diary"}, headers=auth_headers("teacherA"))
    await client.post("/api/approvals/D1/submit", headers=auth_headers("teacherA"))

    res = await client.post("/api/approvals/D1/reject", json={"reason": " "}, headers=auth_headers("hod1"))
    assert res.status_code == 422
    assert res.json()["error"] == "MissingReason"

    res = await client.get("/api/approvals/D1", headers=auth_headers("teacherA"))
    assert res.json()["status"] == "submitted"

    res = await client.post("/api/approvals/D1/reject", json={"reason": "Entries missing"}, headers=auth_headers("hod1"))
    assert res.json()["status"] == "rejected"

    res = await client.patch("/api/approvals/D1", json={"payload": {"daily_entries": [1, 2]}}, headers=auth_headers("teacherA"))
    assert res.json()["payload"] == {"daily_entries": [1, 2]}

    res = await client.post("/api/approvals/D1/resubmit", headers=auth_headers("teacherA"))
    assert res.json()["status"] == "submitted"
    assert res.json()["rejection_reason"] is None


@pytest.mark.asyncio
async def test_leave_permissions_over_http(client, auth_headers):
    res = await client.post(
        "/api/approvals/",
        json={"id": "L1", "subject_type": "leave_application", "payload": {"from": "2026-10-20", "to": "2026-10-21"}},
        headers=auth_headers("student1"),
    )
    assert res.json()["status"] == "pending"
    assert res.json()["available_actions"] == ["cancel"]

    denied = await client.post("/api/approvals/L1/approve", headers=auth_headers("lib1"))
    assert denied.status_code == 403
    assert denied.json()["error"] == "Unauthorized"

    ok = await client.post("/api/approvals/L1/approve", headers=auth_headers("ct1"))
    assert ok.json()["status"] == "approved"

    late = await client.post("/api/approvals/L1/cancel", headers=auth_headers("student1"))
    assert late.status_code == 409


@pytest.mark.asyncio
async def test_my_subjects(client, auth_headers):
    await client.post("/api/approvals/", json={"id": "S1", "subject_type": "substitution_request"}, headers=auth_headers("teacherA"))
    res = await client.get("/api/approvals/mine", headers=auth_headers("teacherA"))
    assert [s["id"] for s in res.json()] == ["S1"]


@pytest.mark.asyncio
async def test_unknown_subject(client, auth_headers):
    res = await client.get("/api/approvals/nope", headers=auth_headers("teacherA"))
    assert res.status_code == 404
    assert res.json()["error"] == "NotFound"


# ------------------------------------------------------------------
# BOOTSTRAP
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_seed_super_admin_is_idempotent(repository):
    await seed_super_admin("founder", repository)
    await seed_super_admin("founder", repository)

    assignments = await repository.load_active_role_assignments("founder")
    assert [a.role_id for a in assignments] == ["super_admin"]
    assert assignments[0].assigned_by == "system"
