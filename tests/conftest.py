import os
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Must happen BEFORE importing app.main so settings pick it up.
# API tests never touch this database: the repository is overridden.
# ------------------------------------------------------------------
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_workflow.db"

from app.main import app
from app.api.deps import get_repository
from app.core.security import create_access_token
from app.models.enums import SubjectType
from app.repositories.memory import InMemoryWorkflowRepository
from app.schemas.rbac import Actor, RoleAssignment
from app.services import state_machine


# ------------------------------------------------------------------
# ACTORS (explicit context, no global auth store)
# ------------------------------------------------------------------
@pytest.fixture
def teacher():
    return Actor(user_id="teacherA", roles=["subject_teacher"])


@pytest.fixture
def hod():
    return Actor(user_id="hod1", roles=["hod"])


@pytest.fixture
def principal():
    return Actor(user_id="principal1", roles=["principal"])


@pytest.fixture
def class_teacher():
    return Actor(user_id="ct1", roles=["class_teacher"])


@pytest.fixture
def student():
    return Actor(user_id="student1", roles=["student"])


@pytest.fixture
def librarian():
    return Actor(user_id="lib1", roles=["library_admin"])


@pytest.fixture
def super_admin():
    return Actor(user_id="root", roles=["super_admin"])


# ------------------------------------------------------------------
# SUBJECTS
# ------------------------------------------------------------------
@pytest.fixture
def planner(teacher):
    return state_machine.create(SubjectType.LessonPlanner, teacher, {"topics": ["Fractions"]}, subject_id="P1")


@pytest.fixture
def diary(teacher):
    return state_machine.create(SubjectType.WorkDiary, teacher, {"month": 3, "year": 2026}, subject_id="D1")


@pytest.fixture
def leave(student):
    return state_machine.create(SubjectType.LeaveApplication, student, {"reason": "fever"}, subject_id="L1")


# ------------------------------------------------------------------
# STORAGE
# ------------------------------------------------------------------
@pytest.fixture
def repository():
    return InMemoryWorkflowRepository()


@pytest_asyncio.fixture
async def seeded_repository(repository):
    """Role assignments for every fixture actor, as the store would hold them."""
    for user_id, role_id in [
        ("teacherA", "subject_teacher"),
        ("hod1", "hod"),
        ("principal1", "principal"),
        ("ct1", "class_teacher"),
        ("student1", "student"),
        ("lib1", "library_admin"),
        ("root", "super_admin"),
    ]:
        await repository.assign_role(RoleAssignment(user_id=user_id, role_id=role_id, assigned_by="seed"))
    return repository


# ------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------
@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        token = create_access_token(subject=user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest_asyncio.fixture
async def client(seeded_repository):
    """
    ASGI client wired to the in-memory repository.
    Uses ASGITransport() instead of app=... (httpx >= 0.27)
    """
    app.dependency_overrides[get_repository] = lambda: seeded_repository
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
