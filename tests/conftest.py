"""Pytest configuration and fixtures."""
import os
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

TEST_DB_PATH = Path("test_app.db")
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()

TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

from app.main import app  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.models.user import User, Role  # noqa: E402
from app.models.project import Project, ProjectMember, ProjectRole  # noqa: E402
from app.models.data_source import (  # noqa: E402
    Asset,
    AssetStatus,
    DataSource,
    DataSourceStatus,
    DataSourceType,
)
from app.schemas.workflow import WorkflowCreate  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402
from app.services.workflow_service import workflow_service  # noqa: E402
from app.utils.security import create_access_token  # noqa: E402
from app.core.security import ROLE_PERMISSIONS  # noqa: E402

TEST_PASSWORD = "testpassword"
TEST_PASSWORD_HASH = AuthService.hash_password(TEST_PASSWORD)


# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession):
    """Async HTTP client bound to the app with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def _make_role(db: AsyncSession, name: str) -> Role:
    role = Role(
        id=uuid.uuid4(),
        name=name,
        permissions=[perm.value for perm in ROLE_PERMISSIONS[name]],
        description=f"{name} role",
    )
    db.add(role)
    await db.commit()
    await db.refresh(role)
    return role


async def _make_user(db: AsyncSession, *, email: str, full_name: str, role: Role) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=TEST_PASSWORD_HASH,
        full_name=full_name,
        is_active=True,
    )
    db.add(user)
    user.roles.append(role)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_admin_role(db_session: AsyncSession):
    """Create admin role."""
    return await _make_role(db_session, "admin")


@pytest_asyncio.fixture
async def test_user_role(db_session: AsyncSession):
    """Create regular user role."""
    return await _make_role(db_session, "user")


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession, test_admin_role: Role):
    """Global administrator without project memberships."""
    return await _make_user(db_session, email="admin@example.com", full_name="Admin", role=test_admin_role)


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession, test_user_role: Role):
    return await _make_user(db_session, email="manager@example.com", full_name="Mia Manager", role=test_user_role)


@pytest_asyncio.fixture
async def annotator(db_session: AsyncSession, test_user_role: Role):
    return await _make_user(db_session, email="annotator@example.com", full_name="Ann Otator", role=test_user_role)


@pytest_asyncio.fixture
async def reviewer(db_session: AsyncSession, test_user_role: Role):
    return await _make_user(db_session, email="reviewer@example.com", full_name="Rae Viewer", role=test_user_role)


@pytest_asyncio.fixture
async def viewer(db_session: AsyncSession, test_user_role: Role):
    return await _make_user(db_session, email="viewer@example.com", full_name="Vic Watcher", role=test_user_role)


@pytest_asyncio.fixture
async def outsider(db_session: AsyncSession, test_user_role: Role):
    """A user who is not a member of the project."""
    return await _make_user(db_session, email="outsider@example.com", full_name="Out Sider", role=test_user_role)


@pytest_asyncio.fixture
async def project(db_session: AsyncSession, manager, annotator, reviewer, viewer):
    """Project with one member per project role."""
    project_obj = Project(id=uuid.uuid4(), name="Street scenes", owner_id=manager.id)
    db_session.add(project_obj)
    await db_session.flush()
    for member, role in (
        (manager, ProjectRole.MANAGER),
        (annotator, ProjectRole.ANNOTATOR),
        (reviewer, ProjectRole.REVIEWER),
        (viewer, ProjectRole.VIEWER),
    ):
        db_session.add(ProjectMember(id=uuid.uuid4(), project_id=project_obj.id, user_id=member.id, role=role))
    await db_session.commit()
    await db_session.refresh(project_obj)
    return project_obj


@pytest_asyncio.fixture
async def annotation_pool(db_session: AsyncSession, project: Project):
    """Default pool holding freshly imported assets."""
    pool = DataSource(
        id=uuid.uuid4(),
        project_id=project.id,
        name="Default Annotation Source",
        source_type=DataSourceType.MINIO_BUCKET,
        status=DataSourceStatus.ACTIVE,
        is_default=True,
    )
    db_session.add(pool)
    await db_session.commit()
    await db_session.refresh(pool)
    return pool


@pytest_asyncio.fixture
async def assets(db_session: AsyncSession, project: Project, annotation_pool: DataSource):
    """Three imported assets and one still importing."""
    created = []
    for index in range(3):
        asset_obj = Asset(
            id=uuid.uuid4(),
            project_id=project.id,
            data_source_id=annotation_pool.id,
            external_id=f"frames/frame_{index:04d}.jpg",
            filename=f"frame_{index:04d}.jpg",
            mime_type="image/jpeg",
            status=AssetStatus.IMPORTED,
        )
        db_session.add(asset_obj)
        created.append(asset_obj)
    db_session.add(
        Asset(
            id=uuid.uuid4(),
            project_id=project.id,
            data_source_id=annotation_pool.id,
            external_id="frames/pending.jpg",
            status=AssetStatus.PENDING_IMPORT,
        )
    )
    await db_session.commit()
    return created


@pytest_asyncio.fixture
async def default_workflow(db_session: AsyncSession, project: Project, assets, manager: User):
    """Annotation -> Review -> Completion workflow seeded with annotation tasks."""
    return await workflow_service.create_workflow(
        db_session,
        project_id=project.id,
        workflow_in=WorkflowCreate(name="Default workflow"),
        acting_user_id=manager.id,
    )


@pytest.fixture
def auth_headers_for():
    """Build bearer headers for any user."""

    def _headers(user: User) -> dict:
        token = create_access_token({"sub": str(user.id), "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers
