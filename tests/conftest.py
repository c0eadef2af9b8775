"""
WorkSpan test configuration - pytest fixtures and factories

This module provides:
- an in-memory SQLite database shared by the app and the tests (StaticPool)
- factory_boy factories for users, projects, milestones and attachments
- a TestClient wired to that database with a recording activity publisher
- helpers that mint bearer tokens for an agency owner and its client

RUNNING TESTS:
    pytest tests/ -v
    pytest -m api -v
"""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACTIVITY_LOG_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import uuid  # noqa: E402

import factory  # noqa: E402
import pytest  # noqa: E402
from factory.alchemy import SQLAlchemyModelFactory  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from workspan.activity import get_activity_publisher  # noqa: E402
from workspan.database import Base, get_db  # noqa: E402
from workspan.main import app  # noqa: E402
from workspan.models import MediaAttachment, Milestone, Project, User  # noqa: E402
from workspan.security_utils import create_jwt_token  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============================================================================
# FACTORIES
# ============================================================================


class BaseFactory(SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        sqlalchemy_session = None  # bound per test by the db_session fixture
        sqlalchemy_session_persistence = "commit"


class UserFactory(BaseFactory):
    """Agency account"""

    class Meta:
        model = User

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    email = factory.Sequence(lambda n: f"agency{n}@example.com")
    full_name = factory.Faker("name")


class ProjectFactory(BaseFactory):
    class Meta:
        model = Project

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    agency = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Project {n}")
    type = "Web Development"
    description = "Marketing site rebuild"
    client_name = "Dana Client"
    client_email = factory.Sequence(lambda n: f"client{n}@example.com")
    project_price = 1000.0
    project_duration_days = 30
    status = "in_progress"


class MilestoneFactory(BaseFactory):
    class Meta:
        model = Milestone

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    project = factory.SubFactory(ProjectFactory)
    title = factory.Sequence(lambda n: f"Milestone {n}")
    description = "Deliverable"
    priority = factory.Sequence(lambda n: n + 1)
    status = "not_started"
    is_archived = False
    milestone_price = 100.0
    duration_days = 5
    free_revisions = 0
    used_revisions = 0
    revision_rate = 0.0


class MediaAttachmentFactory(BaseFactory):
    class Meta:
        model = MediaAttachment

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    milestone = factory.SubFactory(MilestoneFactory)
    project_id = factory.SelfAttribute("milestone.project_id")
    file_keys = factory.LazyFunction(lambda: ["uploads/design.pdf"])
    file_urls = factory.LazyFunction(lambda: ["https://files.example.com/design.pdf"])
    file_name = "design.pdf"
    submission_status = "submitted"


FACTORIES = (UserFactory, ProjectFactory, MilestoneFactory, MediaAttachmentFactory)


class RecordingPublisher:
    """Stands in for the arq-backed publisher; keeps what it was asked to ship"""

    def __init__(self):
        self.events = []

    async def publish(self, events):
        self.events.extend(events)
        return len(events)

    @property
    def types(self):
        return [event.activity_type for event in self.events]


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    for factory_class in FACTORIES:
        factory_class._meta.sqlalchemy_session = session
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def client(db_session, publisher):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_activity_publisher] = lambda: publisher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def agency(db_session):
    return UserFactory()


@pytest.fixture
def client_user(db_session):
    """The account the project's client signs in with"""
    return UserFactory(email="dana@client.example.com", full_name="Dana Client")


@pytest.fixture
def outsider(db_session):
    return UserFactory(email="someone@else.example.com")


@pytest.fixture
def project(agency, client_user):
    return ProjectFactory(agency=agency, client_email=client_user.email)


def auth_headers(user):
    token = create_jwt_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}
