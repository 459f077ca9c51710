"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from uuid import uuid4

# Set test environment before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tenantgate.auth.session import Session as PrincipalSession
from tenantgate.auth.session import SessionProvider
from tenantgate.auth.utils import create_session_token
from tenantgate.db.models import (
    Base,
    Company,
    CompanyMember,
    OnboardingStatus,
    User,
    Workspace,
    WorkspaceMember,
)
from tenantgate.roles.hierarchy import CompanyRole, WorkspaceRole
from tenantgate.slugs.service import slug_key, slugify

# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_db(db: Session) -> Generator[Session, None, None]:
    """A second session on the same database, for interleaving two requests."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    # Import here to ensure env vars are set
    from tenantgate.dependencies import get_db
    from tenantgate.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Factory for users; verified by default."""

    def _make_user(email: str | None = None, verified: bool = True, full_name: str = "Test User"):
        email = email or f"user-{uuid4().hex[:8]}@example.com"
        user = User(
            id=str(uuid4()),
            email=email,
            email_normalized=email.strip().lower(),
            full_name=full_name,
            email_verified=verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_company(db: Session) -> Callable[..., Company]:
    """Factory for a company owned by ``owner`` with one workspace.

    The workspace's onboarding is complete unless ``onboarding_pending`` is set.
    """

    def _make_company(owner: User, name: str = "Acme", onboarding_pending: bool = False):
        company_id = str(uuid4())
        slug = f"{slugify(name)}-{company_id[:8]}"
        company = Company(
            id=company_id,
            name=name,
            slug=slug,
            slug_key=slug_key(None, slug),
            created_by_user_id=owner.id,
        )
        workspace = Workspace(
            id=str(uuid4()),
            company_id=company_id,
            name="General",
            slug="general",
            slug_key=slug_key(company_id, "general"),
            onboarding_status=(
                OnboardingStatus.PENDING if onboarding_pending else OnboardingStatus.COMPLETE
            ),
        )
        db.add_all(
            [
                company,
                workspace,
                CompanyMember(company_id=company_id, user_id=owner.id, role=CompanyRole.OWNER),
            ]
        )
        db.commit()
        db.refresh(company)
        return company

    return _make_company


@pytest.fixture
def make_workspace(db: Session) -> Callable[..., Workspace]:
    """Factory for extra workspaces in a company."""

    def _make_workspace(company: Company, name: str = "Research", pending: bool = False):
        slug = slugify(name)
        workspace = Workspace(
            id=str(uuid4()),
            company_id=company.id,
            name=name,
            slug=slug,
            slug_key=slug_key(company.id, slug),
            onboarding_status=OnboardingStatus.PENDING if pending else OnboardingStatus.COMPLETE,
        )
        db.add(workspace)
        db.commit()
        db.refresh(workspace)
        return workspace

    return _make_workspace


@pytest.fixture
def add_member(db: Session) -> Callable[..., CompanyMember]:
    """Factory adding a user to a company with a role."""

    def _add_member(user: User, company: Company, role: CompanyRole = CompanyRole.MEMBER):
        member = CompanyMember(company_id=company.id, user_id=user.id, role=role)
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return _add_member


@pytest.fixture
def add_workspace_member(db: Session) -> Callable[..., WorkspaceMember]:
    """Factory adding a user to a workspace with a role."""

    def _add_workspace_member(
        user: User, workspace: Workspace, role: WorkspaceRole = WorkspaceRole.READER
    ):
        member = WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=role)
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return _add_workspace_member


@pytest.fixture
def load_session(db: Session) -> Callable[..., PrincipalSession]:
    """Load the principal session for a user, optionally in a company."""

    def _load_session(user: User, company: Company | None = None):
        return SessionProvider(db).load(user.id, company.id if company else None)

    return _load_session


def auth_headers(user: User, company: Company | None = None) -> dict[str, str]:
    token = create_session_token(user.id, company.id if company else None)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_headers() -> Callable[..., dict[str, str]]:
    """Build Bearer headers carrying a signed session token."""
    return auth_headers


@pytest.fixture
def owner(make_user) -> User:
    """A verified user who owns ``company``."""
    return make_user(email="owner@acme.test", full_name="Olive Owner")


@pytest.fixture
def company(make_company, owner) -> Company:
    """A company with completed onboarding, owned by ``owner``."""
    return make_company(owner)


@pytest.fixture
def workspace(db: Session, company: Company) -> Workspace:
    """The company's first workspace."""
    return db.query(Workspace).filter(Workspace.company_id == company.id).first()
