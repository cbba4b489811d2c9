"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test (services commit freely)
- Organization with one member per role
- JWT token minting for authenticated tests
- HTTPX AsyncClient with session cookie and CSRF header
"""
import os
import uuid
from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator, Callable, Generator

# Configure before anything imports shelter.core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_API"] = "0"
os.environ["ENV"] = "test"
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shelter.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from shelter.core.security import create_session_token
from shelter.db.base import Base
from shelter.db.enums import ApplicationKind, IntakeType, PersonType, Role, Species
from shelter.db.models import Animal, Organization, Person, User
from shelter.db.session import enable_sqlite_foreign_keys
from shelter.main import app
from shelter.schemas.animal import AnimalIntakeCreate
from shelter.services import (
    animal_service,
    application_service,
    membership_service,
    org_service,
    person_service,
)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Private in-memory database; StaticPool keeps the one connection alive."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session bound to the per-test database."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


# =============================================================================
# Tenant Fixtures
# =============================================================================

def make_user(db: Session, label: str = "user") -> User:
    return membership_service.create_user(
        db,
        email=f"{label}-{uuid.uuid4().hex[:8]}@test.com",
        display_name=f"{label.title()} User",
    )


@pytest.fixture(scope="function")
def user_factory(db: Session) -> Callable[[str], User]:
    """Create a user with no membership anywhere."""
    return lambda label="user": make_user(db, label)


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    return make_user(db, "admin")


@pytest.fixture(scope="function")
def test_org(db: Session, admin_user: User) -> Organization:
    """Organization bootstrapped with admin_user as its first admin."""
    return org_service.create_organization(
        db,
        name="Happy Tails Rescue",
        slug=f"happy-tails-{uuid.uuid4().hex[:8]}",
        admin_user_id=admin_user.id,
    )


@pytest.fixture(scope="function")
def member_factory(db: Session, test_org: Organization, admin_user: User) -> Callable[[Role], User]:
    """Create a user with an active membership of the given role."""
    def _make(role: Role, org: Organization | None = None, actor: User | None = None) -> User:
        org = org or test_org
        actor = actor or admin_user
        user = make_user(db, Role(role).value)
        membership_service.add_member(db, org.id, actor.id, user.id, role)
        return user

    return _make


@pytest.fixture(scope="function")
def staff_user(member_factory) -> User:
    return member_factory(Role.STAFF)


@pytest.fixture(scope="function")
def volunteer_user(member_factory) -> User:
    return member_factory(Role.VOLUNTEER)


@pytest.fixture(scope="function")
def readonly_user(member_factory) -> User:
    return member_factory(Role.READONLY)


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    """A second tenant with its own admin, for isolation tests."""
    other_admin = make_user(db, "other-admin")
    return org_service.create_organization(
        db,
        name="Whisker Haven",
        slug=f"whisker-haven-{uuid.uuid4().hex[:8]}",
        admin_user_id=other_admin.id,
    )


# =============================================================================
# Workflow Factories
# =============================================================================

@pytest.fixture(scope="function")
def make_animal(db: Session, test_org: Organization, staff_user: User) -> Callable[..., Animal]:
    def _make(
        name: str = "Biscuit",
        species: Species = Species.DOG,
        intake_date: date | None = date(2024, 1, 10),
        intake_type: IntakeType = IntakeType.STRAY,
        org: Organization | None = None,
        actor_id: uuid.UUID | None = None,
        **extra,
    ) -> Animal:
        org = org or test_org
        data = AnimalIntakeCreate(
            name=name,
            species=species,
            intake_type=intake_type,
            intake_date=intake_date,
            **extra,
        )
        return animal_service.intake_animal(
            db, org.id, actor_id if actor_id is not None else staff_user.id, data
        )

    return _make


@pytest.fixture(scope="function")
def make_person(db: Session, test_org: Organization, staff_user: User) -> Callable[..., Person]:
    def _make(
        name: str = "Jordan Rivera",
        type: PersonType = PersonType.ADOPTER,
        flags: dict | None = None,
        org: Organization | None = None,
    ) -> Person:
        org = org or test_org
        return person_service.create_person(
            db,
            org.id,
            staff_user.id if org.id == test_org.id else None,
            name,
            type=type,
            email=f"{uuid.uuid4().hex[:6]}@example.com",
            flags=flags,
        )

    return _make


@pytest.fixture(scope="function")
def approved_application(db: Session, test_org: Organization, staff_user: User, make_animal, make_person):
    """Submit -> review -> approve an application for a fresh animal and person."""
    def _make(kind: ApplicationKind = ApplicationKind.ADOPTION, animal: Animal | None = None):
        animal = animal or make_animal()
        person = make_person(type=PersonType.FOSTER if kind == ApplicationKind.FOSTER else PersonType.ADOPTER)
        application = application_service.submit(
            db, test_org.id, staff_user.id, animal.id, person.id, kind
        )
        application_service.move_to_review(db, application, staff_user.id)
        return application_service.approve(db, application, staff_user.id)

    return _make


# =============================================================================
# Auth & Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    __test__ = False

    user: User
    org: Organization
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(user: User, org: Organization) -> TestAuth:
    token = create_session_token(user_id=user.id, org_id=org.id)
    return TestAuth(user=user, org=org, token=token)


@pytest.fixture(scope="function")
def client_factory(db: Session):
    """
    Build AsyncClients sharing the test session.

    Usage:
        async with client_factory(staff_user) as client: ...
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    def _make(
        user: User | None = None,
        org: Organization | None = None,
        csrf: bool = True,
    ) -> AsyncClient:
        cookies = {}
        headers = {}
        if user is not None:
            cookies[COOKIE_NAME] = auth_for(user, org or _first_org(db, user)).token
        if csrf:
            headers[CSRF_HEADER] = CSRF_HEADER_VALUE
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers=headers,
        )

    yield _make
    app.dependency_overrides.clear()


def _first_org(db: Session, user: User) -> Organization:
    membership = user.memberships[0]
    return db.get(Organization, membership.organization_id)


@pytest.fixture(scope="function")
async def client(client_factory) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client (public endpoints, 401 checks)."""
    async with client_factory() as c:
        yield c


@pytest.fixture(scope="function")
async def staff_client(client_factory, staff_user: User, test_org: Organization) -> AsyncGenerator[AsyncClient, None]:
    async with client_factory(staff_user, test_org) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(client_factory, admin_user: User, test_org: Organization) -> AsyncGenerator[AsyncClient, None]:
    async with client_factory(admin_user, test_org) as c:
        yield c
