"""Shared pytest fixtures for all test suites."""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from adoption.app.audit.sinks import InMemoryAuditSink
from adoption.app.authz.engine import DecisionEngine
from adoption.app.authz.ownership import OwnershipResolver
from adoption.app.authz.policy_config import PolicyConfiguration, PolicyName
from adoption.app.db.inmemory import InMemoryAdoptionStore, InMemoryTaskStore
from adoption.app.db.models import Base
from adoption.app.models.common import Role

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryAdoptionStore:
    """In-memory store seeded with two orgs, a pet and an application.

    - admin-1: admin
    - user-1: plain user, applicant of app-1
    - member-1: org member of org-1 (owns pet-1)
    - member-2: org member of org-2
    """
    store = InMemoryAdoptionStore()
    store.add_org("org-1", "Happy Tails", location="Leeds")
    store.add_org("org-2", "Paws Rescue", location="York")
    store.add_user("admin-1", Role.admin, email="admin@example.com")
    store.add_user("user-1", Role.user, email="user1@example.com")
    store.add_user("member-1", Role.org_member, org_id="org-1")
    store.add_user("member-2", Role.org_member, org_id="org-2")
    store.add_pet("pet-1", "org-1")
    store.add_application("app-1", "user-1", "pet-1")
    return store


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def audit() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def make_engine(
    store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: FakeClock
) -> Callable[..., DecisionEngine]:
    """Factory for a decision engine over the seeded store with policy overrides."""

    def _make(environment: str = "test", **overrides: bool) -> DecisionEngine:
        policies = PolicyConfiguration(
            environment=environment,
            overrides={PolicyName(name): value for name, value in overrides.items()},
        )
        return DecisionEngine(
            policies=policies,
            resolver=OwnershipResolver(store),
            identities=store,
            audit=audit,
            clock=clock,
        )

    return _make


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    """Shared-connection in-memory SQLite engine with the schema created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=sqlite_engine, expire_on_commit=False)
