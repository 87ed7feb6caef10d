"""Service wiring - builds the decision engine and scheduler from settings."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Engine

from adoption.app.audit.sinks import AuditSink, LoggingAuditSink, SqlAuditSink
from adoption.app.authz.engine import DecisionEngine
from adoption.app.authz.ownership import OwnershipResolver
from adoption.app.authz.policy_config import PolicyConfiguration
from adoption.app.config import Settings
from adoption.app.db.engine import create_engine_from_settings, create_session_factory
from adoption.app.db.inmemory import InMemoryAdoptionStore, InMemoryTaskStore
from adoption.app.db.models import Base
from adoption.app.db.repositories import IdentityDirectory, OwnershipStore, PromotionStore, TaskStore
from adoption.app.db.sql_repositories import (
    SqlIdentityDirectory,
    SqlOwnershipStore,
    SqlPromotionStore,
    SqlTaskStore,
)
from adoption.app.models.common import TaskKind
from adoption.app.scheduler.executors import PromoteToOrgExecutor
from adoption.app.scheduler.lease import LocalPollLease, PollLease, RedisPollLease
from adoption.app.scheduler.service import DeferredTaskScheduler

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Services:
    """Process-wide collaborators shared by the transport layer."""

    settings: Settings
    policies: PolicyConfiguration
    decisions: DecisionEngine
    ownership: OwnershipResolver
    scheduler: DeferredTaskScheduler
    identities: IdentityDirectory
    promotions: PromotionStore
    audit: AuditSink
    db_engine: Engine | None = None
    clock: Callable[[], datetime] = _utcnow


def build_services(
    settings: Settings,
    store: InMemoryAdoptionStore | None = None,
    task_store: TaskStore | None = None,
    audit: AuditSink | None = None,
    lease: PollLease | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> Services:
    """Build services from settings.

    With no database_url (or an explicit in-memory store) everything runs on
    in-memory stores; otherwise on SQL repositories over one engine.

    Raises:
        EnvironmentRestrictedError: If bypass is configured in production
    """
    policies = PolicyConfiguration.from_settings(settings)
    db_engine: Engine | None = None

    identities: IdentityDirectory
    ownership: OwnershipStore
    promotions: PromotionStore

    if store is not None or not settings.database_url:
        adoption_store = store or InMemoryAdoptionStore()
        identities = ownership = promotions = adoption_store
        tasks = task_store or InMemoryTaskStore()
        audit = audit or LoggingAuditSink()
        logger.info("Using in-memory stores")
    else:
        db_engine = create_engine_from_settings(settings)
        if settings.create_schema_on_startup:
            Base.metadata.create_all(db_engine)
        session_factory = create_session_factory(db_engine)

        identities = SqlIdentityDirectory(session_factory)
        ownership = SqlOwnershipStore(session_factory)
        promotions = SqlPromotionStore(session_factory)
        tasks = task_store or SqlTaskStore(session_factory)
        audit = audit or SqlAuditSink(session_factory)

    if lease is None:
        if settings.redis_url:
            lease = RedisPollLease.from_url(settings.redis_url, ttl_seconds=settings.scheduler_lease_ttl_seconds)
        else:
            lease = LocalPollLease()

    resolver = OwnershipResolver(ownership)
    decisions = DecisionEngine(
        policies=policies,
        resolver=resolver,
        identities=identities,
        audit=audit,
        clock=clock,
    )

    scheduler = DeferredTaskScheduler(
        tasks=tasks,
        executors={
            TaskKind.promote_to_org.value: PromoteToOrgExecutor(
                promotions=promotions,
                identities=identities,
                audit=audit,
                clock=clock,
            ),
        },
        lease=lease,
        task_timeout_seconds=settings.scheduler_task_timeout_seconds,
        clock=clock,
    )

    return Services(
        settings=settings,
        policies=policies,
        decisions=decisions,
        ownership=resolver,
        scheduler=scheduler,
        identities=identities,
        promotions=promotions,
        audit=audit,
        db_engine=db_engine,
        clock=clock,
    )
