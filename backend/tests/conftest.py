"""
Pytest Configuration and Fixtures

Shared fixtures: an in-memory MongoDB (mongomock), repositories, a workflow
engine with a controllable clock, actors for every role, and factories for
records and withdrawal policies.
"""

import os

# Must be set before fundplan.config.settings is imported
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("JWT_SECRET", "fundplan-test-secret-0123456789abcdef")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import mongomock
import pytest

from fundplan.domain.models import ActorContext, FundRecord, WithdrawalConfig
from fundplan.domain.enums import ModuleType, RecordStatus, Role
from fundplan.engine.engine import WorkflowEngine
from fundplan.engine.audit_writer import AuditWriter
from fundplan.repositories.record_repo import RecordRepository
from fundplan.repositories.withdrawal_config_repo import WithdrawalConfigRepository
from fundplan.repositories.audit_repo import AuditRepository
from fundplan.repositories.mongo_client import create_indexes
from fundplan.utils.idgen import generate_record_id

# Millisecond precision; MongoDB truncates anything finer
NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
ORG = "org-1"
OTHER_ORG = "org-2"


class FixedClock:
    """Clock the tests move by hand"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> None:
        self.now = self.now + timedelta(hours=hours)


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["fundplan_test"]
    create_indexes(database)
    yield database
    client.close()


@pytest.fixture
def record_repo(db) -> RecordRepository:
    return RecordRepository(db)


@pytest.fixture
def config_repo(db) -> WithdrawalConfigRepository:
    return WithdrawalConfigRepository(db)


@pytest.fixture
def audit_repo(db) -> AuditRepository:
    return AuditRepository(db)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def engine(record_repo, config_repo, audit_repo, clock) -> WorkflowEngine:
    return WorkflowEngine(
        record_repo=record_repo,
        config_repo=config_repo,
        audit_writer=AuditWriter(audit_repo),
        clock=clock
    )


# =============================================================================
# Actors
# =============================================================================

def make_actor(user_id: str, role: Role, organization_id: str = ORG) -> ActorContext:
    return ActorContext(
        user_id=user_id,
        email=f"{user_id}@acme-fund.com",
        name=user_id.replace("-", " ").title(),
        role=role,
        organization_id=organization_id,
        department_id="dept-1"
    )


@pytest.fixture
def reporter() -> ActorContext:
    return make_actor("reporter-1", Role.REPORTER)


@pytest.fixture
def other_reporter() -> ActorContext:
    return make_actor("reporter-2", Role.REPORTER)


@pytest.fixture
def admin() -> ActorContext:
    return make_actor("admin-1", Role.ADMIN, organization_id="hq")


@pytest.fixture
def finance() -> ActorContext:
    return make_actor("finance-1", Role.FINANCE)


@pytest.fixture
def other_finance() -> ActorContext:
    return make_actor("finance-2", Role.FINANCE)


@pytest.fixture
def auditor() -> ActorContext:
    return make_actor("auditor-1", Role.AUDITOR)


@pytest.fixture
def outside_auditor() -> ActorContext:
    return make_actor("auditor-9", Role.AUDITOR, organization_id=OTHER_ORG)


@pytest.fixture
def observer() -> ActorContext:
    return make_actor("observer-1", Role.OBSERVER)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_record(record_repo, reporter) -> Callable[..., FundRecord]:
    """Insert a record; defaults to a PREDICT draft owned by `reporter`"""

    def _make(**overrides: Any) -> FundRecord:
        fields = {
            "record_id": generate_record_id(),
            "module_type": ModuleType.PREDICT,
            "status": RecordStatus.DRAFT,
            "title": "Q1 forecast",
            "amount": 125000.0,
            "year": 2024,
            "month": 3,
            "owner_id": reporter.user_id,
            "organization_id": ORG,
            "department_id": "dept-1",
            "created_at": NOW - timedelta(days=1),
            "updated_at": NOW - timedelta(days=1),
        }
        fields.update(overrides)
        return record_repo.create_record(FundRecord(**fields))

    return _make


@pytest.fixture
def set_policy(config_repo) -> Callable[..., WithdrawalConfig]:
    """Store a withdrawal policy; defaults to 24h / 3 attempts / approval"""

    def _set(module_type: ModuleType = ModuleType.PREDICT, **overrides: Any) -> WithdrawalConfig:
        fields = {
            "module_type": module_type,
            "allowed_statuses": [RecordStatus.SUBMITTED],
            "time_limit_hours": 24,
            "max_attempts": 3,
            "require_approval": True,
        }
        fields.update(overrides)
        return config_repo.upsert_config(WithdrawalConfig(**fields))

    return _set
