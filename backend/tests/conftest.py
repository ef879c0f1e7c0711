import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set test environment variables
test_db_url = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{Path(tempfile.gettempdir()) / 'bp_relay_test.db'}",
)
os.environ.update(
    {
        "DATABASE_URL": test_db_url,
        "REDIS_URL": "redis://localhost:6379/15",
        "COMPANY_NAME": "TEST",
        "LOG_LEVEL": "info",
    }
)

# Import app modules after setting environment variables
from relay.celery_app import celery
from relay.core.config import get_settings
from relay.db import models
from relay.db.models import Base
from relay.db.schemas import TenantRecord
from relay.db.session import SessionLocal, engine
from relay.main import app, get_enqueue

logger = logging.getLogger(__name__)

WEBHOOK_URL = "https://portal.bitrix24.ru/rest/1/secret"


@pytest.fixture(autouse=True)
def celery_eager():
    celery.conf.task_always_eager = True
    celery.conf.task_eager_propagates = True
    yield
    celery.conf.task_always_eager = False


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_tenant(db: Session):
    def _create(**kwargs) -> models.Tenant:
        defaults = {
            "name": "Test Portal",
            "member_id": "mem1",
            "webhook_url": WEBHOOK_URL,
            "enabled": True,
        }
        defaults.update(kwargs)
        tenant = models.Tenant(**defaults)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _create


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def queued():
    return []


@pytest.fixture
def client(queued) -> Iterator[TestClient]:
    app.dependency_overrides[get_enqueue] = lambda: queued.append
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class FakeDirectory:
    def __init__(self, *tenants: TenantRecord):
        self.tenants = {t.member_id: t for t in tenants}
        self.lookups = []

    def find_by_member_id(self, member_id):
        self.lookups.append(member_id)
        return self.tenants.get(member_id)


class FakeBitrix:
    """Scripted remote caller: ``responses`` maps method -> result or exception."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def call(self, method, params=None):
        self.calls.append((method, dict(params or {})))
        response = self.responses.get(method)
        if isinstance(response, BaseException):
            raise response
        return response


def make_tenant_record(**kwargs) -> TenantRecord:
    defaults = {
        "id": 1,
        "name": "Test Portal",
        "member_id": "mem1",
        "webhook_url": WEBHOOK_URL,
        "enabled": True,
    }
    defaults.update(kwargs)
    return TenantRecord(**defaults)


def make_payload(**kwargs) -> dict:
    defaults = {
        "query": {},
        "body": {
            "document_id": ["crm", "CCrmDocumentDeal", "DEAL_42"],
            "auth": {"member_id": "mem1"},
        },
        "request_id": "req-1",
        "ip": "10.0.0.1",
    }
    defaults.update(kwargs)
    return defaults
