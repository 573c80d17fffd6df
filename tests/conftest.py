"""Shared fixtures: in-memory database, fake Xero API, wired orchestrator."""
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tests.factories import FakeXeroClient, make_credentials
from xero_sync.application import bootstrap
from xero_sync.application.services import connection_manager as connection_manager_module
from xero_sync.core.database import Base
from xero_sync.domain.models.connection import Connection
from xero_sync.infrastructure.db import models  # noqa: F401
from xero_sync.infrastructure.db.repositories.connection_repository import SQLAlchemyConnectionRepository


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def connection(db_session) -> Connection:
    """An active connection with a token valid for 30 minutes."""
    repo = SQLAlchemyConnectionRepository(db_session)
    return repo.activate(Connection(
        id=None,
        tenant_id="tenant-1",
        tenant_name="Demo Company",
        credentials=make_credentials()
    ))


@pytest.fixture
def fake_client():
    return FakeXeroClient()


@pytest.fixture
def use_fake_client(monkeypatch, fake_client):
    """Make the connection manager hand out fake_client instead of a real API client."""
    monkeypatch.setattr(
        connection_manager_module.XeroAPIClient,
        "with_credentials",
        lambda *args, **kwargs: fake_client
    )
    return fake_client


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def orchestrator(db_session, use_fake_client, sleep):
    return bootstrap.build_orchestrator(db_session, sleep=sleep)

