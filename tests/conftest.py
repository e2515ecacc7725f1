"""Pytest configuration and shared fixtures."""

import pytest
from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from signoff.core.config import Settings
from signoff.db.base import Base
import signoff.db.models  # noqa: F401
from signoff.signature import SignatureProvider

from tests.factories import WEBHOOK_SECRET


@pytest.fixture
def settings():
    """Settings with a fully configured signature provider."""
    return Settings(
        _env_file=None,
        app_url="https://signoff.test",
        database_url="sqlite://",
        signature_api_base_url="https://signature.test/api/",
        signature_account_id="acct-1",
        signature_api_token="test-token",
        signature_webhook_secret=WEBHOOK_SECRET,
        signature_timeout=2.0,
    )


@pytest.fixture
def unconfigured_settings():
    """Settings with no provider credentials and no webhook secret."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def engine():
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
def db_session(engine):
    """Database session bound to an in-memory SQLite database."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider(settings):
    """Real provider whose HTTP calls are replaced per test.

    Set ``provider.create_envelope`` / ``provider.get_envelope_status`` to a
    ``MagicMock``; webhook validation and parsing stay real.
    """
    with SignatureProvider(settings) as provider:
        yield provider


@pytest.fixture
def client(engine, provider, settings):
    """TestClient wired to the in-memory database and the test provider."""
    from fastapi.testclient import TestClient

    from signoff.api import deps
    from signoff.api.main import app
    from signoff.core.approval import ApprovalService
    from signoff.services.webhook import SignatureWebhookHandler

    SessionTesting = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = SessionTesting()
        try:
            yield db
        finally:
            db.close()

    def override_get_signature_provider():
        return provider

    def override_get_approval_service(db=Depends(deps.get_db)):
        return ApprovalService(db, provider, settings)

    def override_get_webhook_handler(db=Depends(deps.get_db)):
        return SignatureWebhookHandler(db, provider)

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_signature_provider] = override_get_signature_provider
    app.dependency_overrides[deps.get_approval_service] = override_get_approval_service
    app.dependency_overrides[deps.get_webhook_handler] = override_get_webhook_handler

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

