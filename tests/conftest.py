# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the gateway test suite.
# =============================================================================

import pytest
from fastapi.testclient import TestClient

from gpuremail.api.dependencies import get_session_factory, get_transport
from gpuremail.api.main import create_app
from gpuremail.infrastructure.settings import Settings, get_settings

from tests.fakes import FakeMailServer, FakeSessionFactory, FakeTransport, make_message


@pytest.fixture
def settings():
    """Settings isolated from the environment and any local .env file."""
    return Settings(_env_file=None, log_level="WARNING")


@pytest.fixture
def mail_server():
    """A mailbox with 30 INBOX messages; every third one is read, UID 5 starred."""
    server = FakeMailServer()
    for i in range(1, 31):
        flags = {"\\Seen"} if i % 3 == 0 else set()
        if i == 5:
            flags.add("\\Flagged")
        server.add("INBOX", make_message(subject=f"Message {i}", body=f"Body of message {i}"), flags)
    return server


@pytest.fixture
def session_factory(mail_server):
    return FakeSessionFactory(mail_server)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def app(settings, session_factory, transport):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_transport] = lambda: transport
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    return {"x-email": "me@example.com", "x-password": "secret"}
