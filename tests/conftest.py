"""
Pytest fixtures for portal tests.

Provides settings with fixed secrets, an in-memory SQLite database, the
mock CAS server as HTTP transport and a TestClient for the application.
"""
from datetime import datetime
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from portal.auth.cookies import SESSION_TOKEN_KEY, SignedCookieCodec
from portal.auth.sessions import SessionRepository
from portal.core.keys import generate_session_token
from portal.core.settings import (
    BaseUrl,
    BaseUrls,
    CsrfTokenSettings,
    DatabaseSettings,
    DsnSettings,
    SecuritySettings,
    SessionTokenSettings,
    Settings,
    TokenSettings,
)
from portal.db.engine import Database
from portal.dev.cas_mock import MockCasConfig, create_mock_cas_app
from portal.main import create_app
from portal.models.models import BusinessCategory, User

SESSION_SECRET = "11" * 32
CSRF_SECRET = "22" * 32
SERVICE_URL = "https://testserver"
CAS_URL = "http://cas.test/cas"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fixed secrets, pointing at the mock CAS."""
    return Settings(
        _env_file=None,
        dev_mode=True,
        base_urls=BaseUrls(
            dev=BaseUrl(service=SERVICE_URL, cas=CAS_URL),
            prod=BaseUrl(service="https://portal.example.org", cas="https://cas.example.org"),
        ),
        security=SecuritySettings(
            session=SessionTokenSettings(
                token=TokenSettings(
                    secret=SESSION_SECRET, cookie_name="session_token", cookie_max_age=3600
                )
            ),
            csrf=CsrfTokenSettings(
                token=TokenSettings(
                    secret=CSRF_SECRET, cookie_name="csrf_token", cookie_max_age=600
                )
            ),
        ),
        db=DatabaseSettings(dev=DsnSettings(url="sqlite://")),
        log_file=None,
    )


@pytest.fixture
def database():
    """In-memory database with all tables created."""
    db = Database.from_url("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    """A session on the test database."""
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def mock_cas_config() -> MockCasConfig:
    return MockCasConfig()


@pytest.fixture
def cas_http_client(mock_cas_config):
    """HTTP client whose requests are served by the mock CAS app."""
    return TestClient(create_mock_cas_app(mock_cas_config), base_url="http://cas.test")


@pytest.fixture
def app(test_settings, database, cas_http_client):
    return create_app(test_settings, database=database, cas_http_client=cas_http_client)


@pytest.fixture
def client(app):
    """Client over https so Secure cookies are sent back; redirects are not followed."""
    return TestClient(app, base_url=SERVICE_URL, follow_redirects=False)


def make_user(
    db,
    email: str = "alice@example.com",
    is_admin: bool = False,
    business_category: BusinessCategory = BusinessCategory.STUDENT,
) -> User:
    user = User(
        email=email,
        full_name="Alice Martin",
        department_number="ICM 1A",
        business_category=business_category,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    return user


def session_cookie(
    db,
    settings: Settings,
    user: User,
    now: Optional[datetime] = None,
) -> str:
    """Persist a session for user and return its encoded cookie value."""
    token = generate_session_token()
    SessionRepository(db).create(token, user.id, now=now)
    codec = SignedCookieCodec.from_settings(settings.security.session.token)
    return codec.encode({SESSION_TOKEN_KEY: token})


@pytest.fixture
def user(db_session):
    return make_user(db_session)


@pytest.fixture
def admin(db_session):
    return make_user(db_session, email="admin@example.com", is_admin=True)


@pytest.fixture
def user_client(client, db_session, test_settings, user):
    client.cookies.set("session_token", session_cookie(db_session, test_settings, user))
    return client


@pytest.fixture
def admin_client(client, db_session, test_settings, admin):
    client.cookies.set("session_token", session_cookie(db_session, test_settings, admin))
    return client
