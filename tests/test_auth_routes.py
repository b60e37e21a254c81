"""
Tests for the login, CAS callback and logout routes.

The CAS server is the mock CAS app, reached through a TestClient used as
the CAS HTTP transport.

Tests cover:
- Login redirect
- Full login with the mock CAS
- Rejected and missing tickets
- CAS provider failures
- Logout
"""
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from portal.auth.cas import CasClient, CasProviderError
from portal.dev.cas_mock import MockCasConfig, create_mock_cas_app
from portal.main import create_app
from portal.models.models import BusinessCategory, User, UserSession


def count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestLogin:
    """Tests for GET /login."""

    def test_redirects_to_cas(self, client):
        response = client.get("/login")
        assert response.status_code == 302
        assert response.headers["location"] == (
            "http://cas.test/cas/login?service=https%3A%2F%2Ftestserver%2Fcas"
        )

    def test_live_session_goes_to_dashboard(self, user_client):
        response = user_client.get("/login")
        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"

    def test_invalid_cookie_goes_to_cas(self, client):
        client.cookies.set("session_token", "garbage")
        response = client.get("/login")
        assert response.headers["location"].startswith("http://cas.test/cas/login")


class TestCasCallback:
    """Tests for GET /cas."""

    def test_full_login_flow(self, client, db_session):
        """Should validate ST-12345, create a STUDENT user and set the cookie."""
        response = client.get("/cas", params={"ticket": "ST-12345"})

        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("session_token=")
        assert "HttpOnly" in set_cookie
        assert "Secure" in set_cookie
        assert "SameSite=strict" in set_cookie
        assert "Max-Age=3600" in set_cookie

        user = db_session.execute(
            select(User).where(User.email == "jdoe@example.com")
        ).scalar_one()
        assert user.full_name == "John Doe"
        assert user.department_number == "ICM 2A"
        assert user.business_category == BusinessCategory.STUDENT
        assert count(db_session, UserSession) == 1

        dashboard = client.get("/dashboard")
        assert dashboard.status_code == 200
        assert "Dashboard" in dashboard.text

    def test_login_twice_keeps_one_user(self, client, db_session):
        client.get("/cas", params={"ticket": "ST-12345"})
        client.cookies.clear()
        client.get("/cas", params={"ticket": "ST-12345"})
        assert count(db_session, User) == 1
        assert count(db_session, UserSession) == 2

    def test_rejected_ticket(self, client, db_session):
        response = client.get("/cas", params={"ticket": "BAD-TICKET"})

        assert response.status_code == 400
        assert "Authentication failure" in response.text
        assert "BAD-TICKET is not recognized" in response.text
        assert "set-cookie" not in response.headers
        assert count(db_session, User) == 0
        assert count(db_session, UserSession) == 0

    def test_missing_ticket(self, client):
        response = client.get("/cas")
        assert response.status_code == 400
        assert response.text == "Ticket is missing"

    def test_empty_ticket(self, client):
        assert client.get("/cas?ticket=").status_code == 400

    def test_cas_unavailable(self, client, db_session):
        with patch.object(
            CasClient,
            "validate",
            side_effect=CasProviderError(
                "Error while validating CAS ticket, got a non 200 status code: 502"
            ),
        ):
            response = client.get("/cas", params={"ticket": "ST-12345"})

        assert response.status_code == 500
        assert "non 200 status code: 502" in response.text
        assert count(db_session, UserSession) == 0

    def test_identity_without_email(self, test_settings, database, db_session):
        """Should refuse every login whose identity carries no email."""
        logins = [
            MockCasConfig(user="alice", email="", business_category="ELEVE"),
            MockCasConfig(user="bob", email="", business_category="PROF"),
        ]
        for config in logins:
            cas = TestClient(create_mock_cas_app(config), base_url="http://cas.test")
            app = create_app(test_settings, database=database, cas_http_client=cas)
            client = TestClient(app, base_url="https://testserver", follow_redirects=False)

            response = client.get("/cas", params={"ticket": config.ticket})

            assert response.status_code == 500
            assert "no email attribute" in response.text
            assert "set-cookie" not in response.headers

        assert count(db_session, User) == 0
        assert count(db_session, UserSession) == 0


class TestLogout:
    """Tests for GET /logout."""

    def test_logout(self, client, db_session):
        client.get("/cas", params={"ticket": "ST-12345"})
        assert count(db_session, UserSession) == 1

        response = client.get("/logout")

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert "Max-Age=0" in response.headers["set-cookie"]
        assert count(db_session, UserSession) == 0

        assert client.get("/dashboard").status_code == 302

    def test_logout_without_session(self, client):
        response = client.get("/logout")
        assert response.status_code == 302
        assert response.headers["location"] == "/"
