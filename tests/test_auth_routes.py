from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from mindfulness_app.api.auth0 import Auth0Client, get_auth0_client
from mindfulness_app.api.utils import SESSION_COOKIE, create_state, verify_token
from mindfulness_app.database.config.config import settings
from mindfulness_app.database.daos import ActivityLogDao, UserDao

ISSUER = "https://tenant.example.auth0.com"


@pytest.fixture
def auth0_settings(monkeypatch):
    monkeypatch.setattr(settings, "AUTH0_ISSUER_BASE_URL", ISSUER)
    monkeypatch.setattr(settings, "AUTH0_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "AUTH0_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(settings, "AUTH0_BASE_URL", "http://testserver")


def _auth0_handler(token_status=200, userinfo_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "provider-access-token"})
        if request.url.path == "/userinfo":
            assert request.headers["authorization"] == "Bearer provider-access-token"
            if userinfo_status != 200:
                return httpx.Response(userinfo_status, json={"error": "unauthorized"})
            return httpx.Response(200, json={"sub": "auth0|new-user", "email": "new@example.com", "name": "New User"})
        return httpx.Response(404)

    return handler


@pytest.fixture
def use_auth0(app, auth0_settings):
    def install(handler):
        app.dependency_overrides[get_auth0_client] = lambda: Auth0Client(transport=httpx.MockTransport(handler))

    return install


def test_login_without_auth0_config_is_a_server_error(client):
    response = client.get("/auth/login", follow_redirects=False)

    assert response.status_code == 500
    assert response.json()["error"].startswith("Auth0 is not configured")


def test_login_redirects_to_authorize_url(client, auth0_settings):
    response = client.get("/auth/login", params={"redirectTo": "/exercises"}, follow_redirects=False)

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    query = parse_qs(location.query)
    assert f"{location.scheme}://{location.netloc}{location.path}" == f"{ISSUER}/authorize"
    assert query["client_id"] == ["client-id"]
    assert query["redirect_uri"] == ["http://testserver/api/auth/callback"]
    assert query["response_type"] == ["code"]
    assert query["state"]


def test_callback_signs_the_user_in(client, use_auth0, db_session):
    use_auth0(_auth0_handler())

    response = client.get(
        "/api/auth/callback",
        params={"code": "abc", "state": create_state("/mood-tracker")},
        follow_redirects=False,
    )

    assert response.status_code == 307
    assert response.headers["location"] == "/mood-tracker"
    token = response.cookies.get(SESSION_COOKIE)
    assert verify_token(token)["sub"] == "auth0|new-user"

    user = UserDao(db_session).fetch_by_id("auth0|new-user")
    assert user.email == "new@example.com"
    assert user.display_name == "New User"
    activities = ActivityLogDao(db_session).fetch_by_user("auth0|new-user")
    assert [activity.activity_type for activity in activities] == ["login"]


def test_callback_without_state_goes_to_dashboard(client, use_auth0):
    use_auth0(_auth0_handler())

    response = client.get("/api/auth/callback", params={"code": "abc"}, follow_redirects=False)

    assert response.headers["location"] == "/dashboard"


def test_callback_rejects_offsite_return_path(client, use_auth0):
    use_auth0(_auth0_handler())

    response = client.get(
        "/api/auth/callback",
        params={"code": "abc", "state": create_state("//evil.example.com")},
        follow_redirects=False,
    )

    assert response.headers["location"] == "/dashboard"


def test_callback_without_code_returns_to_login(client):
    response = client.get("/api/auth/callback", follow_redirects=False)

    assert response.headers["location"] == "/auth/login"


def test_callback_token_exchange_failure(client, use_auth0):
    use_auth0(_auth0_handler(token_status=403))

    response = client.get("/api/auth/callback", params={"code": "abc"}, follow_redirects=False)

    assert response.headers["location"] == "/auth/login?error=token_exchange"
    assert SESSION_COOKIE not in response.cookies


def test_callback_user_profile_failure(client, use_auth0):
    use_auth0(_auth0_handler(userinfo_status=401))

    response = client.get("/api/auth/callback", params={"code": "abc"}, follow_redirects=False)

    assert response.headers["location"] == "/auth/login?error=user_profile"


def test_legacy_callback_failure_goes_to_error_page(client, use_auth0):
    use_auth0(_auth0_handler(token_status=500))

    response = client.get("/auth/callback", params={"code": "abc"}, follow_redirects=False)

    assert response.headers["location"] == "/auth/auth-code-error"


def test_signout_redirects_to_site_url(client, monkeypatch):
    monkeypatch.setattr(settings, "NEXT_PUBLIC_SITE_URL", "https://mindful.example.com")

    response = client.post("/auth/signout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "https://mindful.example.com"


def test_me_requires_a_session(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401


def test_me_returns_the_signed_in_user(auth_client, user):
    response = auth_client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["id"] == user.id
    assert response.json()["email"] == "sam@example.com"


def test_refresh_reissues_the_cookie(auth_client):
    response = auth_client.post("/api/auth/refresh")

    assert response.status_code == 200
    assert verify_token(response.cookies.get(SESSION_COOKIE))["sub"] == "auth0|user-1"


def test_profile_display_name_update(auth_client):
    response = auth_client.patch("/profile", json={"display_name": "  Samira  "})

    assert response.status_code == 200
    assert response.json()["display_name"] == "Samira"
    assert auth_client.get("/profile").json()["display_name"] == "Samira"
