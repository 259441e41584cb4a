from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from mindfulness_app.api.session_gate import SessionGateMiddleware, SessionProvider
from mindfulness_app.api.utils import SESSION_COOKIE, create_access_token
from mindfulness_app.errors import ConfigurationError, SessionCookieError


def test_protected_route_without_session_redirects_to_login(client):
    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirectTo=/dashboard"


def test_redirect_keeps_nested_path(client):
    response = client.get("/exercises/abc-123", follow_redirects=False)

    assert response.headers["location"] == "/auth/login?redirectTo=/exercises/abc-123"


def test_prefix_match_is_segment_aware(client):
    response = client.get("/chatter", follow_redirects=False)

    assert response.status_code == 404


def test_static_assets_are_not_gated(client):
    response = client.get("/_next/static/app.js", follow_redirects=False)

    assert response.status_code == 404


def test_unparseable_cookie_counts_as_signed_out(client):
    client.cookies.set(SESSION_COOKIE, "not-a-jwt")

    response = client.get("/mood-tracker", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirectTo=/mood-tracker"


def test_signed_in_user_reaches_protected_route(auth_client):
    response = auth_client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 200


def test_signed_in_user_is_sent_away_from_auth_pages(auth_client):
    response = auth_client.get("/auth/login", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"


def test_signout_is_reachable_when_signed_in(auth_client):
    response = auth_client.post("/auth/signout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/"
    assert f'{SESSION_COOKIE}=""' in response.headers["set-cookie"]


def test_session_close_to_expiry_is_refreshed(client, user):
    client.cookies.set(SESSION_COOKIE, create_access_token({"sub": user.id}, timedelta(minutes=5)))

    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith(f"{SESSION_COOKIE}=")


def test_signout_close_to_expiry_does_not_reissue_the_session(client, user):
    client.cookies.set(SESSION_COOKIE, create_access_token({"sub": user.id}, timedelta(minutes=5)))

    response = client.post("/auth/signout", follow_redirects=False)

    assert response.status_code == 303
    cookies = [header for header in response.headers.get_list("set-cookie") if header.startswith(f"{SESSION_COOKIE}=")]
    assert len(cookies) == 1
    assert cookies[0].startswith(f'{SESSION_COOKIE}=""')


def test_api_call_without_session_gets_401(client):
    response = client.post("/mood-tracker", json={"mood_score": 3}, follow_redirects=False)

    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}


def test_json_client_without_session_gets_401(client):
    response = client.get("/history", headers={"accept": "application/json"}, follow_redirects=False)

    assert response.status_code == 401


def test_fresh_session_is_not_reissued(auth_client):
    response = auth_client.get("/dashboard", follow_redirects=False)

    assert "set-cookie" not in response.headers


class RaisingProvider(SessionProvider):
    def __init__(self, error):
        super().__init__(refresh_window=timedelta(minutes=1))
        self.error = error
        self.calls = 0

    def get_session(self, request):
        self.calls += 1
        raise self.error


def _gated_app(provider):
    app = FastAPI()
    app.add_middleware(SessionGateMiddleware, provider=provider)

    @app.get("/dashboard")
    def dashboard(request: Request):
        return {"signed_in": getattr(request.state, "session", None) is not None}

    return app


def test_recoverable_lookup_error_redirects_to_login():
    provider = RaisingProvider(SessionCookieError("Failed to parse cookie"))
    client = TestClient(_gated_app(provider))

    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 307
    assert provider.calls == 1


def test_fatal_lookup_error_lets_the_request_through():
    client = TestClient(_gated_app(RaisingProvider(ConfigurationError("identity provider down"))))

    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 200


def test_unexpected_lookup_error_lets_the_request_through():
    provider = RaisingProvider(RuntimeError("boom"))
    client = TestClient(_gated_app(provider))

    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 200
    assert provider.calls == 1
