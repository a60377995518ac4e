"""
End-to-end tests for the edge gateway service.
"""

import pytest
from fastapi import Response
from fastapi.testclient import TestClient

from shared.errors import UpstreamUnavailableError
from service_edge.app.main import GatewayService, create_app, is_api_path

ORIGIN = "https://courses.example.com"
LOCATION = "https://drive.example.com/folder/7"
LOGIN_BODY = {"identity": "Student@Example.com", "secret": "pass1234", "resourceId": 7}


def session_cookie(response) -> str:
    """``name=value`` pair from a Set-Cookie header."""
    return response.headers["set-cookie"].split(";", 1)[0]


class TestGatewayService:
    """Test cases for GatewayService."""

    @pytest.fixture
    def app(self, config, cache, authority, origin_proxy):
        authority.verify_access.return_value = True
        authority.get_location.return_value = LOCATION
        authority.get_ratings.return_value = {"average": 4.5, "count": 12}
        authority.add_rating.return_value = {"status": "success"}
        return create_app(config, cache=cache, authority=authority, origin_proxy=origin_proxy)

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_service_is_exposed_on_app_state(self, app):
        assert isinstance(app.state.gateway_service, GatewayService)

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "edge"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "ok", "authority": "ok"}

    def test_health_degraded_when_authority_circuit_open(self, client, authority):
        authority.check_health.return_value = "error"

        assert client.get("/health").json()["status"] == "degraded"

    def test_metrics(self, client):
        client.get("/health")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    # Login

    def test_login_sets_cookie_and_redirect(self, client, authority):
        response = client.post("/auth/login", json=LOGIN_BODY, headers={"Origin": ORIGIN})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "redirect": "/protected/7"}
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("__session_7=")
        assert "Path=/protected/7" in cookie
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "SameSite=Strict" in cookie
        assert response.headers["access-control-allow-origin"] == ORIGIN
        authority.verify_access.assert_awaited_once_with("student@example.com", "pass1234", 7)

    def test_login_trailing_slash(self, client):
        assert client.post("/auth/login/", json=LOGIN_BODY).status_code == 200

    def test_login_rejected_credentials(self, client, authority):
        authority.verify_access.return_value = False

        response = client.post("/auth/login", json=LOGIN_BODY)

        assert response.status_code == 401
        assert "set-cookie" not in response.headers
        body = response.json()
        assert body["status"] == "error"
        assert body["code"] == "AUTHENTICATION_ERROR"
        assert body["message"] == "Invalid email or password, or you are not enrolled in this course."
        assert body["request_id"] == response.headers["x-request-id"]

    def test_login_authority_down(self, client, authority):
        authority.verify_access.side_effect = UpstreamUnavailableError("Authority timed out")

        response = client.post("/auth/login", json=LOGIN_BODY)

        assert response.status_code == 502
        body = response.json()
        assert body["message"] == "Verification service unavailable"
        assert body["details"]["contact"] == "https://wa.me/15550100"
        assert "set-cookie" not in response.headers

    def test_login_invalid_email(self, client, authority):
        response = client.post("/auth/login", json={**LOGIN_BODY, "identity": "nope"})

        assert response.status_code == 400
        assert response.json()["message"] == "Valid email address is required"
        authority.verify_access.assert_not_awaited()

    def test_login_foreign_origin(self, client, authority):
        response = client.post("/auth/login", json=LOGIN_BODY, headers={"Origin": "https://evil.example"})

        assert response.status_code == 403
        assert response.json()["message"] == "Origin not allowed"
        assert response.headers["access-control-allow-origin"] == ORIGIN
        authority.verify_access.assert_not_awaited()

    def test_login_get_is_not_allowed(self, client):
        assert client.get("/auth/login").status_code == 405

    def test_login_rate_limited(self, client, authority):
        authority.verify_access.return_value = False
        statuses = [client.post("/auth/login", json=LOGIN_BODY).status_code for _ in range(6)]

        assert statuses == [401] * 5 + [429]
        assert authority.verify_access.await_count == 5

    def test_login_rate_limit_body(self, client, authority):
        authority.verify_access.return_value = False
        for _ in range(5):
            client.post("/auth/login", json=LOGIN_BODY)

        response = client.post("/auth/login", json=LOGIN_BODY)

        assert response.status_code == 429
        assert response.json()["message"] == "Too many attempts. Please wait a moment."
        assert int(response.headers["retry-after"]) >= 1

    def test_preflight(self, client):
        for path in ("/auth/login", "/ratings", "/ratings/"):
            response = client.options(path)

            assert response.status_code == 204
            assert response.headers["access-control-allow-origin"] == ORIGIN
            assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
            assert response.headers["access-control-allow-headers"] == "Content-Type"
            assert response.headers["access-control-max-age"] == "86400"

    # Protected resources

    def test_protected_without_cookie_challenges(self, client, authority):
        response = client.get("/protected/7")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "var RESOURCE_ID = 7;" in response.text
        authority.get_location.assert_not_awaited()

    def test_login_then_protected_redirects(self, client, authority):
        login = client.post("/auth/login", json=LOGIN_BODY)

        response = client.get(
            "/protected/7",
            headers={"Cookie": session_cookie(login)},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == LOCATION
        assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate"
        authority.get_location.assert_awaited_once_with(7)

    def test_cookie_for_other_resource_challenges(self, client, authority):
        login = client.post("/auth/login", json=LOGIN_BODY)
        token = session_cookie(login).split("=", 1)[1]

        response = client.get(
            "/protected/8",
            headers={"Cookie": f"__session_8={token}"},
            follow_redirects=False,
        )

        assert response.status_code == 200
        assert "var RESOURCE_ID = 8;" in response.text
        authority.get_location.assert_not_awaited()

    def test_protected_location_unavailable(self, client, authority):
        authority.get_location.return_value = None
        login = client.post("/auth/login", json=LOGIN_BODY)

        response = client.get(
            "/protected/7",
            headers={"Cookie": session_cookie(login)},
            follow_redirects=False,
        )

        assert response.status_code == 503
        assert "https://wa.me/15550100" in response.text

    def test_protected_malformed_id(self, client):
        response = client.get("/protected/abc")

        assert response.status_code == 404
        assert response.text == "Not Found"

    @pytest.mark.parametrize("path", ["/protected/", "/protected/7/extra", "/protected/7//"])
    def test_malformed_protected_paths_are_not_proxied(self, client, origin_proxy, path):
        response = client.get(path)

        assert response.status_code == 404
        assert response.text == "Not Found"
        origin_proxy.forward.assert_not_awaited()

    def test_protected_trailing_slash(self, client, authority, origin_proxy):
        challenge = client.get("/protected/7/")
        login = client.post("/auth/login", json=LOGIN_BODY)
        redirect = client.get(
            "/protected/7/",
            headers={"Cookie": session_cookie(login)},
            follow_redirects=False,
        )

        assert challenge.status_code == 200
        assert "var RESOURCE_ID = 7;" in challenge.text
        assert redirect.status_code == 302
        assert redirect.headers["location"] == LOCATION
        origin_proxy.forward.assert_not_awaited()

    # Ratings

    def test_ratings_read_is_cached(self, client, authority):
        first = client.get("/ratings", params={"resourceId": "7"})
        second = client.get("/ratings/", params={"courseId": "7"})

        assert first.json() == {"average": 4.5, "count": 12}
        assert second.json() == {"average": 4.5, "count": 12}
        assert first.headers["access-control-allow-origin"] == ORIGIN
        authority.get_ratings.assert_awaited_once_with(7)

    def test_ratings_invalid_id(self, client, authority):
        response = client.get("/ratings", params={"courseId": "0"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid resourceId"
        authority.get_ratings.assert_not_awaited()

    def test_ratings_missing_id(self, client):
        response = client.get("/ratings")

        assert response.status_code == 400
        assert response.json()["message"] == "Missing resourceId"

    def test_rating_out_of_range(self, client, authority):
        response = client.post("/ratings", json={"resourceId": 7, "rating": 6})

        assert response.status_code == 400
        assert response.json()["message"] == "Rating must be 1–5"
        authority.add_rating.assert_not_awaited()

    def test_rating_write_invalidates_cached_read(self, client, authority):
        client.get("/ratings", params={"resourceId": "7"})

        response = client.post("/ratings", json={"resourceId": 7, "rating": 5}, headers={"X-Real-IP": "203.0.113.9"})
        client.get("/ratings", params={"resourceId": "7"})

        assert response.json() == {"status": "success"}
        authority.add_rating.assert_awaited_once_with(7, 5, "203.0.113.9")
        assert authority.get_ratings.await_count == 2

    def test_ratings_foreign_origin(self, client):
        response = client.get("/ratings", params={"resourceId": "7"}, headers={"Origin": "https://evil.example"})

        assert response.status_code == 403

    def test_ratings_method_not_allowed(self, client):
        assert client.delete("/ratings").status_code == 405

    def test_ratings_read_rate_limited(self, client):
        for _ in range(30):
            client.get("/ratings", params={"resourceId": "7"})

        response = client.get("/ratings", params={"resourceId": "7"})

        assert response.status_code == 429
        assert response.json()["message"] == "Too many requests."
        assert "retry-after" in response.headers

    def test_ratings_backend_down(self, client, authority):
        authority.get_ratings.side_effect = UpstreamUnavailableError("Authority unreachable")

        response = client.get("/ratings", params={"resourceId": "7"})

        assert response.status_code == 502
        assert response.json()["message"] == "Backend unavailable"

    def test_unexpected_error_is_generic_500(self, app, authority):
        authority.get_ratings.side_effect = RuntimeError("boom")
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/ratings", params={"resourceId": "7"})

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert "boom" not in response.text

    # Pass-through

    def test_other_paths_go_to_origin(self, client, origin_proxy):
        origin_proxy.forward.return_value = Response("home", status_code=200, media_type="text/plain")

        response = client.get("/index.html")

        assert response.status_code == 200
        assert response.text == "home"
        origin_proxy.forward.assert_awaited_once()

    def test_no_origin_configured(self, config, cache, authority):
        client = TestClient(create_app(config, cache=cache, authority=authority))

        response = client.get("/index.html")

        assert response.status_code == 404


@pytest.mark.parametrize("path,expected", [
    ("/auth/login", True),
    ("/auth/login/", True),
    ("/ratings/", True),
    ("/protected/7", False),
    ("/index.html", False),
])
def test_is_api_path(path, expected):
    assert is_api_path(path) is expected
