from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from staff_auth.core.rate_limiter import InMemoryLoginRateLimiter
from staff_auth.models.auth_session import AuthSession
from staff_auth.models.staff_user import StaffUser
from staff_auth.routers.auth import FORGOT_PASSWORD_MESSAGE
from tests.fakes import RecordingNotifier
from tests.fixtures_data import KNOWN_PASSWORD, ROLE_DASHBOARDS, STAFF_BY_ROLE, WRONG_PASSWORD
from tests.helpers import fetch_csrf_token, post_login, session_cookie_header


def test_csrf_endpoint_issues_a_token(build_client):
    client = build_client()

    first = fetch_csrf_token(client)
    second = fetch_csrf_token(client)

    assert len(first) == 64
    assert first != second


@pytest.mark.parametrize("role", sorted(ROLE_DASHBOARDS))
def test_login_sets_session_cookie_and_role_redirect(build_client, seed_staff, role):
    seed_staff(role)
    client = build_client()

    response = post_login(client, STAFF_BY_ROLE[role]["email"], KNOWN_PASSWORD)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user"]["role"] == role
    assert body["user"]["tenant"]["name"] == "Burger House"
    assert body["redirectUrl"] == ROLE_DASHBOARDS[role]
    assert body["remainingAttempts"] == 4

    set_cookie = session_cookie_header(response)
    assert "HttpOnly" in set_cookie
    assert "Path=/" in set_cookie
    assert "SameSite=lax" in set_cookie
    assert "Max-Age=28800" in set_cookie


def test_login_cookie_value_is_opaque_and_not_stored_in_clear(build_client, seed_staff, session_factory):
    seed_staff("waiter")
    client = build_client()

    response = post_login(client, "waiter@example.com", KNOWN_PASSWORD)
    token = response.cookies.get("auth_session")

    db = session_factory()
    try:
        stored = db.query(AuthSession).one()
    finally:
        db.close()
    assert len(token) == 64
    assert stored.token_hash != token


def test_remember_me_extends_cookie_lifetime(build_client, seed_staff):
    seed_staff("owner")
    client = build_client()

    response = post_login(client, "owner@example.com", KNOWN_PASSWORD, rememberMe=True)

    assert "Max-Age=2592000" in session_cookie_header(response)


def test_login_honours_only_relative_redirects(build_client, seed_staff):
    seed_staff("waiter")
    client = build_client()

    safe = post_login(client, "waiter@example.com", KNOWN_PASSWORD, redirectUrl="/waiter/tables/4")
    unsafe = post_login(client, "waiter@example.com", KNOWN_PASSWORD, redirectUrl="https://evil.example.com")

    assert safe.json()["redirectUrl"] == "/waiter/tables/4"
    assert unsafe.json()["redirectUrl"] == "/waiter/dashboard"


def test_login_without_matching_csrf_is_rejected_first(build_client, seed_staff):
    seed_staff("waiter")
    client = build_client()
    csrf_token = fetch_csrf_token(client)

    missing_header = client.post(
        "/api/auth/login",
        json={"email": "waiter@example.com", "password": KNOWN_PASSWORD, "csrfToken": csrf_token},
    )
    mismatched = client.post(
        "/api/auth/login",
        json={"csrfToken": csrf_token},
        headers={"X-CSRF-Token": "other"},
    )

    assert missing_header.status_code == 403
    assert missing_header.json()["code"] == "csrf_failed"
    assert mismatched.status_code == 403
    assert session_cookie_header(missing_header) == ""


def test_login_missing_fields_is_400(build_client):
    client = build_client()

    response = post_login(client, "", "")

    assert response.status_code == 400
    assert response.json()["detail"] == "Email and password are required"


def test_wrong_password_and_unknown_email_look_identical(build_client, seed_staff):
    seed_staff("waiter")
    client = build_client()

    wrong_password = post_login(client, "waiter@example.com", WRONG_PASSWORD)
    unknown_email = post_login(client, "ghost@example.com", KNOWN_PASSWORD)

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_sixth_login_is_locked_even_with_correct_password(build_client, seed_staff, session_factory):
    user_id = seed_staff("chef")
    client = build_client(limiter=InMemoryLoginRateLimiter(limit=100))

    statuses = [post_login(client, "chef@example.com", WRONG_PASSWORD).status_code for _ in range(5)]
    locked = post_login(client, "chef@example.com", KNOWN_PASSWORD)

    assert statuses == [401] * 5
    assert locked.status_code == 423
    assert locked.json()["code"] == "account_locked"
    assert locked.json()["lockedUntil"].endswith("Z")

    db = session_factory()
    try:
        user = db.get(StaffUser, user_id)
        assert user.failed_attempt_count == 5
        assert user.locked_until is not None
    finally:
        db.close()


def test_sixth_attempt_from_one_client_is_rate_limited(build_client):
    client = build_client()

    for _ in range(5):
        assert post_login(client, "ghost@example.com", WRONG_PASSWORD).status_code == 401
    limited = post_login(client, "ghost@example.com", WRONG_PASSWORD)

    assert limited.status_code == 429
    assert limited.json()["code"] == "rate_limited"
    assert "resetTime" in limited.json()
    assert int(limited.headers["Retry-After"]) > 0


def test_rotating_forwarded_for_does_not_escape_the_rate_limit(build_client):
    client = build_client()

    statuses = [
        post_login(
            client,
            "ghost@example.com",
            WRONG_PASSWORD,
            headers={"X-Forwarded-For": f"203.0.113.{attempt}"},
        ).status_code
        for attempt in range(6)
    ]

    assert statuses == [401] * 5 + [429]


def test_me_returns_current_user(build_client, seed_staff, issue_session):
    user_id = seed_staff("owner")
    client = build_client()
    client.cookies.set("auth_session", issue_session(user_id))

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["user"]["id"] == user_id


def test_me_without_session_is_401(build_client):
    response = build_client().get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"
    assert "location" not in response.headers


def test_me_with_stale_cookie_clears_it(build_client):
    client = build_client()
    client.cookies.set("auth_session", "0" * 64)

    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert "Max-Age=0" in session_cookie_header(response)


def test_logout_revokes_session_and_clears_cookie(build_client, seed_staff, issue_session):
    user_id = seed_staff("waiter")
    token = issue_session(user_id)
    client = build_client()
    client.cookies.set("auth_session", token)

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert "Max-Age=0" in session_cookie_header(response)

    client.cookies.set("auth_session", token)
    assert client.get("/api/auth/me").status_code == 401


def test_logout_without_session_still_succeeds(build_client):
    response = build_client().post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_forgot_password_response_does_not_reveal_accounts(build_client, seed_staff):
    seed_staff("waiter")
    seed_staff("chef", is_active=False)
    notifier = RecordingNotifier()
    client = build_client(notifier=notifier)

    responses = [
        client.post("/api/auth/forgot-password", json={"email": email})
        for email in ("waiter@example.com", "ghost@example.com", "chef@example.com")
    ]

    assert {response.status_code for response in responses} == {200}
    assert all(response.json() == {"success": True, "message": FORGOT_PASSWORD_MESSAGE} for response in responses)
    assert len(notifier.sent) == 1


def test_forgot_password_accepts_restaurant_scope(build_client, seed_staff):
    seed_staff("waiter")
    notifier = RecordingNotifier()
    client = build_client(notifier=notifier)

    client.post("/api/auth/forgot-password", json={"email": "waiter@example.com", "restaurant_id": 2})
    client.post("/api/auth/forgot-password", json={"email": "waiter@example.com", "tenant_id": 1})

    assert len(notifier.sent) == 1


def test_forgot_password_hides_internal_failures(build_client):
    client = build_client()

    with patch(
        "staff_auth.routers.auth.PasswordResetService.request",
        side_effect=RuntimeError("smtp down"),
    ):
        response = client.post("/api/auth/forgot-password", json={"email": "waiter@example.com"})

    assert response.status_code == 200
    assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE


def test_forgot_password_requires_email(build_client):
    response = build_client().post("/api/auth/forgot-password", json={})

    assert response.status_code == 400


def test_malformed_login_body_is_400_not_422(build_client):
    client = build_client()
    csrf_token = fetch_csrf_token(client)

    response = client.post(
        "/api/auth/login",
        json={"email": "waiter@example.com", "password": 12345678, "rememberMe": "maybe", "csrfToken": csrf_token},
        headers={"X-CSRF-Token": csrf_token},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid request", "code": "validation_error"}


def test_malformed_reset_password_body_is_400(build_client):
    response = build_client().post("/api/auth/reset-password", json={"token": ["x"], "new_password": 42})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_malformed_forgot_password_body_still_gets_generic_reply(build_client, seed_staff):
    seed_staff("waiter")
    notifier = RecordingNotifier()
    client = build_client(notifier=notifier)

    response = client.post(
        "/api/auth/forgot-password",
        json={"email": "waiter@example.com", "restaurant_id": "not-a-number"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": FORGOT_PASSWORD_MESSAGE}
    assert notifier.sent == []


def test_reset_password_flow_revokes_sessions_and_changes_password(build_client, seed_staff, issue_session):
    user_id = seed_staff("waiter")
    old_token = issue_session(user_id)
    notifier = RecordingNotifier()
    client = build_client(notifier=notifier)
    client.post("/api/auth/forgot-password", json={"email": "waiter@example.com"})
    reset_token = notifier.sent[0][1]

    reset = client.post(
        "/api/auth/reset-password",
        json={"token": reset_token, "new_password": "fresh-password-7"},
    )

    assert reset.status_code == 200
    assert reset.json()["success"] is True

    client.cookies.set("auth_session", old_token)
    assert client.get("/api/auth/me").status_code == 401
    assert post_login(client, "waiter@example.com", KNOWN_PASSWORD).status_code == 401
    assert post_login(client, "waiter@example.com", "fresh-password-7").status_code == 200

    replay = client.post(
        "/api/auth/reset-password",
        json={"token": reset_token, "new_password": "another-password-8"},
    )
    assert replay.status_code == 400
    assert replay.json()["code"] == "invalid_reset_token"


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"token": "0" * 64, "new_password": "long-enough-1"}, "invalid_reset_token"),
        ({"token": "0" * 64, "new_password": "short"}, "validation_error"),
        ({"token": "0" * 64}, "validation_error"),
        ({"new_password": "long-enough-1"}, "validation_error"),
    ],
)
def test_reset_password_errors_are_400(build_client, payload, code):
    response = build_client().post("/api/auth/reset-password", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_unexpected_failure_returns_generic_500(build_client, seed_staff):
    seed_staff("waiter")
    client = build_client(raise_server_exceptions=False)

    with patch(
        "staff_auth.routers.auth.LoginService.authenticate",
        side_effect=RuntimeError("pool exhausted at 10.0.0.5"),
    ):
        response = post_login(client, "waiter@example.com", KNOWN_PASSWORD)

    assert response.status_code == 500
    assert response.json() == {"detail": "Unexpected error", "code": "internal_error"}


def test_storage_failure_is_mapped_to_internal_error(build_client, seed_staff):
    seed_staff("waiter")
    client = build_client()

    with patch(
        "staff_auth.routers.auth.LoginService.authenticate",
        side_effect=OperationalError("SELECT 1", {}, Exception("server closed the connection")),
    ):
        response = post_login(client, "waiter@example.com", KNOWN_PASSWORD)

    assert response.status_code == 500
    assert "server closed" not in response.text
