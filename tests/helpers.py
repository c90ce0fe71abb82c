from __future__ import annotations

from fastapi.testclient import TestClient

from staff_auth.core.config import SESSION_COOKIE_NAME


def fetch_csrf_token(client: TestClient) -> str:
    return client.get("/api/auth/csrf").json()["csrfToken"]


def post_login(client: TestClient, email: str, password: str, *, headers: dict | None = None, **extra):
    csrf_token = fetch_csrf_token(client)
    body = {"email": email, "password": password, "csrfToken": csrf_token, **extra}
    return client.post("/api/auth/login", json=body, headers={"X-CSRF-Token": csrf_token, **(headers or {})})


def session_cookie_header(response) -> str:
    for header in response.headers.get_list("set-cookie"):
        if header.startswith(f"{SESSION_COOKIE_NAME}="):
            return header
    return ""
