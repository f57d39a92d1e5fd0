"""
tests/integration/conftest.py: Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite (TestingConfig, TEST_DATABASE_URL
    overrides it). Flask-SQLAlchemy shares one connection for `sqlite://`,
    so every request in the session sees the same database.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted child-tables-first so tests are isolated.
  - Tokens travel as cookies; the test client's cookie jar carries them
    between requests exactly as a browser would.

Helper functions (not fixtures) are provided for common operations:
  - signup(client, ...)        → user dict (cookies now set on the client)
  - login(client, ...)         → user dict (cookies now set on the client)
  - as_user(client, user)      → swap the client's cookies to another session
  - make_list(client, ...)     → list dict
  - add_member(client, ...)    → HTTP response
  - make_item(client, ...)     → item dict
"""

from __future__ import annotations

import pytest
from sqlalchemy import delete

from checklist.app import create_app
from checklist.app.extensions import db as _db

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the app in 'testing' mode once and builds the schema."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(delete(table))
        _db.session.commit()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client and cookie jar."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def cookie_value(client, name: str) -> str | None:
    cookie = client.get_cookie(name)
    return cookie.value if cookie is not None else None


def session_cookies(client) -> dict:
    """Snapshot of the client's current token cookies."""
    return {
        ACCESS_COOKIE: cookie_value(client, ACCESS_COOKIE),
        REFRESH_COOKIE: cookie_value(client, REFRESH_COOKIE),
    }


def use_cookies(client, cookies: dict) -> None:
    """Replaces the client's token cookies with a saved snapshot."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        client.delete_cookie(name)
        if cookies.get(name):
            client.set_cookie(name, cookies[name])


def signup(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Creates a user and leaves their token cookies on the client.
    Returns: {"id", "email", "username", ..., "cookies": {...}}
    """
    if email is None:
        email = f"{username}@test.com"
    resp = client.post(
        "/api/v1/users/signup",
        json={"username": username, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"signup failed: {resp.get_json()}"
    user = resp.get_json()["data"]["user"]
    user["cookies"] = session_cookies(client)
    return user


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/users/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    user = resp.get_json()["data"]["user"]
    user["cookies"] = session_cookies(client)
    return user


def as_user(client, user: dict) -> None:
    """Makes subsequent requests on `client` run as `user`."""
    use_cookies(client, user["cookies"])


def make_list(client, title: str = "Groceries") -> dict:
    resp = client.post("/api/v1/lists/", json={"title": title})
    assert resp.status_code == 201, f"make_list failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(client, list_id: int, username: str):
    """Adds a user to a list by username (owner session required)."""
    return client.post(
        f"/api/v1/lists/{list_id}/members",
        json={"username": username},
    )


def make_item(client, list_id: int, item_text: str = "Milk") -> dict:
    resp = client.post(f"/api/v1/lists/{list_id}/items", json={"item_text": item_text})
    assert resp.status_code == 201, f"make_item failed: {resp.get_json()}"
    return resp.get_json()["data"]
