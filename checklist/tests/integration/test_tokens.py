"""
tests/integration/test_tokens.py: refresh rotation and the access guard.

Endpoints covered:
  POST /tokens/refresh-token → 200

Access guard failures (all 401):
  TOKEN_MISSING  : no access cookie
  TOKEN_INVALID  : malformed, wrong secret, or non-numeric sub
  TOKEN_EXPIRED  : exp in the past
  TOKEN_REVOKED  : jti on the blacklist

Refresh validation failures (all 401):
  REFRESH_TOKEN_MISSING
  REFRESH_TOKEN_INVALID: bad signature, already rotated, blacklisted,
                          record expired, user deleted
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import select

from checklist.app.extensions import db
from checklist.app.models.refresh_token import RefreshToken
from checklist.app.models.user import User

from .conftest import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    as_user,
    cookie_value,
    signup,
    use_cookies,
)


def _forge(app, secret_key: str, sub="1", jti=None, exp_delta=timedelta(minutes=15)) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": sub, "jti": jti or str(uuid.uuid4()), "iat": now, "exp": now + exp_delta},
        app.config[secret_key],
        algorithm="HS256",
    )


def _jti_of(app, raw_token: str, secret_key: str) -> str:
    return jwt.decode(raw_token, app.config[secret_key], algorithms=["HS256"])["jti"]


# ═══════════════════════════════════════════════════════════════════════════
# POST /tokens/refresh-token
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshRotation:

    def test_refresh_returns_200_and_new_cookies(self, client):
        user = signup(client, "alice")
        resp = client.post("/api/v1/tokens/refresh-token")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["user"]["id"] == user["id"]
        assert cookie_value(client, REFRESH_COOKIE) != user["cookies"][REFRESH_COOKIE]
        assert cookie_value(client, ACCESS_COOKIE) != user["cookies"][ACCESS_COOKIE]

    def test_new_access_cookie_authenticates(self, client):
        signup(client, "alice")
        client.post("/api/v1/tokens/refresh-token")
        assert client.get("/api/v1/users/me").status_code == 200

    def test_rotation_replaces_the_refresh_record(self, app, client):
        user = signup(client, "alice")
        old_jti = _jti_of(app, user["cookies"][REFRESH_COOKIE], "REFRESH_TOKEN_SECRET")

        client.post("/api/v1/tokens/refresh-token")
        new_jti = _jti_of(app, cookie_value(client, REFRESH_COOKIE), "REFRESH_TOKEN_SECRET")

        with app.app_context():
            jtis = db.session.execute(
                select(RefreshToken.jti).where(RefreshToken.user_id == user["id"])
            ).scalars().all()
        assert jtis == [new_jti]
        assert old_jti != new_jti

    def test_old_refresh_token_is_rejected_after_rotation(self, client):
        """login → refresh → replay the first refresh token → 401."""
        user = signup(client, "alice")
        assert client.post("/api/v1/tokens/refresh-token").status_code == 200

        as_user(client, user)
        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_rotated_pair_can_rotate_again(self, client):
        signup(client, "alice")
        assert client.post("/api/v1/tokens/refresh-token").status_code == 200
        assert client.post("/api/v1/tokens/refresh-token").status_code == 200

    def test_missing_refresh_cookie_returns_401(self, client):
        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_MISSING"

    def test_access_token_in_refresh_cookie_is_rejected(self, client):
        user = signup(client, "alice")
        use_cookies(client, {REFRESH_COOKIE: user["cookies"][ACCESS_COOKIE]})
        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_unrecorded_jti_is_rejected(self, app, client):
        user = signup(client, "alice")
        forged = _forge(app, "REFRESH_TOKEN_SECRET", sub=str(user["id"]))
        use_cookies(client, {REFRESH_COOKIE: forged})
        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_expired_refresh_record_is_rejected(self, app, client):
        user = signup(client, "alice")
        with app.app_context():
            record = db.session.execute(
                select(RefreshToken).where(RefreshToken.user_id == user["id"])
            ).scalar_one()
            record.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
            db.session.commit()

        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_record_owned_by_another_user_is_rejected(self, app, client):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        alice_jti = _jti_of(app, alice["cookies"][REFRESH_COOKIE], "REFRESH_TOKEN_SECRET")

        forged = _forge(app, "REFRESH_TOKEN_SECRET", sub=str(bob["id"]), jti=alice_jti)
        use_cookies(client, {REFRESH_COOKIE: forged})
        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401

    def test_deleted_user_cannot_refresh(self, app, client):
        user = signup(client, "alice")
        with app.app_context():
            db.session.delete(db.session.get(User, user["id"]))
            db.session.commit()

        resp = client.post("/api/v1/tokens/refresh-token")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"


# ═══════════════════════════════════════════════════════════════════════════
# Access guard
# ═══════════════════════════════════════════════════════════════════════════

class TestAccessGuard:

    def test_missing_cookie_returns_token_missing(self, client):
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_MISSING"

    def test_garbage_token_returns_token_invalid(self, client):
        client.set_cookie(ACCESS_COOKIE, "not-a-jwt")
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_refresh_token_as_access_token_is_invalid(self, client):
        user = signup(client, "alice")
        use_cookies(client, {ACCESS_COOKIE: user["cookies"][REFRESH_COOKIE]})
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_non_numeric_subject_is_invalid(self, app, client):
        client.set_cookie(ACCESS_COOKIE, _forge(app, "ACCESS_TOKEN_SECRET", sub="alice"))
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_expired_token_returns_token_expired(self, app, client):
        expired = _forge(app, "ACCESS_TOKEN_SECRET", exp_delta=timedelta(minutes=-1))
        client.set_cookie(ACCESS_COOKIE, expired)
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_EXPIRED"

    def test_blacklisted_token_returns_token_revoked(self, client):
        user = signup(client, "alice")
        client.post("/api/v1/users/logout")

        as_user(client, user)
        resp = client.get("/api/v1/lists/")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_REVOKED"

    def test_error_envelope_shape(self, client):
        body = client.get("/api/v1/lists/").get_json()
        assert body["status"] == "fail"
        assert set(body) >= {"status", "code", "message"}
