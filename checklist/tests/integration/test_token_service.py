"""
tests/integration/test_token_service.py: token_service and blacklist_service
against a real database session.

Properties checked:
  - an issued pair shares sub and jti, and exactly one refresh row exists
    for that jti with the refresh token's expiry
  - the access and refresh tokens are signed with different secrets
  - rotating a consumed jti fails and issues nothing
  - blacklisting is idempotent
  - a duplicate-key insert leaves earlier work in the session intact
  - expired rows are pruned, live ones are kept (also via the CLI)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import func, select

from checklist.app.clock import as_utc
from checklist.app.errors import AppError
from checklist.app.extensions import db
from checklist.app.models.blacklisted_token import BlacklistedToken
from checklist.app.models.refresh_token import RefreshToken
from checklist.app.models.user import User
from checklist.app.services import blacklist_service, token_service


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.rollback()


@pytest.fixture
def user_id(ctx):
    user = User(email="alice@test.com", username="alice", password_hash="x")
    db.session.add(user)
    db.session.commit()
    return user.id


def _refresh_count() -> int:
    return db.session.execute(select(func.count()).select_from(RefreshToken)).scalar_one()


class TestIssueTokens:

    def test_pair_shares_subject_and_jti(self, app, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)

        access = token_service.decode_token(tokens["access_token"], token_service.ACCESS)
        refresh = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)

        assert access["sub"] == refresh["sub"] == str(user_id)
        assert access["jti"] == refresh["jti"]

    def test_access_expires_before_refresh(self, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)
        access = token_service.decode_token(tokens["access_token"], token_service.ACCESS)
        refresh = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)

        assert refresh["exp"] - access["exp"] == 604800 - 900

    def test_secrets_are_not_interchangeable(self, app, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)
        with pytest.raises(jwt.InvalidSignatureError):
            token_service.decode_token(tokens["access_token"], token_service.REFRESH)
        with pytest.raises(jwt.InvalidSignatureError):
            token_service.decode_token(tokens["refresh_token"], token_service.ACCESS)

    def test_exactly_one_record_with_refresh_expiry(self, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)
        db.session.commit()
        claims = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)

        records = db.session.execute(
            select(RefreshToken).where(RefreshToken.jti == claims["jti"])
        ).scalars().all()
        assert len(records) == 1
        assert records[0].user_id == user_id
        expected = token_service.claims_expiry(claims)
        assert abs(as_utc(records[0].expires_at) - expected) < timedelta(seconds=1)


class TestRotateTokens:

    def test_rotation_replaces_record(self, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)
        old_jti = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)["jti"]
        db.session.commit()

        new_tokens = token_service.rotate_tokens(old_jti, user_id, db.session)
        db.session.commit()

        new_jti = token_service.decode_token(new_tokens["refresh_token"], token_service.REFRESH)["jti"]
        assert new_jti != old_jti
        assert token_service.find_refresh_record(old_jti, db.session) is None
        assert token_service.find_refresh_record(new_jti, db.session) is not None
        assert _refresh_count() == 1

    def test_second_rotation_of_same_jti_fails_without_issuing(self, user_id):
        tokens = token_service.issue_tokens(user_id, db.session)
        jti = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)["jti"]
        db.session.commit()

        token_service.rotate_tokens(jti, user_id, db.session)
        db.session.commit()

        with pytest.raises(AppError) as exc_info:
            token_service.rotate_tokens(jti, user_id, db.session)
        assert exc_info.value.code == "REFRESH_TOKEN_INVALID"
        assert exc_info.value.http_status == 401
        assert _refresh_count() == 1

    def test_unknown_jti_fails(self, user_id):
        with pytest.raises(AppError) as exc_info:
            token_service.rotate_tokens("never-issued", user_id, db.session)
        assert exc_info.value.code == "REFRESH_TOKEN_INVALID"

    def test_jti_conflict_keeps_the_consumed_record_deleted(self, user_id, monkeypatch):
        first = token_service.issue_tokens(user_id, db.session)
        second = token_service.issue_tokens(user_id, db.session)
        old_jti = token_service.decode_token(first["refresh_token"], token_service.REFRESH)["jti"]
        taken_jti = token_service.decode_token(second["refresh_token"], token_service.REFRESH)["jti"]
        db.session.commit()

        monkeypatch.setattr(token_service, "_generate_jti", lambda: taken_jti)
        with pytest.raises(AppError) as exc_info:
            token_service.rotate_tokens(old_jti, user_id, db.session)
        assert exc_info.value.code == "TOKEN_GENERATION_CONFLICT"

        db.session.commit()
        assert token_service.find_refresh_record(old_jti, db.session) is None
        assert token_service.find_refresh_record(taken_jti, db.session) is not None


class TestBlacklist:

    def test_blacklist_is_idempotent(self, ctx):
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        blacklist_service.blacklist_token("jti-1", expires, db.session)
        db.session.commit()
        blacklist_service.blacklist_token("jti-1", expires, db.session)
        db.session.commit()

        count = db.session.execute(
            select(func.count()).select_from(BlacklistedToken)
        ).scalar_one()
        assert count == 1
        assert blacklist_service.is_blacklisted("jti-1", db.session)

    def test_lost_insert_race_keeps_earlier_work_in_the_session(self, user_id, monkeypatch):
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        tokens = token_service.issue_tokens(user_id, db.session)
        refresh_jti = token_service.decode_token(tokens["refresh_token"], token_service.REFRESH)["jti"]
        db.session.add(BlacklistedToken(jti="jti-taken", expires_at=expires))
        db.session.commit()

        blacklist_service.blacklist_token(refresh_jti, expires, db.session)
        token_service.revoke_refresh_record(refresh_jti, db.session)
        # Another request inserted "jti-taken" after the existence check.
        monkeypatch.setattr(blacklist_service, "is_blacklisted", lambda jti, session: False)
        blacklist_service.blacklist_token("jti-taken", expires, db.session)
        monkeypatch.undo()
        db.session.commit()

        assert blacklist_service.is_blacklisted(refresh_jti, db.session)
        assert token_service.find_refresh_record(refresh_jti, db.session) is None

    def test_unknown_jti_is_not_blacklisted(self, ctx):
        assert not blacklist_service.is_blacklisted("jti-unknown", db.session)


class TestPrune:

    def _seed(self, user_id):
        now = datetime.now(timezone.utc)
        db.session.add_all([
            RefreshToken(jti="live", user_id=user_id, expires_at=now + timedelta(days=1)),
            RefreshToken(jti="stale", user_id=user_id, expires_at=now - timedelta(days=1)),
            BlacklistedToken(jti="live", expires_at=now + timedelta(minutes=5)),
            BlacklistedToken(jti="stale", expires_at=now - timedelta(minutes=5)),
        ])
        db.session.commit()

    def test_purge_removes_only_expired_rows(self, user_id):
        self._seed(user_id)

        assert token_service.purge_expired_refresh_tokens(db.session) == 1
        assert blacklist_service.purge_expired(db.session) == 1
        db.session.commit()

        assert token_service.find_refresh_record("live", db.session) is not None
        assert token_service.find_refresh_record("stale", db.session) is None
        assert blacklist_service.is_blacklisted("live", db.session)
        assert not blacklist_service.is_blacklisted("stale", db.session)

    def test_prune_tokens_cli(self, app, user_id):
        self._seed(user_id)

        result = app.test_cli_runner().invoke(args=["prune-tokens"])

        assert result.exit_code == 0
        assert "Pruned 1 refresh token(s) and 1 blacklisted token(s)." in result.output
