"""
routes/users.py: account route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call the service function(s)
  - Commit the DB session
  - Return the standard envelope: {"status": "success", "data": ...}

AppError propagates to the global error handler: routes never catch it.

Endpoints (url_prefix=/api/v1/users):
  POST   /signup        → 201  (sets token cookies)
  POST   /login         → 200  (sets token cookies)
  POST   /logout        → 200  (auth; blacklists the session jti, clears cookies)
  GET    /me            → 200  (auth)
  PATCH  /me            → 200  (auth)
  POST   /me/password   → 200  (auth)
"""

from __future__ import annotations

import logging

import jwt
from flask import Blueprint, current_app, g, jsonify, request

from checklist.app.extensions import db
from checklist.app.middleware.auth_middleware import require_auth
from checklist.app.routes.token_cookies import clear_token_cookies, tokens_response
from checklist.app.schemas.user_schema import (
    ChangePasswordSchema,
    LoginSchema,
    SignupSchema,
    UpdateProfileSchema,
)
from checklist.app.services import blacklist_service, token_service, user_service

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)


@users_bp.route("/signup", methods=["POST"])
def signup():
    """POST /users/signup: Create account; set token cookies. (No auth required.)"""
    data = SignupSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.register_user(
        email=data["email"],
        username=data["username"],
        password=data["password"],
        session=db.session,
    )
    tokens = token_service.issue_tokens(user.id, db.session)
    db.session.commit()
    return tokens_response(user, tokens, 201)


@users_bp.route("/login", methods=["POST"])
def login():
    """POST /users/login: Authenticate; set token cookies. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    tokens = token_service.issue_tokens(user.id, db.session)
    db.session.commit()
    logger.info("User %s logged in.", user.id)
    return tokens_response(user, tokens, 200)


@users_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """
    POST /users/logout: Revoke the session and clear both cookies.

    The access and refresh tokens of one session share a jti. When the
    refresh cookie verifies, that jti is blacklisted until the refresh
    token's own expiry and its refresh record is dropped; otherwise the
    access token's jti is blacklisted until the access token expires.
    """
    jti, expires_at = g.token_jti, g.token_exp

    raw_refresh = request.cookies.get(current_app.config["REFRESH_TOKEN_COOKIE"])
    if raw_refresh:
        try:
            claims = token_service.decode_token(raw_refresh, token_service.REFRESH)
        except jwt.InvalidTokenError:
            logger.info("Ignoring unusable refresh cookie at logout for user %s.", g.user_id)
        else:
            refresh_jti = claims["jti"]
            blacklist_service.blacklist_token(
                refresh_jti, token_service.claims_expiry(claims), db.session,
            )
            token_service.revoke_refresh_record(refresh_jti, db.session)
            if refresh_jti == jti:
                jti = None

    if jti is not None:
        blacklist_service.blacklist_token(jti, expires_at, db.session)

    db.session.commit()
    logger.info("User %s logged out.", g.user_id)

    response = jsonify({"status": "success", "data": {"message": "User logged out successfully."}})
    clear_token_cookies(response)
    return response, 200


@users_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /users/me: Return the current user profile."""
    user = user_service.get_user(g.user_id, db.session)
    return jsonify({"status": "success", "data": {"user": user_service.build_user_dict(user)}}), 200


@users_bp.route("/me", methods=["PATCH"])
@require_auth
def update_me():
    """PATCH /users/me: Update bio, status and/or username."""
    data = UpdateProfileSchema().load(request.get_json(force=True, silent=True) or {})
    user = user_service.update_profile(
        user_id=g.user_id,
        session=db.session,
        bio=data.get("bio"),
        status=data.get("status"),
        username=data.get("new_username"),
    )
    db.session.commit()
    return jsonify({"status": "success", "data": {"user": user_service.build_user_dict(user)}}), 200


@users_bp.route("/me/password", methods=["POST"])
@require_auth
def change_password():
    """POST /users/me/password: Change password after verifying the current one."""
    data = ChangePasswordSchema().load(request.get_json(force=True, silent=True) or {})
    user_service.change_password(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"status": "success", "data": {"message": "Password changed successfully."}}), 200
