"""
routes/token_cookies.py: cookie transport for the token pair.

Both cookies are httpOnly and SameSite=Strict; `secure` follows
TOKEN_COOKIE_SECURE (on in production). Max-age mirrors each token's TTL.
"""

from __future__ import annotations

import logging

from flask import Response, current_app, jsonify

from checklist.app.models.user import User
from checklist.app.services.user_service import build_user_dict

logger = logging.getLogger(__name__)


def _cookie_options(max_age: int) -> dict:
    return {
        "max_age": max_age,
        "httponly": True,
        "secure": current_app.config["TOKEN_COOKIE_SECURE"],
        "samesite": current_app.config["TOKEN_COOKIE_SAMESITE"],
        "path": "/",
    }


def set_token_cookies(response: Response, tokens: dict) -> Response:
    config = current_app.config
    response.set_cookie(
        config["ACCESS_TOKEN_COOKIE"],
        tokens["access_token"],
        **_cookie_options(int(config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds())),
    )
    response.set_cookie(
        config["REFRESH_TOKEN_COOKIE"],
        tokens["refresh_token"],
        **_cookie_options(int(config["JWT_REFRESH_TOKEN_EXPIRES"].total_seconds())),
    )
    return response


def clear_token_cookies(response: Response) -> Response:
    config = current_app.config
    for name in (config["ACCESS_TOKEN_COOKIE"], config["REFRESH_TOKEN_COOKIE"]):
        response.delete_cookie(
            name,
            path="/",
            secure=config["TOKEN_COOKIE_SECURE"],
            httponly=True,
            samesite=config["TOKEN_COOKIE_SAMESITE"],
        )
    return response


def tokens_response(user: User, tokens: dict, status_code: int = 200) -> tuple[Response, int]:
    """JSON body with the sanitized user, plus both token cookies."""
    logger.info("Setting token cookies for user %s.", user.id)
    response = jsonify({"status": "success", "data": {"user": build_user_dict(user)}})
    set_token_cookies(response, tokens)
    return response, status_code
