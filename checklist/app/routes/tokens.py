"""
routes/tokens.py: token refresh.

Endpoint (url_prefix=/api/v1/tokens):
  POST /refresh-token → 200  validate refresh cookie, rotate, re-set cookies
"""

from __future__ import annotations

from flask import Blueprint, g

from checklist.app.extensions import db
from checklist.app.middleware.auth_middleware import require_refresh_token
from checklist.app.routes.token_cookies import tokens_response
from checklist.app.services import token_service

tokens_bp = Blueprint("tokens", __name__)


@tokens_bp.route("/refresh-token", methods=["POST"])
@require_refresh_token
def refresh_token():
    """POST /tokens/refresh-token: Exchange the refresh cookie for a new pair."""
    tokens = token_service.rotate_tokens(
        old_jti=g.refresh_jti,
        user_id=g.user.id,
        session=db.session,
    )
    db.session.commit()
    return tokens_response(g.user, tokens, 200)
