"""
errors.py: AppError base class and error code registry.

Every error returned by the API uses a code defined here. Services,
middleware and routes raise AppError; only the global handlers registered in
app/__init__.py turn it into an HTTP response.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    @property
    def status(self) -> str:
        """'fail' for client errors, 'error' for server errors."""
        return "fail" if 400 <= self.http_status < 500 else "error"

    def to_dict(self) -> dict:
        payload = {
            "status":  self.status,
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD               = "MISSING_FIELD"
    INVALID_FIELD               = "INVALID_FIELD"
    INVALID_RESOURCE_IDENTIFIER = "INVALID_RESOURCE_IDENTIFIER"
    INVALID_STATUS_FILTER       = "INVALID_STATUS_FILTER"
    NOT_A_MEMBER                = "NOT_A_MEMBER"
    OWNER_CANNOT_LEAVE          = "OWNER_CANNOT_LEAVE"
    BAD_REQUEST                 = "BAD_REQUEST"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL             = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME          = "DUPLICATE_USERNAME"
    ALREADY_MEMBER              = "ALREADY_MEMBER"
    TOKEN_GENERATION_CONFLICT   = "TOKEN_GENERATION_CONFLICT"  # duplicate jti

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND              = "USER_NOT_FOUND"
    LIST_NOT_FOUND              = "LIST_NOT_FOUND"
    ITEM_NOT_FOUND              = "ITEM_NOT_FOUND"
    NOT_FOUND                   = "NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but your role on the resource is not enough
    INVALID_CREDENTIALS         = "INVALID_CREDENTIALS"     # 401
    TOKEN_MISSING               = "TOKEN_MISSING"           # 401
    TOKEN_INVALID               = "TOKEN_INVALID"           # 401
    TOKEN_EXPIRED               = "TOKEN_EXPIRED"           # 401
    TOKEN_REVOKED               = "TOKEN_REVOKED"           # 401
    REFRESH_TOKEN_MISSING       = "REFRESH_TOKEN_MISSING"   # 401
    REFRESH_TOKEN_INVALID       = "REFRESH_TOKEN_INVALID"   # 401
    FORBIDDEN                   = "FORBIDDEN"               # 403

    # ── Throttling (429) ───────────────────────────────────────────────────
    RATE_LIMITED                = "RATE_LIMITED"

    # ── System Errors (500) ────────────────────────────────────────────────
    TOKEN_GENERATION_FAILED     = "TOKEN_GENERATION_FAILED"
    BLACKLIST_FAILED            = "BLACKLIST_FAILED"
    INTERNAL_ERROR              = "INTERNAL_ERROR"
