"""
schemas/user_schema.py: Marshmallow schemas for account endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/user_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME checks
    (they require a DB lookup: not a schema concern).

All schemas inherit from marshmallow.Schema directly so unit tests can load
them without an application context.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

USER_STATUSES = ("idle", "focusing", "busy")

_username_rules = validate.Length(
    min=3,
    max=30,
    error="Username must be between 3 and 30 characters.",
)


class SignupSchema(Schema):
    """POST /users/signup"""

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    username = fields.Str(
        required=True,
        validate=_username_rules,
    )

    password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=6,
            error="Password must be at least 6 characters long.",
        ),
    )


class LoginSchema(Schema):
    """
    POST /users/login

    Credential correctness is checked in user_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class UpdateProfileSchema(Schema):
    """PATCH /users/me: every field optional, at least one required."""

    bio = fields.Str(
        validate=validate.Length(
            max=500,
            error="Bio must be at most 500 characters.",
        ),
    )
    status = fields.Str(
        validate=validate.OneOf(
            USER_STATUSES,
            error="Status must be one of: idle, focusing, busy.",
        ),
    )
    new_username = fields.Str(validate=_username_rules)

    @validates_schema
    def require_one_field(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Provide at least one of bio, status, new_username.")


class ChangePasswordSchema(Schema):
    """POST /users/me/password"""

    current_password = fields.Str(required=True, load_only=True)
    new_password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=6,
            error="New password must be at least 6 characters long.",
        ),
    )
