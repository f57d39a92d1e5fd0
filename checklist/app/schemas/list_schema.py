"""
schemas/list_schema.py: Marshmallow schemas for list and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - middleware/authorize.py: owner / member role checks.
  - services/list_service.py: USER_NOT_FOUND, ALREADY_MEMBER, NOT_A_MEMBER.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate

from checklist.app.services.list_service import LIST_FILTERS


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_title_field_rules = [
    validate.Length(
        min=1,
        max=255,
        error="List title must be between 1 and 255 characters.",
    ),
    _validate_non_empty_after_trim,
]


class CreateListSchema(Schema):
    """POST /lists"""

    title = fields.Str(required=True, validate=_title_field_rules)


class UpdateListSchema(Schema):
    """PATCH /lists/:id"""

    title = fields.Str(required=True, validate=_title_field_rules)


class ListQuerySchema(Schema):
    """GET /lists query string."""

    class Meta:
        unknown = EXCLUDE

    type = fields.Str(
        load_default="all",
        validate=validate.OneOf(LIST_FILTERS),
    )
    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1),
    )
    limit = fields.Int(
        load_default=10,
        validate=validate.Range(min=1, max=100),
    )


class AddMemberSchema(Schema):
    """POST /lists/:id/members: the user is looked up by username."""

    username = fields.Str(
        required=True,
        validate=_validate_non_empty_after_trim,
    )


class ItemCountsSchema(Schema):
    """POST /lists/item-counts"""

    list_ids = fields.List(
        fields.Int(
            strict=True,
            validate=validate.Range(min=1, error="list_ids must hold positive integers."),
        ),
        required=True,
        validate=validate.Length(min=1, error="list_ids must contain at least one ID."),
    )
