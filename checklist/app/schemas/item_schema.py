"""
schemas/item_schema.py: Marshmallow schemas for item endpoints.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("Item text must not be empty.")


class CreateItemSchema(Schema):
    """POST /lists/:id/items"""

    item_text = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=500,
                error="Item text must be between 1 and 500 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )


class ResolveItemSchema(Schema):
    """PATCH /items/:id"""

    # Rejects string spellings such as "yes" or "true".
    is_resolved = fields.Bool(
        required=True,
        truthy={True},
        falsy={False},
    )
