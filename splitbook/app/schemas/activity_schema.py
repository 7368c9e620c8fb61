"""
schemas/activity_schema.py — Query-string schema for GET /activity.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class ActivityQuerySchema(Schema):
    """
    group_id is optional; without it the feed covers every group the
    caller belongs to. The route caps limit at ACTIVITY_PAGE_LIMIT.
    """

    group_id = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="group_id must be a positive integer."),
    )
    limit = fields.Int(
        load_default=50,
        validate=validate.Range(min=1, error="limit must be a positive integer."),
    )
    offset = fields.Int(
        load_default=0,
        validate=validate.Range(min=0, error="offset must not be negative."),
    )
