"""Schema for persisted transaction state."""
from typing import Any

import marshmallow
from marshmallow import fields, post_load, validate

from ossmultipart.models import Part, TransferKind


class PartSchema(marshmallow.Schema):
    """part field schema."""

    number = fields.Integer(required=True, validate=validate.Range(min=1))
    etag = fields.String(required=True)
    size = fields.Integer(required=True, validate=validate.Range(min=0))
    last_modified = fields.AwareDateTime(
        required=False, allow_none=True, load_default=None
    )

    @post_load
    def make_part(self, data: dict[str, Any], **_: Any) -> Part:
        return Part(**data)


class OptionsSchema(marshmallow.Schema):
    """options snapshot schema."""

    part_size = fields.Integer(required=True, validate=validate.Range(min=1))


class CheckpointSchema(marshmallow.Schema):
    """checkpoint content schema."""

    transaction_id = fields.String(required=True)
    kind = fields.Enum(TransferKind, required=True)
    bucket = fields.String(required=True)
    object = fields.String(required=True)
    file = fields.String(required=True)
    creation_time = fields.AwareDateTime(required=True)
    version = fields.Integer(required=False, load_default=0)
    options = fields.Nested(OptionsSchema, required=True)
    source = fields.Dict(keys=fields.String(), required=False, load_default=dict)
    parts = fields.List(
        fields.Nested(PartSchema), required=False, load_default=list
    )


checkpoint_schema = CheckpointSchema(unknown=marshmallow.EXCLUDE)
