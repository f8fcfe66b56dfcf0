"""Per-entity error reports of an aggregate form"""

from dataclasses import dataclass, field

import inflection
from marshmallow import Schema, fields as schema_fields

from multiform.entity import ENTITY_ERRORS_KEY, BaseEntity
from multiform.utils.reflection import fields


@dataclass
class ErrorEntry:
    """Messages for one entity of the form.

    `messages` are ready for display, like ``"Code is required"``. `errors`
    keeps the raw messages by field name.
    """

    label: str
    messages: list = field(default_factory=list)
    errors: dict = field(default_factory=dict)

    @classmethod
    def for_entity(cls, label: str, entity: BaseEntity) -> "ErrorEntry":
        errors = {name: list(messages) for name, messages in entity.errors.items() if messages}
        return cls(label=label, messages=flatten_messages(entity), errors=errors)


def flatten_messages(entity: BaseEntity) -> list[str]:
    """Prefix each field message with the field's label or humanized name"""
    flattened = []
    entity_fields = fields(entity)

    for field_name, messages in entity.errors.items():
        if field_name == ENTITY_ERRORS_KEY:
            flattened.extend(str(message) for message in messages)
            continue

        field_obj = entity_fields.get(field_name)
        if field_obj is not None and field_obj.label:
            name = field_obj.label
        else:
            name = inflection.humanize(field_name)

        flattened.extend(f"{name} {message}" for message in messages)

    return flattened


class ErrorEntrySchema(Schema):
    label = schema_fields.String(required=True)
    messages = schema_fields.List(schema_fields.String())
    errors = schema_fields.Dict(
        keys=schema_fields.String(), values=schema_fields.List(schema_fields.String())
    )


def dump_report(entries: list[ErrorEntry]) -> list[dict]:
    """Serialize report entries into JSON-compatible dictionaries"""
    return ErrorEntrySchema(many=True).dump(entries)
