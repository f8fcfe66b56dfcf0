"""Shaping submitted data into the input the coordinator consumes.

A submitted form arrives flat, with bracketed keys::

    Product[name]=Keyboard&Parcels[new1][code]=keyboard&Parcels[new1][width]=50

`parse_form` nests it into ``{role: {...}, children_role: {row_key: {...}}}``.
The row cloned by client-side scripts to add new rows carries the reserved
placeholder key, which is turned into `Placeholder.TEMPLATE` so that it can
never be mistaken for a real identity.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl
from uuid import uuid4

from marshmallow import Schema, ValidationError as SchemaValidationError, fields
from werkzeug.datastructures import MultiDict

from multiform.entity import BaseEntity
from multiform.exceptions import InvalidDataError

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "__id__"
PENDING_KEY_PREFIX = "new"

_KEY_PATTERN = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SEGMENT_PATTERN = re.compile(r"\[([^\[\]]*)\]")


class Placeholder(Enum):
    """Row key of the template row, which is never validated or saved"""

    TEMPLATE = PLACEHOLDER_KEY


def is_placeholder(key: Any, placeholder_key: str = PLACEHOLDER_KEY) -> bool:
    return key is Placeholder.TEMPLATE or key == placeholder_key


def new_pending_key(prefix: str = PENDING_KEY_PREFIX) -> str:
    """Return a fresh row key for a row that has not been saved yet"""
    return f"{prefix}{uuid4().hex[:12]}"


@dataclass(frozen=True)
class AttributeUpdate:
    """Attribute values to assign onto an entity"""

    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class EntityHandle:
    """An entity to hold as-is"""

    entity: BaseEntity


def as_input(value):
    """Tag a raw mapping or entity as `AttributeUpdate` or `EntityHandle`"""
    if isinstance(value, (AttributeUpdate, EntityHandle)):
        return value
    if isinstance(value, BaseEntity):
        return EntityHandle(value)
    if isinstance(value, Mapping):
        return AttributeUpdate(dict(value))

    raise InvalidDataError(
        {"_input": [f"expected an entity or a mapping of attributes, got {type(value).__name__}"]}
    )


def _items(data):
    if isinstance(data, MultiDict):
        return data.items(multi=True)
    if isinstance(data, (str, bytes)):
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return parse_qsl(data.lstrip("?"), keep_blank_values=True)
    if isinstance(data, Mapping):
        return data.items()

    raise InvalidDataError({"_form": [f"cannot parse form data of type {type(data).__name__}"]})


def parse_form(data, placeholder_key: str = PLACEHOLDER_KEY) -> dict:
    """Nest flat, bracket-keyed form data.

    Accepts a werkzeug `MultiDict`, a plain mapping or a query string. For
    repeated keys the last value wins. Keys keep the order of their first
    appearance.
    """
    result = {}

    for key, value in _items(data):
        match = _KEY_PATTERN.match(key)
        if not match:
            raise InvalidDataError({key: ["is not a valid form key"]})

        segments = [match.group(1), *_SEGMENT_PATTERN.findall(match.group(2))]
        segments = [
            Placeholder.TEMPLATE if depth > 0 and segment == placeholder_key else segment
            for depth, segment in enumerate(segments)
        ]

        target = result
        for segment in segments[:-1]:
            target = target.setdefault(segment, {})
            if not isinstance(target, dict):
                raise InvalidDataError({key: ["conflicts with a value at a shorter key"]})

        if isinstance(target.get(segments[-1]), dict):
            raise InvalidDataError({key: ["conflicts with nested values at the same key"]})
        target[segments[-1]] = value

    return result


class RowKey(fields.Field):
    """A row key: the placeholder, or a non-empty string"""

    default_error_messages = {"invalid": "Not a valid row key."}

    def _deserialize(self, value, attr, data, **kwargs):
        if value is Placeholder.TEMPLATE:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and value:
            return value
        raise self.make_error("invalid")


class _EntityOrMapping(fields.Field):
    default_error_messages = {"invalid": "Not a valid mapping."}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, (Mapping, BaseEntity, AttributeUpdate, EntityHandle)):
            return value
        raise self.make_error("invalid")


def payload_schema(parent_role: str, children_role: str) -> Schema:
    """Return a schema checking the payload's structure for the two roles.

    Other top-level keys, like CSRF tokens, are ignored.
    """
    schema_cls = Schema.from_dict(
        {
            parent_role: _EntityOrMapping(),
            children_role: fields.Dict(keys=RowKey(), values=_EntityOrMapping()),
        },
        name="PayloadSchema",
    )
    return schema_cls(unknown="exclude")


def validate_payload(payload, parent_role: str, children_role: str) -> None:
    """Raise `InvalidDataError` if `payload` does not have the expected structure"""
    if not isinstance(payload, Mapping):
        raise InvalidDataError({"_payload": ["must be a mapping"]})

    try:
        payload_schema(parent_role, children_role).load(dict(payload))
    except SchemaValidationError as err:
        logger.debug(f"Payload rejected: {err.messages}")
        raise InvalidDataError(err.messages)
