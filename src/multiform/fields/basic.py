"""Module for defining basic Field types of Entity"""

import datetime
from uuid import UUID

import bleach
from dateutil.parser import parse as date_parser

from multiform.fields.base import Field
from multiform.fields.validators import LengthValidator, RangeValidator
from multiform.utils import IdentityStrategy, IdentityType

TRUE_STRINGS = frozenset(["t", "true", "1", "on", "yes"])
FALSE_STRINGS = frozenset(["f", "false", "0", "off", "no"])


class _TextField(Field):
    default_error_messages = {
        "invalid": "must be a string",
    }

    def __init__(self, sanitize=False, **kwargs):
        self.sanitize = sanitize
        super().__init__(**kwargs)

    def _cast_to_type(self, value):
        value = value if isinstance(value, str) else str(value)
        if self.sanitize:
            value = bleach.clean(value)
        return value

    def as_dict(self, value):
        return value


class String(_TextField):
    """Single-line text. Surrounding whitespace is stripped.

    :param max_length: The maximum allowed length for the field.
    :param min_length: The minimum allowed length for the field.
    :param sanitize: Escape markup in the value with `bleach`.
    """

    def __init__(self, max_length=255, min_length=None, **kwargs):
        self.max_length = max_length
        self.min_length = min_length
        super().__init__(**kwargs)

    def _type_validators(self):
        return [LengthValidator(self.min_length, self.max_length)]

    def _cast_to_type(self, value):
        return super()._cast_to_type(value).strip()


class Text(_TextField):
    """Multi-line text, kept exactly as submitted"""


class _NumberField(Field):
    def __init__(self, min_value=None, max_value=None, **kwargs):
        self.min_value = min_value
        self.max_value = max_value
        super().__init__(**kwargs)

    def _type_validators(self):
        return [RangeValidator(self.min_value, self.max_value)]

    def as_dict(self, value):
        return value


class Integer(_NumberField):
    """Whole numbers. `"7"` and `7.0` are accepted, `2.5` is not.

    :param min_value: The minimum allowed value for the field.
    :param max_value: The maximum allowed value for the field.
    """

    default_error_messages = {
        "invalid": "must be an integer",
    }

    def _cast_to_type(self, value):
        if isinstance(value, bool):
            self.fail("invalid", value=value)
        if isinstance(value, float):
            if not value.is_integer():
                self.fail("invalid", value=value)
            return int(value)

        try:
            return int(value.strip() if isinstance(value, str) else value)
        except (ValueError, TypeError):
            self.fail("invalid", value=value)


class Float(_NumberField):
    default_error_messages = {
        "invalid": "must be a number",
    }

    def _cast_to_type(self, value):
        try:
            return float(value)
        except (ValueError, TypeError):
            self.fail("invalid", value=value)


class Boolean(Field):
    """True or false. Checkboxes submit strings, so common spellings are accepted."""

    default_error_messages = {
        "invalid": "must be either true or false",
    }

    def _cast_to_type(self, value):
        if value in (True, False):
            return bool(value)
        if isinstance(value, str):
            if value.lower() in TRUE_STRINGS:
                return True
            if value.lower() in FALSE_STRINGS:
                return False
        self.fail("invalid", value=value)

    def as_dict(self, value):
        return value


class Date(Field):
    default_error_messages = {
        "invalid": "must be a valid date",
    }

    def _cast_to_type(self, value):
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value

        try:
            return date_parser(value).date()
        except (ValueError, TypeError, OverflowError):
            self.fail("invalid", value=value)

    def as_dict(self, value):
        return value.isoformat() if value is not None else None


class DateTime(Field):
    default_error_messages = {
        "invalid": "must be a valid datetime",
    }

    def _cast_to_type(self, value):
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())

        try:
            return date_parser(value)
        except (ValueError, TypeError, OverflowError):
            self.fail("invalid", value=value)

    def as_dict(self, value):
        return value.isoformat() if value is not None else None


class Identifier(Field):
    """Identity of an entity, or a value of the same shape.

    :param identity_type: `integer`, `string` (the default) or `uuid`.
    """

    default_error_messages = {
        "invalid": "is not a valid identifier",
    }

    def __init__(self, identity_type=IdentityType.STRING.value, **kwargs):
        if identity_type not in {member.value for member in IdentityType}:
            raise ValueError(f"Unknown identity type `{identity_type}`")

        self.identity_type = identity_type
        super().__init__(**kwargs)

    def _cast_to_type(self, value):
        try:
            if self.identity_type == IdentityType.INTEGER.value:
                if isinstance(value, bool):
                    raise TypeError(value)
                return int(value)
            if self.identity_type == IdentityType.UUID.value:
                return value if isinstance(value, UUID) else UUID(str(value))
        except (ValueError, TypeError):
            self.fail("invalid", value=value)

        if not isinstance(value, (str, int, UUID)):
            self.fail("invalid", value=value)
        return str(value)

    def as_dict(self, value):
        return str(value) if isinstance(value, UUID) else value


class Auto(Identifier):
    """Identity assigned when the entity is first saved.

    With `increment`, the store hands out the next integer of a sequence.
    Otherwise a value is generated before insertion, with a random UUID or
    with `identity_function`.
    """

    def __init__(
        self,
        increment=False,
        identity_strategy=IdentityStrategy.UUID.value,
        identity_function=None,
        identity_type=None,
        **kwargs,
    ):
        self.increment = increment
        self.identity_strategy = identity_strategy
        self.identity_function = identity_function

        if identity_type is None:
            identity_type = (
                IdentityType.INTEGER.value if increment else IdentityType.STRING.value
            )

        super().__init__(identity_type=identity_type, **kwargs)

    def _load(self, value):
        # New entities have no identity yet
        if self.is_blank(value):
            return None
        return super()._load(value)
