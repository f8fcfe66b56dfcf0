"""Module for defining base Field class"""

import enum
from abc import ABCMeta, abstractmethod
from collections import defaultdict
from typing import Any, Iterable, Optional

from multiform import exceptions

# Field name used in error messages of fields that do not belong to an entity
UNBOUND = "unlinked"


class Field(metaclass=ABCMeta):
    """Descriptor holding one attribute of an entity.

    Assignments are stored as given, valid or not, so that a rejected
    submission can be shown back to the user exactly as it was typed.
    Casting and validation happen in `_load`, which the entity runs while
    validating::

        width = Integer(required=True, min_value=1)

    :param identifier: The field holds the entity's identity. Implies `required`.
    :param referenced_as: Name of the attribute in the store, if it differs
        from the field name.
    :param default: Value (or callable returning one) used for new entities
        and for blank submissions.
    :param required: Blank values fail validation.
    :param choices: An `Enum` whose member values are the accepted values.
    :param validators: Extra validators, run after the field's own.
    :param error_messages: Overrides of `default_error_messages`.
    :param label: Name of the field in user-facing messages.
    """

    default_error_messages = {
        "invalid": "is invalid",
        "required": "is required",
        "invalid_choice": "`{value!r}` is not a valid choice",
    }

    # Submitted values treated as "nothing entered"
    empty_values = (None, "", [], (), {})

    def __init__(
        self,
        identifier: bool = False,
        referenced_as: Optional[str] = None,
        default: Any = None,
        required: bool = False,
        choices: Optional[type[enum.Enum]] = None,
        validators: Iterable = (),
        error_messages: Optional[dict] = None,
        label: Optional[str] = None,
    ):
        self.field_name = None
        self.referenced_as = referenced_as

        self.identifier = identifier
        self.required = identifier or required
        self.default = default
        self.label = label

        self.choices = choices
        self._choice_values = (
            {member.value for member in choices} if choices is not None else None
        )
        self._validators = list(validators)

        self.error_messages = self._collect_error_messages(error_messages)

    @classmethod
    def _collect_error_messages(cls, overrides):
        messages = {}
        for klass in reversed(cls.__mro__):
            messages.update(getattr(klass, "default_error_messages", {}))
        messages.update(overrides or {})
        return messages

    def __set_name__(self, entity_cls, name):
        self.field_name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.__dict__.get(self.field_name)

    def __set__(self, instance, value):
        instance.__dict__[self.field_name] = value

        # Any user change invalidates an earlier validation
        if hasattr(instance, "state_"):
            instance.state_.mark_changed()

    def __delete__(self, instance):
        instance.__dict__.pop(self.field_name, None)

    def __repr__(self):
        return f"{self.__class__.__name__}(field_name={self.field_name!r})"

    def get_attribute_name(self) -> str:
        """Name under which the value is kept in the store"""
        return self.referenced_as or self.field_name

    @property
    def validators(self) -> list:
        """Validators of the field type, then the ones passed in"""
        return [*self._type_validators(), *self._validators]

    def _type_validators(self) -> list:
        return []

    def fail(self, key: str, **kwargs):
        """Raise a `ValidationError` with the message registered under `key`"""
        if key not in self.error_messages:
            raise AssertionError(
                f"`{self.__class__.__name__}` has no error message for `{key}`"
            )

        message = self.error_messages[key]
        if isinstance(message, str):
            message = message.format(**kwargs)

        raise exceptions.ValidationError({self.field_name or UNBOUND: [message]})

    def default_value(self):
        """Return the default value of the field, calling it if necessary"""
        return self.default() if callable(self.default) else self.default

    def is_blank(self, value: Any) -> bool:
        return value in self.empty_values

    @abstractmethod
    def _cast_to_type(self, value: Any):
        """Convert a submitted value to the field's native type.

        Raises `ValidationError` (through `fail("invalid")`) if it cannot.
        """

    @abstractmethod
    def as_dict(self, value):
        """Return JSON-compatible value of field"""

    def coerce(self, value: Any):
        """Cast `value` to the field's native type, or return `None` if it cannot be cast.

        Used to decide whether a string (like a submitted row key) could be a
        stored value of this field at all.
        """
        if self.is_blank(value):
            return None

        try:
            return self._cast_to_type(value)
        except exceptions.ValidationError:
            return None

    def _check_choice(self, value):
        for item in value if isinstance(value, (list, tuple)) else [value]:
            if item not in self._choice_values:
                self.fail("invalid_choice", value=item)

    def _run_validators(self, value):
        errors = defaultdict(list)
        for validator in self.validators:
            try:
                validator(value)
            except exceptions.ValidationError as err:
                errors[self.field_name or UNBOUND].append(err.messages)

        if errors:
            raise exceptions.ValidationError(errors)

    def _load(self, value: Any):
        """Return the cleaned value of a submission, or raise `ValidationError`.

        Blank values become the default, or `None`. Otherwise the value is
        checked against the choices, cast, and run through the validators.
        """
        if self.is_blank(value):
            if self.default is not None:
                return self.default_value()
            if self.required:
                self.fail("required")
            return None

        if self._choice_values is not None:
            self._check_choice(value)

        value = self._cast_to_type(value)

        # Stripping can leave nothing behind
        if self.is_blank(value):
            if self.required:
                self.fail("required")
            return None

        self._run_validators(value)
        return value
