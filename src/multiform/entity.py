"""Entities edited through forms: declared fields, deferred validation and lifecycle state"""

import copy
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any

import inflection

from multiform.exceptions import (
    InvalidDataError,
    NotSupportedError,
    ValidationError,
)
from multiform.fields import Auto, Field
from multiform.utils.reflection import (
    _FIELDS,
    _ID_FIELD_NAME,
    assignable_fields,
    fields,
    id_field,
)

logger = logging.getLogger(__name__)

# Concrete entity classes by name, for resolving `Reference("Product")` style targets
entity_registry: dict[str, type] = {}

# Key of messages that belong to the entity as a whole
ENTITY_ERRORS_KEY = "_entity"


class Options(dict):
    """Settings from an entity's inner `Meta` class.

    - ``abstract``: The class only shares fields with subclasses and cannot be instantiated
    - ``schema_name``: Name of the table or collection holding the entity
    """

    def __init__(self, opts: dict | None = None) -> None:
        super().__init__(opts or {})
        self["abstract"] = bool(self.get("abstract"))

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'Options' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value


class Stage(Enum):
    """Where an entity is in its validate/persist lifecycle"""

    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    PERSISTED = "persisted"


class _EntityState:
    """Lifecycle of one entity instance.

    `stage` says whether the current values were validated or saved.
    `is_new` says whether the entity exists in the store at all, and
    `is_changed` whether a stored entity was modified since it was loaded.
    """

    def __init__(self):
        self._new = True
        self._changed = False
        self.stage = Stage.UNVALIDATED

    @property
    def is_new(self):
        return self._new

    @property
    def is_persisted(self):
        return not self._new

    @property
    def is_changed(self):
        return self._changed

    @property
    def is_validated(self):
        return self.stage is Stage.VALIDATED

    def mark_changed(self):
        self._changed = not self._new
        self.stage = Stage.UNVALIDATED

    def mark_validated(self):
        self.stage = Stage.VALIDATED

    def mark_invalid(self):
        self.stage = Stage.UNVALIDATED

    def mark_saved(self):
        self._new = False
        self._changed = False
        self.stage = Stage.PERSISTED

    # Loaded entities are in the same state as freshly saved ones
    mark_retrieved = mark_saved


def invariant(func):
    """Mark a method as a rule spanning several fields.

    Invariants run during `validate()`, only after every field has loaded
    cleanly. They raise `ValidationError`, with a message for the whole
    entity or with messages keyed by field name.
    """
    func._invariant = True
    return func


def _collect_fields(entity_cls) -> dict:
    """Fields of the base classes, then the ones declared on the class, in order"""
    collected = {}
    for base in reversed(entity_cls.__bases__):
        collected.update(getattr(base, _FIELDS, {}))

    collected.update(
        {
            name: attr
            for name, attr in entity_cls.__dict__.items()
            if isinstance(attr, Field)
        }
    )
    return collected


class BaseEntity:
    """The Base class for Multiform Entities.

    Declare attributes with fields from :mod:`multiform.fields`::

        class Parcel(BaseEntity):
            code = String(required=True, max_length=50)
            width = Integer(required=True, min_value=1)
            product_id = Reference("Product")

    An `Auto` identifier named `id` is added when no field is marked as
    `identifier`. Its value is generated by the store on first save.

    Entities never raise on bad values during construction or assignment.
    Values are kept as submitted until `validate()` casts them and collects
    messages into `errors`.
    """

    meta_ = Options({"abstract": True})
    _invariants: dict = {}

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)

        meta = cls.__dict__.get("Meta")
        cls.meta_ = Options(
            {
                key: value
                for key, value in vars(meta).items()
                if not key.startswith("__")
            }
            if meta
            else {}
        )
        cls.meta_.setdefault("schema_name", inflection.underscore(cls.__name__))

        setattr(cls, _FIELDS, _collect_fields(cls))

        if not cls.meta_.abstract:
            cls._set_identity_field()
            entity_registry[cls.__name__] = cls

        cls._invariants = {
            name: method
            for name, method in inspect.getmembers(cls, predicate=inspect.isroutine)
            if getattr(method, "_invariant", False)
        }

    @classmethod
    def _set_identity_field(cls):
        identifiers = [
            field_obj for field_obj in fields(cls).values() if field_obj.identifier
        ]

        if len(identifiers) > 1:
            raise NotSupportedError(
                f"`{cls.__name__}` declares {len(identifiers)} identifier fields, "
                f"only one is allowed"
            )

        if identifiers:
            setattr(cls, _ID_FIELD_NAME, identifiers[0].field_name)
            return

        # Numbered by the store, and listed first like a primary key column
        id_field_obj = Auto(identifier=True, increment=True)
        setattr(cls, "id", id_field_obj)
        id_field_obj.__set_name__(cls, "id")
        setattr(cls, _FIELDS, {"id": id_field_obj, **fields(cls)})
        setattr(cls, _ID_FIELD_NAME, "id")

    def __init__(self, *template, **kwargs):
        """
        Initialise the entity object.

        Supports keyword arguments as well as dictionaries. The objects
        initialized in the following example have the same structure::

            parcel1 = Parcel({'code': 'keyboard', 'width': 50})

            parcel2 = Parcel(code='keyboard', width=50)

        Fields that are not supplied receive their default values.
        """
        if self.meta_.abstract:
            raise NotSupportedError(
                f"`{self.__class__.__name__}` is abstract and cannot be instantiated"
            )

        supplied = {}
        for dictionary in template:
            if not isinstance(dictionary, dict):
                raise AssertionError(
                    f"Positional argument {dictionary} passed must be a dict. "
                    f"This argument serves as a template for loading common values."
                )
            supplied.update(dictionary)
        supplied.update(kwargs)

        unknown = [name for name in supplied if name not in fields(self)]
        if unknown:
            raise InvalidDataError({name: ["is not a known attribute"] for name in unknown})

        self.errors = defaultdict(list)
        for field_name, field_obj in fields(self).items():
            self.__dict__[field_name] = (
                supplied[field_name] if field_name in supplied else field_obj.default_value()
            )

        self.defaults()

        # Whatever `defaults()` assigned is not a user change
        self.state_ = _EntityState()

    def defaults(self):
        """Placeholder method for defaults.

        To be overridden in concrete entities, when an attribute's default
        depends on other attribute values.
        """

    def __setattr__(self, name, value):
        if name in fields(self) or name in ("errors", "state_"):
            super().__setattr__(name, value)
        else:
            raise InvalidDataError({name: ["is not a known attribute"]})

    @property
    def identity(self):
        return self.__dict__.get(id_field(self).field_name)

    def assign(self, data: dict) -> "BaseEntity":
        """Mass-assign submitted attribute values.

        Only declared, non-identifier fields are assigned. Everything else in
        `data` is skipped, because payloads come from outside and may carry
        stray keys.
        """
        allowed = assignable_fields(self)
        for field_name, value in data.items():
            if field_name in allowed:
                setattr(self, field_name, value)
            else:
                logger.debug(
                    f"Skipping unassignable attribute `{field_name}` "
                    f"on {self.__class__.__name__}"
                )

        return self

    def _check_invariants(self, errors) -> None:
        for method in self._invariants.values():
            try:
                method(self)
            except ValidationError as err:
                if not isinstance(err.messages, dict):
                    errors[ENTITY_ERRORS_KEY].append(err.messages)
                    continue

                for name, messages in err.messages.items():
                    errors[name].extend(
                        messages if isinstance(messages, list) else [messages]
                    )

    def validate(self) -> dict[str, list]:
        """Cast all field values, run field validators and invariants.

        Returns the collected errors, which are also left on `errors`. The
        entity moves to the validated stage only when there are none.
        """
        errors = defaultdict(list)
        cleaned = {}

        for field_name, field_obj in fields(self).items():
            try:
                cleaned[field_name] = field_obj._load(self.__dict__.get(field_name))
            except ValidationError as err:
                for name, messages in err.messages.items():
                    errors[name].extend(messages)

        if not errors:
            # Cleaned values replace the submitted ones
            self.__dict__.update(cleaned)
            self._check_invariants(errors)

        self.errors = errors
        if errors:
            logger.debug(f"{self} failed validation: {dict(errors)}")
            self.state_.mark_invalid()
        else:
            self.state_.mark_validated()

        return dict(errors)

    def _link(self, field_name: str, value: Any) -> None:
        """Write a value without treating it as a user change.

        Used by the store and the coordinator for identity and foreign keys,
        which are owned by them and do not need revalidation.
        """
        self.__dict__[field_name] = value

    def _to_record(self) -> dict:
        """Return field values keyed by their storage attribute names"""
        return {
            field_obj.get_attribute_name(): self.__dict__.get(field_name)
            for field_name, field_obj in fields(self).items()
        }

    @classmethod
    def _from_record(cls, record: dict) -> "BaseEntity":
        """Rebuild a persisted entity from a stored record"""
        entity = cls.__new__(cls)
        entity.errors = defaultdict(list)
        entity.state_ = _EntityState()

        for field_name, field_obj in fields(cls).items():
            entity.__dict__[field_name] = record.get(field_obj.get_attribute_name())

        entity.state_.mark_retrieved()
        return entity

    def _snapshot(self):
        """Capture values and state, to be restored if a transaction rolls back"""
        return (dict(self.__dict__), copy.copy(self.state_))

    def _restore(self, snapshot) -> None:
        values, state = snapshot
        errors = self.errors

        self.__dict__.clear()
        self.__dict__.update(values)

        # Error annotations are newer than the snapshot and stay
        self.__dict__["errors"] = errors
        self.__dict__["state_"] = state

    def to_dict(self):
        """Return entity data as a dictionary"""
        data = {}
        for field_name, field_obj in fields(self).items():
            value = self.__dict__.get(field_name)
            data[field_name] = field_obj.as_dict(value) if value is not None else None
        return data

    def __eq__(self, other):
        """Entities of the same class are equal when they share an identity"""
        if type(other) is not type(self):
            return False

        if self.identity is None or other.identity is None:
            return self is other
        return self.identity == other.identity

    def __hash__(self):
        if self.identity is None:
            return id(self)
        return hash((self.__class__, self.identity))

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self}>"

    def __str__(self):
        return (
            f"{self.__class__.__name__} object "
            f"({id_field(self).field_name}: {self.identity})"
        )
