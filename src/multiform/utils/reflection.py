from __future__ import annotations

from typing import TYPE_CHECKING, Type

from multiform.exceptions import IncorrectUsageError

if TYPE_CHECKING:
    from multiform.entity import BaseEntity
    from multiform.fields.base import Field

_FIELDS = "__multiform_fields__"
_ID_FIELD_NAME = "__multiform_id_field__"


def fields(class_or_instance: Type[BaseEntity] | BaseEntity) -> dict[str, Field]:
    """Return a dictionary of fields in this element.

    Accepts an element or an instance of one.
    """
    try:
        fields_dict = getattr(class_or_instance, _FIELDS)
    except AttributeError:
        raise IncorrectUsageError(f"{class_or_instance} does not have fields")

    return fields_dict


def id_field(class_or_instance: Type[BaseEntity] | BaseEntity) -> Field | None:
    """Return the identity field in this element."""
    try:
        field_name = getattr(class_or_instance, _ID_FIELD_NAME)
    except AttributeError:
        return None

    return fields(class_or_instance)[field_name]


def reference_fields(class_or_instance: Type[BaseEntity] | BaseEntity) -> dict[str, Field]:
    """Return the fields holding references to other entities"""
    return {
        field_name: field_obj
        for field_name, field_obj in fields(class_or_instance).items()
        if hasattr(field_obj, "to_cls")
    }


def assignable_fields(class_or_instance: Type[BaseEntity] | BaseEntity) -> dict[str, Field]:
    """Return the fields that may be mass-assigned from submitted data.

    Identifiers are owned by the store and are never taken from a payload.
    """
    return {
        field_name: field_obj
        for field_name, field_obj in fields(class_or_instance).items()
        if not field_obj.identifier
    }
