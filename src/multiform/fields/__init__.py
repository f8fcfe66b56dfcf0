from .association import Reference
from .base import Field
from .basic import (
    Auto,
    Boolean,
    Date,
    DateTime,
    Float,
    Identifier,
    Integer,
    String,
    Text,
)

__all__ = [
    "Auto",
    "Boolean",
    "Date",
    "DateTime",
    "Field",
    "Float",
    "Identifier",
    "Integer",
    "Reference",
    "String",
    "Text",
]
