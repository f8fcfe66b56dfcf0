"""Utility module for Multiform

Definitions/declaractions in this module should be independent of other modules,
to the maximum extent possible.
"""

from __future__ import annotations

import importlib
import importlib.metadata
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

from multiform.exceptions import ConfigurationError


class IdentityStrategy(Enum):
    UUID = "uuid"
    FUNCTION = "function"


class IdentityType(Enum):
    INTEGER = "integer"
    STRING = "string"
    UUID = "uuid"


def get_version() -> str:
    return importlib.metadata.version("multiform")


def import_from_full_path(path: str) -> Any:
    """Import an object given as `package.module:attribute` or `package.module.attribute`"""
    if ":" in path:
        module_name, attribute = path.split(":", maxsplit=1)
    else:
        module_name, _, attribute = path.rpartition(".")

    if not module_name or not attribute:
        raise ConfigurationError(f"Invalid import path `{path}`")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Could not import module `{module_name}`") from exc

    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(f"Module `{module_name}` has no attribute `{attribute}`")


_UUID_FORMATS = {
    IdentityType.INTEGER.value: lambda value: value.int,
    IdentityType.STRING.value: str,
    IdentityType.UUID.value: lambda value: value,
}


def generate_identity(
    identity_strategy: Optional[str] = None,
    identity_function: Callable[[], Any] | None = None,
    identity_type: Optional[str] = None,
) -> str | int | UUID:
    """Generate an identity for an entity that is about to be inserted.

    The `uuid` strategy (the default) returns a random UUID in the shape of
    `identity_type`. The `function` strategy calls `identity_function`.
    """
    strategy = identity_strategy or IdentityStrategy.UUID.value

    if strategy == IdentityStrategy.FUNCTION.value:
        if not callable(identity_function):
            raise ConfigurationError("Identity function is invalid")
        identity = identity_function()
    elif strategy == IdentityStrategy.UUID.value:
        try:
            to_identity = _UUID_FORMATS[identity_type or IdentityType.STRING.value]
        except KeyError:
            raise ConfigurationError(f"Unknown Identity Type '{identity_type}'")
        identity = to_identity(uuid4())
    else:
        raise ConfigurationError(f"Unknown Identity Strategy {strategy}")

    if identity is None:
        raise ConfigurationError("Failed to generate identity value")

    return identity
