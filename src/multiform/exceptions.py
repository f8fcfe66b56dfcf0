"""
Custom Multiform exception classes
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class MultiformException(Exception):
    """Base class for all Exceptions raised within Multiform"""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args)

        self.extra_info = kwargs.get("extra_info", None)

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.args[0],))


class MultiformExceptionWithMessage(MultiformException):
    def __init__(
        self, messages: dict[str, list], traceback: Optional[str] = None, **kwargs: Any
    ) -> None:
        logger.debug(f"Exception:: {messages}")

        self.messages = messages
        self.traceback = traceback

        super().__init__(**kwargs)

    def __str__(self) -> str:
        if isinstance(self.messages, dict):
            return f"{dict(self.messages)}"
        return str(self.messages)

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.messages,))


class ConfigurationError(MultiformException):
    """Improper Configuration encountered like:
    * An important configuration variable is missing
    * A child entity without a reference to the parent
    * An unknown database provider
    """


class ObjectNotFoundError(MultiformException):
    """Object was not found in the store"""


class InvalidDataError(MultiformExceptionWithMessage):
    """Data (type, value, shape) is invalid"""


class InvalidStateError(MultiformException):
    """Object is in invalid state for the given operation, like saving
    an entity that has not been validated"""


class InvalidOperationError(MultiformException):
    """Operation being performed is not permitted"""


class NotSupportedError(MultiformException):
    """Object does not support the operation being performed"""


class IncorrectUsageError(MultiformException):
    """Caller violated the contract of an API, like assigning parent
    attributes before a parent is present"""


class ValidationError(MultiformExceptionWithMessage):
    """Raised when validation fails on a field. Validators and custom fields should
    raise this exception.

    :param messages: An error message or a list of error messages or a
        dictionary of error message where key is field name and value is error

    """


class PersistenceError(MultiformException):
    """Raised by providers when the store rejects a write"""


class TransactionError(MultiformException):
    """Raised when a Unit of Work fails to commit"""
