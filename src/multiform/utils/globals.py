"""Context-local state shared by providers and units of work"""

from __future__ import annotations

from typing import TYPE_CHECKING

from werkzeug.local import LocalProxy, LocalStack

if TYPE_CHECKING:
    from multiform.unit_of_work import UnitOfWork

# Units of work in progress, innermost on top
_uow_context_stack = LocalStack()


def _find_uow() -> UnitOfWork | None:
    return _uow_context_stack.top


current_uow: UnitOfWork = LocalProxy(_find_uow)  # type: ignore
