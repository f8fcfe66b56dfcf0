__version__ = "0.1.0"

from .coordinator import AggregateForm, Outcome
from .entity import BaseEntity, invariant
from .payload import AttributeUpdate, EntityHandle, Placeholder, new_pending_key, parse_form
from .unit_of_work import UnitOfWork
from .utils import get_version
from .utils.globals import current_uow

__all__ = [
    "AggregateForm",
    "AttributeUpdate",
    "BaseEntity",
    "current_uow",
    "EntityHandle",
    "get_version",
    "invariant",
    "new_pending_key",
    "Outcome",
    "parse_form",
    "Placeholder",
    "UnitOfWork",
]
