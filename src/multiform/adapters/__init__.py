# Adapters
from multiform.adapters.repository import Providers
from multiform.adapters.repository.memory import MemoryProvider

__all__ = (
    "MemoryProvider",
    "Providers",
)
