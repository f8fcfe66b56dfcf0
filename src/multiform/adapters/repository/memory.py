"""Implementation of a dictionary based store"""

import copy
from collections import defaultdict
from itertools import count
from threading import Lock

from multiform.exceptions import PersistenceError
from multiform.port.provider import BaseProvider
from multiform.utils.reflection import fields, id_field


class MemorySession:
    """A session works on its own copy of the provider's data.

    Writes made through the session become visible to others only when it
    commits, which swaps the copy in. Rolling back simply drops the copy.
    """

    def __init__(self, provider):
        self._provider = provider
        self.is_active = True

        with self._provider._lock:
            self._db = {
                "data": copy.deepcopy(self._provider._databases),
                "counters": self._provider._counters,
            }

    def commit(self):
        if not self.is_active:
            raise PersistenceError("Session is closed")

        with self._provider._lock:
            self._provider._databases = self._db["data"]

    def rollback(self):
        self._db["data"] = None

    def close(self):
        self.is_active = False


class MemoryProvider(BaseProvider):
    """Provider class for Dict Repositories"""

    __database__ = "memory"

    def __init__(self, name="default", conn_info: dict = None):
        """Initialize Provider with Connection/Adapter details"""

        # In case of `MemoryProvider`, the `database` value will always be `memory`.
        super().__init__(name, conn_info or {"provider": "memory"})

        # Global in-memory store of dict data, by schema name and then identity.
        #   Dictionaries keep insertion order, which is the natural retrieval order.
        self._databases = defaultdict(dict)
        self._lock = Lock()
        self._counters = defaultdict(lambda: count(1))

    def get_session(self):
        """Return a session object

        For Dictionary Repo, a session translates to a copy of the
        `database`. All transactions on the Provider's repositories
        are committed on this copy of the database.
        """
        return MemorySession(self)

    def get_connection(self):
        """Return a standalone session over the dictionary database"""
        return MemorySession(self)

    def is_alive(self) -> bool:
        """Check if the connection is alive"""
        return True

    def _data_reset(self):
        """Reset data"""
        with self._lock:
            self._databases = defaultdict(dict)
            self._counters = defaultdict(lambda: count(1))

    def _table(self, session, entity_cls):
        return session._db["data"][entity_cls.meta_.schema_name]

    def _id_attribute(self, entity_cls):
        return id_field(entity_cls).get_attribute_name()

    def _fetch(self, session, entity_cls, identifier):
        record = self._table(session, entity_cls).get(identifier)
        return copy.deepcopy(record) if record is not None else None

    def _filter(self, session, entity_cls, criteria):
        attribute_names = {
            field_name: field_obj.get_attribute_name()
            for field_name, field_obj in fields(entity_cls).items()
        }

        items = []
        for record in self._table(session, entity_cls).values():
            if all(
                record.get(attribute_names.get(key, key)) == value
                for key, value in criteria.items()
            ):
                items.append(copy.deepcopy(record))

        return items

    def _insert(self, session, entity_cls, record):
        id_attribute = self._id_attribute(entity_cls)
        table = self._table(session, entity_cls)

        if record.get(id_attribute) is None:
            counter_key = f"{entity_cls.meta_.schema_name}_{id_attribute}"
            record[id_attribute] = next(session._db["counters"][counter_key])

        identifier = record[id_attribute]
        if identifier in table:
            raise PersistenceError(
                f"`{entity_cls.__name__}` object with identifier {identifier} "
                f"is already present."
            )

        table[identifier] = copy.deepcopy(record)
        return record

    def _update(self, session, entity_cls, record):
        identifier = record[self._id_attribute(entity_cls)]
        table = self._table(session, entity_cls)

        if identifier not in table:
            return False

        table[identifier] = copy.deepcopy(record)
        return True
