"""Base class for Providers"""

import logging
from abc import ABCMeta, abstractmethod
from typing import Any, Optional, Type

from multiform.entity import BaseEntity
from multiform.exceptions import InvalidStateError, PersistenceError
from multiform.utils import generate_identity
from multiform.utils.globals import current_uow
from multiform.utils.reflection import id_field, reference_fields

logger = logging.getLogger(__name__)


class BaseProvider(metaclass=ABCMeta):
    """Provider Implementation for each database that acts as a gateway to configure the database,
    retrieve connections and perform reads and writes.

    The public operations (`find_by_id`, `find_where`, `validate` and `save`) are
    implemented here once. Concrete providers supply sessions and the record-level
    primitives (`_fetch`, `_filter`, `_insert`, `_update`).

    Operations join the active Unit of Work when there is one. Otherwise they run
    on a fresh connection that is committed straight away.
    """

    def __init__(self, name: str, conn_info: dict):
        """Initialize Provider with Connection/Adapter details"""
        self.name = name
        self.conn_info = conn_info

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"

    @abstractmethod
    def get_session(self):
        """Establish a new session with the database.

        The session scope and the transaction scope match. A new session is
        created when a Unit of Work needs it, and is committed or rolled back
        with the Unit of Work.

        Sessions support `commit()`, `rollback()` and `close()`.
        """

    @abstractmethod
    def get_connection(self):
        """Get a standalone session, for operations outside a Unit of Work"""

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the connection is alive"""

    @abstractmethod
    def _fetch(self, session, entity_cls: Type[BaseEntity], identifier) -> Optional[dict]:
        """Return the stored record for `identifier`, or `None`"""

    @abstractmethod
    def _filter(self, session, entity_cls: Type[BaseEntity], criteria: dict) -> list[dict]:
        """Return stored records whose attributes equal `criteria`, in natural order"""

    @abstractmethod
    def _insert(self, session, entity_cls: Type[BaseEntity], record: dict) -> dict:
        """Store a new record and return it, including store-generated identity"""

    @abstractmethod
    def _update(self, session, entity_cls: Type[BaseEntity], record: dict) -> bool:
        """Overwrite an existing record. Return `False` if it no longer exists."""

    @abstractmethod
    def _data_reset(self):
        """Remove all stored data. Meant for tests."""

    def register(self, *entity_classes: Type[BaseEntity]) -> None:
        """Prepare the store for the entity classes, like creating tables.

        Stores without a schema need nothing, which is the default.
        """

    def _get_session(self):
        """Returns an active connection to the persistence store.

        - If there is an active transaction, the session associated with it (in the UoW) is returned
        - Otherwise a new connection is retrieved from the provider and returned.
        """
        if current_uow:
            return current_uow.get_session(self)
        return self.get_connection()

    def _run(self, operation, *args):
        """Run a record-level operation inside the right session"""
        session = self._get_session()
        if current_uow:
            return operation(session, *args)

        try:
            result = operation(session, *args)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_by_id(self, entity_cls: Type[BaseEntity], identifier: Any) -> Optional[BaseEntity]:
        """Return the persisted entity with the identity, or `None`"""
        if identifier is None:
            return None

        record = self._run(self._fetch, entity_cls, identifier)
        return entity_cls._from_record(record) if record is not None else None

    def find_where(self, entity_cls: Type[BaseEntity], **criteria) -> list[BaseEntity]:
        """Return persisted entities whose attributes equal `criteria`"""
        records = self._run(self._filter, entity_cls, criteria)
        return [entity_cls._from_record(record) for record in records]

    def validate(self, entity: BaseEntity) -> dict[str, list]:
        """Run the entity's own rules, then check its references against the store.

        Returns the collected errors, empty if the entity is valid.
        """
        errors = entity.validate()
        if errors:
            return errors

        for field_name, field_obj in reference_fields(entity).items():
            value = getattr(entity, field_name)
            if value is not None and self.find_by_id(field_obj.to_cls, value) is None:
                entity.errors[field_name].append(field_obj.missing_message())

        if entity.errors:
            entity.state_.mark_invalid()
            return dict(entity.errors)

        return {}

    def save(self, entity: BaseEntity, validate: bool = True) -> bool:
        """Persist the entity. Returns `False` if it could not be saved.

        With `validate=False`, the entity must already be in the validated
        stage. Validation is not repeated.
        """
        if validate:
            if self.validate(entity):
                return False
        elif not entity.state_.is_validated:
            raise InvalidStateError(
                f"{entity} has to be validated before it can be saved "
                f"(currently {entity.state_.stage.value})"
            )

        identity_field = id_field(entity)
        record = entity._to_record()

        try:
            if entity.state_.is_new:
                if record[identity_field.get_attribute_name()] is None and not getattr(
                    identity_field, "increment", True
                ):
                    record[identity_field.get_attribute_name()] = generate_identity(
                        identity_field.identity_strategy,
                        identity_field.identity_function,
                        identity_field.identity_type,
                    )

                record = self._run(self._insert, entity.__class__, record)
                entity._link(
                    identity_field.field_name,
                    record[identity_field.get_attribute_name()],
                )
            else:
                if not self._run(self._update, entity.__class__, record):
                    logger.error(f"{entity} is no longer present in `{self.name}`")
                    return False
        except PersistenceError as exc:
            logger.error(f"Could not save {entity}: {exc}")
            return False

        entity.state_.mark_saved()
        logger.debug(f"Saved {entity} to `{self.name}`")
        return True
