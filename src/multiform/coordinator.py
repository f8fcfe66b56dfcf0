"""Validating and saving a parent entity together with its children"""

import logging
from enum import Enum
from typing import Iterator, Optional, Type

import inflection

from multiform.entity import BaseEntity, Stage
from multiform.exceptions import (
    ConfigurationError,
    IncorrectUsageError,
    PersistenceError,
    TransactionError,
)
from multiform.payload import (
    PENDING_KEY_PREFIX,
    PLACEHOLDER_KEY,
    EntityHandle,
    as_input,
    is_placeholder,
    new_pending_key,
    validate_payload,
)
from multiform.port.provider import BaseProvider
from multiform.report import ErrorEntry
from multiform.unit_of_work import UnitOfWork
from multiform.utils.reflection import id_field, reference_fields

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Result of `AggregateForm.validate_and_save()`.

    Only `SAVED` is truthy, so ``if form.validate_and_save():`` reads as
    "was it saved".
    """

    SAVED = "saved"
    INVALID = "invalid"
    NOT_SAVED = "not_saved"

    def __bool__(self):
        return self is Outcome.SAVED


class AggregateForm:
    """One parent entity and its children, edited, validated and saved as a unit.

    Children are held in a mapping from row key to entity. Row keys are the
    string identities of persisted children, or pending keys for rows that
    have not been saved yet::

        form = AggregateForm(Product(), Parcel, provider)
        form.load({
            "Product": {"name": "Keyboard and Mouse"},
            "Parcels": {
                "new1": {"code": "keyboard", "width": 50, "height": 5, "depth": 20},
            },
        })
        if form.validate_and_save():
            ...
        else:
            report = form.error_report()

    :param parent: The parent entity, new or retrieved. May be `None` until
        `set_parent()` is called with an entity.
    :param children_cls: Entity class of the children.
    :param provider: Provider through which entities are looked up and saved.
    :param parent_role: Key of the parent in payloads, the parent class name by default.
    :param children_role: Key of the children in payloads, the pluralized child
        class name by default.
    :param reference: Name of the child field referencing the parent. Needed
        only when the child references the parent class more than once.
    :param placeholder_key: Raw row key of the template row.
    :param pending_key_prefix: Prefix of the row keys handed out by `new_row_key()`.
    """

    def __init__(
        self,
        parent: Optional[BaseEntity],
        children_cls: Type[BaseEntity],
        provider: BaseProvider,
        *,
        parent_role: Optional[str] = None,
        children_role: Optional[str] = None,
        reference: Optional[str] = None,
        placeholder_key: str = PLACEHOLDER_KEY,
        pending_key_prefix: str = PENDING_KEY_PREFIX,
    ):
        self.children_cls = children_cls
        self.provider = provider
        self.placeholder_key = placeholder_key
        self.pending_key_prefix = pending_key_prefix

        self._reference = self._find_reference(
            children_cls, type(parent) if parent is not None else None, reference
        )
        self.parent_cls = self._reference.to_cls

        if parent is not None and not isinstance(parent, self.parent_cls):
            raise ConfigurationError(
                f"{parent!r} is not a `{self.parent_cls.__name__}`, which "
                f"`{children_cls.__name__}.{self._reference.field_name}` references"
            )

        self.parent_role = parent_role or self.parent_cls.__name__
        self.children_role = children_role or inflection.pluralize(children_cls.__name__)

        self.parent = parent
        self._children = None
        self._children_from_store = False

        self._aggregate_failure = False
        self.outcome: Optional[Outcome] = None
        self.failure: Optional[Exception] = None

    @staticmethod
    def _find_reference(children_cls, parent_cls, reference):
        references = reference_fields(children_cls)

        if reference is not None:
            if reference not in references:
                raise ConfigurationError(
                    f"`{children_cls.__name__}` has no reference field `{reference}`"
                )
            return references[reference]

        candidates = [
            field_obj
            for field_obj in references.values()
            if parent_cls is None or field_obj.to_cls is parent_cls
        ]
        if len(candidates) != 1:
            raise ConfigurationError(
                f"Could not determine the field of `{children_cls.__name__}` referencing "
                f"the parent. Pass `reference` explicitly."
            )

        return candidates[0]

    def __repr__(self):
        return (
            f"<{self.__class__.__name__}: {self.parent_role} with "
            f"{len(self._children or {})} {self.children_role}>"
        )

    @property
    def reference_name(self) -> str:
        return self._reference.field_name

    def _parent_identity(self):
        if self.parent is None or self.parent.state_.is_new:
            return None
        return self.parent.identity

    def set_parent(self, value) -> None:
        """Replace the parent with an entity, or assign attributes onto the held parent"""
        item = as_input(value)

        if isinstance(item, EntityHandle):
            if not isinstance(item.entity, self.parent_cls):
                raise IncorrectUsageError(
                    f"{item.entity!r} cannot be the parent, "
                    f"expected a `{self.parent_cls.__name__}`"
                )

            self.parent = item.entity
            if self._children_from_store:
                # Children were looked up for the previous parent
                self._children = None
                self._children_from_store = False
            return

        if self.parent is None:
            raise IncorrectUsageError(
                f"`{self.parent_role}` attributes were given, but there is no parent to assign them to"
            )

        self.parent.assign(item.attributes)

    def set_children(self, raw) -> None:
        """Replace the held children with entities resolved from `raw`.

        `raw` maps row keys to attribute mappings or child entities. The
        template row is dropped. Attributes are assigned onto the persisted
        child of the same identity under this parent, if there is one, and
        onto a new child otherwise.
        """
        children = {}

        for key, value in raw.items():
            if is_placeholder(key, self.placeholder_key):
                logger.debug(f"Dropping template row of `{self.children_role}`")
                continue

            item = as_input(value)
            row_key = str(key)

            if isinstance(item, EntityHandle):
                if not isinstance(item.entity, self.children_cls):
                    raise IncorrectUsageError(
                        f"{item.entity!r} at `{row_key}` is not a `{self.children_cls.__name__}`"
                    )
                children[row_key] = item.entity
            else:
                child = self._resolve_child(row_key)
                child.assign(item.attributes)
                children[row_key] = child

        self._children = children
        self._children_from_store = False

    def _resolve_child(self, row_key: str) -> BaseEntity:
        """Return the persisted child under this parent with identity `row_key`, or a new child"""
        parent_identity = self._parent_identity()

        if parent_identity is not None:
            identifier = id_field(self.children_cls).coerce(row_key)
            # Only the exact string form of an identity names a stored child
            if identifier is not None and str(identifier) == row_key:
                child = self.provider.find_by_id(self.children_cls, identifier)
                if child is not None and getattr(child, self.reference_name) == parent_identity:
                    logger.debug(f"Row `{row_key}` resolved to {child}")
                    return child

        logger.debug(f"Row `{row_key}` is a new `{self.children_cls.__name__}`")
        return self.children_cls()

    def new_row_key(self) -> str:
        """Return a fresh key for a child row that has not been saved yet"""
        return new_pending_key(self.pending_key_prefix)

    @property
    def children(self) -> dict:
        return self.get_children()

    def get_children(self) -> dict:
        """Return the held children, looking up the persisted ones on first access"""
        if self._children is None:
            parent_identity = self._parent_identity()
            if parent_identity is None:
                self._children = {}
            else:
                self._children = {
                    str(child.identity): child
                    for child in self.provider.find_where(
                        self.children_cls, **{self.reference_name: parent_identity}
                    )
                }
            self._children_from_store = True

        return self._children

    def _labelled_entities(self) -> Iterator[tuple[str, BaseEntity]]:
        yield self.parent_role, self.parent
        for row_key, child in self.children.items():
            yield f"{self.children_cls.__name__}.{row_key}", child

    def load(self, payload) -> bool:
        """Feed a nested payload to `set_parent` and `set_children`.

        Returns whether the payload carried the parent role at all, which is
        how a submission is told apart from a first display.
        """
        validate_payload(payload, self.parent_role, self.children_role)

        if self.parent_role in payload:
            self.set_parent(payload[self.parent_role])
        if self.children_role in payload:
            self.set_children(payload[self.children_role])

        return self.parent_role in payload

    def validate(self) -> bool:
        """Validate the parent and every child, collecting all their errors"""
        if self.parent is None:
            raise IncorrectUsageError("There is no parent to validate")

        valid = True
        for label, entity in self._labelled_entities():
            if self.provider.validate(entity):
                logger.debug(f"{label} is invalid: {dict(entity.errors)}")
                valid = False

        self._aggregate_failure = not valid
        if not valid:
            logger.warning(f"{self.parent_role} form has invalid entries, not saving")

        return valid

    @property
    def is_valid(self) -> bool:
        """Whether every held entity passed its last validation"""
        if self.parent is None or self._aggregate_failure:
            return False

        return all(
            entity.state_.stage is not Stage.UNVALIDATED
            for _, entity in self._labelled_entities()
        )

    @property
    def has_aggregate_failure(self) -> bool:
        return self._aggregate_failure

    def validate_and_save(self) -> Outcome:
        """Validate everything, then save the parent and children in one transaction"""
        self.outcome = None
        self.failure = None

        if not self.validate():
            self.outcome = Outcome.INVALID
            return self.outcome

        children = self.children
        snapshots = [
            (entity, entity._snapshot()) for entity in [self.parent, *children.values()]
        ]

        try:
            with UnitOfWork() as uow:
                if not self._save_all(children):
                    uow.rollback()
                    self._restore(snapshots)
                    self.outcome = Outcome.NOT_SAVED
                    return self.outcome
        except (PersistenceError, TransactionError) as exc:
            logger.error(f"Could not save {self.parent_role} form: {exc}")
            self._restore(snapshots)
            self.failure = exc
            self.outcome = Outcome.NOT_SAVED
            return self.outcome
        except Exception:
            self._restore(snapshots)
            raise

        logger.debug(f"Saved {self.parent} with {len(children)} {self.children_role}")
        self.outcome = Outcome.SAVED
        return self.outcome

    def _save_all(self, children) -> bool:
        if not self.provider.save(self.parent, validate=False):
            logger.error(f"Could not save {self.parent}, rolling back")
            return False

        for row_key, child in children.items():
            # Children always belong to the parent being saved
            child._link(self.reference_name, self.parent.identity)
            if not self.provider.save(child, validate=False):
                logger.error(
                    f"Could not save {child} at row `{row_key}`, rolling back"
                )
                return False

        return True

    @staticmethod
    def _restore(snapshots) -> None:
        for entity, snapshot in snapshots:
            entity._restore(snapshot)

    def error_report(self, include_empty: bool = False) -> list[ErrorEntry]:
        """Return error entries for the parent, then for each child in row order.

        Entities without messages are left out unless `include_empty` is set.
        """
        if self.parent is None:
            raise IncorrectUsageError("There is no parent to report on")

        entries = [
            ErrorEntry.for_entity(label, entity)
            for label, entity in self._labelled_entities()
        ]
        if include_empty:
            return entries

        return [entry for entry in entries if entry.messages]
