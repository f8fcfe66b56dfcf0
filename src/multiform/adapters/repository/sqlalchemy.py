"""Module with repository implementation for SQLAlchemy"""

import logging

import sqlalchemy as sa
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from multiform.exceptions import ConfigurationError, PersistenceError
from multiform.fields import (
    Auto,
    Boolean,
    Date,
    DateTime,
    Float,
    Identifier,
    Integer,
    Reference,
    String,
    Text,
)
from multiform.port.provider import BaseProvider
from multiform.utils import IdentityType
from multiform.utils.reflection import fields, id_field

logger = logging.getLogger(__name__)


def _identifier_type(field_obj):
    if field_obj.identity_type == IdentityType.INTEGER.value:
        return sa.Integer()
    if field_obj.identity_type == IdentityType.UUID.value:
        return sa.Uuid()
    return sa.String(255)


def _column_type(field_obj):
    """Map a field to the SQLAlchemy column type storing its values"""
    if isinstance(field_obj, Reference):
        return _identifier_type(id_field(field_obj.to_cls))
    if isinstance(field_obj, Identifier):
        return _identifier_type(field_obj)
    if isinstance(field_obj, String):
        return sa.String(field_obj.max_length)
    if isinstance(field_obj, Text):
        return sa.Text()
    if isinstance(field_obj, Integer):
        return sa.Integer()
    if isinstance(field_obj, Float):
        return sa.Float()
    if isinstance(field_obj, Boolean):
        return sa.Boolean()
    if isinstance(field_obj, DateTime):
        return sa.DateTime()
    if isinstance(field_obj, Date):
        return sa.Date()

    raise ConfigurationError(
        f"Field `{field_obj.field_name}` of type {field_obj.__class__.__name__} "
        f"has no column mapping"
    )


class SASession:
    """One connection with one open transaction.

    Storage errors raised by SQLAlchemy surface as `PersistenceError`.
    """

    def __init__(self, engine):
        self.connection = None
        self.is_active = False

        try:
            self.connection = engine.connect()
            self._transaction = self.connection.begin()
        except SQLAlchemyError as exc:
            if self.connection is not None:
                self.connection.close()
            raise PersistenceError(f"Could not open a session: {exc}") from exc

        self.is_active = True

    def commit(self):
        try:
            self._transaction.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    def rollback(self):
        try:
            if self._transaction.is_active:
                self._transaction.rollback()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    def close(self):
        if self.is_active:
            self.connection.close()
        self.is_active = False


class SAProvider(BaseProvider):
    """Provider Implementation class for SQLAlchemy.

    Entity classes have to be registered with `register()` before use, which
    builds their tables and creates them if they do not exist yet.
    """

    __database__ = None

    def __init__(self, name, conn_info: dict):
        """Initialize and maintain Engine"""
        super().__init__(name, conn_info)

        if "database_uri" not in conn_info:
            raise ConfigurationError(f"`database_uri` is not configured for `{name}`")

        self._engine = self._create_engine()
        self._metadata = sa.MetaData()
        self._tables = {}

    def _create_engine(self):
        database_uri = self.conn_info["database_uri"]
        return create_engine(database_uri, **self._engine_args())

    def _engine_args(self):
        return {}

    def register(self, *entity_classes):
        for entity_cls in entity_classes:
            self._build_table(entity_cls)

        self._create_database_artifacts()

    def _build_table(self, entity_cls):
        schema_name = entity_cls.meta_.schema_name
        if schema_name in self._tables:
            return self._tables[schema_name]

        columns = []
        for field_obj in fields(entity_cls).values():
            if field_obj.identifier:
                columns.append(
                    sa.Column(
                        field_obj.get_attribute_name(),
                        _column_type(field_obj),
                        primary_key=True,
                        autoincrement=isinstance(field_obj, Auto)
                        and field_obj.increment,
                    )
                )
            else:
                columns.append(
                    sa.Column(
                        field_obj.get_attribute_name(),
                        _column_type(field_obj),
                        nullable=not field_obj.required,
                    )
                )

        table = sa.Table(schema_name, self._metadata, *columns)
        self._tables[schema_name] = table
        return table

    def _table(self, entity_cls):
        try:
            return self._tables[entity_cls.meta_.schema_name]
        except KeyError:
            raise ConfigurationError(
                f"`{entity_cls.__name__}` is not registered with provider `{self.name}`"
            )

    def _create_database_artifacts(self):
        conn = self._engine.connect()
        try:
            self._metadata.create_all(conn)
            conn.commit()
        finally:
            conn.close()

    def _drop_database_artifacts(self):
        conn = self._engine.connect()
        try:
            self._metadata.drop_all(conn)
            conn.commit()
        finally:
            conn.close()

        self._metadata.clear()
        self._tables = {}

    def get_session(self):
        """Establish a session with the Database"""
        return SASession(self._engine)

    def get_connection(self):
        """Create the connection to the Database instance"""
        return SASession(self._engine)

    def is_alive(self) -> bool:
        """Check if the connection is alive"""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error(f"Could not connect to `{self.name}`: {exc}")
            return False

    def close(self):
        """Release all pooled connections"""
        self._engine.dispose()

    def _data_reset(self):
        conn = self._engine.connect()
        try:
            for table in reversed(self._metadata.sorted_tables):
                conn.execute(table.delete())
            conn.commit()
        finally:
            conn.close()

    def _fetch(self, session, entity_cls, identifier):
        table = self._table(entity_cls)
        id_column = table.c[id_field(entity_cls).get_attribute_name()]

        try:
            row = session.connection.execute(
                sa.select(table).where(id_column == identifier)
            ).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        return dict(row._mapping) if row is not None else None

    def _filter(self, session, entity_cls, criteria):
        table = self._table(entity_cls)
        attribute_names = {
            field_name: field_obj.get_attribute_name()
            for field_name, field_obj in fields(entity_cls).items()
        }

        stmt = sa.select(table)
        for key, value in criteria.items():
            stmt = stmt.where(table.c[attribute_names.get(key, key)] == value)
        stmt = stmt.order_by(*table.primary_key.columns)

        try:
            rows = session.connection.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        return [dict(row._mapping) for row in rows]

    def _insert(self, session, entity_cls, record):
        table = self._table(entity_cls)
        id_attribute = id_field(entity_cls).get_attribute_name()

        values = dict(record)
        if values.get(id_attribute) is None:
            values.pop(id_attribute, None)

        try:
            result = session.connection.execute(table.insert().values(**values))
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        record = dict(record)
        record[id_attribute] = result.inserted_primary_key[0]
        return record

    def _update(self, session, entity_cls, record):
        table = self._table(entity_cls)
        id_attribute = id_field(entity_cls).get_attribute_name()

        values = {key: value for key, value in record.items() if key != id_attribute}
        try:
            result = session.connection.execute(
                table.update()
                .where(table.c[id_attribute] == record[id_attribute])
                .values(**values)
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        return result.rowcount > 0


class SqliteProvider(SAProvider):
    __database__ = "sqlite"

    def _engine_args(self):
        args = {"connect_args": {"check_same_thread": False}}

        # An in-memory database only lives as long as its single connection
        database_uri = self.conn_info["database_uri"]
        if database_uri in ("sqlite://", "sqlite:///:memory:"):
            args["poolclass"] = StaticPool

        return args


class PostgresqlProvider(SAProvider):
    __database__ = "postgresql"

    def _engine_args(self):
        return {"pool_pre_ping": True}
