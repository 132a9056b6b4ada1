"""Server-side session storage in a relational table via SQLAlchemy.

Each session is one row holding the key, the serialized payload and the
epoch second at which it expires. Rows past their expiration are ignored by
reads and overwritten by the next write for the same key; deleting them is
left to a periodic sweep (see :func:`sessionstore.db.init_db.purge_expired`).
"""
from __future__ import annotations

import logging
import math
import time
from functools import cached_property
from typing import Any, Optional

from sqlalchemy import bindparam, column, delete, insert, literal_column, select, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.dml import Delete, Insert, Update
from sqlalchemy.sql.expression import ColumnElement, Select, TableClause

from sessionstore.core import config
from sessionstore.core.config import Settings, TableNaming
from sessionstore.core.serializers import DEFAULT_SERIALIZER, Serializer, build_serializer
from sessionstore.db.session import EngineArg, build_engine
from sessionstore.stores.base import Store

logger = logging.getLogger(__name__)

# Bind parameter names; SQLAlchemy reserves column names inside SET/VALUES
KEY_PARAM = "param_key"
DATA_PARAM = "param_data"
EXPIRATION_PARAM = "param_expiration"
NOW_PARAM = "param_now"


def _now() -> int:
    return int(time.time())


class SQLStore(Store):
    """
    Session store keeping serialized payloads in a SQL table.

    Args:
        engine: SQLAlchemy engine, database URL, ``(url, options)`` sequence
            or mapping with ``url`` and :func:`create_engine` options
        serializer: Codec name, codec config mapping or serializer object
        table: Table holding the sessions
        key_column: Column holding the session key
        data_column: Column holding the serialized payload
        expiration_column: Column holding the expiration epoch second
        insert_conflict_fallback: Retry an INSERT that violates a constraint
            as an UPDATE of the existing row
    """

    def __init__(
        self,
        engine: EngineArg,
        serializer: Any = DEFAULT_SERIALIZER,
        table: str = "sessions",
        key_column: str = "key",
        data_column: str = "data",
        expiration_column: str = "expiration",
        insert_conflict_fallback: bool = True,
    ):
        self.naming = TableNaming(
            table=table,
            key_column=key_column,
            data_column=data_column,
            expiration_column=expiration_column,
        )
        self.serializer: Serializer = build_serializer(serializer)
        self.engine: Engine = build_engine(engine)
        self.insert_conflict_fallback = insert_conflict_fallback

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "SQLStore":
        """Build a store from :class:`Settings`, defaulting to the global instance"""
        settings = settings or config.settings
        naming = settings.table_naming()
        options: dict[str, Any] = {
            "engine": settings.DATABASE_URL,
            "serializer": settings.serializer_config(),
            "table": naming.table,
            "key_column": naming.key_column,
            "data_column": naming.data_column,
            "expiration_column": naming.expiration_column,
            "insert_conflict_fallback": settings.INSERT_CONFLICT_FALLBACK,
        }
        options.update(overrides)
        return cls(**options)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SQLStore(table={self.naming.table!r}, url={self.engine.url!r})>"

    # Statements are built on first use and reused for the store's lifetime;
    # SQLAlchemy caches their compiled form per dialect.

    @cached_property
    def sessions_table(self) -> TableClause:
        return table(
            self.naming.table,
            column(self.naming.key_column),
            column(self.naming.data_column),
            column(self.naming.expiration_column),
        )

    def _key_matches(self) -> ColumnElement[bool]:
        return self.sessions_table.c[self.naming.key_column] == bindparam(KEY_PARAM)

    def _is_live(self) -> ColumnElement[bool]:
        return self.sessions_table.c[self.naming.expiration_column] > bindparam(NOW_PARAM)

    @cached_property
    def insert_statement(self) -> Insert:
        """INSERT of a new (key, data, expiration) row"""
        t = self.sessions_table
        return insert(t).values({
            t.c[self.naming.key_column]: bindparam(KEY_PARAM),
            t.c[self.naming.data_column]: bindparam(DATA_PARAM),
            t.c[self.naming.expiration_column]: bindparam(EXPIRATION_PARAM),
        })

    @cached_property
    def update_statement(self) -> Update:
        """UPDATE of data and expiration for a key"""
        t = self.sessions_table
        return (
            update(t)
            .where(self._key_matches())
            .values({
                t.c[self.naming.data_column]: bindparam(DATA_PARAM),
                t.c[self.naming.expiration_column]: bindparam(EXPIRATION_PARAM),
            })
        )

    @cached_property
    def exists_statement(self) -> Select:
        """SELECT 1 for a live row under a key"""
        return (
            select(literal_column("1"))
            .select_from(self.sessions_table)
            .where(self._key_matches(), self._is_live())
        )

    @cached_property
    def select_statement(self) -> Select:
        """SELECT of the data of a live row under a key"""
        return (
            select(self.sessions_table.c[self.naming.data_column])
            .where(self._key_matches(), self._is_live())
        )

    @cached_property
    def delete_statement(self) -> Delete:
        """DELETE of every row under a key"""
        return delete(self.sessions_table).where(self._key_matches())

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("Session key must be a non-empty string")

    def set(self, key: str, value: Any, expires: int) -> None:
        """
        Store a value under a key for ``expires`` seconds.

        Updates the row when a live one exists for the key, inserts otherwise.
        An update that matches no row falls through to the insert. Fractional
        lifetimes are rounded up to whole seconds. The payload is serialized
        before the database is touched.

        Raises:
            ValueError: If the key is empty or ``expires`` is negative
            sqlalchemy.exc.SQLAlchemyError: On database failure
        """
        self._check_key(key)
        if expires < 0:
            raise ValueError(f"Session lifetime must not be negative, got {expires}")

        data = self.serializer.serialize(value)

        # One clock read drives both the liveness check and the expiration
        now = _now()
        # Fractional lifetimes round up so a positive ttl never expires at once
        params = {KEY_PARAM: key, DATA_PARAM: data, EXPIRATION_PARAM: now + math.ceil(expires)}

        with self.engine.connect() as conn:
            found = conn.execute(self.exists_statement, {KEY_PARAM: key, NOW_PARAM: now}).first()

            if found is not None:
                result = conn.execute(self.update_statement, params)
                if result.rowcount > 0:
                    conn.commit()
                    logger.debug("Updated session row", extra={"table": self.naming.table})
                    return

                # Row was removed between the check and the update
                logger.debug("Session row vanished before update, inserting", extra={"table": self.naming.table})

            try:
                conn.execute(self.insert_statement, params)
                conn.commit()
            except IntegrityError:
                conn.rollback()
                if not self.insert_conflict_fallback:
                    raise

                # Another writer inserted the key, or an expired row still
                # holds it under a unique constraint
                logger.debug("Session insert conflicted, retrying as update", extra={"table": self.naming.table})
                result = conn.execute(self.update_statement, params)
                if result.rowcount == 0:
                    raise
                conn.commit()
                return

            logger.debug("Inserted session row", extra={"table": self.naming.table})

    def get(self, key: str) -> Optional[Any]:
        """Retrieve the live value for the given key, or None."""
        self._check_key(key)
        with self.engine.connect() as conn:
            row = conn.execute(self.select_statement, {KEY_PARAM: key, NOW_PARAM: _now()}).first()

        if row is None:
            return None

        return self.serializer.deserialize(row[0])

    def remove(self, key: str) -> None:
        """Remove the entry for the given key."""
        self._check_key(key)
        with self.engine.begin() as conn:
            conn.execute(self.delete_statement, {KEY_PARAM: key})
        logger.debug("Removed session row", extra={"table": self.naming.table})
