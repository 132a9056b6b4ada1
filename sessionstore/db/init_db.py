"""Database setup and maintenance for session tables.

The store never creates or cleans its table itself. These helpers cover the
external setup step and the periodic sweep of expired rows.
"""

import logging
import time
from typing import Optional

from sqlalchemy import Column, Index, Integer, LargeBinary, MetaData, String, Table, Text, delete
from sqlalchemy.engine import Engine

from sessionstore.core.config import Settings, TableNaming
from sessionstore.core.serializers import build_serializer
from sessionstore.db.session import build_engine

logger = logging.getLogger("sessionstore.database")


def session_table(
    metadata: MetaData,
    naming: Optional[TableNaming] = None,
    binary_data: bool = False,
) -> Table:
    """
    Describe the sessions table.

    Args:
        metadata: MetaData the table is registered on
        naming: Table and column names, defaults to ``sessions(key, data, expiration)``
        binary_data: Store payloads as LargeBinary instead of Text, needed
            for codecs producing bytes

    Returns:
        Table with the key as primary key and an index on the expiration
    """
    naming = naming or TableNaming()
    return Table(
        naming.table,
        metadata,
        Column(naming.key_column, String(255), primary_key=True),
        Column(naming.data_column, LargeBinary if binary_data else Text, nullable=False),
        Column(naming.expiration_column, Integer, nullable=False),
        Index(f"ix_{naming.table}_{naming.expiration_column}", naming.expiration_column),
    )


def create_session_table(
    engine: Engine,
    naming: Optional[TableNaming] = None,
    binary_data: bool = False,
) -> Table:
    """Create the sessions table if it does not exist yet"""
    metadata = MetaData()
    sessions = session_table(metadata, naming, binary_data)
    try:
        metadata.create_all(bind=engine, checkfirst=True)
    except Exception as e:
        logger.error(f"Failed to create session table: {e}", extra={
            "error_type": type(e).__name__,
        })
        raise

    logger.info("Session table ready", extra={"table_name": sessions.name})
    return sessions


def purge_expired(
    engine: Engine,
    naming: Optional[TableNaming] = None,
    now: Optional[int] = None,
) -> int:
    """
    Delete rows whose expiration has passed.

    Uses the same boundary as reads: a row expiring exactly at ``now`` is
    already expired.

    Returns:
        Number of rows deleted
    """
    naming = naming or TableNaming()
    now = int(time.time()) if now is None else now

    sessions = Table(
        naming.table,
        MetaData(),
        Column(naming.key_column),
        Column(naming.expiration_column),
    )
    with engine.begin() as conn:
        result = conn.execute(
            delete(sessions).where(sessions.c[naming.expiration_column] <= now)
        )

    logger.info("Purged expired sessions", extra={"table_name": naming.table, "purged": result.rowcount})
    return result.rowcount


def init_database(settings: Settings) -> Table:
    """Create the sessions table described by the settings"""
    serializer = build_serializer(settings.serializer_config())
    engine = build_engine(settings.DATABASE_URL)
    return create_session_table(
        engine,
        settings.table_naming(),
        binary_data=getattr(serializer, "binary", False),
    )
