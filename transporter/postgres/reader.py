"""Copying tables out of Postgres and tailing changes through logical decoding."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Sequence

from ..message import MessageSet, Mode, Msg, Op
from .client import Session
from .decoding import casify_value, parse_change

log = logging.getLogger(__name__)

_TABLES_QUERY = "SELECT table_schema,table_name FROM information_schema.tables"

_COLUMNS_QUERY = """
SELECT c.column_name, c.data_type, e.data_type AS element_type
FROM information_schema.columns c LEFT JOIN information_schema.element_types e
     ON ((c.table_catalog, c.table_schema, c.table_name, 'TABLE', c.dtd_identifier)
       = (e.object_catalog, e.object_schema, e.object_name, e.object_type, e.collection_type_identifier))
WHERE c.table_schema = %s AND c.table_name = %s
ORDER BY c.ordinal_position;
"""

_CHANGES_QUERY = "SELECT * FROM pg_logical_slot_get_changes(%s, NULL, NULL);"


def _fetch(conn: Any, sql: str, params: Optional[Sequence[Any]] = None) -> list[tuple]:
    cursor = conn.cursor()
    try:
        if params is None:
            cursor.execute(sql)
        else:
            cursor.execute(sql, params)
        return list(cursor.fetchall())
    finally:
        cursor.close()


def _stopped(done: Any) -> bool:
    return done is not None and done.is_set()


def match_func(table: str) -> bool:
    """Return False for the system schemas that are never copied."""
    return not (table.startswith("information_schema.") or table.startswith("pg_catalog."))


class Reader:
    """Copies every accepted table as a stream of insert messages."""

    def read(self, session: Session, filter_fn: Callable[[str], bool], done: Any = None) -> Iterator[MessageSet]:
        log.info("starting Read func (db=%s)", session.db)
        try:
            tables = self._list_tables(session, filter_fn)
        except Exception as exc:
            log.error("unable to list tables in %s, %s", session.db, exc)
            return
        for table in tables:
            if _stopped(done):
                log.info("iterating no more (db=%s)", session.db)
                return
            for data in self._iterate_table(session, table):
                if _stopped(done):
                    return
                yield MessageSet(Msg(Op.INSERT, table, data))
            log.info("iterating complete (db=%s, table=%s)", session.db, table)
        log.info("Read completed (db=%s)", session.db)

    def _list_tables(self, session: Session, filter_fn: Callable[[str], bool]) -> list[str]:
        names = []
        for schema, table in _fetch(session.conn, _TABLES_QUERY):
            name = f"{schema}.{table}"
            if filter_fn(name) and match_func(name):
                log.info("sending for iteration (db=%s, table=%s)", session.db, name)
                names.append(name)
            else:
                log.debug("skipping iteration (db=%s, table=%s)", session.db, name)
        return names

    def _iterate_table(self, session: Session, table: str) -> Iterator[dict[str, Any]]:
        log.info("iterating (db=%s, table=%s)", session.db, table)
        schema, _, name = table.partition(".")
        try:
            column_rows = _fetch(session.conn, _COLUMNS_QUERY, (schema, name))
        except Exception as exc:
            log.error("error getting columns for %s, %s", table, exc)
            return
        columns = []
        for column_name, column_type, element_type in column_rows:
            if column_type == "ARRAY":
                column_type = f"{element_type or ''}[]"
            columns.append((column_name, column_type))

        try:
            rows = _fetch(session.conn, f"SELECT * FROM {table}")
        except Exception as exc:
            log.error("error reading rows of %s, %s", table, exc)
            return
        for row in rows:
            doc: dict[str, Any] = {}
            for (column_name, column_type), value in zip(columns, row):
                if isinstance(value, (bytes, bytearray, memoryview)):
                    doc[column_name] = casify_value(bytes(value).decode(), column_type)
                elif isinstance(value, str):
                    doc[column_name] = casify_value(value, column_type)
                elif not column_type.endswith("[]"):
                    doc[column_name] = value
            yield doc


@dataclass
class Tailer:
    """Copies every table, then polls a logical decoding slot for changes."""

    replication_slot: str
    reader: Reader = field(default_factory=Reader)
    interval: float = 1.0

    def read(self, session: Session, filter_fn: Callable[[str], bool], done: Any = None) -> Iterator[MessageSet]:
        yield from self.reader.read(session, filter_fn, done)
        log.info("listening for changes (db=%s, slot=%s)", session.db, self.replication_slot)
        while True:
            if _stopped(done):
                log.info("tailing stopping (db=%s)", session.db)
                return
            if done is not None:
                if done.wait(self.interval):
                    log.info("tailing stopping (db=%s)", session.db)
                    return
            else:
                time.sleep(self.interval)
            try:
                changes = self.pluck(session, filter_fn)
            except Exception as exc:
                log.error("error plucking from logical decoding, %s", exc)
                continue
            yield from changes

    def pluck(self, session: Session, filter_fn: Callable[[str], bool]) -> list[MessageSet]:
        """Fetch the pending changes of the replication slot as sync messages."""
        result = []
        for _location, _xid, d in _fetch(session.conn, _CHANGES_QUERY, (self.replication_slot,)):
            msg = parse_change(d, filter_fn)
            if msg is not None:
                result.append(MessageSet(msg, mode=Mode.SYNC))
        return result