"""Writing insert, update and delete messages to Postgres tables."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

from ..message import Msg, Op
from .client import Session

log = logging.getLogger(__name__)

_PRIMARY_KEYS_QUERY = """
SELECT
    column_name
FROM information_schema.table_constraints constraints
    INNER JOIN information_schema.constraint_column_usage column_map
        ON column_map.constraint_name = constraints.constraint_name
WHERE constraints.constraint_type = 'PRIMARY KEY'
    AND constraints.table_schema = %s
    AND constraints.table_name = %s
"""


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def encode_value(value: Any) -> Any:
    """Prepare a document value for use as a query parameter.

    Mappings and lists of mappings become JSON text; other lists become a
    Postgres array literal such as ``{1,2,3}``. Everything else is unchanged.
    """
    if isinstance(value, dict):
        return _to_json(value)
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(item, dict) for item in value):
            return _to_json(list(value))
        return "{" + _to_json(list(value))[1:-1] + "}"
    return value


def _execute(conn: Any, sql: str, params: Sequence[Any]) -> None:
    cursor = conn.cursor()
    try:
        cursor.execute(sql, tuple(params))
    except Exception:
        rollback = getattr(conn, "rollback", None)
        if rollback is not None:
            rollback()
        raise
    finally:
        cursor.close()
    commit = getattr(conn, "commit", None)
    if commit is not None:
        commit()


def primary_keys(namespace: str, conn: Any) -> set[str]:
    """Return the primary key columns of the table named by ``namespace``.

    A namespace without a schema part refers to the ``public`` schema.
    """
    schema, _, table = namespace.partition(".")
    if not table:
        schema, table = "public", schema
    cursor = conn.cursor()
    try:
        cursor.execute(_PRIMARY_KEYS_QUERY, (schema, table))
        rows = cursor.fetchall()
    finally:
        cursor.close()
    return {row[0] for row in rows}


def _missing_keys_error(provided: list[str], required: set[str]) -> ValueError:
    return ValueError(
        f"All primary keys were not accounted for. Provided: {provided}; Required; {sorted(required)}"
    )


def _insert(msg: Msg, conn: Any) -> None:
    log.debug("INSERT into %s", msg.namespace)
    keys = list(msg.data)
    values = [encode_value(v) for v in msg.data.values()]
    placeholders = ", ".join("%s" for _ in keys)
    query = f"INSERT INTO {msg.namespace} ({', '.join(keys)}) VALUES ({placeholders});"
    _execute(conn, query, values)


def _delete(msg: Msg, conn: Any) -> None:
    log.debug("DELETE from %s, values %s", msg.namespace, msg.data)
    pkeys = primary_keys(msg.namespace, conn)
    conditions = []
    values = []
    for key, value in msg.data.items():
        if key in pkeys:
            conditions.append(f"{key} = %s")
            values.append(encode_value(value))
    if len(conditions) != len(pkeys):
        raise _missing_keys_error(conditions, pkeys)
    query = f"DELETE FROM {msg.namespace} WHERE {' AND '.join(conditions)};"
    _execute(conn, query, values)


def _update(msg: Msg, conn: Any) -> None:
    log.debug("UPDATE %s", msg.namespace)
    pkeys = primary_keys(msg.namespace, conn)
    conditions, condition_values = [], []
    updates, update_values = [], []
    for key, value in msg.data.items():
        if key in pkeys:
            conditions.append(f"{key}=%s")
            condition_values.append(encode_value(value))
        else:
            updates.append(f"{key}=%s")
            update_values.append(encode_value(value))
    if len(conditions) != len(pkeys):
        raise _missing_keys_error(conditions, pkeys)
    query = f"UPDATE {msg.namespace} SET {', '.join(updates)} WHERE {' AND '.join(conditions)};"
    _execute(conn, query, update_values + condition_values)


class Writer:
    """Applies messages to Postgres, one statement per message."""

    def __init__(self) -> None:
        self.write_map: dict[Op, Callable[[Msg, Any], None]] = {
            Op.INSERT: _insert,
            Op.UPDATE: _update,
            Op.DELETE: _delete,
        }

    def write(self, msg: Msg, session: Session) -> Msg:
        """Write ``msg`` using the session's connection and confirm it."""
        handler = self.write_map.get(msg.op)
        if handler is None:
            log.info("no function registered for operation, %s", msg.op)
        else:
            handler(msg, session.conn)
        msg.confirm()
        return msg