"""Writing messages to RethinkDB tables, batching inserts."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..message import Msg, Op
from .client import Session

MAX_OBJ_SIZE = 1000
"""Number of buffered inserts that forces a flush."""

log = logging.getLogger(__name__)


@dataclass
class _BulkOperation:
    session: Session
    confirms: Optional[Callable[[], None]] = None
    docs: list[dict[str, Any]] = field(default_factory=list)


def prepare_document(msg: Msg) -> dict[str, Any]:
    """Move an ``_id`` field to ``id`` unless the document already has an ``id``."""
    data = msg.data
    if "id" in data:
        return data
    if "_id" in data:
        data["id"] = data.pop("_id")
    return data


def handle_response(resp: dict[str, Any], confirms: Optional[Callable[[], None]]) -> None:
    """Raise on write errors other than duplicate keys, then confirm the write."""
    if resp.get("errors", 0):
        first_error = resp.get("first_error", "")
        if "Duplicate primary key" not in first_error:
            raise RuntimeError(f"problem inserting docs\n{first_error}")
    if confirms is not None:
        confirms()


class Writer:
    """Buffers inserts per table and flushes them in bulk.

    Buffered inserts are flushed when ``MAX_OBJ_SIZE`` of them have
    accumulated, before every update or delete, every ``interval`` seconds
    and once more when ``done`` is set.
    """

    def __init__(self, done: Optional[threading.Event] = None, interval: float = 2.0) -> None:
        self.bulk_map: dict[str, _BulkOperation] = {}
        self.op_counter = 0
        self.done = done if done is not None else threading.Event()
        self.interval = interval
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def write(self, msg: Msg, session: Session) -> Msg:
        """Apply ``msg`` to the table named by its namespace."""
        table = msg.namespace
        if msg.op is Op.DELETE:
            try:
                self.flush_all()
            except Exception as exc:
                log.error("flush error, %s", exc)
            key = prepare_document(msg).get("id")
            handle_response(session.conn.delete(session.db, table, key), msg.confirms)
        elif msg.op is Op.INSERT:
            with self._lock:
                bulk = self.bulk_map.get(table)
                if bulk is None:
                    bulk = self.bulk_map[table] = _BulkOperation(session)
                if msg.confirms is not None:
                    bulk.confirms = msg.confirms
                bulk.docs.append(prepare_document(msg))
                self.op_counter += 1
                full = self.op_counter >= MAX_OBJ_SIZE
            if full:
                self.flush_all()
        elif msg.op is Op.UPDATE:
            self.flush_all()
            resp = session.conn.insert(session.db, table, [prepare_document(msg)], conflict="replace")
            handle_response(resp, msg.confirms)
        return msg

    def flush_all(self) -> None:
        """Write every buffered insert, replacing documents with the same id."""
        with self._lock:
            try:
                for table, bulk in self.bulk_map.items():
                    log.info(
                        "flushing bulk messages (db=%s, table=%s, op_counter=%d, doc_count=%d)",
                        bulk.session.db,
                        table,
                        self.op_counter,
                        len(bulk.docs),
                    )
                    resp = bulk.session.conn.insert(bulk.session.db, table, bulk.docs, conflict="replace")
                    handle_response(resp, bulk.confirms)
                self.bulk_map = {}
            finally:
                self.op_counter = 0

    def close(self) -> None:
        """Signal ``done`` and wait for the final flush."""
        self.done.set()
        self._thread.join()

    def _run(self) -> None:
        while not self.done.wait(self.interval):
            try:
                self.flush_all()
            except Exception as exc:
                log.error("flush error, %s", exc)
                return
        log.debug("received done")
        try:
            self.flush_all()
        except Exception as exc:
            log.error("flush error, %s", exc)