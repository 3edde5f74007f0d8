"""Copying RethinkDB tables and optionally following their change feeds."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from ..message import MessageSet, Mode, Msg, Op
from .client import Session

log = logging.getLogger(__name__)

_END = object()


def _stopped(done: Any) -> bool:
    return done is not None and done.is_set()


def change_to_message(table: str, change: dict[str, Any]) -> Optional[Msg]:
    """Turn a change feed notification into a message.

    A change with both old and new values is an update, one with only a new
    value an insert and one with only an old value a delete. Notifications
    carrying an error raise :class:`RuntimeError`.
    """
    error = change.get("error")
    if error:
        raise RuntimeError(error)
    old_val = change.get("old_val")
    new_val = change.get("new_val")
    if old_val is not None and new_val is not None:
        return Msg(Op.UPDATE, table, new_val)
    if new_val is not None:
        return Msg(Op.INSERT, table, new_val)
    if old_val is not None:
        return Msg(Op.DELETE, table, old_val)
    return None


@dataclass
class Reader:
    """Copies every accepted table and, when tailing, follows their changes."""

    tail: bool = False
    poll_interval: float = 0.1

    def read(
        self,
        session: Session,
        filter_fn: Callable[[str], bool],
        done: Any = None,
    ) -> Iterator[MessageSet]:
        db = session.db
        log.info("starting Read func (db=%s)", db)
        try:
            tables = self._list_tables(session, filter_fn)
        except Exception as exc:
            log.error("unable to list tables in %s, %s", db, exc)
            return
        feeds = []
        for table in tables:
            if _stopped(done):
                log.info("iterating no more (db=%s)", db)
                return
            log.info("iterating (db=%s, table=%s)", db, table)
            try:
                feed = session.conn.changes(db, table) if self.tail else None
                for doc in session.conn.table(db, table):
                    if _stopped(done):
                        return
                    yield MessageSet(Msg(Op.INSERT, table, dict(doc)))
            except Exception as exc:
                log.error("error iterating %s, %s", table, exc)
                break
            log.info("iterating complete (db=%s, table=%s)", db, table)
            if feed is not None:
                feeds.append((table, feed))
        log.info("Read completed (db=%s)", db)
        if feeds:
            yield from self._follow(db, feeds, done)

    def _list_tables(self, session: Session, filter_fn: Callable[[str], bool]) -> list[str]:
        names = []
        for table in session.conn.table_list(session.db):
            if filter_fn(table):
                log.info("sending for iteration (db=%s, table=%s)", session.db, table)
                names.append(table)
            else:
                log.info("skipping iteration (db=%s, table=%s)", session.db, table)
        return names

    def _follow(self, db: str, feeds: list[tuple[str, Iterable]], done: Any) -> Iterator[MessageSet]:
        out: queue.Queue = queue.Queue()
        for table, feed in feeds:
            threading.Thread(
                target=self._pump, args=(db, table, feed, out, done), daemon=True
            ).start()
        active = len(feeds)
        while active:
            if _stopped(done):
                log.info("stopping changes (db=%s)", db)
                return
            try:
                item = out.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            if item is _END:
                active -= 1
                continue
            yield item

    @staticmethod
    def _pump(db: str, table: str, feed: Iterable, out: queue.Queue, done: Any) -> None:
        log.debug("starting changes feed (db=%s, table=%s)", db, table)
        try:
            for change in feed:
                if _stopped(done):
                    return
                log.debug("received change on %s.%s", db, table)
                msg = change_to_message(table, change)
                if msg is not None:
                    out.put(MessageSet(msg, mode=Mode.SYNC))
        except Exception as exc:
            log.error("changes feed of %s.%s failed, %s", db, table, exc)
        finally:
            close = getattr(feed, "close", None)
            if close is not None:
                close()
            out.put(_END)