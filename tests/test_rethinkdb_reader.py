import queue
import threading
from itertools import islice

import pytest

from transporter.message import Mode, Op
from transporter.rethinkdb.client import Session
from transporter.rethinkdb.reader import Reader, change_to_message


def _drain(q):
    while True:
        item = q.get()
        if item is None:
            return
        yield item


class FakeConnection:
    def __init__(self, tables):
        self.tables = tables
        self.feeds = {}

    def table_list(self, db):
        return list(self.tables)

    def table(self, db, name):
        return iter([dict(doc) for doc in self.tables[name]])

    def changes(self, db, name):
        q = queue.Queue()
        self.feeds[name] = q
        return _drain(q)


class BrokenConnection(FakeConnection):
    def table_list(self, db):
        raise RuntimeError("no such database")


def test_read():
    conn = FakeConnection({"foo": [{"id": i, "i": i} for i in range(10)]})
    msgs = list(Reader(False).read(Session(conn, "reader_test"), lambda c: True, threading.Event()))
    assert len(msgs) == 10
    assert all(m.msg.op is Op.INSERT and m.msg.namespace == "foo" for m in msgs)
    assert conn.feeds == {}


def test_read_list_error_yields_nothing():
    conn = BrokenConnection({"foo": [{"id": 1}]})
    assert list(Reader().read(Session(conn, "db"), lambda c: True)) == []


def test_read_after_done_yields_nothing():
    conn = FakeConnection({"foo": [{"id": 1}]})
    done = threading.Event()
    done.set()
    assert list(Reader().read(Session(conn, "db"), lambda c: True, done)) == []


def test_tail():
    count = 50
    conn = FakeConnection(
        {
            "foo": [{"id": i, "i": i} for i in range(count)],
            "bar": [],
            "baz": [],
            "blah": [{"i": i} for i in range(count)],
            "boo": [{"i": i} for i in range(count)],
            "skip": [],
        }
    )
    done = threading.Event()
    gen = Reader(tail=True).read(Session(conn, "tail_test"), lambda c: c != "skip", done)

    initial = list(islice(gen, 3 * count))
    assert len(initial) == 3 * count
    assert {m.msg.namespace for m in initial} == {"foo", "blah", "boo"}
    assert all(m.mode is Mode.COPY for m in initial)

    for i in range(count):
        conn.feeds["foo"].put({"old_val": None, "new_val": {"i": i}})
    tailed = list(islice(gen, count))
    assert [m.msg.op for m in tailed] == [Op.INSERT] * count
    assert all(m.mode is Mode.SYNC for m in tailed)

    conn.feeds["bar"].put({"old_val": None, "new_val": {"id": 0, "hello": "world"}})
    conn.feeds["bar"].put({"old_val": {"id": 0, "hello": "world"}, "new_val": {"id": 0, "hello": "goodbye"}})
    updates = list(islice(gen, 2))
    assert [m.msg.op for m in updates] == [Op.INSERT, Op.UPDATE]
    assert updates[1].msg.data == {"id": 0, "hello": "goodbye"}

    conn.feeds["baz"].put({"old_val": None, "new_val": {"id": 0, "hello": "world"}})
    conn.feeds["baz"].put({"old_val": {"id": 0, "hello": "world"}, "new_val": None})
    deletes = list(islice(gen, 2))
    assert [m.msg.op for m in deletes] == [Op.INSERT, Op.DELETE]

    assert "skip" not in conn.feeds

    done.set()
    for q in conn.feeds.values():
        q.put(None)
    assert list(gen) == []


def test_tail_feed_error_ends_stream():
    conn = FakeConnection({"foo": [{"id": 1}]})
    gen = Reader(tail=True).read(Session(conn, "db"), lambda c: True, threading.Event())
    first = next(gen)
    assert first.msg.data == {"id": 1}
    conn.feeds["foo"].put({"error": "feed broke"})
    assert list(gen) == []


def test_change_to_message_update():
    msg = change_to_message("t", {"old_val": {"id": 1}, "new_val": {"id": 1, "a": 2}})
    assert msg.op is Op.UPDATE
    assert msg.data == {"id": 1, "a": 2}
    assert msg.namespace == "t"


def test_change_to_message_insert_and_delete():
    assert change_to_message("t", {"new_val": {"id": 1}}).op is Op.INSERT
    deleted = change_to_message("t", {"old_val": {"id": 1}, "new_val": None})
    assert deleted.op is Op.DELETE
    assert deleted.data == {"id": 1}


def test_change_to_message_empty():
    assert change_to_message("t", {"old_val": None, "new_val": None}) is None


def test_change_to_message_error():
    with pytest.raises(RuntimeError, match="boom"):
        change_to_message("t", {"error": "boom"})