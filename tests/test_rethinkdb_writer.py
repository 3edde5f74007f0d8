import threading
import uuid

import pytest

from transporter.message import Msg, Op
from transporter.registry import mock_confirm_writes
from transporter.rethinkdb.client import Session
from transporter.rethinkdb.writer import Writer, handle_response, prepare_document


class FakeConnection:
    def __init__(self):
        self.tables = {}

    def insert(self, db, table, docs, conflict="error"):
        rows = self.tables.setdefault(table, {})
        errors = 0
        first_error = ""
        for doc in docs:
            doc = dict(doc)
            key = doc.setdefault("id", str(uuid.uuid4()))
            if key in rows and conflict != "replace":
                errors += 1
                first_error = first_error or "Duplicate primary key `id`"
                continue
            rows[key] = doc
        return {"errors": errors, "first_error": first_error}

    def delete(self, db, table, key):
        self.tables.get(table, {}).pop(key, None)
        return {"errors": 0, "first_error": ""}


class FailingConnection(FakeConnection):
    def insert(self, db, table, docs, conflict="error"):
        return {"errors": 1, "first_error": "table is read only"}


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def session(conn):
    return Session(conn, "writer_test")


@pytest.fixture
def writer():
    w = Writer(threading.Event(), interval=60.0)
    yield w
    w.close()


def test_bulk_insert(conn, session, writer):
    confirms, confirmed = mock_confirm_writes()
    for i in range(999):
        writer.write(Msg(Op.INSERT, "bulk", {"id": i, "i": i}, confirms=confirms), session)
    assert conn.tables.get("bulk", {}) == {}
    writer.close()
    assert len(conn.tables["bulk"]) == 999
    assert confirmed() is True

    for i in range(2000):
        writer.write(Msg(Op.INSERT, "bulk", {"id": i, "i": i}), session)
    assert len(conn.tables["bulk"]) == 2000


@pytest.mark.parametrize(
    "table, docs, doc_count, verify_last",
    [
        ("simple", [{"hello": "world"}], 1, False),
        ("lotsodata", [{"hello": "world"} for _ in range(5)], 5, False),
        (
            "withupdate",
            [
                {"id": "f21eb576-d3ff-4cd8-a419-2d770d20e800", "hello": "world"},
                {"id": "c18adb45-ae9d-4673-b3c4-6a27b045727a", "bonjour": "world"},
                {"id": "015d66a2-0b09-483e-b2f5-2973d9e4f0b3", "hola": "world"},
                {"id": "8a7b9683-3a86-49c4-a6a3-08b856025244", "guten tag": "world"},
                {"id": "f21eb576-d3ff-4cd8-a419-2d770d20e800", "hello": "moar world"},
            ],
            4,
            True,
        ),
    ],
)
def test_insert(conn, session, table, docs, doc_count, verify_last):
    w = Writer(threading.Event(), interval=60.0)
    for doc in docs:
        w.write(Msg(Op.INSERT, table, dict(doc)), session)
    w.close()
    assert len(conn.tables[table]) == doc_count
    if verify_last:
        last = docs[-1]
        assert conn.tables[table][last["id"]] == last


def test_update(conn, session, writer):
    original = {"id": "4e9e5bc2-9b11-4143-9aa1-75c10e7a193a", "hello": "world"}
    updated = {"id": "4e9e5bc2-9b11-4143-9aa1-75c10e7a193a", "hello": "again"}
    writer.write(Msg(Op.INSERT, "updatesimple", dict(original)), session)
    writer.write(Msg(Op.UPDATE, "updatesimple", dict(updated)), session)
    writer.close()
    assert conn.tables["updatesimple"][updated["id"]] == updated


def test_delete(conn, session, writer):
    doc = {"hello": "world", "_id": "4e9e5bc2-9b11-4143-9aa1-75c10e7a193a"}
    insert_msg = Msg(Op.INSERT, "deletesimple", doc)
    assert writer.write(insert_msg, session) is insert_msg
    delete_msg = Msg(Op.DELETE, "deletesimple", doc)
    assert writer.write(delete_msg, session) is delete_msg
    writer.close()
    assert conn.tables["deletesimple"] == {}


def test_close_flushes_pending(conn, session):
    w = Writer(interval=60.0)
    msg = Msg(Op.INSERT, "pending", {"id": 1})
    assert w.write(msg, session) is msg
    assert "pending" not in conn.tables
    w.close()
    assert conn.tables["pending"] == {1: {"id": 1}}


def test_update_confirms(session, writer):
    confirms, confirmed = mock_confirm_writes()
    writer.write(Msg(Op.UPDATE, "t", {"id": 1}, confirms=confirms), session)
    assert confirmed() is True


def test_flush_error_raised_on_update(writer):
    session = Session(FailingConnection(), "writer_test")
    writer.write(Msg(Op.INSERT, "t", {"id": 1}), session)
    with pytest.raises(RuntimeError, match="problem inserting docs"):
        writer.write(Msg(Op.UPDATE, "t", {"id": 1}), session)


def test_prepare_document_moves_underscore_id():
    msg = Msg(Op.INSERT, "t", {"_id": "abc", "hello": "world"})
    assert prepare_document(msg) == {"id": "abc", "hello": "world"}


def test_prepare_document_keeps_existing_id():
    msg = Msg(Op.INSERT, "t", {"id": 1, "_id": "abc"})
    assert prepare_document(msg) == {"id": 1, "_id": "abc"}


def test_handle_response_ignores_duplicates():
    calls = []
    handle_response({"errors": 1, "first_error": "Duplicate primary key `id`"}, lambda: calls.append(1))
    assert calls == [1]


def test_handle_response_raises():
    calls = []
    with pytest.raises(RuntimeError) as info:
        handle_response({"errors": 2, "first_error": "boom"}, lambda: calls.append(1))
    assert str(info.value) == "problem inserting docs\nboom"
    assert calls == []