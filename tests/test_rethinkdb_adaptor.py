import threading

import pytest

from transporter.client import InvalidTimeoutError
from transporter.registry import get_adaptor, registered_adaptors
from transporter.rethinkdb.adaptor import DESCRIPTION, SAMPLE_CONFIG, RethinkDB
from transporter.rethinkdb.client import DEFAULT_TIMEOUT, DEFAULT_URI, Client
from transporter.rethinkdb.reader import Reader
from transporter.rethinkdb.writer import Writer


def test_description():
    assert RethinkDB().description() == DESCRIPTION
    assert DESCRIPTION == "a rethinkdb adaptor that functions as both a source and a sink"


def test_sample_config():
    assert RethinkDB().sample_config() == SAMPLE_CONFIG
    assert '"uri": "${RETHINKDB_URI}"' in SAMPLE_CONFIG


def test_registered():
    assert "rethinkdb" in registered_adaptors()


@pytest.mark.parametrize("conf", [{"uri": DEFAULT_URI}, {"uri": DEFAULT_URI, "tail": True}])
def test_init(conf):
    a = get_adaptor("rethinkdb", conf)
    c = a.client()
    assert isinstance(c, Client)
    assert c.uri == DEFAULT_URI
    assert c.session_timeout == DEFAULT_TIMEOUT
    r = a.reader()
    assert isinstance(r, Reader)
    assert r.tail is conf.get("tail", False)
    done = threading.Event()
    w = a.writer(done)
    assert isinstance(w, Writer)
    assert w.done is done
    w.close()
    assert done.is_set()


def test_timeout_is_passed_to_client():
    a = get_adaptor("rethinkdb", {"uri": DEFAULT_URI, "timeout": "30s"})
    assert a.client().session_timeout == 30.0


def test_bad_timeout_fails_client():
    a = get_adaptor("rethinkdb", {"uri": DEFAULT_URI, "timeout": "bogus"})
    with pytest.raises(InvalidTimeoutError):
        a.client()