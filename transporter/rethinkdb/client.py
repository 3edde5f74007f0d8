"""Connection handling for the RethinkDB adaptor."""

from __future__ import annotations

import logging
import os
import re
import ssl as _ssl
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlsplit

from packaging.version import InvalidVersion, Version

from ..client import (
    ConnectError,
    InvalidCertError,
    InvalidTimeoutError,
    InvalidURIError,
    VersionError,
)

DEFAULT_URI = "rethinkdb://127.0.0.1:28015/test"
"""The default endpoint of RethinkDB, used when no URI is given."""

DEFAULT_TIMEOUT = 10.0
"""The default timeout, in seconds."""

MINIMUM_VERSION = Version("2.0")

Connector = Callable[[dict], Any]
"""A function that opens a connection from a dictionary of connection options.

The connection it returns provides ``server_status()``, ``table_list(db)``,
``table(db, table)``, ``changes(db, table)``, ``insert(db, table, docs, conflict)``,
``delete(db, table, key)`` and ``close()``.
"""

log = logging.getLogger(__name__)

_VERSION = re.compile(r"\d+\.\d+(\.\d+)?")
_DURATION_PART = re.compile(r"(\d*\.?\d*)(ns|us|µs|μs|ms|s|m|h)")
_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(text: str) -> float:
    """Parse a duration such as ``30s``, ``1m30s`` or ``1.5h`` into seconds."""
    rest = text
    sign = 1.0
    if rest[:1] in ("+", "-"):
        sign = -1.0 if rest[0] == "-" else 1.0
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def check_server_version(uri: str, version_string: str) -> Version:
    """Check a ``process.version`` string such as ``rethinkdb 2.3.5~0trusty``.

    Returns the server version, or raises :class:`VersionError` when it is
    missing, malformed or older than 2.0.
    """
    if not version_string:
        raise VersionError(
            uri,
            version_string,
            "could not determine the RethinkDB server version: process.version key missing",
        )
    words = version_string.split(" ")
    match = _VERSION.search(words[1]) if len(words) > 1 else None
    if match is None:
        raise VersionError(uri, version_string, "malformed version string")
    try:
        version = Version(match.group(0))
    except InvalidVersion as exc:
        raise VersionError(uri, version_string, str(exc)) from None
    if version < MINIMUM_VERSION:
        raise VersionError(
            uri,
            version_string,
            f"RethinkDB server version too old: expected >= {MINIMUM_VERSION}, but was {version}",
        )
    return version


def _timeout(value: Optional[str], unset: float) -> float:
    if value is None:
        return unset
    if value == "":
        return DEFAULT_TIMEOUT
    try:
        return parse_duration(value)
    except ValueError:
        raise InvalidTimeoutError(value) from None


def _ssl_context(enabled: bool, cacerts: Iterable[str]) -> Optional[_ssl.SSLContext]:
    context: Optional[_ssl.SSLContext] = None
    if enabled:
        context = _ssl.SSLContext(_ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = _ssl.CERT_NONE
    certs = list(cacerts or ())
    if certs:
        if context is None:
            context = _ssl.SSLContext(_ssl.PROTOCOL_TLS_CLIENT)
        for cert in certs:
            if os.path.isfile(cert):
                with open(cert, encoding="utf-8") as handle:
                    cert = handle.read()
            try:
                context.load_verify_locations(cadata=cert)
            except (_ssl.SSLError, ValueError):
                raise InvalidCertError() from None
        context.verify_mode = _ssl.CERT_REQUIRED
        context.check_hostname = True
    return context


@dataclass
class Session:
    """An open connection together with the database it points at."""

    conn: Any
    db: str


class Client:
    """A client for a RethinkDB database reached through a connector."""

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        session_timeout: str = "",
        write_timeout: Optional[str] = None,
        read_timeout: Optional[str] = None,
        ssl: bool = False,
        cacerts: Iterable[str] = (),
        connector: Optional[Connector] = None,
    ) -> None:
        try:
            urlsplit(uri)
        except ValueError as exc:
            raise InvalidURIError(uri, str(exc)) from None
        self.uri = uri
        self.db = ""
        self.session_timeout = _timeout(session_timeout, DEFAULT_TIMEOUT)
        self.write_timeout = _timeout(write_timeout, 0.0)
        self.read_timeout = _timeout(read_timeout, 0.0)
        self.ssl_context = _ssl_context(ssl, cacerts)
        self.connector = connector
        self._conn: Any = None

    def connect(self) -> Session:
        """Open the connection on first use and return a session on it."""
        if self._conn is None:
            self._conn = self._open()
        return Session(self._conn, self.db)

    def close(self) -> None:
        """Close the underlying connection, if one was opened."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _open(self) -> Any:
        parts = urlsplit(self.uri)
        self.db = parts.path[1:]
        options: dict[str, Any] = {
            "addresses": parts.netloc.rpartition("@")[2].split(","),
            "database": self.db,
            "timeout": self.session_timeout,
            "write_timeout": self.write_timeout,
            "max_idle": 10,
            "max_open": 20,
            "ssl_context": self.ssl_context,
        }
        if parts.password is not None:
            options["username"] = parts.username
            options["password"] = parts.password
        log.debug("connecting to %s, database %s", options["addresses"], self.db)
        if self.connector is None:
            raise ConnectError("no rethinkdb connector configured")
        try:
            conn = self.connector(options)
        except Exception as exc:
            raise ConnectError(str(exc)) from exc
        try:
            self._assert_server_version(conn)
        except Exception:
            conn.close()
            raise
        return conn

    def _assert_server_version(self, conn: Any) -> None:
        rows = list(conn.server_status())
        if not rows:
            raise VersionError(
                self.uri,
                "",
                "could not determine the RethinkDB server version: "
                "no rows returned from the server_status table",
            )
        version = (rows[0].get("process") or {}).get("version", "")
        check_server_version(self.uri, version)
        log.debug("rethinkdb server version %s", version)