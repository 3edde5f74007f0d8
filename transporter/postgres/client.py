"""Connection handling for the Postgres adaptor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from ..client import ConnectError, InvalidURIError

DEFAULT_URI = "postgres://postgres@transporter-db:5432?sslmode=disable"
"""The default endpoint of Postgres, used when no URI is given."""

DEFAULT_DB = "postgres"

Connector = Callable[[str], Any]
"""A DB-API 2 ``connect`` function that takes a connection URI."""

log = logging.getLogger(__name__)


@dataclass
class Session:
    """An open DB-API connection together with the database it points at."""

    conn: Any
    db: str


class Client:
    """A client for a Postgres database reached through a DB-API connector.

    The connector is called with the URI the first time :meth:`connect` is
    used; the resulting connection is reused by later sessions.
    """

    def __init__(self, uri: str = DEFAULT_URI, connector: Optional[Connector] = None) -> None:
        try:
            urlsplit(uri)
        except ValueError as exc:
            raise InvalidURIError(uri, str(exc)) from None
        self.uri = uri
        self.db = DEFAULT_DB
        self.connector = connector
        self._conn: Any = None

    def connect(self) -> Session:
        """Open the connection if needed, check it is alive and return a session."""
        if self._conn is None:
            if self.connector is None:
                raise ConnectError("no postgres connector configured")
            try:
                self._conn = self.connector(self.uri)
            except Exception as exc:
                raise ConnectError(str(exc)) from exc
            path = urlsplit(self.uri).path
            if path:
                self.db = path[1:]
        try:
            cursor = self._conn.cursor()
            try:
                cursor.execute("SELECT 1")
                cursor.fetchall()
            finally:
                cursor.close()
        except Exception as exc:
            raise ConnectError(str(exc)) from exc
        return Session(self._conn, self.db)

    def close(self) -> None:
        """Close the underlying connection, if one was opened."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None