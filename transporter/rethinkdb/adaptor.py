"""The RethinkDB adaptor, usable as both a source and a sink."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..registry import BaseConfig, add
from .client import Client
from .reader import Reader
from .writer import Writer

SAMPLE_CONFIG = """{
   "uri": "${RETHINKDB_URI}"
  // "timeout": "30s",
  // "tail": false,
  // "ssl": false,
  // "cacerts": ["/path/to/cert.pem"]
}"""

DESCRIPTION = "a rethinkdb adaptor that functions as both a source and a sink"


@dataclass
class RethinkDB(BaseConfig):
    """Reads tables by copying them and optionally following their changes."""

    tail: bool = False
    ssl: bool = False
    cacerts: list[str] = field(default_factory=list)
    connector: Optional[Callable[[dict], Any]] = None

    def client(self) -> Client:
        return Client(
            self.uri,
            session_timeout=self.timeout,
            ssl=self.ssl,
            cacerts=self.cacerts,
            connector=self.connector,
        )

    def reader(self) -> Reader:
        return Reader(self.tail)

    def writer(self, done: Optional[threading.Event] = None) -> Writer:
        return Writer(done)

    def description(self) -> str:
        return DESCRIPTION

    def sample_config(self) -> str:
        return SAMPLE_CONFIG


add("rethinkdb", RethinkDB)