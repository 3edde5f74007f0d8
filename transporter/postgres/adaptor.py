"""The Postgres adaptor, usable as both a source and a sink."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from ..registry import BaseConfig, add
from .client import Client
from .reader import Reader, Tailer
from .writer import Writer

DESCRIPTION = "a postgres adaptor that functions as both a source and a sink"

SAMPLE_CONFIG = """{
  "uri": "${POSTGRESQL_URI}"
  // "debug": false,
  // "tail": false,
  // "replication_slot": "slot"
}"""


@dataclass
class Postgres(BaseConfig):
    """Reads tables by copying them and optionally tailing a logical decoding slot."""

    debug: bool = False
    tail: bool = False
    replication_slot: str = ""
    connector: Optional[Callable[[str], Any]] = None

    def client(self) -> Client:
        return Client(self.uri, connector=self.connector)

    def reader(self) -> Union[Reader, Tailer]:
        if self.tail:
            return Tailer(self.replication_slot)
        return Reader()

    def writer(self, done: Any = None) -> Writer:
        return Writer()

    def description(self) -> str:
        return DESCRIPTION

    def sample_config(self) -> str:
        return SAMPLE_CONFIG


add("postgres", Postgres)