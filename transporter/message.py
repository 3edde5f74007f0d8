"""Messages that travel down a pipeline."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


class Op(enum.Enum):
    """The operation a message represents."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    COMMAND = "command"
    NOOP = "noop"

    def __str__(self) -> str:
        return self.value


class Mode(enum.Enum):
    """How a message was produced: by copying existing data or by syncing changes."""

    COPY = "copy"
    SYNC = "sync"

    def __str__(self) -> str:
        return self.value


def _now() -> int:
    return int(time.time())


@dataclass
class Msg:
    """A single document together with the operation applied to it."""

    op: Op
    namespace: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=_now)
    confirms: Optional[Callable[[], None]] = None

    def confirm(self) -> None:
        """Signal that the message has been written, if anyone is waiting."""
        if self.confirms is not None:
            self.confirms()


@dataclass
class MessageSet:
    """A message along with its timestamp and the mode it was read in."""

    msg: Optional[Msg]
    timestamp: int = 0
    mode: Mode = Mode.COPY