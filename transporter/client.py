"""Client helpers, client errors and mock clients, readers and writers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from .message import MessageSet, Mode, Msg, Op, _now


class InvalidURIError(Exception):
    """The provided URI could not be parsed."""

    def __init__(self, uri: str, err: str) -> None:
        super().__init__(uri, err)
        self.uri = uri
        self.err = err

    def __str__(self) -> str:
        return f"Invalid URI ({self.uri}), {self.err}"


class InvalidTimeoutError(Exception):
    """The provided timeout could not be parsed as a duration."""

    def __init__(self, timeout: str) -> None:
        super().__init__(timeout)
        self.timeout = timeout

    def __str__(self) -> str:
        return f"Invalid Timeout, {self.timeout}"


class InvalidCertError(Exception):
    """A specified certificate was not valid."""

    def __str__(self) -> str:
        return "invalid cert error"


class ConnectError(Exception):
    """Dialing the database failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"connection error, {self.reason}"


class VersionError(Exception):
    """The server version could not be determined or is not acceptable."""

    def __init__(self, uri: str, v: str, err: str) -> None:
        super().__init__(uri, v, err)
        self.uri = uri
        self.v = v
        self.err = err

    def __str__(self) -> str:
        if not self.v:
            return f"unable to determine version from {self.uri}, {self.err}"
        return f"{self.uri} running {self.v}, {self.err}"


class MockConnectError(Exception):
    """Connection failure raised by mock clients."""

    def __str__(self) -> str:
        return "connect failed"


class MockWriteError(Exception):
    """Write failure raised by mock writers."""

    def __str__(self) -> str:
        return "write failed"


def write(client: Any, writer: Any, msg: Msg) -> Msg:
    """Connect with ``client`` and hand ``msg`` to ``writer`` within that session.

    The session is closed afterwards when it supports closing.
    """
    session = client.connect()
    close: Optional[Callable[[], None]] = getattr(session, "close", None)
    try:
        return writer.write(msg, session)
    finally:
        if close is not None:
            close()


@dataclass
class MockSession:
    """A session that holds nothing but whether it has been closed."""

    closed: bool = False

    def close(self) -> None:
        self.closed = True


@dataclass
class MockClient:
    """A client whose sessions do nothing."""

    closed: bool = False

    def connect(self) -> MockSession:
        return MockSession()

    def close(self) -> None:
        self.closed = True


@dataclass
class MockErrClient:
    """A client that always fails to connect, counting the attempts."""

    attempts: int = 0

    def connect(self) -> MockSession:
        self.attempts += 1
        raise MockConnectError()


@dataclass
class MockReader:
    """A reader that produces ``msg_count`` insert messages in namespace ``test``."""

    msg_count: int = 0

    def read(self, session: Any, filter_fn: Callable[[str], bool], done: Any = None) -> Iterator[MessageSet]:
        for i in range(self.msg_count):
            yield MessageSet(
                msg=Msg(Op.INSERT, "test", {"id": i}),
                timestamp=_now(),
                mode=Mode.COPY,
            )


@dataclass
class MockWriter:
    """A writer that counts the messages it receives and confirms each one."""

    msg_count: int = 0

    def write(self, msg: Msg, session: Any) -> Msg:
        self.msg_count += 1
        msg.confirm()
        return msg


@dataclass
class MockErrWriter:
    """A writer that always fails, counting the attempts."""

    attempts: int = 0

    def write(self, msg: Msg, session: Any) -> Msg:
        self.attempts += 1
        raise MockWriteError()