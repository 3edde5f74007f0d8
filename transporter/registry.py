"""The adaptor registry and mock adaptors."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .client import (
    MockClient,
    MockErrClient,
    MockErrWriter,
    MockReader,
    MockWriter,
)


class AdaptorNotFoundError(Exception):
    """No adaptor was registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"adaptor '{self.name}' not found in registry"


class FuncNotSupportedError(Exception):
    """An adaptor does not provide the requested capability."""

    def __init__(self, name: str, func: str) -> None:
        super().__init__(name, func)
        self.name = name
        self.func = func

    def __str__(self) -> str:
        return f"'{self.func}' is not supported by the {self.name} adaptor"


@dataclass
class BaseConfig:
    """Configuration shared by every adaptor."""

    uri: str = ""
    timeout: str = ""


Creator = Callable[[], Any]

_adaptors: dict[str, Creator] = {}


def add(name: str, creator: Creator) -> None:
    """Register ``creator`` as the factory for the adaptor called ``name``."""
    _adaptors[name] = creator


def _construct(adaptor: Any, conf: Mapping[str, Any]) -> None:
    if not isinstance(conf, Mapping):
        raise TypeError(f"adaptor configuration must be a mapping, got {type(conf).__name__}")
    if dataclasses.is_dataclass(adaptor):
        known = {f.name for f in dataclasses.fields(adaptor)}
    else:
        known = set(vars(adaptor))
    for key, value in conf.items():
        if key in known:
            setattr(adaptor, key, value)


def get_adaptor(name: str, conf: Mapping[str, Any]) -> Any:
    """Create the adaptor registered as ``name`` and apply ``conf`` to it.

    Keys of ``conf`` that the adaptor does not know are ignored.
    """
    try:
        creator = _adaptors[name]
    except KeyError:
        raise AdaptorNotFoundError(name) from None
    adaptor = creator()
    _construct(adaptor, conf)
    return adaptor


def registered_adaptors() -> list[str]:
    """Return the names of every registered adaptor."""
    return list(_adaptors)


def adaptors() -> dict[str, Any]:
    """Return a fresh, unconfigured instance of every registered adaptor."""
    return {name: creator() for name, creator in _adaptors.items()}


@dataclass
class MockAdaptor(BaseConfig):
    """An adaptor whose client, reader and writer are mocks."""

    def client(self) -> MockClient:
        return MockClient()

    def reader(self) -> MockReader:
        return MockReader()

    def writer(self, done: Any = None) -> MockWriter:
        return MockWriter()


@dataclass
class MockClientErrAdaptor(BaseConfig):
    """An adaptor whose client fails to connect."""

    def client(self) -> MockErrClient:
        return MockErrClient()

    def reader(self) -> MockReader:
        return MockReader()

    def writer(self, done: Any = None) -> MockWriter:
        return MockWriter()


@dataclass
class MockWriterErrAdaptor(BaseConfig):
    """An adaptor whose writer fails on every write."""

    def client(self) -> MockClient:
        return MockClient()

    def reader(self) -> MockReader:
        return MockReader()

    def writer(self, done: Any = None) -> MockErrWriter:
        return MockErrWriter()


@dataclass
class UnsupportedMockAdaptor(BaseConfig):
    """An adaptor that supports none of the capabilities."""

    def client(self) -> Any:
        raise FuncNotSupportedError("unsupported", "Client()")

    def reader(self) -> Any:
        raise FuncNotSupportedError("unsupported", "Reader()")

    def writer(self, done: Any = None) -> Any:
        raise FuncNotSupportedError("unsupported", "Writer()")


def mock_confirm_writes() -> tuple[Callable[[], None], Callable[[], bool]]:
    """Return a confirms callback and a function reporting whether it was called."""
    confirmed = threading.Event()
    return confirmed.set, confirmed.is_set