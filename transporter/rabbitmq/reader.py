"""Consuming JSON messages from RabbitMQ queues."""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Iterator
from urllib.parse import quote_plus, unquote, urlsplit

from ..message import MessageSet, Mode, Msg, Op

DEFAULT_API_PORT = 15672
"""The default port of the RabbitMQ management API."""

log = logging.getLogger(__name__)


@dataclass
class Session:
    """An AMQP connection and a channel opened on it."""

    conn: Any
    channel: Any


def queues_api_url(uri: str, api_port: int) -> str:
    """Return the management API URL listing the queues of the URI's vhost."""
    parts = urlsplit(uri)
    scheme = "https" if parts.scheme == "amqps" else "http"
    vhost = parts.path
    if vhost != "/":
        vhost = vhost[1:]
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    return f"{scheme}://{host}:{api_port}/api/queues/{quote_plus(vhost, safe='')}"


def _stopped(done: Any) -> bool:
    return done is not None and done.is_set()


@dataclass
class Reader:
    """Reads every accepted queue of a vhost as a stream of insert messages."""

    uri: str
    api_port: int = DEFAULT_API_PORT
    poll_interval: float = 0.1
    timeout: float = 30.0

    def list_queues(self, filter_fn: Callable[[str], bool]) -> list[str]:
        """Ask the management API for the vhost's queues and keep those accepted by ``filter_fn``."""
        api_url = queues_api_url(self.uri, self.api_port)
        log.info("requesting queues from %s", api_url)
        request = urllib.request.Request(api_url, method="GET")
        parts = urlsplit(self.uri)
        if parts.username is not None and parts.password is not None:
            credentials = f"{unquote(parts.username)}:{unquote(parts.password)}"
            encoded = base64.b64encode(credentials.encode()).decode()
            request.add_header("Authorization", f"Basic {encoded}")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as resp:
                status = resp.status
                body = resp.read()
        except urllib.error.HTTPError as exc:
            raise RuntimeError(f"unexpected status code: {exc.code}") from None
        if status != 200:
            raise RuntimeError(f"unexpected status code: {status}")
        queues = json.loads(body)
        return [q["name"] for q in queues if filter_fn(q.get("name", ""))]

    def read(self, session: Session, filter_fn: Callable[[str], bool], done: Any = None) -> Iterator[MessageSet]:
        """List the queues now and return a stream of their messages.

        Messages are acknowledged once they have been handed on; bodies that
        are not a JSON object are logged and left unacknowledged.
        """
        queues = self.list_queues(filter_fn)
        return self._consume(session, queues, done)

    def _consume(self, session: Session, queues: list[str], done: Any) -> Iterator[MessageSet]:
        consumers = []
        for queue in queues:
            try:
                channel = session.conn.channel()
            except Exception as exc:
                log.error("unable to open channel for %s, %s", queue, exc)
                return
            log.info("consuming %s", queue)
            deliveries = channel.consume(
                queue,
                auto_ack=False,
                inactivity_timeout=self.poll_interval,
                consumer_tag="transporter",
            )
            consumers.append((queue, channel, iter(deliveries)))

        while consumers:
            for entry in list(consumers):
                if _stopped(done):
                    return
                queue, channel, deliveries = entry
                try:
                    method, _properties, body = next(deliveries)
                except StopIteration:
                    log.info("consuming %s complete", queue)
                    consumers.remove(entry)
                    continue
                if method is None:
                    continue
                try:
                    result = json.loads(body)
                except ValueError as exc:
                    log.error("unable to decode message to JSON, %s", exc)
                    continue
                if not isinstance(result, dict):
                    log.error("unable to decode message to JSON, not an object")
                    continue
                yield MessageSet(Msg(Op.INSERT, queue, result), mode=Mode.SYNC)
                channel.basic_ack(method.delivery_tag)