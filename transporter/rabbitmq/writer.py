"""Publishing messages to RabbitMQ exchanges."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import pika

from ..message import Msg, Op
from .reader import Session

DEFAULT_DELIVERY_MODE = 1
"""Transient delivery, used when writing messages to an exchange."""

DEFAULT_ROUTING_KEY = ""
"""An empty key routes to every queue bound to the exchange."""

log = logging.getLogger(__name__)


@dataclass
class Writer:
    """Publishes inserts and updates as JSON to the exchange named by the namespace."""

    delivery_mode: int = DEFAULT_DELIVERY_MODE
    routing_key: str = DEFAULT_ROUTING_KEY
    key_in_field: bool = False

    def write(self, msg: Msg, session: Session) -> Msg:
        """Publish ``msg``; operations other than insert and update are ignored.

        With ``key_in_field`` the routing key is read from the document field
        named by ``routing_key``.
        """
        if msg.op not in (Op.INSERT, Op.UPDATE):
            return msg
        body = json.dumps(msg.data, separators=(",", ":"), default=str) + "\n"
        properties = pika.BasicProperties(
            delivery_mode=self.delivery_mode,
            timestamp=msg.timestamp,
            content_type="application/json",
        )
        routing_key = self.routing_key
        if self.key_in_field:
            routing_key = msg.data[self.routing_key]
            if not isinstance(routing_key, str):
                raise TypeError(f"routing key field {self.routing_key!r} must hold a string")
        session.channel.basic_publish(
            exchange=msg.namespace,
            routing_key=routing_key,
            body=body.encode(),
            properties=properties,
            mandatory=False,
        )
        return msg