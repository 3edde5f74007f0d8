"""The RabbitMQ adaptor for publish/subscribe messaging."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..registry import BaseConfig, add
from .reader import DEFAULT_API_PORT, Reader
from .writer import DEFAULT_DELIVERY_MODE, DEFAULT_ROUTING_KEY, Writer

SAMPLE_CONFIG = """{
  "uri": "${RABBITMQ_URI}",
  "routing_key": "",
  "key_in_field": false
  // "delivery_mode": 1, // non-persistent (1) or persistent (2)
  // "api_port": 15672,
  // "ssl": false,
  // "cacerts": ["/path/to/cert.pem"]
}"""

DESCRIPTION = "an adaptor that handles publish/subscribe messaging with RabbitMQ"


@dataclass
class RabbitMQ(BaseConfig):
    """Configuration for reading JSON from queues and publishing JSON to exchanges."""

    routing_key: str = DEFAULT_ROUTING_KEY
    key_in_field: bool = False
    delivery_mode: int = DEFAULT_DELIVERY_MODE
    api_port: int = DEFAULT_API_PORT
    ssl: bool = False
    cacerts: list[str] = field(default_factory=list)

    def reader(self) -> Reader:
        return Reader(self.uri, self.api_port)

    def writer(self, done: Any = None) -> Writer:
        return Writer(self.delivery_mode, self.routing_key, self.key_in_field)

    def description(self) -> str:
        return DESCRIPTION

    def sample_config(self) -> str:
        return SAMPLE_CONFIG


add("rabbitmq", RabbitMQ)