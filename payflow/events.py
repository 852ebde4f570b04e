# payflow/events.py
from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional, Protocol

from kafka import KafkaProducer
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TransactionEvent(BaseModel):
    event_type: str  # transaction.created | transaction.status_changed
    transaction_id: str
    status: str
    previous_status: Optional[str] = None
    occurred_at: datetime


class EventPublisher(Protocol):
    def publish(self, event: TransactionEvent) -> None: ...


class InMemoryEventBus:
    """Fans events out to subscribers (views re-render on these).

    Only the last ``history`` events are kept.
    """

    def __init__(self, history: int = 1000) -> None:
        self.events: Deque[TransactionEvent] = deque(maxlen=history)
        self._subscribers: List[Callable[[TransactionEvent], None]] = []

    def subscribe(self, callback: Callable[[TransactionEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, event: TransactionEvent) -> None:
        self.events.append(event)
        for cb in list(self._subscribers):
            try:
                cb(event)
            except Exception:
                logger.exception("event subscriber failed for %s", event.transaction_id)


class KafkaEventPublisher:
    def __init__(self, producer, topic: str = "transactions"):
        self.producer = producer
        self.topic = topic

    @classmethod
    def from_bootstrap(cls, bootstrap: str, topic: str) -> "KafkaEventPublisher":
        producer = KafkaProducer(
            bootstrap_servers=[bootstrap],
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        )
        return cls(producer, topic)

    def publish(self, event: TransactionEvent) -> None:
        self.producer.send(self.topic, event.model_dump(mode="json"))
        self.producer.flush()
