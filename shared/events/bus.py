"""
shared/events/bus.py
Row-change event bus behind the realtime feed.

Services publish a ChangeEvent after committing. With the redis backend the
event goes out on the `changes:{table}` channel and every worker's listener
feeds it back into its local bus; with the local backend it is dispatched
in-process. Delivery is at-least-once and best-effort, so subscribers must
dedupe by row id.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

from redis.exceptions import RedisError

from config import redis_client as redis_module
from config.settings import settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "changes:"

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
EVENT_TYPES = (INSERT, UPDATE, DELETE)

RowFilter = Callable[[dict], bool]


@dataclass
class ChangeEvent:
    table: str
    event_type: str
    row: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        data = json.loads(raw)
        return cls(table=data["table"], event_type=data["event_type"], row=data.get("row") or {})


class Subscriber:
    """Override the hooks you care about."""

    async def on_insert(self, event: ChangeEvent) -> None:
        pass

    async def on_update(self, event: ChangeEvent) -> None:
        pass

    async def on_delete(self, event: ChangeEvent) -> None:
        pass

    async def handle(self, event: ChangeEvent) -> None:
        if event.event_type == INSERT:
            await self.on_insert(event)
        elif event.event_type == UPDATE:
            await self.on_update(event)
        elif event.event_type == DELETE:
            await self.on_delete(event)


class QueueSubscriber(Subscriber):
    """Buffers every event; used by the websocket feed."""

    def __init__(self, maxsize: int = 1000):
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)

    async def _put(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Realtime subscriber queue full, dropping {event.table} event")

    on_insert = on_update = on_delete = _put


class EventBus:
    def __init__(self):
        self._subscriptions: dict[str, list[tuple[Subscriber, Optional[RowFilter]]]] = {}

    def subscribe(
        self,
        table: str,
        subscriber: Subscriber,
        row_filter: Optional[RowFilter] = None,
    ) -> Callable[[], None]:
        entry = (subscriber, row_filter)
        self._subscriptions.setdefault(table, []).append(entry)

        def unsubscribe() -> None:
            entries = self._subscriptions.get(table, [])
            if entry in entries:
                entries.remove(entry)

        return unsubscribe

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    async def dispatch(self, event: ChangeEvent) -> None:
        for subscriber, row_filter in list(self._subscriptions.get(event.table, [])):
            if row_filter and not row_filter(event.row):
                continue
            try:
                await subscriber.handle(event)
            except Exception:
                logger.exception(f"Realtime subscriber failed on {event.table}/{event.event_type}")


event_bus = EventBus()


def serialize_row(obj: Any, columns: tuple[str, ...]) -> dict:
    row = {}
    for column in columns:
        value = getattr(obj, column)
        if hasattr(value, "value"):
            value = value.value
        elif value is not None and not isinstance(value, (str, int, float, bool, list, dict)):
            value = str(value)
        row[column] = value
    return row


async def publish(event: ChangeEvent) -> None:
    """Fan an event out. Never raises; a lost event is recovered by client refetch."""
    if settings.REALTIME_BACKEND == "redis" and redis_module.redis_client is not None:
        try:
            await redis_module.redis_client.publish(CHANNEL_PREFIX + event.table, event.to_json())
            return
        except RedisError as exc:
            logger.warning(f"Realtime publish failed for {event.table}: {exc}")
            return
    await event_bus.dispatch(event)


async def listen(stop: asyncio.Event) -> None:
    """Relay the Redis change channels into the local bus until stop is set."""
    pubsub = redis_module.get_redis().pubsub()
    await pubsub.psubscribe(CHANNEL_PREFIX + "*")
    try:
        while not stop.is_set():
            try:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except RedisError as exc:
                logger.warning(f"Realtime listener error: {exc}")
                await asyncio.sleep(1.0)
                continue
            if message is None:
                continue
            try:
                event = ChangeEvent.from_json(message["data"])
            except (ValueError, KeyError) as exc:
                logger.warning(f"Dropping malformed change event: {exc}")
                continue
            await event_bus.dispatch(event)
    finally:
        await pubsub.punsubscribe()
        await pubsub.aclose()
