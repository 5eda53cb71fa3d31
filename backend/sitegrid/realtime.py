"""In-process change feed.

Every mutation publishes a change event on the channel named after its table.
Callbacks registered with ``subscribe`` are invoked synchronously; HTTP
clients poll ``events_since`` with the last sequence number they saw.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

import structlog

logger = structlog.get_logger()

Callback = Callable[[Dict[str, Any]], None]

IDLE = "IDLE"
SUBSCRIBED = "SUBSCRIBED"
ERROR = "ERROR"

CHANNEL_TABLES: Tuple[str, ...] = (
    "projects",
    "tasks",
    "task_dependencies",
    "equipment",
    "equipment_allocations",
    "resource_allocations",
    "team_members",
    "stakeholders",
    "stakeholder_assignments",
    "task_stakeholder_assignments",
    "profiles",
    "contact_interactions",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ChannelConfig:
    table_name: str
    events: Deque[Dict[str, Any]]
    callbacks: List[Callback] = field(default_factory=list)
    state: str = IDLE
    created_at: int = field(default_factory=_now_ms)
    subscribed_at: Optional[int] = None
    last_polled_at: Optional[int] = None
    last_error: Optional[str] = None
    user_id: Optional[str] = None
    error_count: int = 0


class SubscriptionManager:
    def __init__(self, buffer_size: int = 200):
        self._lock = RLock()
        self._channels: Dict[str, ChannelConfig] = {}
        self._buffer_size = buffer_size
        self._seq = 0
        self._started_at = _now_ms()

    def _channel(self, table_name: str) -> ChannelConfig:
        channel = self._channels.get(table_name)
        if channel is None:
            channel = ChannelConfig(table_name=table_name, events=deque(maxlen=self._buffer_size))
            self._channels[table_name] = channel
        return channel

    def subscribe(self, table_name: str, callback: Callback, user_id: Optional[str] = None) -> Callable[[], None]:
        with self._lock:
            channel = self._channel(table_name)
            if callback not in channel.callbacks:
                channel.callbacks.append(callback)
            channel.state = SUBSCRIBED
            channel.subscribed_at = channel.subscribed_at or _now_ms()
            channel.user_id = user_id or channel.user_id
        logger.debug("realtime_subscribed", channel=table_name, user_id=user_id)
        return lambda: self.unsubscribe(table_name, callback)

    def unsubscribe(self, table_name: str, callback: Callback) -> None:
        with self._lock:
            channel = self._channels.get(table_name)
            if channel is None:
                return
            if callback in channel.callbacks:
                channel.callbacks.remove(callback)
            if not channel.callbacks and channel.last_polled_at is None:
                channel.state = IDLE
                channel.subscribed_at = None

    def publish(self, table_name: str, action: str, record_id: Any, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with self._lock:
            self._seq += 1
            event = {
                "seq": self._seq,
                "table": table_name,
                "action": action,
                "record_id": record_id,
                "payload": payload or {},
                "timestamp": _now_ms(),
            }
            channel = self._channel(table_name)
            channel.events.append(event)
            callbacks = list(channel.callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as exc:
                with self._lock:
                    channel.state = ERROR
                    channel.last_error = str(exc)
                    channel.error_count += 1
                logger.warning("realtime_callback_failed", channel=table_name, seq=event["seq"], error=str(exc))
        return event

    def events_since(self, table_name: str, since: int = 0) -> Dict[str, Any]:
        """Events on ``table_name`` newer than ``since``; polling never registers a channel."""
        with self._lock:
            channel = self._channels.get(table_name)
            if channel is None:
                return {"channel": table_name, "latest_seq": self._seq, "events": []}
            channel.last_polled_at = _now_ms()
            if channel.state == IDLE:
                channel.state = SUBSCRIBED
                channel.subscribed_at = channel.last_polled_at
            events = [event for event in channel.events if event["seq"] > since]
            return {"channel": table_name, "latest_seq": self._seq, "events": events}

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            channels = list(self._channels.values())
            return {
                "total_channels": len(channels),
                "active_subscriptions": sum(1 for channel in channels if channel.state == SUBSCRIBED),
                "errored_subscriptions": sum(1 for channel in channels if channel.state == ERROR),
                "total_callbacks": sum(len(channel.callbacks) for channel in channels),
                "uptime_ms": _now_ms() - self._started_at,
            }

    def get_subscription_info(self, table_name: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            if table_name is not None:
                channel = self._channels.get(table_name)
                return self._format(channel) if channel else {}
            return {name: self._format(channel) for name, channel in self._channels.items()}

    @staticmethod
    def _format(channel: ChannelConfig) -> Dict[str, Any]:
        return {
            "table_name": channel.table_name,
            "state": channel.state,
            "callback_count": len(channel.callbacks),
            "buffered_events": len(channel.events),
            "created_at": channel.created_at,
            "subscribed_at": channel.subscribed_at,
            "last_polled_at": channel.last_polled_at,
            "last_error": channel.last_error,
            "error_count": channel.error_count,
            "user_id": channel.user_id,
        }
