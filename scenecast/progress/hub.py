"""
Fan-out of generation progress events to per-task subscribers.

Delivery is advisory: a subscriber whose queue is full simply misses the event,
so a stalled reader can never hold up the generation that publishes it.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10

_CLOSED = object()


class Stage(str, Enum):
    PREPARING = "preparing"
    INVOKING = "invoking"
    MATERIALIZING = "materializing"
    COMPLETED = "completed"
    FAILED = "failed"
    BATCH = "batch"


@dataclass(frozen=True)
class ProgressEvent:
    task_id: str
    stage: Stage
    message: str
    percent: int = 0
    completed: bool = False
    error: str | None = None
    current: int | None = None
    total: int | None = None
    success: bool | None = None

    @property
    def is_terminal(self) -> bool:
        return self.completed or bool(self.error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "taskId": self.task_id,
            "stage": self.stage.value,
            "message": self.message,
            "progress": self.percent,
            "completed": self.completed,
        }
        if self.error:
            payload["error"] = self.error
        # Batch runs also report the item position and its outcome.
        for key in ("current", "total", "success"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


class Subscription:
    """
    Bounded mailbox for one observer of one task.
    """

    def __init__(self, task_id: str, capacity: int = DEFAULT_CAPACITY) -> None:
        self.task_id = task_id
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, event: ProgressEvent) -> bool:
        """Enqueue without blocking; ``False`` when closed or full."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            return False
        return True

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """
        Next event, or ``None`` once closed and drained (or when ``timeout`` elapses).
        """
        try:
            if self._closed.is_set():
                item = self._queue.get_nowait()
            else:
                item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def close(self) -> bool:
        """Close the mailbox; only the first call returns ``True``."""
        with self._close_lock:
            if self._closed.is_set():
                return False
            self._closed.set()
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            # A full queue means the reader is not blocked; it sees the flag after draining.
            pass
        return True

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
            if event.is_terminal:
                return


class ProgressHub:
    """
    Task-id keyed registry of subscriptions.

    The lock only guards the subscriber map; events are handed to the
    subscriptions after the lock is released.
    """

    def __init__(self, *, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = capacity
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscription]] = {}

    def subscribe(self, task_id: str) -> Subscription:
        subscription = Subscription(task_id, self._capacity)
        with self._lock:
            self._subscribers.setdefault(task_id, []).append(subscription)
        return subscription

    def unsubscribe(self, task_id: str, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscribers.get(task_id)
            if subscriptions is not None:
                try:
                    subscriptions.remove(subscription)
                except ValueError:
                    pass
                if not subscriptions:
                    del self._subscribers[task_id]
        subscription.close()

    def publish(self, event: ProgressEvent) -> int:
        """
        Deliver ``event`` to every current subscriber of its task; returns how many took it.
        """
        with self._lock:
            targets = tuple(self._subscribers.get(event.task_id, ()))

        delivered = 0
        for subscription in targets:
            if subscription.offer(event):
                delivered += 1
            else:
                logger.debug("Dropped %s event for task %s.", event.stage.value, event.task_id)
        return delivered

    def subscriber_count(self, task_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(task_id, ()))

    def task_ids(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)
