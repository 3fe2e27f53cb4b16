"""
Server-Sent Events framing for progress subscriptions.

Framework-agnostic: any web layer that can stream an iterator of strings can
serve these frames at its per-task progress route.
"""

from __future__ import annotations

import json
from typing import Callable, Iterator

from .hub import ProgressEvent, ProgressHub

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

KEEPALIVE_FRAME = ": keepalive\n\n"


def format_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"


def iter_sse_messages(
    hub: ProgressHub,
    task_id: str,
    *,
    poll_interval: float = 15.0,
    is_disconnected: Callable[[], bool] | None = None,
) -> Iterator[str]:
    """
    Subscribe to ``task_id`` and yield one ``data:`` frame per event.

    Ends after a completed/failed event or when ``is_disconnected`` reports the
    client has gone; the subscription is always released, including when the
    consumer closes the generator early.
    """
    subscription = hub.subscribe(task_id)
    try:
        while True:
            if is_disconnected is not None and is_disconnected():
                return
            event = subscription.get(timeout=poll_interval)
            if event is None:
                if subscription.closed:
                    return
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(event)
            if event.is_terminal:
                return
    finally:
        hub.unsubscribe(task_id, subscription)
