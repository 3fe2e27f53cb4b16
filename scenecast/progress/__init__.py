"""
Progress streaming for long-running generation calls.
"""

from .hub import DEFAULT_CAPACITY, ProgressEvent, ProgressHub, Stage, Subscription
from .sse import SSE_HEADERS, format_sse, iter_sse_messages

__all__ = [
    "DEFAULT_CAPACITY",
    "ProgressEvent",
    "ProgressHub",
    "SSE_HEADERS",
    "Stage",
    "Subscription",
    "format_sse",
    "iter_sse_messages",
]
