"""
LiteLLM-powered chat completion helper utilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping, Sequence

from litellm import completion

ChatMessage = Mapping[str, Any]


@dataclass
class ChatResult:
    """
    Structured response returned from an LLM chat completion.
    """

    text: str
    raw: Any


CompletionCallable = Callable[..., ChatResult]


def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    api_key: str | None = None,
    api_base: str | None = None,
    timeout: float | None = None,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Invoke LiteLLM's `completion` API against an OpenAI-compatible endpoint.

    LiteLLM's own retries are disabled; retrying is the caller's business.
    """
    payload: MutableMapping[str, Any] = {
        "model": model,
        "messages": list(messages),
        "num_retries": 0,
    }

    if api_key is not None:
        payload["api_key"] = api_key

    if api_base is not None:
        payload["api_base"] = api_base

    if timeout is not None:
        payload["timeout"] = timeout

    payload.update(extra_kwargs)

    response = completion(**payload)

    try:
        message = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise RuntimeError("Unexpected LiteLLM response format.") from exc

    text = str(message or "").strip()
    return ChatResult(text=text, raw=response)
