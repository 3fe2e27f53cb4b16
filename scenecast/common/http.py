"""
Thin `requests` helpers for provider calls and artifact downloads.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import requests

from .errors import MaterializationError, ProviderError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]

_ERROR_BODY_PREVIEW = 500


def post_json(
    url: str,
    *,
    api_key: str,
    body: Mapping[str, Any],
    timeout: float | None = None,
    session: requests.Session | None = None,
) -> Any:
    """
    POST a JSON body with bearer authentication and return the decoded JSON reply.

    Network failures and non-2xx replies raise :class:`ProviderError`, which the
    retry layer treats as transient.
    """
    http = session or requests
    try:
        response = http.post(
            url,
            json=dict(body),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise ProviderError(f"Request to {url} failed: {exc}") from exc

    if not response.ok:
        detail = response.text.strip()[:_ERROR_BODY_PREVIEW] or f"HTTP {response.status_code}"
        logger.warning("Provider %s answered %s: %s", url, response.status_code, detail)
        raise ProviderError(
            f"Provider request failed (status {response.status_code}): {detail}",
            status_code=response.status_code,
            body=detail,
        )

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(f"Provider at {url} returned a non-JSON body.") from exc


def download_bytes(
    url: str,
    *,
    timeout: float | None = None,
    session_factory: SessionFactory = requests.Session,
) -> bytes:
    """
    Fetch ``url`` on a dedicated, non-pooled connection and return the full body.
    """
    with session_factory() as session:
        session.headers["Connection"] = "close"
        try:
            response = session.get(url, timeout=timeout)
        except requests.RequestException as exc:
            raise MaterializationError(f"Download of {url} failed: {exc}") from exc

        with response:
            if not response.ok:
                detail = response.text.strip()[:_ERROR_BODY_PREVIEW] or f"HTTP {response.status_code}"
                raise MaterializationError(
                    f"Download of {url} failed (status {response.status_code}): {detail}"
                )
            return response.content
