"""Shared JSON GET helper for the upstream HTTP adapters."""

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def get_json(
    session: requests.Session,
    url: str,
    source: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any | None:
    """GET a JSON document, returning None on any transport or parse failure.

    Args:
        session: Requests session to issue the call on.
        url: Endpoint URL.
        source: Label used in log messages.
        params: Query parameters.
        headers: Extra request headers.
        timeout: Request timeout in seconds.

    Returns:
        Decoded JSON payload, or None.
    """
    request_headers = {"Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    try:
        response = session.get(url, params=params, headers=request_headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning(f"{source} request failed: {exc}")
        return None

    if response.status_code == 404:
        logger.debug(f"{source} returned 404 for {params}")
        return None
    if response.status_code != 200:
        logger.warning(f"{source} returned {response.status_code}: {response.text[:200]}")
        return None

    try:
        return response.json()
    except ValueError as exc:
        logger.warning(f"{source} returned invalid JSON: {exc}")
        return None
