"""Shared HTTP session for the Wikipedia, Wikidata and Worldview endpoints.

All remote calls go through `get_json` / `get_bytes` so that headers and
error wrapping stay in one place. Any transport problem surfaces as
`TransportError` carrying the underlying message.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

from domain.errors import TransportError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()
_logged_ua = False

FALLBACK_UA = "planet-postcard-forge/0.1 (contact: example@example.com)"
if settings.USER_AGENT is None:
    logger.warning(
        "POSTCARD_USER_AGENT not set in environment; using fallback UA. "
        "Wikimedia asks clients to identify themselves with a contact address."
    )


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


_ua_value = settings.USER_AGENT or FALLBACK_UA
DEFAULT_HEADERS = {
    "User-Agent": _ua_value,
}


def _get(
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    global _logged_ua
    if not _logged_ua:
        logger.debug("HTTP User-Agent: %s", _redact_email(_ua_value))
        _logged_ua = True

    merged = dict(DEFAULT_HEADERS)
    if headers:
        merged.update(headers)
    try:
        resp = _session.get(
            url,
            params=params,
            headers=merged,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("GET %s failed: %s", url, exc)
        raise TransportError(str(exc)) from exc
    return resp


def get_json(url: str, *, params: Optional[dict[str, Any]] = None, **kwargs: Any) -> Any:
    """GET `url` and decode the JSON body."""
    resp = _get(url, params=params, **kwargs)
    try:
        return resp.json()
    except ValueError as exc:
        logger.warning("GET %s returned invalid JSON: %s", url, exc)
        raise TransportError(f"invalid JSON from {url}: {exc}") from exc


def get_bytes(url: str, *, params: Optional[dict[str, Any]] = None, **kwargs: Any) -> bytes:
    """GET `url` and return the raw body."""
    return _get(url, params=params, **kwargs).content
