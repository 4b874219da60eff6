"""HTTP helpers for retrieving pages and talking to remote services."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import requests
from bs4 import BeautifulSoup

from .errors import FormatError, TransportError

LOGGER = logging.getLogger(__name__)

MAX_ERROR_CHARS = 300
_HTML_MARKERS = re.compile(r"<\s*(!doctype|html|head|body|div|p|title|h1)\b", re.IGNORECASE)
_KEY_PARAM = re.compile(r"([?&](?:key|api_key|token)=)[^&\s\"']+", re.IGNORECASE)


def sanitize_error_body(body: Any, limit: int = MAX_ERROR_CHARS) -> str:
    """Turn a remote error body into a short, single-line message.

    HTML error pages are reduced to their visible text and secrets passed as
    query parameters are redacted.
    """

    if body is None:
        return ""
    if not isinstance(body, str):
        try:
            body = json.dumps(body)
        except (TypeError, ValueError):
            body = str(body)
    if _HTML_MARKERS.search(body):
        body = BeautifulSoup(body, "html.parser").get_text(" ")
    body = _KEY_PARAM.sub(r"\1REDACTED", body)
    body = " ".join(body.split())
    if len(body) > limit:
        body = body[:limit].rstrip() + "..."
    return body


def fetch_html(url: str, *, user_agent: str, timeout: float, session: Optional[Any] = None) -> str:
    """Retrieve the raw HTML for ``url``.

    Raises :class:`TransportError` on connection problems, timeouts and
    non-2xx responses.
    """

    http = session or requests
    try:
        response = http.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        LOGGER.debug("Unable to fetch %s: %s", url, exc)
        raise TransportError(f"HTTP fetch failed: {sanitize_error_body(str(exc))}") from exc
    return response.text


def json_body(response: Any, service: str, *, parse_first: bool = False) -> Any:
    """Decode a JSON response body.

    By default a non-2xx status is a :class:`TransportError` whatever the body.
    With ``parse_first`` a body that is not JSON is a :class:`FormatError` even
    on error statuses, and only JSON error bodies become transport errors.
    """

    if parse_first:
        try:
            data = response.json()
        except ValueError as exc:
            raise FormatError(
                f"{service} returned non-JSON response ({response.status_code}): {sanitize_error_body(response.text)}"
            ) from exc
        if not response.ok:
            raise TransportError(f"{service} error {response.status_code}: {sanitize_error_body(response.text)}")
        return data

    if not response.ok:
        raise TransportError(f"{service} error {response.status_code}: {sanitize_error_body(response.text)}")
    try:
        return response.json()
    except ValueError as exc:
        raise FormatError(f"{service} returned non-JSON response: {sanitize_error_body(response.text)}") from exc


__all__ = ["fetch_html", "json_body", "sanitize_error_body"]
