"""Browser-based rendering: a remote session service and a local Playwright browser."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

import requests
from playwright.sync_api import sync_playwright

from .errors import FormatError, TransportError
from .fetchers import json_body, sanitize_error_body

LOGGER = logging.getLogger(__name__)

VIEWPORT = {"width": 1200, "height": 1200}


def _result_field(data: Any, key: str) -> Any:
    result = data.get("result") if isinstance(data, dict) else None
    if not isinstance(result, dict):
        return None
    return result.get(key)


class RenderSessionClient:
    """Client for a session-based remote browser rendering API.

    Every call is a single HTTP request authenticated with a bearer token.
    """

    def __init__(self, base_url: str, api_token: str, timeout: float = 30.0, session: Optional[Any] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.http = session or requests

    def _request(self, method: str, path: str, expect_json: bool = True, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self.api_token}"}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"
        try:
            response = self.http.request(method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"Rendering service unreachable: {sanitize_error_body(str(exc))}") from exc
        if not expect_json:
            if not response.ok:
                raise TransportError(
                    f"Rendering service error {response.status_code}: {sanitize_error_body(response.text)}"
                )
            return None
        return json_body(response, "Rendering service")

    def create_session(self) -> str:
        data = self._request("POST", "/sessions", json={"browser": "chromium", "viewport": VIEWPORT})
        session_id = _result_field(data, "id")
        if not session_id:
            raise FormatError(f"Session create returned no id: {sanitize_error_body(data)}")
        return session_id

    def navigate(self, session_id: str, url: str) -> None:
        self._request("POST", f"/sessions/{session_id}/navigate", expect_json=False, json={"url": url})

    def page_text(self, session_id: str) -> str:
        data = self._request("GET", f"/sessions/{session_id}/content/text")
        text = _result_field(data, "text")
        if not isinstance(text, str) or not text.strip():
            raise FormatError(f"Text extraction failed: {sanitize_error_body(data)}")
        return text

    def delete_session(self, session_id: str) -> None:
        self._request("DELETE", f"/sessions/{session_id}", expect_json=False)

    @contextmanager
    def session(self) -> Iterator[str]:
        """Yield a fresh session id and always attempt to delete it afterwards."""

        session_id = self.create_session()
        try:
            yield session_id
        finally:
            try:
                self.delete_session(session_id)
            except (TransportError, FormatError) as exc:
                LOGGER.warning("Failed to release rendering session %s: %s", session_id, exc)

    def render_text(self, url: str) -> str:
        with self.session() as session_id:
            self.navigate(session_id, url)
            return self.page_text(session_id)


@dataclass
class HeadlessBrowser:
    """Local headless Chromium driven through Playwright's sync API."""

    user_agent: str
    timeout: float = 30.0

    def render(self, url: str) -> Tuple[str, str]:
        """Return ``(title, visible_text)`` for ``url``.

        The browser context and the browser itself are closed even when
        navigation fails.
        """

        timeout_ms = int(self.timeout * 1000)
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True)
                try:
                    context = browser.new_context(user_agent=self.user_agent)
                    try:
                        page = context.new_page()
                        page.goto(url, timeout=timeout_ms, wait_until="networkidle")
                        title = page.title() or ""
                        text = page.inner_text("body") or ""
                        return title, text
                    finally:
                        context.close()
                finally:
                    browser.close()
        except Exception as exc:  # noqa: BLE001 - Playwright raises its own hierarchy plus runtime errors
            raise TransportError(f"Headless browser error: {sanitize_error_body(str(exc))}") from exc


__all__ = ["HeadlessBrowser", "RenderSessionClient"]
