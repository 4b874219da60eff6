"""Text extraction strategies and the cascade that tries them in order."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence

from bs4 import BeautifulSoup
from readability import Document

from .config import Config
from .errors import ContentInsufficientError, ExtractionError, PageDigestError, TransportError
from .fetchers import fetch_html, sanitize_error_body
from .models import ExtractionResult
from .rendering import HeadlessBrowser, RenderSessionClient

LOGGER = logging.getLogger(__name__)

BASIC_MAX_CHARS = 4000
_BOILERPLATE_PATTERNS = (
    re.compile(r"(Advertisement|ADVT|Sponsored|Subscriber Only|Best Of Premium)", re.IGNORECASE),
    re.compile(r"([A-Za-z]+\s+News\s+Update:.*?)\d{4}", re.IGNORECASE),
    re.compile(r"(Latest News|Trending|Most Read|Top Stories)", re.IGNORECASE),
)
_STRAY_PUNCTUATION = re.compile(r"[|•()\[\]]+")


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


@dataclass
class ExtractedText:
    title: Optional[str]
    text: str


@dataclass
class Page:
    """The URL under extraction plus its HTML, fetched at most once."""

    url: str
    loader: Callable[[str], str]
    _html: Optional[str] = field(default=None, repr=False)
    _error: Optional[TransportError] = field(default=None, repr=False)

    @property
    def html(self) -> str:
        if self._error is not None:
            raise self._error
        if self._html is None:
            try:
                self._html = self.loader(self.url)
            except TransportError as exc:
                self._error = exc
                raise
        return self._html


class ExtractionStrategy(Protocol):
    name: str
    min_length: int
    needs_html: bool

    def extract(self, page: Page) -> ExtractedText:
        ...


@dataclass
class RenderedDomStrategy:
    """Text rendered by the remote browser service."""

    client: RenderSessionClient
    min_length: int = 200
    name: str = "cloudflare"
    needs_html: bool = False

    def extract(self, page: Page) -> ExtractedText:
        return ExtractedText(title=None, text=self.client.render_text(page.url).strip())


@dataclass
class ReadabilityStrategy:
    """Main-content heuristics from readability-lxml."""

    min_length: int = 100
    name: str = "readability"
    needs_html: bool = True

    def extract(self, page: Page) -> ExtractedText:
        html = page.html
        try:
            document = Document(html)
            content = document.summary(html_partial=True)
            title = document.short_title() or ""
        except Exception as exc:  # noqa: BLE001 - lxml raises a variety of parser errors
            raise ExtractionError(f"Readability parse error: {exc}") from exc
        text = BeautifulSoup(content, "html.parser").get_text(" ", strip=True)
        return ExtractedText(title=title, text=normalize_whitespace(text))


@dataclass
class BasicParserStrategy:
    """Tag stripping plus removal of common boilerplate phrases."""

    min_length: int = 150
    max_chars: int = BASIC_MAX_CHARS
    name: str = "basic-parser"
    needs_html: bool = True

    def extract(self, page: Page) -> ExtractedText:
        soup = BeautifulSoup(page.html, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else ""
        for node in soup.select("script, style, nav, footer"):
            node.decompose()
        container = soup.find("main") or soup.find("article") or soup.find("body") or soup
        return ExtractedText(title=title, text=clean_boilerplate(container.get_text(" "), self.max_chars))


@dataclass
class HeadlessBrowserStrategy:
    """Local Playwright rendering for pages that need JavaScript."""

    browser: HeadlessBrowser
    min_length: int = 100
    name: str = "headless"
    needs_html: bool = False

    def extract(self, page: Page) -> ExtractedText:
        title, text = self.browser.render(page.url)
        return ExtractedText(title=title, text=normalize_whitespace(text))


def clean_boilerplate(text: str, max_chars: int = BASIC_MAX_CHARS) -> str:
    text = normalize_whitespace(text)
    for pattern in _BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    text = _STRAY_PUNCTUATION.sub(" ", text)
    text = normalize_whitespace(text)
    if len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return text


class ExtractionCascade:
    """Try strategies in priority order and return the first usable text.

    Earlier strategies win whenever they succeed, regardless of how much text
    later ones could produce.
    """

    def __init__(self, strategies: Sequence[ExtractionStrategy], loader: Callable[[str], str]) -> None:
        self.strategies = list(strategies)
        self.loader = loader

    def extract(self, url: str) -> ExtractionResult:
        LOGGER.info("Extracting %s", url)
        page = Page(url=url, loader=self.loader)
        failures: List[str] = []

        for strategy in self.strategies:
            LOGGER.debug("Attempting %s for %s", strategy.name, url)
            try:
                extracted = strategy.extract(page)
                text = extracted.text or ""
                if len(text) < strategy.min_length:
                    raise ContentInsufficientError(f"Insufficient content ({strategy.name}): {len(text)} chars")
            except PageDigestError as exc:
                LOGGER.debug("%s failed for %s: %s", strategy.name, url, exc)
                failures.append(f"{strategy.name}: {sanitize_error_body(str(exc))}")
                continue
            except Exception as exc:  # noqa: BLE001 - one broken strategy must not stop the cascade
                LOGGER.exception("%s raised unexpectedly for %s", strategy.name, url)
                failures.append(f"{strategy.name}: {type(exc).__name__}: {sanitize_error_body(str(exc))}")
                continue

            LOGGER.info("%s succeeded for %s (%d chars)", strategy.name, url, len(text))
            return ExtractionResult(
                success=True,
                method=strategy.name,
                title=extracted.title or None,
                text=text,
            )

        error = "All extraction methods failed. " + "; ".join(failures)
        LOGGER.warning("Extraction failed for %s: %s", url, error)
        return ExtractionResult(success=False, error=error)


def build_strategies(config: Config, session: Optional[Any] = None) -> List[ExtractionStrategy]:
    """Assemble the canonical order: remote render, readability, basic parser, local headless."""

    strategies: List[ExtractionStrategy] = []
    if config.rendering_enabled:
        client = RenderSessionClient(
            config.render_endpoint,
            config.render_api_token or "",
            timeout=config.render_timeout,
            session=session,
        )
        strategies.append(RenderedDomStrategy(client, min_length=config.min_length_for("cloudflare")))
    strategies.append(ReadabilityStrategy(min_length=config.min_length_for("readability")))
    strategies.append(BasicParserStrategy(min_length=config.min_length_for("basic-parser")))
    if not config.rendering_enabled:
        browser = HeadlessBrowser(user_agent=config.user_agent, timeout=config.headless_timeout)
        strategies.append(HeadlessBrowserStrategy(browser, min_length=config.min_length_for("headless")))
    return strategies


def build_cascade(config: Config, session: Optional[Any] = None) -> ExtractionCascade:
    def loader(url: str) -> str:
        return fetch_html(url, user_agent=config.user_agent, timeout=config.fetch_timeout, session=session)

    return ExtractionCascade(build_strategies(config, session=session), loader)


__all__ = [
    "BasicParserStrategy",
    "ExtractedText",
    "ExtractionCascade",
    "ExtractionStrategy",
    "HeadlessBrowserStrategy",
    "Page",
    "ReadabilityStrategy",
    "RenderedDomStrategy",
    "build_cascade",
    "build_strategies",
    "clean_boilerplate",
]
