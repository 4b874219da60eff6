"""Summarization through language model providers, with a local fallback."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

import requests

from .config import Config
from .errors import FormatError, PageDigestError, SummarizationError, TransportError
from .fetchers import json_body, sanitize_error_body

LOGGER = logging.getLogger(__name__)

DEFAULT_PROMPT = "Provide a concise summary"
MAX_INPUT_CHARS = 4000
SHORT_INPUT_CHARS = 800
LOCAL_SUMMARY_CHARS = 500
SYSTEM_PROMPT = "You are a helpful assistant that creates concise, accurate summaries."

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")

ShapeReader = Callable[[Any], str]


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _first_candidate(data: Any) -> Any:
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return {}


def _gemini_output_text(data: Any) -> str:
    return _as_text(data.get("output_text")) if isinstance(data, dict) else ""


def _gemini_candidate_parts(data: Any) -> str:
    content = _first_candidate(data).get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "\n".join(_as_text(part.get("text")) for part in parts if isinstance(part, dict)).strip()


def _gemini_candidate_text(data: Any) -> str:
    return _as_text(_first_candidate(data).get("text"))


def _root_text(data: Any) -> str:
    return _as_text(data.get("text")) if isinstance(data, dict) else ""


def _first_choice(data: Any) -> Any:
    choices = data.get("choices") if isinstance(data, dict) else None
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _openai_message_content(data: Any) -> str:
    message = _first_choice(data).get("message") or {}
    return _as_text(message.get("content")) if isinstance(message, dict) else ""


def _openai_choice_text(data: Any) -> str:
    return _as_text(_first_choice(data).get("text"))


GEMINI_SHAPES: Tuple[ShapeReader, ...] = (
    _gemini_output_text,
    _gemini_candidate_parts,
    _gemini_candidate_text,
    _root_text,
)
OPENAI_SHAPES: Tuple[ShapeReader, ...] = (_openai_message_content, _openai_choice_text)


def read_response_text(data: Any, shapes: Sequence[ShapeReader]) -> str:
    """Return the first non-empty text found across known response shapes."""

    for reader in shapes:
        text = reader(data)
        if text:
            return text
    return ""


class SummaryProvider(Protocol):
    name: str

    def complete(self, text: str, prompt: str) -> str:
        ...


class _HTTPProvider:
    name = "base"
    shapes: Tuple[ShapeReader, ...] = ()

    def __init__(self, timeout: float = 30.0, session: Optional[Any] = None) -> None:
        self.timeout = timeout
        self.http = session or requests

    def _post(self, url: str, body: dict, headers: dict, params: Optional[dict] = None) -> str:
        try:
            response = self.http.post(url, json=body, headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{self.name} request failed: {sanitize_error_body(str(exc))}") from exc
        data = json_body(response, self.name, parse_first=True)
        text = read_response_text(data, self.shapes)
        if not text:
            LOGGER.debug("%s response without text: %s", self.name, sanitize_error_body(data, limit=1500))
            raise FormatError(f"{self.name} returned empty or unrecognized format")
        return text


class GeminiProvider(_HTTPProvider):
    name = "gemini"
    shapes = GEMINI_SHAPES

    def __init__(self, api_key: str, endpoint: str, timeout: float = 30.0, session: Optional[Any] = None) -> None:
        super().__init__(timeout=timeout, session=session)
        self.api_key = api_key
        self.endpoint = endpoint

    def complete(self, text: str, prompt: str) -> str:
        body = {
            "contents": [{"role": "user", "parts": [{"text": f"{prompt}\n\n{text}"}]}],
            "generationConfig": {"maxOutputTokens": 600, "temperature": 0.7},
        }
        return self._post(self.endpoint, body, {"Content-Type": "application/json"}, params={"key": self.api_key})


class OpenAIProvider(_HTTPProvider):
    name = "openai"
    shapes = OPENAI_SHAPES

    def __init__(
        self, api_key: str, endpoint: str, model: str, timeout: float = 30.0, session: Optional[Any] = None
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model

    def complete(self, text: str, prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"{prompt}\n\nContent:\n{text}"},
            ],
            "max_tokens": 500,
            "temperature": 0.7,
        }
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        return self._post(self.endpoint, body, headers)


class Summarizer:
    """Primary provider, a short-input retry on malformed replies, then a secondary provider."""

    def __init__(self, primary: Optional[SummaryProvider] = None, secondary: Optional[SummaryProvider] = None) -> None:
        self.primary = primary
        self.secondary = secondary

    @property
    def configured(self) -> bool:
        return self.primary is not None or self.secondary is not None

    def summarize(self, text: str, prompt: str = DEFAULT_PROMPT) -> str:
        cleaned = " ".join((text or "").split())
        if not cleaned:
            raise SummarizationError("Empty text to summarize")
        if not self.configured:
            raise SummarizationError("No language model provider configured")
        prompt = prompt or DEFAULT_PROMPT
        failures: List[str] = []

        if self.primary is not None:
            try:
                LOGGER.info("Summarizing with %s", self.primary.name)
                return self.primary.complete(cleaned[:MAX_INPUT_CHARS], prompt)
            except FormatError as exc:
                LOGGER.warning("%s returned a malformed response: %s", self.primary.name, exc)
                try:
                    LOGGER.info("Retrying %s with %d-char input", self.primary.name, SHORT_INPUT_CHARS)
                    return self.primary.complete(cleaned[:SHORT_INPUT_CHARS], f"{prompt} (short-input fallback)")
                except PageDigestError as retry_exc:
                    LOGGER.warning("%s short-input retry failed: %s", self.primary.name, retry_exc)
                    failures.append(f"{self.primary.name}: {retry_exc}")
            except PageDigestError as exc:
                LOGGER.warning("%s summarization failed: %s", self.primary.name, exc)
                failures.append(f"{self.primary.name}: {exc}")

        if self.secondary is not None:
            try:
                LOGGER.info("Falling back to %s", self.secondary.name)
                return self.secondary.complete(cleaned[:MAX_INPUT_CHARS], prompt)
            except PageDigestError as exc:
                LOGGER.warning("%s summarization failed: %s", self.secondary.name, exc)
                failures.append(f"{self.secondary.name}: {exc}")

        raise SummarizationError("All language model providers failed: " + "; ".join(failures))


def local_summary(text: str) -> str:
    """First two sentences of ``text``, or its first 500 characters."""

    cleaned = " ".join((text or "").split())
    sentences = _SENTENCE.findall(cleaned)
    if len(sentences) >= 2:
        return " ".join(sentence.strip() for sentence in sentences[:2])
    return cleaned[:LOCAL_SUMMARY_CHARS]


def build_summarizer(config: Config, session: Optional[Any] = None) -> Summarizer:
    primary = None
    secondary = None
    if config.gemini_api_key:
        primary = GeminiProvider(
            config.gemini_api_key, config.gemini_endpoint, timeout=config.llm_timeout, session=session
        )
    if config.openai_api_key:
        secondary = OpenAIProvider(
            config.openai_api_key,
            config.openai_api_url,
            config.openai_model,
            timeout=config.llm_timeout,
            session=session,
        )
    if primary is None and secondary is None:
        LOGGER.warning("No language model configured; summaries will use the local fallback")
    return Summarizer(primary=primary, secondary=secondary)


__all__ = [
    "DEFAULT_PROMPT",
    "GeminiProvider",
    "OpenAIProvider",
    "Summarizer",
    "SummaryProvider",
    "build_summarizer",
    "local_summary",
    "read_response_text",
]
