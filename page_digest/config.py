"""Configuration utilities for the page digest runner."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

DEFAULT_DATA_DIR = Path(os.getenv("PAGE_DIGEST_DATA_DIR", "data"))
DEFAULT_STORE_FILE = DEFAULT_DATA_DIR / "workflows.json"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; PageDigest/1.0)"
RENDER_BASE_TEMPLATE = "https://api.cloudflare.com/client/v4/accounts/{account_id}/browser-rendering/v1"
GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_MIN_LENGTH = 150
DEFAULT_MIN_LENGTHS: Dict[str, int] = {
    "cloudflare": 200,
    "readability": 100,
    "basic-parser": 150,
    "headless": 100,
}


@dataclass(frozen=True)
class Config:
    """Runtime configuration values, built once per process."""

    data_dir: Path = DEFAULT_DATA_DIR
    store_file: Path = DEFAULT_STORE_FILE

    render_account_id: Optional[str] = None
    render_api_token: Optional[str] = None
    render_base_url: Optional[str] = None

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    openai_api_url: str = OPENAI_URL

    email_host: Optional[str] = None
    email_port: int = 587
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    email_from: Optional[str] = None
    email_use_tls: bool = True

    min_lengths: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_MIN_LENGTHS))
    fetch_timeout: float = 15.0
    llm_timeout: float = 30.0
    render_timeout: float = 30.0
    headless_timeout: float = 30.0
    email_timeout: float = 15.0
    poll_interval: float = 900.0
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def rendering_enabled(self) -> bool:
        """Remote rendering is only used when both credentials are present."""
        return bool(self.render_account_id and self.render_api_token)

    @property
    def render_endpoint(self) -> str:
        if self.render_base_url:
            return self.render_base_url.rstrip("/")
        return RENDER_BASE_TEMPLATE.format(account_id=self.render_account_id)

    @property
    def gemini_endpoint(self) -> str:
        return self.gemini_api_url or GEMINI_URL_TEMPLATE.format(model=self.gemini_model)

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_host and (self.email_from or self.email_user))

    def min_length_for(self, strategy: str) -> int:
        return int(self.min_lengths.get(strategy, DEFAULT_MIN_LENGTH))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_min_lengths(raw: Optional[str]) -> Dict[str, int]:
    """Merge ``name=value,name=value`` overrides onto the default minimums."""

    lengths = dict(DEFAULT_MIN_LENGTHS)
    if not raw:
        return lengths
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"Invalid minimum length entry {item!r}, expected name=value")
        try:
            lengths[name.strip()] = int(value)
        except ValueError as exc:
            raise ValueError(f"Minimum length for {name.strip()!r} must be an integer") from exc
    return lengths


def load_config() -> Config:
    """Load configuration from environment variables and defaults."""

    data_dir = Path(os.getenv("PAGE_DIGEST_DATA_DIR", str(DEFAULT_DATA_DIR)))
    store_file = Path(os.getenv("PAGE_DIGEST_STORE_FILE", str(data_dir / "workflows.json")))

    config = Config(
        data_dir=data_dir,
        store_file=store_file,
        render_account_id=os.getenv("CF_ACCOUNT_ID"),
        render_api_token=os.getenv("CF_API_TOKEN"),
        render_base_url=os.getenv("CF_RENDER_BASE_URL"),
        gemini_api_key=os.getenv("LLM_API_KEY"),
        gemini_model=os.getenv("LLM_MODEL", "gemini-1.5-flash"),
        gemini_api_url=os.getenv("LLM_API_URL") or None,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
        openai_api_url=os.getenv("OPENAI_API_URL", OPENAI_URL),
        email_host=os.getenv("EMAIL_HOST"),
        email_port=_env_int("EMAIL_PORT", 587),
        email_user=os.getenv("EMAIL_USER"),
        email_password=os.getenv("EMAIL_PASSWORD"),
        email_from=os.getenv("EMAIL_FROM"),
        email_use_tls=_env_bool("EMAIL_USE_TLS", True),
        min_lengths=parse_min_lengths(os.getenv("PAGE_DIGEST_MIN_LENGTHS")),
        fetch_timeout=_env_float("PAGE_DIGEST_FETCH_TIMEOUT", 15.0),
        llm_timeout=_env_float("PAGE_DIGEST_LLM_TIMEOUT", 30.0),
        render_timeout=_env_float("PAGE_DIGEST_RENDER_TIMEOUT", 30.0),
        headless_timeout=_env_float("PAGE_DIGEST_HEADLESS_TIMEOUT", 30.0),
        poll_interval=_env_float("PAGE_DIGEST_POLL_INTERVAL", 900.0),
        user_agent=os.getenv("PAGE_DIGEST_USER_AGENT", DEFAULT_USER_AGENT),
    )

    # Ensure the data directory exists when configuration is loaded.
    config.data_dir.mkdir(parents=True, exist_ok=True)

    return config
