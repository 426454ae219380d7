"""
AI service configuration.

Responsibilities:
1. URL normalization (accept the usual api_base spellings)
2. Loading generation settings from the environment
3. Validation
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

from dotenv import load_dotenv

from app.services.forum_qa.prompts import PromptMode

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_SEARCH_RESULTS = 5
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5
DEFAULT_SIMILAR_LIMIT = 10
DEFAULT_AUTHORITY_LIMIT = 5


class ConfigError(Exception):
    """AI configuration error."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[Sequence[str]] = None,
    ):
        super().__init__(message)
        self.missing_keys = list(missing_keys or [])


def normalize_base_url(url: str) -> str:
    """
    Normalize the base_url of an OpenAI-compatible API.

    The OpenAI SDK appends /responses, /vector_stores and friends itself,
    so base_url has to end with /v1.

    Rules:
    1. Ensure an https:// prefix
    2. Drop trailing slashes
    3. Drop common endpoint suffixes (/responses, /chat/completions)
    4. Append /v1 when missing

    Examples:
        https://api.example.com/v1/responses -> https://api.example.com/v1
        https://api.example.com -> https://api.example.com/v1
        api.example.com/v1 -> https://api.example.com/v1
    """
    if not url:
        return url

    url = url.strip()

    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"

    url = url.rstrip("/")

    endpoint_suffixes = [
        "/responses",
        "/chat/completions",
        "/completions",
    ]

    for suffix in endpoint_suffixes:
        if url.endswith(suffix):
            url = url[: -len(suffix)]
            break

    url = url.rstrip("/")

    if not url.endswith("/v1"):
        url = f"{url}/v1"

    return url


@dataclass(frozen=True)
class GenerationSettings:
    """Settings shared by the generation client and the Q&A service."""

    api_key: str
    base_url: Optional[str] = None
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_search_results: int = DEFAULT_MAX_SEARCH_RESULTS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS
    prompt_mode: PromptMode = PromptMode.FALLBACK
    similar_limit: int = DEFAULT_SIMILAR_LIMIT
    authority_limit: int = DEFAULT_AUTHORITY_LIMIT


def _env_number(name: str, default, cast, minimum):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_prompt_mode() -> PromptMode:
    raw = (os.getenv("FORUM_QA_PROMPT_MODE") or PromptMode.FALLBACK.value).strip().lower()
    try:
        return PromptMode(raw)
    except ValueError as e:
        allowed = ", ".join(m.value for m in PromptMode)
        raise ConfigError(f"FORUM_QA_PROMPT_MODE must be one of {allowed}, got {raw!r}") from e


def load_generation_settings() -> GenerationSettings:
    """
    Read generation settings from the environment.

    Raises:
        ConfigError: missing API key or an invalid value
    """
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigError("Missing required setting: OPENAI_API_KEY", missing_keys=["OPENAI_API_KEY"])

    base_url = os.getenv("OPENAI_BASE_URL")

    return GenerationSettings(
        api_key=api_key,
        base_url=normalize_base_url(base_url) if base_url else None,
        model=os.getenv("FORUM_QA_MODEL") or DEFAULT_MODEL,
        temperature=_env_number("FORUM_QA_TEMPERATURE", DEFAULT_TEMPERATURE, float, 0.0),
        max_search_results=_env_number(
            "FORUM_QA_MAX_SEARCH_RESULTS", DEFAULT_MAX_SEARCH_RESULTS, int, 1
        ),
        max_attempts=_env_number("FORUM_QA_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, int, 1),
        backoff_seconds=_env_number(
            "FORUM_QA_BACKOFF_SECONDS", DEFAULT_BACKOFF_SECONDS, float, 0.0
        ),
        prompt_mode=_env_prompt_mode(),
        similar_limit=_env_number("FORUM_QA_SIMILAR_LIMIT", DEFAULT_SIMILAR_LIMIT, int, 1),
        authority_limit=_env_number(
            "FORUM_QA_AUTHORITY_LIMIT", DEFAULT_AUTHORITY_LIMIT, int, 1
        ),
    )


@lru_cache()
def get_generation_settings() -> GenerationSettings:
    settings = load_generation_settings()
    logger.info(
        f"Generation settings loaded: model={settings.model}, "
        f"mode={settings.prompt_mode.value}, attempts={settings.max_attempts}"
    )
    return settings
