"""
Configuration and environment loading for LLM Chess Arena.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API key, provider endpoint, retry and turn knobs).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/llmchess_arena/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.warning("Ignoring unreadable settings file %s", path, exc_info=True)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: top level is not a mapping", path)
        return {}
    return data


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenRouter, OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    default_model: str

    # Completion knobs
    temperature: float
    max_completion_tokens: int

    # Retry / turn knobs
    retry_attempts: int
    retry_base_delay_s: float
    max_invalid_attempts: int
    turn_delay_s: float
    model_list_limit: int


def load_settings(path: str | None = None) -> Settings:
    """Build Settings with precedence YAML > environment > defaults."""
    cfg = _load_yaml(path or os.path.join(_repo_root(), "settings.yml"))

    def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
        if name in cfg:
            val = cfg[name]
            return cast(val) if cast else val
        env = os.environ.get(name)
        if env is not None:
            return cast(env) if cast else env
        return default

    return Settings(
        llm_api_key=_get("LLMCHESS_LLM_API_KEY", _get("OPENROUTER_API_KEY", "")),
        api_base=_get("LLMCHESS_LLM_BASE_URL", "https://openrouter.ai/api/v1"),
        default_model=_get("LLMCHESS_DEFAULT_MODEL", "google/gemini-2.0-flash-001"),
        temperature=_get("LLMCHESS_TEMPERATURE", 0.7, cast=float),
        max_completion_tokens=_get("LLMCHESS_MAX_COMPLETION_TOKENS", 200, cast=int),
        retry_attempts=_get("LLMCHESS_RETRY_ATTEMPTS", 3, cast=int),
        retry_base_delay_s=_get("LLMCHESS_RETRY_BASE_DELAY_S", 1.0, cast=float),
        max_invalid_attempts=_get("LLMCHESS_MAX_INVALID_ATTEMPTS", 3, cast=int),
        turn_delay_s=_get("LLMCHESS_TURN_DELAY_S", 0.5, cast=float),
        model_list_limit=_get("LLMCHESS_MODEL_LIST_LIMIT", 50, cast=int),
    )


SETTINGS = load_settings()
