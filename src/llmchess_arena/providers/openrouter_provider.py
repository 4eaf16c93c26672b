"""
OpenRouter transport for structured move requests (OpenAI-compatible wire format).

- complete(): one chat completion with a json_schema response format; returns the parsed JSON reply.
  Transport errors, empty completions and non-JSON completions raise TransientProviderError so the
  caller's retry executor can try again.
- load_models()/search_models(): model listing filtered to the chat families we play with.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..config import SETTINGS, Settings
from ..errors import TransientProviderError
from ..prompting import SYSTEM_INSTRUCTIONS

MODEL_FAMILIES = ("gemini", "gpt", "claude", "deepseek")
FALLBACK_MODELS = [
    {"id": "google/gemini-2.0-flash-001", "name": "google/gemini-2.0-flash-001"},
    {"id": "openai/gpt-4o", "name": "openai/gpt-4o"},
    {"id": "anthropic/claude-sonnet-4", "name": "anthropic/claude-sonnet-4"},
]


class OpenRouterProvider:
    name = "openrouter"

    def __init__(self, api_key: str, settings: Settings | None = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or SETTINGS
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=self.settings.api_base)
        self.log = logging.getLogger("llm_client.openrouter")
        self.models: List[Dict[str, str]] = []
        self._all_models: List[Dict[str, str]] = []

    # ---------------- Model listing ----------------
    async def load_models(self) -> None:
        try:
            page = await self.client.models.list()
            found = [
                {"id": m.id, "name": m.id}
                for m in getattr(page, "data", [])
                if any(fam in m.id for fam in MODEL_FAMILIES)
            ]
        except OpenAIError:
            self.log.exception("Failed to load models, using fallback list")
            self._all_models = list(FALLBACK_MODELS)
            self.models = list(FALLBACK_MODELS)
            return
        self._all_models = found
        self.models = found[: self.settings.model_list_limit]
        self.log.info("OpenRouter: loaded %d models (filtered from %d total)", len(self.models), len(found))

    def search_models(self, query: str) -> List[Dict[str, str]]:
        if not query:
            return list(self.models)
        q = query.lower()
        hits = [m for m in self._all_models if q in m["id"].lower() or q in m["name"].lower()]
        return hits[: self.settings.model_list_limit]

    # ---------------- Completion ----------------
    async def complete(self, prompt: str, response_schema: Dict[str, Any], model: str) -> Dict[str, Any]:
        try:
            rsp = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.settings.temperature,
                max_completion_tokens=self.settings.max_completion_tokens,
                response_format={"type": "json_schema", "json_schema": response_schema},
            )
        except OpenAIError as exc:
            raise TransientProviderError(f"OpenRouter request failed: {exc}") from exc

        content = _extract_text(rsp)
        if not content:
            raise TransientProviderError("No response from OpenRouter")
        try:
            parsed = json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise TransientProviderError(f"Failed to parse OpenRouter response: {exc}") from exc
        if not isinstance(parsed, dict):
            raise TransientProviderError("Failed to parse OpenRouter response: expected a JSON object")
        return parsed


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        inner = text.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return text


def _extract_text(rsp) -> str:
    choices = getattr(rsp, "choices", None)
    if not choices:
        return ""
    msg = choices[0].message
    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
