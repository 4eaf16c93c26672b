"""
Move-suggestion service over the registered AI providers.

The rest of the code should not care which provider is in use. AIService builds the
prompt for a MoveSuggestionRequest, sends it through the provider wrapped in the backoff
retry executor, and normalizes the structured reply into a wire-format move.

Only TransientProviderError is retried. A reply whose squares fail validation raises
MalformedSuggestionError straight away; the orchestrator counts it as a strike.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from .config import SETTINGS, Settings
from .errors import ConfigurationError, TransientProviderError
from .move_validator import MoveSuggestionResponse, normalize_suggestion
from .prompting import MOVE_RESPONSE_SCHEMA, MoveSuggestionRequest, PieceMoves, build_move_prompt
from .providers import AIProvider, OpenRouterProvider
from .retry import RetryPolicy, retry_with_backoff

log = logging.getLogger("llm_client")


class AIService:
    def __init__(self, providers: Mapping[str, AIProvider] | None = None, settings: Settings | None = None,
                 retry_policy: RetryPolicy | None = None):
        self.settings = settings or SETTINGS
        self._providers: Dict[str, AIProvider] = dict(providers or {})
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.retry_attempts,
            base_delay_s=self.settings.retry_base_delay_s,
        )
        self._initialized = False
        log.info("Loaded AI providers: %s", ", ".join(self._providers) or "none")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AIService":
        settings = settings or SETTINGS
        providers: Dict[str, AIProvider] = {}
        if settings.llm_api_key:
            providers[OpenRouterProvider.name] = OpenRouterProvider(settings.llm_api_key, settings=settings)
        return cls(providers, settings=settings)

    async def initialize(self) -> None:
        """Load model listings from every provider once."""
        if self._initialized:
            return
        log.info("Loading models from provider APIs...")
        await asyncio.gather(*(p.load_models() for p in self._providers.values()))
        self._initialized = True

    # ---------------- Registry ----------------
    def available_providers(self) -> List[str]:
        return list(self._providers)

    def has_provider(self, name: str | None) -> bool:
        return bool(name) and name in self._providers

    def provider(self, name: str) -> AIProvider:
        p = self._providers.get(name)
        if p is None:
            raise ConfigurationError(f"Provider {name} not available")
        return p

    def models(self, provider: str) -> List[Dict[str, str]]:
        p = self._providers.get(provider)
        return list(p.models) if p else []

    def search_models(self, provider: str, query: str) -> List[Dict[str, str]]:
        p = self._providers.get(provider)
        return p.search_models(query) if p else []

    def resolve_model(self, provider: str, model: Optional[str]) -> str:
        if model:
            return model
        p = self.provider(provider)
        chosen = self.settings.default_model or (p.models[0]["id"] if p.models else "")
        if not chosen:
            raise ConfigurationError(f"No model configured for provider {provider}")
        return chosen

    # ---------------- Suggestions ----------------
    async def get_move(self, provider: str, request: MoveSuggestionRequest) -> MoveSuggestionResponse:
        p = self.provider(provider)
        model = self.resolve_model(provider, request.model)
        prompt = build_move_prompt(request)
        reply = await retry_with_backoff(
            lambda: p.complete(prompt, MOVE_RESPONSE_SCHEMA, model),
            policy=self.retry_policy,
            retry_on=(TransientProviderError,),
            label=f"{provider}:{model}",
        )
        return normalize_suggestion(reply)

    async def analyze(self, providers: List[str], request: MoveSuggestionRequest) -> Dict[str, Any]:
        """Ask several providers for the same position; failures are reported per provider."""
        results = await asyncio.gather(
            *(self.get_move(name, request) for name in providers),
            return_exceptions=True,
        )
        analysis: List[Dict[str, Any]] = []
        errors: List[Dict[str, str]] = []
        for name, res in zip(providers, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                errors.append({"provider": name, "error": str(res)})
                continue
            analysis.append({"provider": name, "move": res.move, "reasoning": res.reasoning, "confidence": res.confidence})
        return {
            "success": True,
            "analysis": analysis,
            "errors": errors,
            "totalRequested": len(providers),
            "successful": len(analysis),
        }


# ------------------------- Wire helpers -------------------------
def request_from_wire(payload: Mapping[str, Any]) -> tuple[str, MoveSuggestionRequest]:
    """Parse a wire request into (provider, MoveSuggestionRequest). Raises ValueError on missing fields."""
    provider = payload.get("provider")
    position = payload.get("position")
    side = payload.get("sideToMove")
    if not provider or not position or not side:
        raise ValueError("Missing required fields: provider, position, sideToMove")
    if side not in ("w", "b"):
        raise ValueError("sideToMove must be 'w' or 'b'")
    legal = payload.get("legalMoves")
    if legal is not None and not isinstance(legal, list):
        raise ValueError("legalMoves must be an array of moves")
    pieces = payload.get("piecesMoves")
    if pieces is not None and not (isinstance(pieces, list) and all(isinstance(pm, dict) for pm in pieces)):
        raise ValueError("piecesMoves must be an array of objects")
    history = payload.get("moveHistory")
    if history is not None and not isinstance(history, list):
        raise ValueError("moveHistory must be an array of moves")
    return provider, MoveSuggestionRequest(
        position=position,
        side_to_move=side,
        move_history=tuple(history or ()),
        legal_moves=tuple(legal) if legal else None,
        pieces_moves=tuple(
            PieceMoves(piece=str(pm.get("piece", "")), square=str(pm.get("square", "")), moves=tuple(pm.get("moves") or ()))
            for pm in pieces
        ) if pieces else None,
        model=payload.get("model"),
    )


def request_to_wire(provider: str, request: MoveSuggestionRequest) -> Dict[str, Any]:
    wire: Dict[str, Any] = {
        "provider": provider,
        "position": request.position,
        "moveHistory": list(request.move_history),
        "sideToMove": request.side_to_move,
    }
    if request.model:
        wire["model"] = request.model
    if request.legal_moves is not None:
        wire["legalMoves"] = list(request.legal_moves)
    if request.pieces_moves is not None:
        wire["piecesMoves"] = [pm.to_dict() for pm in request.pieces_moves]
    return wire


def response_to_wire(provider: str, model: Optional[str], response: MoveSuggestionResponse) -> Dict[str, Any]:
    return {
        "success": True,
        "provider": provider,
        "model": model,
        "move": response.move,
        "reasoning": response.reasoning,
        "confidence": response.confidence,
    }
